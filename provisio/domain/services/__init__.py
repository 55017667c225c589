"""
Domain Services Package

Architectural Intent:
- Contains domain services that encapsulate business logic
- Services are stateless and operate on domain objects
"""

from provisio.domain.services.readiness import ReadinessPolicy, wait_until_ready

__all__ = ["ReadinessPolicy", "wait_until_ready"]
