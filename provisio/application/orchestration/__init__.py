"""
Application Orchestration Package

Architectural Intent:
- Contains the provisioning orchestration components
- Bounded parallel fan-out and the per-batch provisioning state machine
"""

from provisio.application.orchestration.parallelizer import (
    Parallelizer,
    ParallelOutcome,
    ParallelResult,
    ParallelRun,
)
from provisio.application.orchestration.batch_coordinator import BatchCoordinator

__all__ = [
    "Parallelizer",
    "ParallelOutcome",
    "ParallelResult",
    "ParallelRun",
    "BatchCoordinator",
]
