"""
Run Machine Action Use Case

Architectural Intent:
- Second entry point for the declarative layer: apply allocate, ready,
  stop or destroy to one declared machine
- Reuses the batch coordinator with a one-machine batch so a single machine
  gets exactly the same persistence and failure handling as a batch
"""

from provisio.application.dtos.batch_dtos import MachineOutcome
from provisio.application.orchestration.batch_coordinator import BatchCoordinator
from provisio.domain.entities.machine_batch import BatchAction, MachineBatch
from provisio.domain.entities.machine_declaration import MachineDeclaration
from provisio.domain.ports.action_handler_port import ActionHandlerPort


class RunMachineAction:
    def __init__(self, coordinator: BatchCoordinator):
        self.coordinator = coordinator

    async def execute(
        self,
        action_handler: ActionHandlerPort,
        declaration: MachineDeclaration,
        action: BatchAction | str = BatchAction.CONVERGE,
    ) -> MachineOutcome:
        batch = MachineBatch(f"machine[{declaration.name}]", action=action)
        batch.add(declaration)
        result = await self.coordinator.run(batch, action_handler)
        return result[declaration.name]
