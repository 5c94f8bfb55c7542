"""Device context - the state the control loop owns"""

from dataclasses import dataclass, field

from ..storage.models import DeviceState


@dataclass
class DeviceContext:
    """Pump, mode and command bookkeeping for one device.

    Only the control loop thread touches it.
    """
    device_id: str
    state: DeviceState = field(default_factory=DeviceState)
    acknowledged_ids: set[str] = field(default_factory=set)  # since boot
    executed_ids: set[str] = field(default_factory=set)  # actuated, ack still pending
    status_dirty: bool = True  # backend replica may be stale

    def mark_dirty(self):
        self.status_dirty = True

    def mark_executed(self, command_id: str):
        self.executed_ids.add(command_id)

    def mark_acknowledged(self, command_id: str):
        self.executed_ids.discard(command_id)
        self.acknowledged_ids.add(command_id)

    def is_acknowledged(self, command_id: str) -> bool:
        return command_id in self.acknowledged_ids

    def awaits_acknowledgement(self, command_id: str) -> bool:
        return command_id in self.executed_ids
