"""
Command Poller - fetches remote commands and executes each one exactly once.

Command flow:
1. Dashboard inserts a control_commands row with executed=false
2. Device polls for the newest unexecuted row
3. Device actuates, reports the resulting state, then acknowledges
"""

import logging
from enum import Enum
from typing import Optional

from ..core.context import DeviceContext
from ..exceptions import ActuationMismatchError, DeviceError
from ..hardware.actuator import Actuator
from ..storage.models import Command
from .backend_client import BackendClient
from .status_reporter import StatusReporter

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"


class CommandPoller:
    """
    Polls for pending commands and executes them.

    Acknowledgement always follows local actuation, so a crash mid-command
    leaves it unacknowledged and it is delivered again after reboot. Within
    one boot, an identifier is never actuated twice.
    """

    def __init__(
        self,
        backend: BackendClient,
        actuator: Actuator,
        context: DeviceContext,
        reporter: Optional[StatusReporter] = None,
        diagnostics=None,
    ):
        self.backend = backend
        self.actuator = actuator
        self.context = context
        self.reporter = reporter or StatusReporter(backend, context)
        self.diagnostics = diagnostics
        self.state = PollerState.IDLE

    def poll_and_execute(self) -> bool:
        """Run one poll. Returns True if a command was executed.

        Errors from the poll itself propagate; the control loop skips
        the cycle.
        """
        command = self.backend.poll_command()
        if command is None:
            return False

        if self.context.is_acknowledged(command.id):
            logger.debug(f"Command {command.id} already acknowledged, ignoring stale copy")
            return False

        if self.context.awaits_acknowledgement(command.id):
            logger.info(f"Command {command.id} already executed, retrying acknowledgement only")
            self._acknowledge(command.id)
            return False

        self._execute(command)
        return True

    def _execute(self, command: Command):
        self.state = PollerState.EXECUTING
        logger.info(f"Executing command {command.id}")
        try:
            if command.automatic_mode is not None:
                self.actuator.set_automatic_mode(command.automatic_mode)

            try:
                self.actuator.set_pump(command.pump_on)
            except ActuationMismatchError as e:
                # Context already holds the observed relay state
                logger.error(f"Command {command.id} could not be applied: {e}")
                if self.diagnostics:
                    self.diagnostics.record_actuation_mismatch()

            self.context.mark_executed(command.id)
            if self.diagnostics:
                self.diagnostics.record_command()

            self.reporter.report()
            self._acknowledge(command.id)
        finally:
            self.state = PollerState.IDLE

    def _acknowledge(self, command_id: str) -> bool:
        try:
            self.backend.acknowledge(command_id)
        except DeviceError as e:
            logger.warning(f"Failed to acknowledge command {command_id}, will retry on next poll: {e}")
            return False

        self.context.mark_acknowledged(command_id)
        return True
