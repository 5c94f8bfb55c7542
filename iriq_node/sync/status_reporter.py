"""Pushes the device's own state to the backend replica"""

import logging

from ..core.context import DeviceContext
from ..exceptions import DeviceError
from .backend_client import BackendClient

logger = logging.getLogger(__name__)


class StatusReporter:
    """Reports DeviceState; a failed report leaves the state dirty for the next status tick."""

    def __init__(self, backend: BackendClient, context: DeviceContext):
        self.backend = backend
        self.context = context

    def report(self) -> bool:
        try:
            self.backend.report_status(self.context.state)
        except DeviceError as e:
            logger.warning(f"Failed to update device status, will retry on next status tick: {e}")
            self.context.mark_dirty()
            return False

        self.context.status_dirty = False
        return True
