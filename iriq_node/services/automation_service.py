"""Automation service - moisture-driven pump control in automatic mode"""

import logging

from ..core.context import DeviceContext
from ..exceptions import ActuationMismatchError
from ..hardware.actuator import Actuator
from ..storage.models import MoistureReading

logger = logging.getLogger(__name__)


class AutomationService:
    """Turns the pump on below the moisture threshold and off above it.

    Only active while automatic mode is on; uses the same Actuator as the
    command executor.
    """

    def __init__(self, actuator: Actuator, context: DeviceContext, diagnostics=None):
        self.actuator = actuator
        self.context = context
        self.diagnostics = diagnostics

    def evaluate(self, reading: MoistureReading) -> bool:
        """Apply the policy to a reading. Returns True if the pump was driven."""
        state = self.context.state
        if not state.automatic_mode:
            return False

        desired = reading.below_threshold
        if desired == state.pump_on:
            return False

        logger.info(
            f"Automatic mode: moisture {reading.percentage}% is "
            f"{'below' if desired else 'at or above'} threshold, pump {'ON' if desired else 'OFF'}"
        )
        try:
            self.actuator.set_pump(desired)
        except ActuationMismatchError as e:
            logger.error(f"Automatic irrigation could not switch the pump: {e}")
            if self.diagnostics:
                self.diagnostics.record_actuation_mismatch()
        return True
