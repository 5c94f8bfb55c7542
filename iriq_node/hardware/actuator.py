"""
Actuator - pump relay with closed-loop verification, plus the status LED.

Both the command executor and automatic mode go through this class, so
read-back verification and truthful state apply to every actuation.
"""

import logging
import time
from typing import Callable

from .. import config
from ..core.context import DeviceContext
from ..exceptions import ActuationMismatchError
from ..utils.retry import attempt_until, linear_backoff
from .gpio import GPIOBackend, HIGH, LOW

logger = logging.getLogger(__name__)

# (blinks, on/off seconds); diagnostic only
PATTERN_PUMP_ON = (2, 0.1)
PATTERN_PUMP_OFF = (1, 0.1)
PATTERN_MODE_CHANGED = (3, 0.25)


class StatusLed:
    """Blinks human-readable patterns on the status LED."""

    def __init__(self, gpio: GPIOBackend, pin: int, sleep: Callable[[float], None] = time.sleep):
        self.gpio = gpio
        self.pin = pin
        self._sleep = sleep

    def initialize(self):
        self.gpio.setup_output(self.pin, initial=LOW)

    def blink(self, pattern):
        times, period = pattern
        for _ in range(times):
            self.gpio.output(self.pin, HIGH)
            self._sleep(period)
            self.gpio.output(self.pin, LOW)
            self._sleep(period)


class Actuator:
    """Drives the pump relay and records the verified state in the context."""

    def __init__(
        self,
        gpio: GPIOBackend,
        context: DeviceContext,
        relay_pin: int = None,
        led_pin: int = None,
        settle_seconds: float = None,
        max_attempts: int = None,
        active_low: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gpio = gpio
        self.context = context
        self.relay_pin = config.PUMP_RELAY_PIN if relay_pin is None else relay_pin
        self.settle_seconds = config.RELAY_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        self.max_attempts = max_attempts or config.RELAY_MAX_ATTEMPTS
        self.active_low = active_low
        self._sleep = sleep
        self.led = StatusLed(gpio, config.LED_PIN if led_pin is None else led_pin, sleep=sleep)

    def _relay_level(self, on: bool) -> int:
        # Active-LOW relay: LOW energizes the coil
        if self.active_low:
            return LOW if on else HIGH
        return HIGH if on else LOW

    def _read_relay(self) -> bool:
        level = self.gpio.input(self.relay_pin)
        return level == self._relay_level(True)

    def initialize(self):
        """Configure pins and make sure the pump is off at boot."""
        self.gpio.setup_output(self.relay_pin, initial=self._relay_level(False))
        self.led.initialize()
        self.context.state.pump_on = self._read_relay()
        if self.context.state.pump_on:
            logger.error(f"GPIO{self.relay_pin} relay reads ON right after boot initialization")
        logger.info(f"Pump relay initialized on GPIO{self.relay_pin} (active_low={self.active_low})")

    def set_pump(self, desired: bool) -> bool:
        """Switch the pump and verify the relay by reading the pin back.

        Re-asserts with a growing settle delay up to ``max_attempts``. The
        context always ends up holding the observed state; a persistent
        mismatch raises ActuationMismatchError after recording it.
        """
        level = self._relay_level(desired)
        label = f"Relay GPIO{self.relay_pin} -> {'ON' if desired else 'OFF'}"

        def assert_and_read(attempt: int) -> bool:
            self.gpio.output(self.relay_pin, level)
            self._sleep(linear_backoff(self.settle_seconds, attempt))
            return self._read_relay()

        outcome = attempt_until(assert_and_read, lambda observed: observed == desired, self.max_attempts, label=label)
        observed = outcome.value

        self.context.state.pump_on = observed
        self.context.mark_dirty()
        self.led.blink(PATTERN_PUMP_ON if observed else PATTERN_PUMP_OFF)

        if not outcome.succeeded:
            logger.error(f"🚨 MISMATCH {label}: relay still reads {'ON' if observed else 'OFF'}")
            raise ActuationMismatchError(desired, observed, outcome.attempts)

        logger.info(f"✓ Pump {'ON' if observed else 'OFF'} (verified after {outcome.attempts} attempt(s))")
        return observed

    def set_automatic_mode(self, enabled: bool) -> bool:
        """Update the automatic-mode flag. Returns False when unchanged."""
        if self.context.state.automatic_mode == enabled:
            logger.debug(f"Automatic mode already {'ON' if enabled else 'OFF'}")
            return False

        self.context.state.automatic_mode = enabled
        self.context.mark_dirty()
        self.led.blink(PATTERN_MODE_CHANGED)

        if enabled:
            logger.info("Switching to automatic mode - pump follows moisture levels")
        else:
            logger.info("Switching to manual mode - pump follows user commands")
        return True

    def shutdown(self):
        """Leave the pump off; errors are logged, never raised."""
        try:
            self.set_pump(False)
        except ActuationMismatchError as e:
            logger.error(f"Pump may still be running at shutdown: {e}")
