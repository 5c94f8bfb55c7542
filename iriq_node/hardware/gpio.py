"""
GPIO backends for the relay, the status LED and the moisture ADC.

RPiGPIOBackend drives real pins (RPi.GPIO) and reads an ADS1115 over I2C
(smbus2). SimulatedGPIO keeps everything in memory for development
machines and tests; it is selected by SIMULATE_HARDWARE, never as a
silent fallback.
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

from .. import config

logger = logging.getLogger(__name__)

HIGH = 1
LOW = 0

# ADS1115 registers and config bits
ADS1115_REG_CONVERSION = 0x00
ADS1115_REG_CONFIG = 0x01
ADS1115_OS_SINGLE = 0x8000
ADS1115_MUX_SINGLE_0 = 0x4000  # AIN0 vs GND, +0x1000 per channel
ADS1115_PGA_4_096V = 0x0200
ADS1115_MODE_SINGLE = 0x0100
ADS1115_DR_128SPS = 0x0080
ADS1115_COMP_DISABLE = 0x0003
ADS1115_CONVERSION_DELAY = 0.009


class GPIOBackend:
    """Minimal pin interface used by the actuator and the moisture sensor."""

    HIGH = HIGH
    LOW = LOW

    def setup_output(self, pin: int, initial: int = LOW):
        raise NotImplementedError

    def output(self, pin: int, level: int):
        raise NotImplementedError

    def input(self, pin: int) -> int:
        raise NotImplementedError

    def read_analog(self, channel: int) -> int:
        """Return a 12-bit (0-4095) reading."""
        raise NotImplementedError

    def cleanup(self):
        raise NotImplementedError


class RPiGPIOBackend(GPIOBackend):
    """Real hardware: BCM pins via RPi.GPIO, ADS1115 via smbus2."""

    def __init__(self, i2c_bus: int = None, adc_address: int = None):
        import RPi.GPIO as GPIO

        self._gpio = GPIO
        self._gpio.setwarnings(False)
        self._gpio.setmode(GPIO.BCM)
        self.i2c_bus = config.ADS1115_I2C_BUS if i2c_bus is None else i2c_bus
        self.adc_address = config.ADS1115_I2C_ADDRESS if adc_address is None else adc_address
        self._bus = None
        logger.info("RPi.GPIO backend initialized (BCM numbering)")

    def setup_output(self, pin: int, initial: int = LOW):
        level = self._gpio.HIGH if initial == HIGH else self._gpio.LOW
        self._gpio.setup(pin, self._gpio.OUT, initial=level)
        logger.info(f"GPIO{pin} setup as output (initial={'HIGH' if initial == HIGH else 'LOW'})")

    def output(self, pin: int, level: int):
        self._gpio.output(pin, self._gpio.HIGH if level == HIGH else self._gpio.LOW)

    def input(self, pin: int) -> int:
        # input() on an output pin returns the driven level
        return HIGH if self._gpio.input(pin) == self._gpio.HIGH else LOW

    def _get_bus(self):
        if self._bus is None:
            import smbus2
            self._bus = smbus2.SMBus(self.i2c_bus)
            logger.info(f"ADS1115 opened on I2C bus {self.i2c_bus}, address 0x{self.adc_address:02X}")
        return self._bus

    def read_analog(self, channel: int) -> int:
        if not 0 <= channel <= 3:
            raise ValueError(f"ADS1115 channel must be 0-3, got {channel}")

        bus = self._get_bus()
        cfg = (
            ADS1115_OS_SINGLE
            | (ADS1115_MUX_SINGLE_0 + (channel << 12))
            | ADS1115_PGA_4_096V
            | ADS1115_MODE_SINGLE
            | ADS1115_DR_128SPS
            | ADS1115_COMP_DISABLE
        )
        bus.write_i2c_block_data(self.adc_address, ADS1115_REG_CONFIG, [(cfg >> 8) & 0xFF, cfg & 0xFF])
        time.sleep(ADS1115_CONVERSION_DELAY)
        high, low = bus.read_i2c_block_data(self.adc_address, ADS1115_REG_CONVERSION, 2)

        value = (high << 8) | low
        if value & 0x8000:
            value -= 1 << 16
        # 15-bit positive range scaled to the 12-bit calibration scale
        return max(0, value) >> 3

    def cleanup(self):
        self._gpio.cleanup()
        if self._bus is not None:
            self._bus.close()
            self._bus = None
        logger.info("GPIO cleaned up")


class SimulatedGPIO(GPIOBackend):
    """In-memory pins for development and tests.

    ``stuck_pins`` maps a pin to the level it stays at whatever is written,
    which emulates a relay that does not respond.
    """

    def __init__(
        self,
        analog_values: Optional[Dict[int, int]] = None,
        stuck_pins: Optional[Dict[int, int]] = None,
    ):
        self.levels: Dict[int, int] = {}
        self.analog_values: Dict[int, int] = dict(analog_values or {})
        self.stuck_pins: Dict[int, int] = dict(stuck_pins or {})
        self.writes: List[Tuple[int, int]] = []
        logger.info("🎭 SIMULATION MODE ENABLED - Using simulated GPIO")

    def setup_output(self, pin: int, initial: int = LOW):
        self.levels[pin] = self.stuck_pins.get(pin, initial)
        logger.debug(f"[SIMULATED GPIO] setup(pin={pin}, initial={initial})")

    def output(self, pin: int, level: int):
        self.writes.append((pin, level))
        self.levels[pin] = self.stuck_pins.get(pin, level)
        logger.debug(f"[SIMULATED GPIO] output(pin={pin}, state={'HIGH' if level == HIGH else 'LOW'})")

    def input(self, pin: int) -> int:
        return self.levels.get(pin, LOW)

    def set_analog(self, channel: int, value: int):
        self.analog_values[channel] = value

    def read_analog(self, channel: int) -> int:
        return self.analog_values.get(channel, config.MOISTURE_DRY_VALUE)

    def cleanup(self):
        logger.debug("[SIMULATED GPIO] cleanup()")


def create_gpio_backend(simulate: bool = None) -> GPIOBackend:
    """Pick the backend selected by SIMULATE_HARDWARE."""
    simulate = config.SIMULATE_HARDWARE if simulate is None else simulate
    if simulate:
        return SimulatedGPIO()
    return RPiGPIOBackend()
