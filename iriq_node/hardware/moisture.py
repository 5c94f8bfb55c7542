"""Soil moisture sensor - averaged ADC samples mapped to a smoothed percentage"""

import logging
import time
from typing import Callable, Optional

from .. import config
from ..storage.models import MoistureReading
from .gpio import GPIOBackend

logger = logging.getLogger(__name__)

SAMPLE_SPACING_SECONDS = 0.02


def map_raw_to_percent(raw: int, dry_value: int, wet_value: int) -> int:
    """Map a raw reading to 0-100 (0 = dry, 100 = wet).

    At or above the dry reference is 0, at or below the wet reference is
    100, anything between is interpolated linearly and truncated.
    """
    if raw >= dry_value:
        return 0
    if raw <= wet_value:
        return 100
    return int((raw - dry_value) * 100 / (wet_value - dry_value))


def smooth(current: int, previous: Optional[int]) -> int:
    """70% current reading, 30% previous smoothed value."""
    if previous is None:
        return current
    return (current * 7 + previous * 3) // 10


class MoistureSensor:
    """Reads the moisture probe and keeps only the smoothed running value."""

    def __init__(
        self,
        gpio: GPIOBackend,
        channel: int = None,
        dry_value: int = None,
        wet_value: int = None,
        threshold: int = None,
        samples: int = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gpio = gpio
        self.channel = config.MOISTURE_ADC_CHANNEL if channel is None else channel
        self.dry_value = config.MOISTURE_DRY_VALUE if dry_value is None else dry_value
        self.wet_value = config.MOISTURE_WET_VALUE if wet_value is None else wet_value
        self.threshold = config.MOISTURE_THRESHOLD if threshold is None else threshold
        self.samples = max(1, samples or config.MOISTURE_SAMPLES)
        self._sleep = sleep
        self._smoothed: Optional[int] = None

        if self.wet_value >= self.dry_value:
            raise ValueError("Wet calibration value must be below the dry value")

    @property
    def last_percentage(self) -> Optional[int]:
        return self._smoothed

    def read_raw(self) -> int:
        """Average several samples for a steadier raw value."""
        total = 0
        for i in range(self.samples):
            total += self.gpio.read_analog(self.channel)
            if i < self.samples - 1:
                self._sleep(SAMPLE_SPACING_SECONDS)
        return total // self.samples

    def read(self) -> MoistureReading:
        raw = self.read_raw()
        level = smooth(map_raw_to_percent(raw, self.dry_value, self.wet_value), self._smoothed)
        self._smoothed = level

        reading = MoistureReading(
            percentage=level,
            below_threshold=level < self.threshold,
            raw_value=raw,
        )
        logger.info(f"Moisture {level}% (raw {raw}, threshold {self.threshold}%)")
        return reading
