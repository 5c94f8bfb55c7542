"""Hardware package - GPIO backends, pump actuator, moisture sensor"""

from .gpio import GPIOBackend, RPiGPIOBackend, SimulatedGPIO, create_gpio_backend
from .actuator import Actuator, StatusLed
from .moisture import MoistureSensor, map_raw_to_percent, smooth

__all__ = [
    'GPIOBackend', 'RPiGPIOBackend', 'SimulatedGPIO', 'create_gpio_backend',
    'Actuator', 'StatusLed',
    'MoistureSensor', 'map_raw_to_percent', 'smooth',
]
