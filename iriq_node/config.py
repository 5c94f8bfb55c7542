"""Configuration for the IriQ irrigation node"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
_repo_root = Path(__file__).parent.parent.resolve()
_env_file = _repo_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Base directory
BASE_DIR = Path(__file__).parent.resolve()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


# Backend (Supabase REST + edge functions)
SUPABASE_URL = os.getenv("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")

# Device identity
DEVICE_ID = os.getenv("DEVICE_ID", "esp32_device_1")
DEVICE_TYPE = os.getenv("DEVICE_TYPE", "raspberry_pi")
DEVICE_OWNER_ID = os.getenv("DEVICE_OWNER_ID") or None  # written as user_id on status rows

# Authentication
# "edge_function" asks authenticate-device for a short-lived token.
# "static_key" reuses the anon key as bearer token (testing only).
AUTH_MODE = os.getenv("AUTH_MODE", "edge_function")
TOKEN_LEASE_SECONDS = int(os.getenv("TOKEN_LEASE_SECONDS", "86400"))
CREDENTIAL_DB_PATH = os.getenv("CREDENTIAL_DB_PATH", str(_repo_root / "data" / "device.db"))

# Network
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
STATUS_UPSERT_MAX_ATTEMPTS = int(os.getenv("STATUS_UPSERT_MAX_ATTEMPTS", "3"))

# Hardware Platform
SIMULATE_HARDWARE = _env_bool("SIMULATE_HARDWARE")

# GPIO Pin Configuration (BCM numbering)
PUMP_RELAY_PIN = int(os.getenv("PUMP_RELAY_PIN", "26"))  # active-LOW relay
LED_PIN = int(os.getenv("LED_PIN", "17"))

# Moisture probe behind an ADS1115 ADC
MOISTURE_ADC_CHANNEL = int(os.getenv("MOISTURE_ADC_CHANNEL", "0"))
ADS1115_I2C_BUS = int(os.getenv("ADS1115_I2C_BUS", "1"))
ADS1115_I2C_ADDRESS = int(os.getenv("ADS1115_I2C_ADDRESS", "0x48"), 0)

# Calibration (12-bit scale, 0 is wet, 4095 is dry air)
MOISTURE_DRY_VALUE = int(os.getenv("MOISTURE_DRY_VALUE", "4095"))
MOISTURE_WET_VALUE = int(os.getenv("MOISTURE_WET_VALUE", "1500"))
MOISTURE_THRESHOLD = int(os.getenv("MOISTURE_THRESHOLD", "30"))  # percent
MOISTURE_SAMPLES = int(os.getenv("MOISTURE_SAMPLES", "5"))

# Relay verification
RELAY_SETTLE_SECONDS = float(os.getenv("RELAY_SETTLE_SECONDS", "0.1"))
RELAY_MAX_ATTEMPTS = int(os.getenv("RELAY_MAX_ATTEMPTS", "3"))

# Control loop intervals
READING_INTERVAL_SECONDS = float(os.getenv("READING_INTERVAL_SECONDS", "60"))
COMMAND_CHECK_INTERVAL_SECONDS = float(os.getenv("COMMAND_CHECK_INTERVAL_SECONDS", "5"))
STATUS_INTERVAL_SECONDS = float(os.getenv("STATUS_INTERVAL_SECONDS", "300"))
HEARTBEAT_INTERVAL_SECONDS = float(os.getenv("HEARTBEAT_INTERVAL_SECONDS", "300"))
LOOP_TICK_SECONDS = float(os.getenv("LOOP_TICK_SECONDS", "0.25"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = "logs/iriq-node.log"

# Debug
DEBUG = _env_bool("DEBUG")
