"""
Pydantic models for the device and the backend rows it exchanges.
Field aliases are the backend column names.
"""

from pydantic import BaseModel, Field
from typing import Any, Optional


# =============================================================================
# CREDENTIAL
# =============================================================================

class Credential(BaseModel):
    """Bearer token plus its absolute expiry (epoch seconds)."""
    token: str = Field(min_length=1)
    expiry: int

    def is_valid_at(self, now: float) -> bool:
        return now < self.expiry

    def seconds_left(self, now: float) -> int:
        return max(0, int(self.expiry - now))


# =============================================================================
# COMMANDS
# =============================================================================

class Command(BaseModel):
    """Row of control_commands as seen by the device."""
    id: str = Field(min_length=1)
    pump_on: bool = Field(alias="pump_control")
    automatic_mode: Optional[bool] = None
    executed: bool = False
    created_at: Optional[str] = None

    class Config:
        populate_by_name = True
        coerce_numbers_to_str = True


# =============================================================================
# DEVICE STATE
# =============================================================================

class DeviceState(BaseModel):
    """Physical state owned by the device; the backend row is a replica."""
    pump_on: bool = Field(default=False, alias="pump_status")
    automatic_mode: bool = False
    moisture_percent: int = Field(default=0, ge=0, le=100, alias="moisture_level")

    class Config:
        populate_by_name = True
        validate_assignment = True

    def to_status_payload(self, device_id: str, owner_id: Optional[str] = None) -> dict[str, Any]:
        """Body for the device_status table."""
        payload = {
            "device_id": device_id,
            "pump_status": self.pump_on,
            "automatic_mode": self.automatic_mode,
        }
        if owner_id:
            payload["user_id"] = owner_id
        return payload


# =============================================================================
# MOISTURE READINGS
# =============================================================================

class MoistureReading(BaseModel):
    """One smoothed sample; transmitted and then discarded."""
    percentage: int = Field(ge=0, le=100, alias="moisture_percentage")
    below_threshold: bool = Field(alias="moisture_digital")
    raw_value: int = 0

    class Config:
        populate_by_name = True

    def to_payload(self, device_id: str) -> dict[str, Any]:
        """Body for the sensor_readings table."""
        return {
            "device_id": device_id,
            "moisture_percentage": self.percentage,
            "moisture_digital": self.below_threshold,
        }
