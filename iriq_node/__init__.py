"""IriQ irrigation node - device/cloud sync and pump actuation"""

__version__ = "0.1.0"
