# Storage module - models and local SQLite persistence
from .credential_store import CredentialStore
from .models import Credential, Command, DeviceState, MoistureReading

__all__ = ['CredentialStore', 'Credential', 'Command', 'DeviceState', 'MoistureReading']
