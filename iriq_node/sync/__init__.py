"""Sync package - session, backend client, status reporting, command polling"""

from .session import (
    AuthGrant,
    EdgeFunctionAuthenticator,
    SessionManager,
    StaticKeyAuthenticator,
    create_authenticator,
)
from .backend_client import BackendClient
from .status_reporter import StatusReporter
from .command_poller import CommandPoller, PollerState

__all__ = [
    'AuthGrant', 'EdgeFunctionAuthenticator', 'SessionManager', 'StaticKeyAuthenticator',
    'create_authenticator', 'BackendClient', 'StatusReporter', 'CommandPoller', 'PollerState',
]
