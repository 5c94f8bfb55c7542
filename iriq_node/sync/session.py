"""
Session Manager - owns credential validity for every backend call.

Flow:
1. On boot, load the persisted credential (drop it if expired)
2. get_valid_credential() re-authenticates synchronously when needed
3. Any 401/403 seen by the backend client calls invalidate()
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .. import config
from ..exceptions import AuthError, ConnectivityError
from ..storage.credential_store import CredentialStore
from ..storage.models import Credential

logger = logging.getLogger(__name__)


@dataclass
class AuthGrant:
    """Token issued by an authenticator."""
    token: str
    expires_in: Optional[int] = None


class EdgeFunctionAuthenticator:
    """Obtains a short-lived token from the authenticate-device edge function."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        device_id: str = None,
        device_type: str = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = None,
    ):
        self.url = f"{(base_url or config.SUPABASE_URL).rstrip('/')}/functions/v1/authenticate-device"
        self.api_key = api_key if api_key is not None else config.SUPABASE_ANON_KEY
        self.device_id = device_id or config.DEVICE_ID
        self.device_type = device_type or config.DEVICE_TYPE
        self.http = http_client or httpx.Client(
            timeout=timeout if timeout is not None else config.HTTP_TIMEOUT_SECONDS
        )

    def authenticate(self) -> AuthGrant:
        logger.info(f"Authenticating device {self.device_id}...")
        try:
            response = self.http.post(
                self.url,
                headers={"apikey": self.api_key, "Content-Type": "application/json"},
                json={"device_id": self.device_id, "device_type": self.device_type},
            )
        except httpx.TransportError as e:
            raise ConnectivityError(f"Cannot reach authentication endpoint: {e}") from e

        if response.status_code != 200:
            raise AuthError(
                f"Authentication failed with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
            token = body["token"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(f"Malformed authentication response: {e}") from e

        if not isinstance(token, str) or not token:
            raise AuthError("Authentication response carried an empty token")

        expires_in = body.get("expires_in")
        try:
            expires_in = int(expires_in) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_in = None

        return AuthGrant(token=token, expires_in=expires_in)


class StaticKeyAuthenticator:
    """Uses the pre-shared API key as the bearer token.

    Degraded mode for bench testing; no network round trip.
    """

    def __init__(self, api_key: str = None):
        self.api_key = api_key if api_key is not None else config.SUPABASE_ANON_KEY

    def authenticate(self) -> AuthGrant:
        if not self.api_key:
            raise AuthError("No API key configured for static-key authentication")
        logger.warning("Using static API key as bearer token (testing mode)")
        return AuthGrant(token=self.api_key)


def create_authenticator(mode: str = None, http_client: Optional[httpx.Client] = None):
    """Build the authenticator selected by AUTH_MODE."""
    mode = mode or config.AUTH_MODE
    if mode == "edge_function":
        return EdgeFunctionAuthenticator(http_client=http_client)
    if mode == "static_key":
        return StaticKeyAuthenticator()
    raise ValueError(f"Unknown AUTH_MODE: {mode}")


class SessionManager:
    """Hands out credentials that are guaranteed not to be expired."""

    def __init__(
        self,
        store: CredentialStore,
        authenticator,
        lease_seconds: int = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.authenticator = authenticator
        self.lease_seconds = lease_seconds or config.TOKEN_LEASE_SECONDS
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._restore()

    def _restore(self):
        """Load the persisted credential if it is still usable."""
        stored = self.store.load()
        if stored is None:
            logger.info("No stored credential, will authenticate on first use")
            return

        if self._is_usable(stored):
            self._credential = stored
            minutes = stored.seconds_left(self._clock()) // 60
            logger.info(f"Found valid stored credential (expires in {minutes} minutes)")
        else:
            logger.info("Stored credential has expired, need to re-authenticate")
            self.store.clear()

    def _is_usable(self, credential: Credential) -> bool:
        now = self._clock()
        if not credential.is_valid_at(now):
            return False
        # An expiry more than one lease away means the wall clock went backwards
        return credential.expiry - now <= self.lease_seconds

    def is_authenticated(self) -> bool:
        """Cheap local check, never touches the network."""
        return self._credential is not None and self._is_usable(self._credential)

    def get_valid_credential(self) -> Credential:
        """Return a non-expired credential, authenticating if needed.

        Raises AuthError or ConnectivityError when authentication fails;
        the session is then left unauthenticated.
        """
        if self.is_authenticated():
            return self._credential

        if self._credential is not None:
            logger.info("Credential expired, re-authenticating")
            self.invalidate()

        try:
            grant = self.authenticator.authenticate()
        except (AuthError, ConnectivityError) as e:
            logger.warning(f"Authentication failed: {e}")
            raise

        lease = self.lease_seconds
        if grant.expires_in is not None and 0 < grant.expires_in < lease:
            lease = grant.expires_in

        credential = Credential(token=grant.token, expiry=int(self._clock()) + lease)
        self.store.save(credential)
        self._credential = credential
        logger.info(f"Authentication successful (lease {lease}s)")
        return credential

    def invalidate(self):
        """Drop the credential from memory and from persistent storage."""
        self._credential = None
        self.store.clear()
        logger.info("Authentication data cleared")
