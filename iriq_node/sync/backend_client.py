"""
Backend Client - REST calls against the Supabase resource endpoints.

Every call first asks the session manager for a fresh credential. A 401/403
on any call invalidates the session and fails the call for this cycle.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from .. import config
from ..exceptions import AuthError, BackendError, ConnectivityError, ParseError
from ..storage.models import Command, DeviceState, MoistureReading
from ..utils.retry import attempt_until
from .session import SessionManager

logger = logging.getLogger(__name__)

AUTH_FAILURE_CODES = (401, 403)
UPSERT_SWITCH_CODES = (404, 409)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


class BackendClient:
    """Device side of the REST surface: readings, status, commands, heartbeats."""

    def __init__(
        self,
        session: SessionManager,
        device_id: str = None,
        base_url: str = None,
        api_key: str = None,
        owner_id: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = None,
        upsert_attempts: int = None,
    ):
        self.session = session
        self.device_id = device_id or config.DEVICE_ID
        self.base_url = (base_url or config.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.SUPABASE_ANON_KEY
        self.owner_id = owner_id if owner_id is not None else config.DEVICE_OWNER_ID
        self.http = http_client or httpx.Client(
            timeout=timeout if timeout is not None else config.HTTP_TIMEOUT_SECONDS
        )
        self.upsert_attempts = upsert_attempts or config.STATUS_UPSERT_MAX_ATTEMPTS

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Release the underlying HTTP connection pool."""
        self.http.close()

    # =========================================================================
    # REQUEST PLUMBING
    # =========================================================================

    def _request(
        self,
        method: str,
        table: str,
        action: str,
        params: Optional[dict] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        """Send an authenticated request and map auth/transport failures."""
        credential = self.session.get_valid_credential()

        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {credential.token}",
        }
        if json is not None:
            headers["Content-Type"] = "application/json"
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = self.http.request(
                method,
                f"{self.base_url}/rest/v1/{table}",
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.TransportError as e:
            raise ConnectivityError(f"Cannot {action}: {e}") from e

        if response.status_code in AUTH_FAILURE_CODES:
            logger.warning(f"Authentication error while trying to {action}. Clearing token, will retry next cycle.")
            self.session.invalidate()
            raise AuthError(f"Cannot {action}: HTTP {response.status_code}", status_code=response.status_code)

        return response

    def _raise_for_status(self, response: httpx.Response, action: str):
        if not _is_success(response):
            raise BackendError(
                f"Cannot {action}: HTTP {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

    # =========================================================================
    # READINGS
    # =========================================================================

    def report_reading(self, reading: MoistureReading) -> None:
        """Create a sensor_readings row. Not retried within the call."""
        action = "send sensor reading"
        response = self._request(
            "POST", "sensor_readings", action,
            json=reading.to_payload(self.device_id),
            prefer="return=minimal",
        )
        self._raise_for_status(response, action)
        logger.debug(f"Reading sent ({reading.percentage}%)")

    # =========================================================================
    # DEVICE STATUS (upsert)
    # =========================================================================

    def report_status(self, state: DeviceState) -> str:
        """Upsert the device_status row for this device.

        Tries an update first. A conflict, a not-found or an update that
        matched no row switches to create, and the same codes on create
        switch back. Returns the path that succeeded ("update" or "create").
        """
        payload = state.to_status_payload(self.device_id, self.owner_id)
        mode = "update"

        def step(attempt: int) -> Optional[str]:
            nonlocal mode
            current = mode
            if current == "update":
                response = self._request(
                    "PATCH", "device_status", "update device status",
                    params={"device_id": f"eq.{self.device_id}"},
                    json=payload,
                    prefer="return=representation",
                )
            else:
                response = self._request(
                    "POST", "device_status", "create device status",
                    json=payload,
                    prefer="return=minimal",
                )

            if _is_success(response):
                if current == "update" and self._matched_no_rows(response):
                    logger.info("No device_status row for this device yet, falling back to create")
                    mode = "create"
                    return None
                return current

            if response.status_code in UPSERT_SWITCH_CODES:
                mode = "create" if current == "update" else "update"
                logger.info(f"Status {current} returned HTTP {response.status_code}, falling back to {mode}")
                return None

            self._raise_for_status(response, f"{current} device status")
            return None

        outcome = attempt_until(step, lambda path: path is not None, self.upsert_attempts, label="Status upsert")
        if not outcome.succeeded:
            raise BackendError(f"Status upsert did not settle after {outcome.attempts} attempts")

        logger.info(
            f"Device status reported via {outcome.value} "
            f"(pump={'ON' if state.pump_on else 'OFF'}, auto={'ON' if state.automatic_mode else 'OFF'})"
        )
        return outcome.value

    @staticmethod
    def _matched_no_rows(response: httpx.Response) -> bool:
        """True when a return=representation update came back empty."""
        if response.status_code == 204 or not response.content:
            return False
        try:
            return response.json() == []
        except ValueError:
            return False

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def poll_command(self) -> Optional[Command]:
        """Fetch the newest unexecuted command for this device, if any."""
        action = "check for commands"
        response = self._request(
            "GET", "control_commands", action,
            params={
                "device_id": f"eq.{self.device_id}",
                "executed": "eq.false",
                "order": "created_at.desc",
                "limit": "1",
            },
        )
        self._raise_for_status(response, action)

        try:
            command = self._parse_command(response)
        except ParseError as e:
            logger.warning(f"Ignoring malformed command payload: {e}")
            return None

        if command is None:
            logger.debug("No new commands")
        else:
            logger.info(
                f"Received command {command.id}: pump={'ON' if command.pump_on else 'OFF'}, "
                f"auto={command.automatic_mode}"
            )
        return command

    @staticmethod
    def _parse_command(response: httpx.Response) -> Optional[Command]:
        try:
            rows = response.json()
        except ValueError as e:
            raise ParseError(f"response is not JSON: {e}") from e

        if not isinstance(rows, list):
            raise ParseError(f"expected a list of rows, got {type(rows).__name__}")
        if not rows:
            return None
        if not isinstance(rows[0], dict):
            raise ParseError("command row is not an object")

        try:
            return Command.model_validate(rows[0])
        except ValidationError as e:
            raise ParseError(str(e)) from e

    def acknowledge(self, command_id: str) -> None:
        """Mark a command executed.

        Filtering on executed=false makes a repeated acknowledgement match
        nothing, so it succeeds without touching the row again.
        """
        action = f"mark command {command_id} as executed"
        response = self._request(
            "PATCH", "control_commands", action,
            params={"id": f"eq.{command_id}", "executed": "eq.false"},
            json={"executed": True, "executed_at": _utc_timestamp()},
            prefer="return=minimal",
        )
        self._raise_for_status(response, action)
        logger.info(f"Command {command_id} marked as executed")

    # =========================================================================
    # HEARTBEAT
    # =========================================================================

    def send_heartbeat(self) -> None:
        """Tell the backend the device is alive."""
        action = "send heartbeat"
        response = self._request(
            "POST", "device_heartbeats", action,
            json={"device_id": self.device_id, "last_seen": _utc_timestamp(), "status": "active"},
            prefer="return=minimal",
        )
        self._raise_for_status(response, action)
        logger.debug("Heartbeat sent")
