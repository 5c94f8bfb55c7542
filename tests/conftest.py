"""Shared fixtures: a fake Supabase backend, fake clock, simulated GPIO."""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from iriq_node.core.context import DeviceContext
from iriq_node.hardware.actuator import Actuator
from iriq_node.hardware.gpio import SimulatedGPIO
from iriq_node.storage.credential_store import CredentialStore
from iriq_node.sync.backend_client import BackendClient
from iriq_node.sync.session import EdgeFunctionAuthenticator, SessionManager

BASE_URL = "https://backend.test"
API_KEY = "anon-key"
DEVICE_ID = "esp32_device_1"
RELAY_PIN = 26
LED_PIN = 17


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def _eq(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value[3:] if value.startswith("eq.") else value


class FakeSupabase:
    """In-memory stand-in for the PostgREST tables and the auth edge function."""

    def __init__(self):
        self.commands: List[Dict[str, Any]] = []
        self.status_rows: List[Dict[str, Any]] = []
        self.readings: List[Dict[str, Any]] = []
        self.heartbeats: List[Dict[str, Any]] = []
        self.requests: List[httpx.Request] = []
        self.tokens_issued: List[str] = []
        self.revoked_tokens: set = set()
        self.auth_status = 200
        self.transport_down = False
        # (method, path) -> list of status codes served before normal handling
        self.forced: Dict[Tuple[str, str], List[int]] = {}

    # -- helpers for tests -------------------------------------------------

    def add_command(self, command_id: str, pump: bool, auto: Optional[bool] = None,
                    created_at: str = "2025-04-28T10:00:00Z", device_id: str = DEVICE_ID):
        row = {
            "id": command_id,
            "device_id": device_id,
            "pump_control": pump,
            "automatic_mode": auto,
            "executed": False,
            "executed_at": None,
            "created_at": created_at,
        }
        self.commands.append(row)
        return row

    def force(self, method: str, path: str, *codes: int):
        self.forced.setdefault((method, path), []).extend(codes)

    def requests_to(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    # -- request handling ----------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.transport_down:
            raise httpx.ConnectError("network unreachable", request=request)

        path = request.url.path
        forced = self.forced.get((request.method, path))
        if forced:
            return httpx.Response(forced.pop(0), json={"message": "forced"})

        if path == "/functions/v1/authenticate-device":
            return self._authenticate(request)

        bearer = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if bearer in self.revoked_tokens:
            return httpx.Response(401, json={"message": "JWT expired"})

        body = json.loads(request.content) if request.content else None
        params = request.url.params

        if path == "/rest/v1/control_commands":
            if request.method == "GET":
                return self._select_commands(params)
            if request.method == "PATCH":
                return self._update_commands(params, body)
        if path == "/rest/v1/device_status":
            if request.method == "PATCH":
                return self._update_status(params, body)
            if request.method == "POST":
                return self._insert_status(body)
        if path == "/rest/v1/sensor_readings" and request.method == "POST":
            self.readings.append(body)
            return httpx.Response(201)
        if path == "/rest/v1/device_heartbeats" and request.method == "POST":
            self.heartbeats.append(body)
            return httpx.Response(201)
        return httpx.Response(404, json={"message": "no route"})

    def _authenticate(self, request: httpx.Request) -> httpx.Response:
        if self.auth_status != 200:
            return httpx.Response(self.auth_status, json={"error": "Device not authorized"})
        token = f"token-{len(self.tokens_issued) + 1}"
        self.tokens_issued.append(token)
        return httpx.Response(200, json={"token": token, "expires_in": 86400, "user_id": "owner-1"})

    def _select_commands(self, params) -> httpx.Response:
        device_id = _eq(params.get("device_id"))
        rows = [
            row for row in self.commands
            if row["device_id"] == device_id and row["executed"] is False
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        limit = int(params.get("limit", len(rows) or 1))
        return httpx.Response(200, json=rows[:limit])

    def _update_commands(self, params, body) -> httpx.Response:
        command_id = _eq(params.get("id"))
        executed_filter = params.get("executed")
        for row in self.commands:
            if row["id"] != command_id:
                continue
            if executed_filter == "eq.false" and row["executed"] is not False:
                continue
            row.update(body)
        return httpx.Response(204)

    def _update_status(self, params, body) -> httpx.Response:
        device_id = _eq(params.get("device_id"))
        matched = [row for row in self.status_rows if row["device_id"] == device_id]
        for row in matched:
            row.update(body)
        return httpx.Response(200, json=matched)

    def _insert_status(self, body) -> httpx.Response:
        if any(row["device_id"] == body["device_id"] for row in self.status_rows):
            return httpx.Response(409, json={"message": "duplicate key value"})
        self.status_rows.append(dict(body))
        return httpx.Response(201)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_backend() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def http_client(fake_backend):
    client = fake_backend.client()
    yield client
    client.close()


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    return CredentialStore(db_path=str(tmp_path / "device.db"))


@pytest.fixture
def session(store, http_client, clock) -> SessionManager:
    authenticator = EdgeFunctionAuthenticator(
        base_url=BASE_URL, api_key=API_KEY, device_id=DEVICE_ID,
        device_type="raspberry_pi", http_client=http_client,
    )
    return SessionManager(store, authenticator, lease_seconds=86400, clock=clock)


@pytest.fixture
def backend(session, http_client) -> BackendClient:
    return BackendClient(
        session, device_id=DEVICE_ID, base_url=BASE_URL, api_key=API_KEY,
        owner_id="", http_client=http_client, upsert_attempts=3,
    )


@pytest.fixture
def context() -> DeviceContext:
    return DeviceContext(device_id=DEVICE_ID)


@pytest.fixture
def gpio() -> SimulatedGPIO:
    return SimulatedGPIO()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def actuator(gpio, context, sleeps) -> Actuator:
    act = Actuator(
        gpio, context, relay_pin=RELAY_PIN, led_pin=LED_PIN,
        settle_seconds=0.1, max_attempts=3, sleep=sleeps.append,
    )
    act.initialize()
    return act
