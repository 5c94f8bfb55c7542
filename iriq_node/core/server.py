"""Core DeviceServer - the single-threaded control loop"""

import logging
import time
from typing import Callable, Optional

import httpx

from .. import config
from ..exceptions import AuthError, DeviceError
from ..hardware.actuator import Actuator
from ..hardware.gpio import GPIOBackend, create_gpio_backend
from ..hardware.moisture import MoistureSensor
from ..services.automation_service import AutomationService
from ..services.diagnostics import DiagnosticsService
from ..storage.credential_store import CredentialStore
from ..sync.backend_client import BackendClient
from ..sync.command_poller import CommandPoller
from ..sync.session import SessionManager, create_authenticator
from ..sync.status_reporter import StatusReporter
from ..utils.timers import IntervalTimer
from .context import DeviceContext

logger = logging.getLogger(__name__)


class DeviceServer:
    """Runs sampling, command polling, status reporting and heartbeats.

    Each step is gated by its own interval timer and runs to completion on
    the calling thread; network calls are bounded by the HTTP timeout. A
    failing step is logged and retried on its next tick.
    """

    def __init__(
        self,
        device_id: str = None,
        gpio: Optional[GPIOBackend] = None,
        store: Optional[CredentialStore] = None,
        authenticator=None,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        logger.info("Initializing IriQ node...")
        self._clock = clock
        self._sleep = sleep

        self.context = DeviceContext(device_id=device_id or config.DEVICE_ID)
        self.diagnostics = DiagnosticsService()

        # Hardware
        self.gpio = gpio or create_gpio_backend()
        self.actuator = Actuator(self.gpio, self.context, sleep=sleep)
        self.sensor = MoistureSensor(self.gpio, sleep=sleep)

        # Cloud sync
        self.http = http_client or httpx.Client(timeout=config.HTTP_TIMEOUT_SECONDS)
        self.session = SessionManager(
            store or CredentialStore(),
            authenticator or create_authenticator(http_client=self.http),
        )
        self.backend = BackendClient(self.session, device_id=self.context.device_id, http_client=self.http)
        self.reporter = StatusReporter(self.backend, self.context)
        self.poller = CommandPoller(
            self.backend, self.actuator, self.context,
            reporter=self.reporter, diagnostics=self.diagnostics,
        )
        self.automation = AutomationService(self.actuator, self.context, diagnostics=self.diagnostics)

        # Independent step gates
        self.sample_timer = IntervalTimer(config.READING_INTERVAL_SECONDS, clock=clock)
        self.command_timer = IntervalTimer(config.COMMAND_CHECK_INTERVAL_SECONDS, clock=clock)
        self.status_timer = IntervalTimer(config.STATUS_INTERVAL_SECONDS, clock=clock)
        self.status_retry_timer = IntervalTimer(config.COMMAND_CHECK_INTERVAL_SECONDS, clock=clock)
        self.heartbeat_timer = IntervalTimer(config.HEARTBEAT_INTERVAL_SECONDS, clock=clock)

        self.running = False
        logger.info(f"IriQ node initialized (device_id: {self.context.device_id})")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self):
        """Bring the hardware to a known state (pump off)."""
        self.actuator.initialize()

    def run(self):
        """Initialize and loop until stop() is called."""
        self.initialize()
        self.running = True
        logger.info("Control loop started")
        try:
            while self.running:
                self.run_once()
                self._sleep(config.LOOP_TICK_SECONDS)
        finally:
            self.shutdown()

    def stop(self):
        """Ask the loop to exit after the current pass."""
        self.running = False
        logger.info("Stop requested")

    def shutdown(self):
        """Switch the pump off and release hardware and network resources."""
        logger.info("Shutting down IriQ node...")
        self.actuator.shutdown()
        try:
            self.gpio.cleanup()
        except Exception as e:
            logger.error(f"Error during GPIO cleanup: {e}")
        self.http.close()
        logger.info("IriQ node stopped")

    # =========================================================================
    # CONTROL LOOP
    # =========================================================================

    def run_once(self, now: Optional[float] = None):
        """One pass over every step whose interval has elapsed."""
        now = self._clock() if now is None else now

        if self.sample_timer.due(now):
            self._run_step("sampling", self._sample)

        if self.command_timer.due(now):
            self._run_step("command poll", self.poller.poll_and_execute)

        status_due = self.status_timer.due(now)
        if status_due or (self.context.status_dirty and self.status_retry_timer.due(now)):
            self._run_step("status report", self._report_status)

        if self.heartbeat_timer.due(now):
            self._run_step("heartbeat", self._heartbeat)

    def _run_step(self, name: str, step: Callable[[], object]):
        try:
            step()
        except DeviceError as e:
            logger.warning(f"{name} skipped this cycle: {e}")
            self.diagnostics.record_sync_error()
            if isinstance(e, AuthError):
                self.diagnostics.record_auth_failure()
        except Exception as e:
            logger.error(f"Unexpected error during {name}: {e}", exc_info=True)

    def _sample(self):
        reading = self.sensor.read()
        self.context.state.moisture_percent = reading.percentage

        # Local policy first, so irrigation keeps working while offline
        if self.automation.evaluate(reading):
            self._report_status()

        try:
            self.backend.report_reading(reading)
        except DeviceError as e:
            logger.warning(f"Failed to send sensor reading: {e}")
            self.diagnostics.record_reading_error()
            return
        self.diagnostics.record_reading_sent()

    def _report_status(self):
        if self.reporter.report():
            self.diagnostics.record_status_report()

    def _heartbeat(self):
        self.backend.send_heartbeat()
        self.diagnostics.record_heartbeat()
        self.diagnostics.log_summary()
