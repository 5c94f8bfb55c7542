"""Tests for command polling and exactly-once execution."""

import pytest

from iriq_node.core.context import DeviceContext
from iriq_node.exceptions import BackendError, ConnectivityError
from iriq_node.hardware.gpio import HIGH, LOW, SimulatedGPIO
from iriq_node.services.diagnostics import DiagnosticsService
from iriq_node.storage.models import Command
from iriq_node.sync.command_poller import CommandPoller, PollerState

from .conftest import DEVICE_ID, RELAY_PIN
from .test_actuator import build_actuator, relay_writes


class StubBackend:
    """Backend that keeps serving the same command and records calls."""

    def __init__(self, command=None, ack_errors=(), status_errors=(), poll_error=None):
        self.command = command
        self.ack_errors = list(ack_errors)
        self.status_errors = list(status_errors)
        self.poll_error = poll_error
        self.acks = []
        self.reported_states = []

    def poll_command(self):
        if self.poll_error is not None:
            raise self.poll_error
        return self.command

    def acknowledge(self, command_id):
        self.acks.append(command_id)
        if self.ack_errors:
            raise self.ack_errors.pop(0)

    def report_status(self, state):
        self.reported_states.append(state.model_copy())
        if self.status_errors:
            raise self.status_errors.pop(0)
        return "update"


class RecordingActuator:
    def __init__(self, context):
        self.context = context
        self.calls = []

    def set_automatic_mode(self, enabled):
        self.calls.append(("mode", enabled))
        self.context.state.automatic_mode = enabled
        return True

    def set_pump(self, desired):
        self.calls.append(("pump", desired))
        self.context.state.pump_on = desired
        return desired


def command(command_id="c1", pump=True, auto=False):
    return Command(id=command_id, pump_on=pump, automatic_mode=auto)


def test_remote_command_is_actuated_reported_and_acknowledged(backend, fake_backend, actuator, gpio, context):
    row = fake_backend.add_command("c1", pump=True, auto=False)
    poller = CommandPoller(backend, actuator, context)

    assert poller.poll_and_execute() is True

    assert gpio.input(RELAY_PIN) == LOW
    assert fake_backend.status_rows[0]["pump_status"] is True
    assert fake_backend.status_rows[0]["automatic_mode"] is False
    assert row["executed"] is True
    assert context.is_acknowledged("c1")
    assert poller.state is PollerState.IDLE


def test_nothing_pending_does_nothing(backend, actuator, gpio, context):
    poller = CommandPoller(backend, actuator, context)

    assert poller.poll_and_execute() is False
    assert relay_writes(gpio) == []


def test_same_command_is_never_actuated_twice(actuator, gpio, context):
    backend = StubBackend(command=command("c1", pump=True))
    poller = CommandPoller(backend, actuator, context)

    assert poller.poll_and_execute() is True
    assert poller.poll_and_execute() is False

    assert relay_writes(gpio) == [LOW]
    assert backend.acks == ["c1"]


def test_failed_acknowledgement_is_retried_without_actuating(actuator, gpio, context):
    backend = StubBackend(command=command("c1", pump=True), ack_errors=[ConnectivityError("down")])
    poller = CommandPoller(backend, actuator, context)

    assert poller.poll_and_execute() is True
    assert context.awaits_acknowledgement("c1")
    assert not context.is_acknowledged("c1")

    assert poller.poll_and_execute() is False

    assert relay_writes(gpio) == [LOW]
    assert backend.acks == ["c1", "c1"]
    assert context.is_acknowledged("c1")
    assert not context.awaits_acknowledgement("c1")


def test_command_is_acknowledged_even_when_status_report_fails(actuator, context):
    backend = StubBackend(command=command("c1", pump=True), status_errors=[BackendError("boom", 500)])
    poller = CommandPoller(backend, actuator, context)

    poller.poll_and_execute()

    assert backend.acks == ["c1"]
    assert context.status_dirty is True


def test_successful_command_reports_new_state_and_clears_dirty_flag(actuator, context):
    backend = StubBackend(command=command("c1", pump=True))
    poller = CommandPoller(backend, actuator, context)

    poller.poll_and_execute()

    assert backend.reported_states[0].pump_on is True
    assert context.status_dirty is False


def test_stuck_relay_reports_observed_state_and_still_acknowledges():
    gpio = SimulatedGPIO(stuck_pins={RELAY_PIN: HIGH})
    actuator, context, _ = build_actuator(gpio)
    diagnostics = DiagnosticsService()
    backend = StubBackend(command=command("c1", pump=True))
    poller = CommandPoller(backend, actuator, context, diagnostics=diagnostics)

    assert poller.poll_and_execute() is True

    assert backend.reported_states[-1].pump_on is False
    assert backend.acks == ["c1"]
    assert diagnostics.counters["actuation_mismatches"] == 1
    assert diagnostics.counters["commands_executed"] == 1


def test_mode_is_applied_before_pump():
    context = DeviceContext(device_id=DEVICE_ID)
    actuator = RecordingActuator(context)
    backend = StubBackend(command=command("c1", pump=False, auto=True))

    CommandPoller(backend, actuator, context).poll_and_execute()

    assert actuator.calls == [("mode", True), ("pump", False)]


def test_command_without_mode_leaves_mode_alone():
    context = DeviceContext(device_id=DEVICE_ID)
    context.state.automatic_mode = True
    actuator = RecordingActuator(context)
    backend = StubBackend(command=Command(id="c2", pump_on=True))

    CommandPoller(backend, actuator, context).poll_and_execute()

    assert actuator.calls == [("pump", True)]
    assert context.state.automatic_mode is True


def test_newer_command_is_executed_after_older_one():
    gpio = SimulatedGPIO()
    actuator, context, _ = build_actuator(gpio)
    backend = StubBackend(command=command("c1", pump=True))
    poller = CommandPoller(backend, actuator, context)
    poller.poll_and_execute()

    backend.command = command("c2", pump=False)
    assert poller.poll_and_execute() is True

    assert relay_writes(gpio) == [LOW, HIGH]
    assert backend.acks == ["c1", "c2"]


def test_poll_failure_propagates(actuator, context):
    backend = StubBackend(poll_error=ConnectivityError("down"))
    poller = CommandPoller(backend, actuator, context)

    with pytest.raises(ConnectivityError):
        poller.poll_and_execute()
