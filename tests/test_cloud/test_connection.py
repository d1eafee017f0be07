"""Tests for the cloud socket connection."""

import socket
from unittest.mock import AsyncMock, MagicMock

import pytest
from socketio.exceptions import BadNamespaceError
from socketio.exceptions import ConnectionError as SocketConnectionError

from directprint import cloud as cloud_module
from directprint.cloud import CloudConnection
from directprint.errors import PrinterError


@pytest.fixture
def sio():
    """Mock Socket.IO client."""
    client = MagicMock()
    client.connected = True
    client.emit = AsyncMock()
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    return client


@pytest.fixture
def connection(settings, state, gateway, executor, sio):
    return CloudConnection(settings, state, gateway, executor=executor, client=sio)


class TestHandlers:
    """Tests for inbound event handlers."""

    def test_registers_handlers(self, connection, sio):
        """All inbound events should be wired to the client."""
        events = {call.args[0] for call in sio.on.call_args_list}
        assert events == {"connect", "disconnect", "ping", "update_config", "new_job"}

    @pytest.mark.asyncio
    async def test_connect_resolves_printer_and_registers(self, connection, sio, state):
        """Every connect should resolve the printer and register the kiosk."""
        await connection.on_connect()

        assert state.printer_name == "Office_Printer"
        sio.emit.assert_awaited_once_with(
            "register",
            {
                "kiosk_id": "kiosk_test",
                "hostname": socket.gethostname(),
                "printer_name": "Office_Printer",
            },
        )

    @pytest.mark.asyncio
    async def test_reconnect_registers_again(self, connection, sio):
        """A reconnection should register the kiosk again."""
        await connection.on_connect()
        await connection.on_connect()
        assert [call.args[0] for call in sio.emit.await_args_list] == ["register", "register"]

    @pytest.mark.asyncio
    async def test_register_without_printer(self, connection, sio, gateway, state):
        """Registration should still happen when no printer is found."""

        async def no_printer(configured="auto"):
            raise PrinterError(PrinterError.NO_PRINTER, "No printers found")

        gateway.resolve_printer = no_printer

        await connection.on_connect()

        assert state.printer_name is None
        assert sio.emit.await_args.args[1]["printer_name"] == "unknown"

    @pytest.mark.asyncio
    async def test_ping_answers_pong(self, connection, sio, state):
        """A ping should be answered with a pong carrying live counters."""
        state.poll_count = 7
        state.conversions_today = 2

        await connection.on_ping()

        event, payload = sio.emit.await_args.args
        assert event == "pong"
        assert payload["status"] == "alive"
        assert payload["poll_count"] == 7
        assert payload["conversions_today"] == 2
        assert payload["pending_count"] == 0
        assert payload["current_job"] is None

    @pytest.mark.asyncio
    async def test_update_config_is_logged(self, connection, sio, caplog):
        """Config updates are logged but not applied."""
        caplog.set_level("INFO")
        await connection.on_update_config({"poll_interval": 1000})
        assert "Config update received" in caplog.text
        sio.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pushed_job_is_queued(self, connection, state):
        """A pushed job should be queued like a polled one."""
        await connection.on_new_job({"job_id": "p1", "filename": "a.pdf", "file_data": ""})
        assert list(state.pending) == ["p1"]
        assert state.jobs_fetched_today == 1

    @pytest.mark.asyncio
    async def test_pushed_duplicate_not_counted(self, connection, state):
        """A duplicate pushed job should not be queued or counted twice."""
        job = {"job_id": "p1", "filename": "a.pdf", "file_data": ""}
        await connection.on_new_job(job)
        await connection.on_new_job(job)
        assert state.jobs_fetched_today == 1

    @pytest.mark.asyncio
    async def test_pushed_garbage_is_ignored(self, connection, state):
        """A non-object payload should be ignored."""
        await connection.on_new_job("not a job")
        assert state.pending == {}


class TestEmit:
    """Tests for outbound events."""

    @pytest.mark.asyncio
    async def test_emit_when_connected(self, connection, sio):
        """Events should be sent while connected."""
        await connection.emit("print_started", {"job_id": "j1"})
        sio.emit.assert_awaited_once_with("print_started", {"job_id": "j1"})

    @pytest.mark.asyncio
    async def test_emit_dropped_when_disconnected(self, connection, sio):
        """Events should be dropped, not queued, while disconnected."""
        sio.connected = False
        await connection.emit("print_started", {"job_id": "j1"})
        sio.emit.assert_not_awaited()
        assert connection.connected is False

    @pytest.mark.asyncio
    async def test_emit_error_is_logged(self, connection, sio, caplog):
        """A transport error while sending should not propagate."""
        sio.emit.side_effect = BadNamespaceError("/ is not a connected namespace.")
        await connection.emit("heartbeat", {})
        assert "Could not emit heartbeat" in caplog.text


class TestLifecycle:
    """Tests for connecting and closing."""

    @pytest.mark.asyncio
    async def test_connect_retries_until_reachable(self, connection, sio, settings, monkeypatch):
        """Failed connection attempts should be retried with a fixed delay."""
        monkeypatch.setattr(cloud_module, "RECONNECT_DELAY", 0)
        sio.connect.side_effect = [
            SocketConnectionError("refused"),
            SocketConnectionError("refused"),
            None,
        ]

        await connection.connect()

        assert sio.connect.await_count == 3
        sio.connect.assert_awaited_with("https://cloud.test")

    @pytest.mark.asyncio
    async def test_close_disconnects(self, connection, sio):
        """Closing should disconnect a connected client."""
        await connection.close()
        sio.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_when_not_connected(self, connection, sio):
        """Closing a disconnected client should be a no-op."""
        sio.connected = False
        await connection.close()
        sio.disconnect.assert_not_awaited()

    def test_builds_reconnecting_client(self, settings, state, gateway):
        """The default client should reconnect forever."""
        connection = CloudConnection(settings, state, gateway)
        assert connection.sio.reconnection is True
        assert connection.sio.reconnection_attempts == 0
