"""Tests for agent wiring, checks and shutdown."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from directprint import agent as agent_module
from directprint.agent import DirectPrintAgent
from directprint.converter import ToolReport
from directprint.errors import PrinterError
from directprint.printer import ERROR, PrinterHealth
from tests.helpers import FakeGateway


@pytest.fixture
def agent(settings, monkeypatch):
    monkeypatch.setattr(
        agent_module,
        "check_conversion_tools",
        AsyncMock(return_value=ToolReport(libreoffice="LibreOffice 7.4", imagemagick=None)),
    )
    instance = DirectPrintAgent(settings)
    instance.gateway = FakeGateway()
    return instance


class TestWiring:
    """Tests for component wiring."""

    def test_components_share_state(self, agent):
        """All components should work on the same state object."""
        assert agent.executor.state is agent.state
        assert agent.connection.state is agent.state
        assert agent.poller.state is agent.state
        assert agent.connection.executor is agent.executor
        assert agent.executor.reporter is agent.connection

    def test_settings_flow_into_components(self, agent, settings):
        """Configured timeouts and paths should reach the components."""
        assert agent.executor.temp_dir == settings.temp_dir
        assert agent.executor.cleanup_delay == settings.cleanup_delay
        assert agent.executor.configured_printer == "auto"


class TestCheck:
    """Tests for the setup check."""

    @pytest.mark.asyncio
    async def test_reports_printer_and_health(self, agent):
        """A resolvable printer should make the check succeed."""
        agent.gateway.health = PrinterHealth(ERROR, "cover-open")

        results = await agent.check()

        assert results["success"] is True
        assert results["printer"] == {"status": "ok", "message": "Office_Printer"}
        assert results["health"] == {"status": "error", "detail": "cover-open"}
        assert results["tools"] == {"libreoffice": "LibreOffice 7.4", "imagemagick": None}

    @pytest.mark.asyncio
    async def test_no_printer_fails(self, agent):
        """An unresolvable printer should fail the check."""

        async def no_printer(configured="auto"):
            raise PrinterError(PrinterError.NO_PRINTER, "No printers found")

        agent.gateway.resolve_printer = no_printer

        results = await agent.check()

        assert results["success"] is False
        assert results["printer"]["status"] == "error"
        assert "No printers found" in results["printer"]["message"]
        assert results["health"] is None


class TestShutdown:
    """Tests for starting and stopping background tasks."""

    @pytest.mark.asyncio
    async def test_shutdown_cancels_tasks(self, agent, monkeypatch):
        """Shutdown should cancel every timer and close the transports."""
        monkeypatch.setattr(agent.connection, "connect", AsyncMock())
        monkeypatch.setattr(agent.connection, "close", AsyncMock())
        monkeypatch.setattr(agent.poller, "close", AsyncMock())

        agent._start_tasks()
        names = {task.get_name() for task in agent._tasks}
        tasks = list(agent._tasks)
        await asyncio.sleep(0)

        await agent.shutdown()

        assert names == {
            "connection",
            "worker",
            "poller",
            "heartbeat",
            "status-log",
            "daily-reset",
            "sweep",
        }
        assert all(task.done() for task in tasks)
        assert agent._tasks == []
        agent.connection.close.assert_awaited_once()
        agent.poller.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_shutdown_reports_abandoned_jobs(self, agent, monkeypatch, pdf_job, caplog):
        """Jobs still queued at shutdown should be logged as abandoned."""
        monkeypatch.setattr(agent.connection, "close", AsyncMock())
        agent.executor.submit(pdf_job("j1"))
        agent.executor.submit(pdf_job("j2"))
        agent.state.current_job = "j1"

        await agent.shutdown()

        assert "Job j1 was in progress" in caplog.text
        assert "1 job(s) in queue" in caplog.text

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, agent, monkeypatch):
        """run() should return after stop() and leave the scratch dir in place."""
        monkeypatch.setattr(agent, "_start_tasks", lambda: None)
        monkeypatch.setattr(agent.connection, "close", AsyncMock())

        runner = asyncio.create_task(agent.run())
        for _ in range(100):
            if agent._stop is not None:
                break
            await asyncio.sleep(0.01)
        agent.stop()
        await asyncio.wait_for(runner, 2)

        assert agent.settings.temp_dir.is_dir()
        agent.connection.close.assert_awaited_once()
