"""DirectPrint agent - receives cloud print jobs and prints them."""

import asyncio
import logging
import signal

from directprint.cloud import CloudConnection, JobPoller
from directprint.config import AgentSettings, get_settings
from directprint.converter import DocumentConverter, ImageConverter, check_conversion_tools
from directprint.errors import PrinterError
from directprint.jobs import JobExecutor
from directprint.monitor import (
    daily_reset_tick,
    every,
    heartbeat_tick,
    status_log_tick,
    sweep_scratch_dir,
)
from directprint.printer import PrinterGateway
from directprint.state import AgentState

logger = logging.getLogger(__name__)

# How often the midnight rollover is checked (seconds)
DAILY_RESET_CHECK_INTERVAL = 60.0


class DirectPrintAgent:
    """Print agent connected to the cloud hub.

    The agent:
    1. Keeps a Socket.IO connection to the hub and registers on each connect
    2. Polls for pending print jobs and accepts pushed ones
    3. Runs jobs one at a time: save, convert, verify, print, report
    4. Sends heartbeats with printer health and housekeeps the scratch dir
    """

    def __init__(self, settings: AgentSettings | None = None):
        """Initialize the agent.

        Args:
            settings: Configuration (loaded from the environment if not provided).
        """
        self.settings = settings or get_settings()
        self.state = AgentState()
        self.gateway = PrinterGateway(
            health_timeout=self.settings.health_check_timeout,
            print_timeout=self.settings.print_timeout,
        )
        self.connection = CloudConnection(self.settings, self.state, self.gateway)
        self.executor = JobExecutor(
            self.state,
            self.gateway,
            self.connection,
            self.settings.temp_dir,
            configured_printer=self.settings.printer_name,
            document_converter=DocumentConverter(timeout=self.settings.conversion_timeout),
            image_converter=ImageConverter(timeout=self.settings.conversion_timeout),
            cleanup_delay=self.settings.cleanup_delay,
        )
        self.connection.executor = self.executor
        self.poller = JobPoller(self.settings, self.state, self.executor, self.connection)
        self._tasks: list[asyncio.Task] = []
        self._stop: asyncio.Event | None = None

    def _start_tasks(self) -> None:
        s = self.settings
        coros = {
            "connection": self.connection.connect(),
            "worker": self.executor.run(),
            "poller": self.poller.run(),
            "heartbeat": every(
                s.heartbeat_interval / 1000,
                lambda: heartbeat_tick(s.kiosk_id, self.state, self.gateway, self.connection),
                "heartbeat",
            ),
            "status-log": every(
                s.status_log_interval / 1000,
                lambda: status_log_tick(self.state, self.connection),
                "status log",
            ),
            "daily-reset": every(
                DAILY_RESET_CHECK_INTERVAL,
                lambda: daily_reset_tick(self.state),
                "daily reset",
            ),
            "sweep": every(
                s.sweep_interval,
                lambda: sweep_scratch_dir(s.temp_dir, s.stale_file_age),
                "scratch sweep",
            ),
        }
        self._tasks = [asyncio.create_task(coro, name=name) for name, coro in coros.items()]

    def _handle_shutdown(self, signame: str) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received {signame}, shutting down agent...")
        if self._stop is not None:
            self._stop.set()

    async def run(self) -> None:
        """Run the agent until SIGINT/SIGTERM or ``stop()``."""
        self.settings.ensure_temp_dir()

        logger.info("Starting DirectPrint agent")
        logger.info(f"Kiosk ID: {self.settings.kiosk_id}")
        logger.info(f"Cloud: {self.settings.cloud_url}")
        logger.info(f"Printer: {self.settings.printer_name}")
        logger.info(f"Poll interval: {self.settings.poll_interval / 1000:g}s")

        await check_conversion_tools()

        self._stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_shutdown, sig.name)

        self._start_tasks()
        logger.info("Agent ready and listening for jobs")
        try:
            await self._stop.wait()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await self.shutdown()

    def stop(self) -> None:
        """Ask a running agent to shut down."""
        self._handle_shutdown("stop request")

    async def shutdown(self) -> None:
        """Abandon in-flight work, stop timers and close the connection."""
        if self.state.current_job:
            logger.warning(f"Job {self.state.current_job} was in progress")
        queued = [job_id for job_id in self.state.pending if job_id != self.state.current_job]
        if queued:
            logger.warning(f"{len(queued)} job(s) in queue")

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await self.connection.close()
        await self.poller.close()
        logger.info("Agent stopped")

    async def check(self) -> dict:
        """Check conversion tools and the printer without connecting to the cloud.

        Returns:
            dict: Results with 'tools', 'printer', 'health' and 'success' keys.
        """
        tools = await check_conversion_tools()
        results = {
            "tools": {"libreoffice": tools.libreoffice, "imagemagick": tools.imagemagick},
            "printer": {"status": "unknown", "message": ""},
            "health": None,
            "success": False,
        }

        try:
            name = await self.gateway.resolve_printer(self.settings.printer_name)
        except PrinterError as e:
            results["printer"] = {"status": "error", "message": f"{e.reason}: {e.detail}"}
            return results

        health = await self.gateway.check_health(name)
        results["printer"] = {"status": "ok", "message": name}
        results["health"] = health.to_dict()
        results["success"] = True
        return results


def get_agent(settings: AgentSettings | None = None) -> DirectPrintAgent:
    """Factory function for DirectPrintAgent.

    Args:
        settings: Optional settings.

    Returns:
        DirectPrintAgent: Agent instance.
    """
    return DirectPrintAgent(settings)
