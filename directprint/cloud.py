"""Cloud hub transport: persistent socket connection and job polling."""

import asyncio
import logging
import socket
from datetime import datetime

import httpx
import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from directprint.config import AgentSettings
from directprint.errors import NetworkError, PrinterError
from directprint.jobs import JobExecutor
from directprint.printer import PrinterGateway
from directprint.state import AgentState

logger = logging.getLogger(__name__)

# Fixed delay between reconnection attempts (seconds)
RECONNECT_DELAY = 1.0


class CloudConnection:
    """Socket.IO connection to the cloud hub.

    Registers the kiosk on every (re)connection, answers pings, accepts
    pushed jobs and carries lifecycle events and heartbeats upstream.
    Events emitted while disconnected are dropped, not queued.
    """

    def __init__(
        self,
        settings: AgentSettings,
        state: AgentState,
        gateway: PrinterGateway,
        executor: JobExecutor | None = None,
        client: socketio.AsyncClient | None = None,
    ):
        self.settings = settings
        self.state = state
        self.gateway = gateway
        self.executor = executor
        self.sio = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=0,
            reconnection_delay=RECONNECT_DELAY,
            reconnection_delay_max=RECONNECT_DELAY,
            randomization_factor=0,
        )
        self._closing = False
        self._register_handlers()

    @property
    def connected(self) -> bool:
        return self.sio.connected

    def _register_handlers(self) -> None:
        self.sio.on("connect", self.on_connect)
        self.sio.on("disconnect", self.on_disconnect)
        self.sio.on("ping", self.on_ping)
        self.sio.on("update_config", self.on_update_config)
        self.sio.on("new_job", self.on_new_job)

    # ==================== EVENT HANDLERS ====================

    async def on_connect(self) -> None:
        logger.info("Connected to cloud hub")
        try:
            self.state.printer_name = await self.gateway.resolve_printer(
                self.settings.printer_name
            )
        except PrinterError as e:
            logger.warning(f"Could not detect printer: {e}")

        # The namespace is live here even though the client may not report
        # connected until this handler returns
        await self._send("register", self.registration_payload())
        logger.info(f"Registered with cloud as {self.settings.kiosk_id}")

    async def on_disconnect(self, *args) -> None:
        if not self._closing:
            logger.warning("Disconnected from cloud. Reconnecting...")

    async def on_ping(self, *args) -> None:
        await self.emit(
            "pong",
            {
                "status": "alive",
                "uptime": self.state.uptime,
                "current_job": self.state.current_job,
                "pending_count": len(self.state.pending),
                "poll_count": self.state.poll_count,
                "jobs_fetched_today": self.state.jobs_fetched_today,
                "conversions_today": self.state.conversions_today,
            },
        )

    async def on_update_config(self, data) -> None:
        logger.info(f"Config update received: {data}")

    async def on_new_job(self, data) -> None:
        if self.executor is None:
            logger.warning("Pushed job received but no executor is attached")
            return
        if not isinstance(data, dict):
            logger.error(f"Ignoring pushed job with unexpected payload type {type(data).__name__}")
            return
        logger.info(f"[Push] New job received: {data.get('job_id')}")
        if self.executor.submit(data) is not None:
            self.state.jobs_fetched_today += 1

    # ==================== OUTBOUND ====================

    def registration_payload(self) -> dict:
        return {
            "kiosk_id": self.settings.kiosk_id,
            "hostname": socket.gethostname(),
            "printer_name": self.state.printer_name or "unknown",
        }

    async def emit(self, event: str, data: dict) -> None:
        """Send an event if connected; drop it otherwise."""
        if not self.sio.connected:
            logger.debug(f"Not connected, dropping {event}")
            return
        await self._send(event, data)

    async def _send(self, event: str, data: dict) -> None:
        try:
            await self.sio.emit(event, data)
        except SocketIOError as e:
            logger.warning(f"Could not emit {event}: {e}")

    # ==================== LIFECYCLE ====================

    async def connect(self) -> None:
        """Connect to the hub, retrying forever with a fixed delay.

        Reconnection after a later drop is handled by the Socket.IO client.
        """
        logger.info(f"Connecting to cloud at {self.settings.cloud_url}...")
        attempts = 0
        while not self._closing:
            try:
                await self.sio.connect(self.settings.cloud_url)
                if attempts:
                    logger.info(f"Connected after {attempts + 1} attempts")
                return
            except SocketConnectionError as e:
                attempts += 1
                if attempts == 1 or attempts % 12 == 0:
                    logger.warning(f"Cannot reach cloud hub ({e}), retrying...")
                await asyncio.sleep(RECONNECT_DELAY)

    async def close(self) -> None:
        self._closing = True
        if self.sio.connected:
            await self.sio.disconnect()


class JobPoller:
    """Periodically pulls pending jobs from the cloud's poll endpoint."""

    def __init__(
        self,
        settings: AgentSettings,
        state: AgentState,
        executor: JobExecutor,
        connection: CloudConnection,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self.state = state
        self.executor = executor
        self.connection = connection
        self._http_client = client
        self._skipped = 0
        self._unreachable = 0

    @property
    def poll_url(self) -> str:
        return f"{self.settings.cloud_url}/api/jobs/poll"

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.poll_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_jobs(self) -> list[dict]:
        """Request pending jobs for this kiosk.

        Returns:
            list[dict]: Raw job payloads (possibly empty).

        Raises:
            NetworkError: If the request fails or the answer is unusable.
        """
        client = self._get_client()
        try:
            response = await client.get(self.poll_url, params={"kiosk_id": self.settings.kiosk_id})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                return []
            if status == 400:
                raise NetworkError("Bad request - check kiosk_id") from e
            raise NetworkError(f"Poll returned HTTP {status}") from e
        except httpx.TimeoutException as e:
            raise NetworkError("Poll request timed out") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Cannot reach server: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Invalid poll response: {e}") from e

        if not isinstance(data, dict):
            raise NetworkError("Invalid poll response: expected a JSON object")
        jobs = data.get("jobs") or []
        return [job for job in jobs if isinstance(job, dict)]

    async def poll_once(self) -> int:
        """Run one poll cycle.

        Returns:
            int: Number of new jobs queued.
        """
        if not self.connection.connected:
            if self._skipped % 12 == 0:
                logger.info("Not connected to cloud, skipping poll")
            self._skipped += 1
            return 0
        self._skipped = 0

        self.state.poll_count += 1
        self.state.last_poll = datetime.now()

        try:
            jobs = await self.fetch_jobs()
        except NetworkError as e:
            if isinstance(e.__cause__, httpx.TimeoutException):
                logger.debug(f"[Poll] {e}")
            elif isinstance(e.__cause__, httpx.RequestError):
                if self._unreachable % 12 == 0:
                    logger.error(f"[Poll] {e}")
                self._unreachable += 1
            else:
                logger.error(f"[Poll] {e}")
            return 0
        self._unreachable = 0

        queued = 0
        for job in jobs:
            logger.info(f"[Poll] New job received: {job.get('job_id')}")
            if self.executor.submit(job) is not None:
                queued += 1
        self.state.jobs_fetched_today += queued

        if not jobs and self.state.poll_count % 60 == 0:
            logger.info(f"[Poll] No jobs available (checked {self.state.poll_count} times)")
        return queued

    async def run(self, initial_delay: float = 2.0) -> None:
        """Poll forever at the configured interval."""
        interval = self.settings.poll_interval / 1000
        logger.info(f"Polling enabled (every {interval:g}s)")
        await asyncio.sleep(initial_delay)
        logger.info("Starting job polling...")
        while True:
            await self.poll_once()
            await asyncio.sleep(interval)
