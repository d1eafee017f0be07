"""Job lifecycle: intake, conversion, verification, printing and cleanup.

The executor is the only component that mutates job records. Jobs are
processed strictly one at a time, in arrival order; new jobs can be queued
at any moment but never start before the current job reaches a terminal
stage.
"""

import asyncio
import logging
from pathlib import Path, PurePath
from typing import Protocol
from urllib.parse import quote

from pydantic import ValidationError

from directprint.classifier import DocumentKind, classify
from directprint.config import AUTO_PRINTER
from directprint.converter import DocumentConverter, ImageConverter
from directprint.errors import AgentError, JobError
from directprint.pdf import verify_pages
from directprint.printer import PrinterGateway
from directprint.state import AgentState, JobDescriptor, JobRecord, JobStage

logger = logging.getLogger(__name__)

# Seconds to keep printed files around; the spooler may still be reading them
CLEANUP_DELAY = 5.0


class Reporter(Protocol):
    """Upstream channel for lifecycle events."""

    @property
    def connected(self) -> bool: ...

    async def emit(self, event: str, data: dict) -> None: ...


class Converter(Protocol):
    async def convert(self, input_path: Path) -> Path: ...


def _safe_component(value: str) -> str:
    # Percent-encoded, "_" included, so distinct ids never share a file name
    return quote(value, safe="").replace("_", "%5F")


def remove_files(paths: list[Path]) -> list[Path]:
    """Delete files, ignoring ones already gone.

    Returns:
        list[Path]: Files actually deleted.
    """
    removed = []
    for path in paths:
        try:
            if path.exists():
                path.unlink()
                removed.append(path)
        except OSError as e:
            logger.warning(f"Cleanup error for {path.name}: {e}")
    return removed


class JobExecutor:
    """Single-worker job pipeline.

    Attributes:
        state: Shared agent state (queue, current job, counters, printer).
        gateway: CUPS gateway used to resolve printers and submit files.
        reporter: Channel for job_received / print_started / print_complete.
        temp_dir: Scratch directory for job files.
        configured_printer: Printer name from settings ('auto' to detect).
        cleanup_delay: Seconds between completion and file deletion.
    """

    def __init__(
        self,
        state: AgentState,
        gateway: PrinterGateway,
        reporter: Reporter,
        temp_dir: Path,
        configured_printer: str = AUTO_PRINTER,
        document_converter: Converter | None = None,
        image_converter: Converter | None = None,
        cleanup_delay: float = CLEANUP_DELAY,
    ):
        self.state = state
        self.gateway = gateway
        self.reporter = reporter
        self.temp_dir = Path(temp_dir)
        self.configured_printer = configured_printer
        self.converters: dict[DocumentKind, Converter] = {
            DocumentKind.DOCUMENT: document_converter or DocumentConverter(),
            DocumentKind.IMAGE: image_converter or ImageConverter(),
        }
        self.cleanup_delay = cleanup_delay
        self._wakeup = asyncio.Event()
        self._cleanups: set[asyncio.Task] = set()

    # ==================== INTAKE ====================

    def submit(self, job: dict | JobDescriptor) -> JobRecord | None:
        """Queue an incoming job.

        Args:
            job: Inbound job payload or an already validated descriptor.

        Returns:
            JobRecord | None: The queued record, or None if the payload was
                invalid or the job is already queued.
        """
        if isinstance(job, JobDescriptor):
            descriptor = job
        else:
            try:
                descriptor = JobDescriptor.model_validate(job)
            except ValidationError as e:
                logger.error(f"Rejected malformed job payload: {e.error_count()} error(s)")
                logger.debug(str(e))
                return None

        if descriptor.job_id in self.state.pending:
            logger.debug(f"Job {descriptor.job_id} already queued, ignoring duplicate")
            return None

        record = JobRecord(descriptor=descriptor)
        self.state.pending[descriptor.job_id] = record
        if self.state.current_job:
            logger.info(
                f"Job {descriptor.job_id} queued (current job: {self.state.current_job}, "
                f"pending: {len(self.state.pending)})"
            )
        self._wakeup.set()
        return record

    def working_path_for(self, descriptor: JobDescriptor) -> Path:
        """Scratch path for a job's original file: <temp_dir>/<encoded job_id>_<basename>."""
        basename = PurePath(descriptor.filename.replace("\\", "/")).name
        return self.temp_dir / f"{_safe_component(descriptor.job_id)}_{basename}"

    # ==================== WORKER ====================

    async def run(self) -> None:
        """Process queued jobs forever, one at a time."""
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self.drain()

    async def drain(self) -> list[JobRecord]:
        """Process queued jobs in FIFO order until the queue is empty.

        Returns:
            list[JobRecord]: Records in the order they finished.
        """
        finished = []
        while True:
            record = self.state.next_pending()
            if record is None:
                return finished
            finished.append(await self.process(record))

    async def process(self, record: JobRecord) -> JobRecord:
        """Run one job through the pipeline and report its outcome once.

        Every error is contained here; the worker always moves on.
        """
        self.state.current_job = record.job_id
        try:
            await self._run_pipeline(record)
            record.stage = JobStage.COMPLETED
        except AgentError as e:
            self._mark_failed(record, e.message)
        except Exception as e:
            logger.exception(f"Unexpected error in job {record.job_id}")
            self._mark_failed(record, str(e) or e.__class__.__name__)
        finally:
            self.state.current_job = None
            self.state.pending.pop(record.job_id, None)

        await self._report_outcome(record)

        if record.stage is JobStage.COMPLETED:
            self._schedule_cleanup(record.files())
        else:
            removed = remove_files(self._failed_job_files(record))
            if removed:
                logger.info(f"Removed {len(removed)} file(s) of failed job {record.job_id}")

        if self.state.pending:
            logger.info(f"Processing next job: {self.state.next_pending().job_id}")
        return record

    async def _run_pipeline(self, record: JobRecord) -> None:
        descriptor = record.descriptor
        job_id = descriptor.job_id
        logger.info(
            f"Processing job {job_id}: file={descriptor.filename} "
            f"expected_pages={descriptor.expected_pages}"
        )

        # Save
        working_path = self.working_path_for(descriptor)
        try:
            data = descriptor.decode_payload()
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            working_path.write_bytes(data)
        except (ValueError, OSError) as e:
            raise JobError(f"Could not save job file: {e}", job_id, JobError.BAD_PAYLOAD) from e
        record.working_path = working_path
        record.stage = JobStage.SAVED
        logger.info(f"Job {job_id}: file saved locally ({len(data) / 1024:.1f} KB)")
        await self._emit("job_received", {"job_id": job_id})

        # Classify
        kind = classify(descriptor.filename)
        record.detected_kind = kind
        record.stage = JobStage.CLASSIFIED
        logger.info(f"Job {job_id}: file type {kind.value}")
        if kind is DocumentKind.UNKNOWN:
            ext = PurePath(descriptor.filename).suffix or descriptor.filename
            raise JobError(f"Unsupported file type: {ext}", job_id)

        # Convert
        if kind is DocumentKind.PDF:
            printable_path = working_path
        else:
            record.stage = JobStage.CONVERTING
            printable_path = await self.converters[kind].convert(working_path)
            record.converted = True
            self.state.conversions_today += 1
        record.printable_path = printable_path

        # Verify
        record.pages_printed = await asyncio.to_thread(
            verify_pages, printable_path, descriptor.expected_pages
        )
        record.stage = JobStage.VERIFIED

        # Print
        await self._emit("print_started", {"job_id": job_id})
        record.stage = JobStage.PRINTING
        if not self.state.printer_name:
            self.state.printer_name = await self.gateway.resolve_printer(self.configured_printer)
        await self.gateway.submit(
            self.state.printer_name, printable_path, title=f"{descriptor.filename} ({job_id})"
        )
        logger.info(f"Job {job_id} completed ({record.pages_printed} pages)")

    def _mark_failed(self, record: JobRecord, message: str) -> None:
        record.stage = JobStage.FAILED
        record.error = message
        logger.error(f"Job {record.job_id} failed: {message}")

    def _failed_job_files(self, record: JobRecord) -> list[Path]:
        paths = record.files()
        # A failed conversion may still have left partial output behind
        if record.working_path is not None and record.detected_kind in self.converters:
            partial = record.working_path.with_suffix(".pdf")
            if partial not in paths:
                paths.append(partial)
        return paths

    # ==================== REPORTING ====================

    async def _emit(self, event: str, data: dict) -> None:
        if not self.reporter.connected:
            logger.debug(f"Not connected, dropping {event} for job {data.get('job_id')}")
            return
        await self.reporter.emit(event, data)

    async def _report_outcome(self, record: JobRecord) -> None:
        if record.stage is JobStage.COMPLETED:
            payload = {
                "job_id": record.job_id,
                "success": True,
                "pages_printed": record.pages_printed,
            }
        else:
            payload = {"job_id": record.job_id, "success": False, "error": record.error}
        try:
            await self._emit("print_complete", payload)
        except Exception:
            logger.exception(f"Could not report outcome of job {record.job_id}")

    # ==================== CLEANUP ====================

    def _schedule_cleanup(self, paths: list[Path]) -> None:
        task = asyncio.create_task(self._cleanup_later(paths))
        self._cleanups.add(task)
        task.add_done_callback(self._cleanups.discard)

    async def _cleanup_later(self, paths: list[Path]) -> None:
        await asyncio.sleep(self.cleanup_delay)
        removed = remove_files(paths)
        if removed:
            logger.info(f"Cleaned up temp files: {', '.join(p.name for p in removed)}")

    async def wait_for_cleanups(self) -> None:
        """Wait until every scheduled file cleanup has run."""
        if self._cleanups:
            await asyncio.gather(*list(self._cleanups))
