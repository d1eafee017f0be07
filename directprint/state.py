"""Job and agent state models."""

import base64
import binascii
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from directprint.classifier import DocumentKind
from directprint.printer import UNKNOWN, PrinterHealth


class JobDescriptor(BaseModel):
    """A print job as delivered by the cloud. Immutable once received.

    Attributes:
        job_id: Job identifier, unique per cloud session.
        filename: Original file name (drives classification).
        expected_pages: Advisory page count ("pages" on the wire).
        file_data: Base64-encoded file contents.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    job_id: str = Field(min_length=1)
    filename: str = Field(min_length=1)
    expected_pages: int | None = Field(default=None, alias="pages")
    file_data: str | None = None

    def decode_payload(self) -> bytes:
        """Decode the transported file contents.

        Raises:
            ValueError: If file_data is missing, empty or not valid base64.
        """
        if not self.file_data:
            raise ValueError("No file data")
        try:
            data = base64.b64decode(self.file_data)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 file data: {e}") from e
        if not data:
            raise ValueError("No file data")
        return data


class JobStage(str, Enum):
    """Pipeline stage of a job."""

    RECEIVED = "received"
    SAVED = "saved"
    CLASSIFIED = "classified"
    CONVERTING = "converting"
    VERIFIED = "verified"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStage.COMPLETED, JobStage.FAILED)


@dataclass
class JobRecord:
    """Executor-owned state of one job while it is pending or active."""

    descriptor: JobDescriptor
    stage: JobStage = JobStage.RECEIVED
    detected_kind: DocumentKind | None = None
    working_path: Path | None = None
    printable_path: Path | None = None
    converted: bool = False
    received_at: datetime = field(default_factory=datetime.now)
    pages_printed: int | None = None
    error: str | None = None

    @property
    def job_id(self) -> str:
        return self.descriptor.job_id

    def files(self) -> list[Path]:
        """Backing files of this job, without duplicates."""
        paths = []
        for path in (self.printable_path, self.working_path):
            if path is not None and path not in paths:
                paths.append(path)
        return paths


@dataclass
class AgentState:
    """Process-wide agent state, shared by reference between components.

    The pending queue is insertion ordered (FIFO) and keeps a job until it
    reaches a terminal stage; ``current_job`` names the one job mid-pipeline.
    """

    current_job: str | None = None
    pending: dict[str, JobRecord] = field(default_factory=dict)
    poll_count: int = 0
    jobs_fetched_today: int = 0
    conversions_today: int = 0
    last_poll: datetime | None = None
    printer_name: str | None = None
    printer_health: PrinterHealth = field(default_factory=lambda: PrinterHealth(UNKNOWN))
    started_at: float = field(default_factory=time.monotonic)
    counters_date: date = field(default_factory=date.today)

    @property
    def uptime(self) -> float:
        """Seconds since the agent started."""
        return time.monotonic() - self.started_at

    def next_pending(self) -> JobRecord | None:
        """Oldest job in the queue, or None."""
        return next(iter(self.pending.values()), None)

    def reset_daily_counters(self, today: date | None = None) -> None:
        self.jobs_fetched_today = 0
        self.conversions_today = 0
        self.poll_count = 0
        self.counters_date = today or date.today()
