"""Shared fakes and helpers for DirectPrint tests."""

import asyncio
import io
from pathlib import Path

from pypdf import PdfWriter

from directprint.printer import HEALTHY, PrinterHealth


def make_pdf(pages: int = 1) -> bytes:
    """Build a blank A4 PDF with the given number of pages."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=595, height=842)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class FakeReporter:
    """Records emitted events instead of sending them."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.events: list[tuple[str, dict]] = []

    async def emit(self, event: str, data: dict) -> None:
        self.events.append((event, data))

    def for_job(self, job_id: str) -> list[str]:
        return [name for name, data in self.events if data.get("job_id") == job_id]

    def outcome(self, job_id: str) -> dict:
        outcomes = [
            data
            for name, data in self.events
            if name == "print_complete" and data["job_id"] == job_id
        ]
        assert len(outcomes) == 1, f"expected exactly one outcome for {job_id}"
        return outcomes[0]


class FakeGateway:
    """In-memory stand-in for PrinterGateway."""

    def __init__(self, printer: str = "Office_Printer", submit_error: Exception | None = None):
        self.printer = printer
        self.submit_error = submit_error
        self.resolve_calls = 0
        self.submitted: list[tuple[str, Path]] = []
        self.gate: asyncio.Event | None = None
        self.health = PrinterHealth(HEALTHY)

    async def resolve_printer(self, configured: str = "auto") -> str:
        self.resolve_calls += 1
        return self.printer

    async def submit(self, printer_name: str, file_path: Path, title: str | None = None) -> str:
        self.submitted.append((printer_name, file_path))
        if self.gate is not None:
            await self.gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return "request id is Office_Printer-1 (1 file(s))"

    async def check_health(self, printer_name: str | None) -> PrinterHealth:
        return self.health


class FakeConverter:
    """Writes a PDF beside the input, or raises the configured error."""

    def __init__(self, pages: int = 1, error: Exception | None = None):
        self.pages = pages
        self.error = error
        self.calls: list[Path] = []

    async def convert(self, input_path: Path) -> Path:
        self.calls.append(input_path)
        if self.error is not None:
            raise self.error
        output = input_path.with_suffix(".pdf")
        output.write_bytes(make_pdf(self.pages))
        return output
