"""Pytest configuration and fixtures."""

import base64

import pytest

from directprint.config import AgentSettings
from directprint.jobs import JobExecutor
from directprint.state import AgentState
from tests.helpers import FakeConverter, FakeGateway, FakeReporter, make_pdf


@pytest.fixture
def settings(tmp_path) -> AgentSettings:
    """Settings pointing at a temporary scratch directory."""
    return AgentSettings(
        cloud_url="https://cloud.test/",
        printer_name="auto",
        kiosk_id="kiosk_test",
        temp_dir=tmp_path / "print-queue",
        cleanup_delay=0.05,
    )


@pytest.fixture
def state() -> AgentState:
    return AgentState()


@pytest.fixture
def reporter() -> FakeReporter:
    return FakeReporter()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def document_converter() -> FakeConverter:
    return FakeConverter(pages=2)


@pytest.fixture
def image_converter() -> FakeConverter:
    return FakeConverter(pages=1)


@pytest.fixture
def executor(
    state, gateway, reporter, settings, document_converter, image_converter
) -> JobExecutor:
    """Executor wired to fakes, with a short cleanup delay."""
    return JobExecutor(
        state,
        gateway,
        reporter,
        settings.temp_dir,
        document_converter=document_converter,
        image_converter=image_converter,
        cleanup_delay=settings.cleanup_delay,
    )


@pytest.fixture
def pdf_job():
    """Factory for inbound PDF job payloads."""

    def _make(job_id: str = "j1", pages: int = 3, expected: int | None = 3) -> dict:
        return {
            "job_id": job_id,
            "filename": "report.pdf",
            "pages": expected,
            "file_data": base64.b64encode(make_pdf(pages)).decode(),
        }

    return _make
