"""PDF page counting and verification."""

import logging
from pathlib import Path

from pypdf import PdfReader

logger = logging.getLogger(__name__)


def count_pages(pdf_path: Path) -> int:
    """Count the pages of a PDF without rendering it.

    Never raises: an unreadable or corrupt PDF counts as one page so that
    printing is not blocked by a page-count failure.

    Args:
        pdf_path: PDF file to inspect.

    Returns:
        int: Number of pages (at least 1).
    """
    try:
        reader = PdfReader(pdf_path)
        pages = len(reader.pages)
    except Exception as e:
        logger.warning(f"Page count failed for {Path(pdf_path).name}: {e}")
        return 1
    return max(pages, 1)


def verify_pages(pdf_path: Path, expected_pages: int | None = None) -> int:
    """Count pages and compare against the advisory expected count.

    A mismatch is logged as a warning only.

    Args:
        pdf_path: PDF file to inspect.
        expected_pages: Page count announced by the cloud, if any.

    Returns:
        int: Actual page count.
    """
    actual = count_pages(pdf_path)
    logger.info(f"Verified: {actual} pages")
    if expected_pages and actual != expected_pages:
        logger.warning(f"Page mismatch: expected {expected_pages}, got {actual}")
    return actual
