"""Conversion of documents and images to printable PDF.

Both paths shell out to external tools and trust only the filesystem: a
conversion succeeded when the tool exited cleanly *and* the expected PDF
exists afterwards.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from directprint.classifier import IMAGE_EXTENSIONS
from directprint.errors import ConversionError
from directprint.process import CommandTimeout, run_command

logger = logging.getLogger(__name__)

CONVERSION_TIMEOUT = 60.0

# A4 at 150 DPI
A4_150DPI = "1240x1754"
IMAGE_DPI = "150"


def _size_kb(path: Path) -> str:
    return f"{path.stat().st_size / 1024:.1f} KB"


class DocumentConverter:
    """Office document to PDF via headless LibreOffice."""

    kind = "document"

    def __init__(self, binary: str = "libreoffice", timeout: float = CONVERSION_TIMEOUT):
        self.binary = binary
        self.timeout = timeout

    @staticmethod
    def output_path(input_path: Path) -> Path:
        """PDF written by LibreOffice for ``input_path`` (same dir, same stem)."""
        return input_path.with_suffix(".pdf")

    async def convert(self, input_path: Path) -> Path:
        """Convert a document to PDF beside the input.

        Args:
            input_path: Document to convert.

        Returns:
            Path: The generated PDF.

        Raises:
            ConversionError: If the tool is missing, fails, times out or
                produces no output file.
        """
        output_path = self.output_path(input_path)
        logger.info(f"Converting document to PDF: {input_path.name}")

        try:
            result = await run_command(
                self.binary,
                "--headless",
                "--convert-to",
                "pdf",
                "--outdir",
                str(input_path.parent),
                str(input_path),
                timeout=self.timeout,
            )
        except FileNotFoundError as err:
            raise ConversionError(
                self.kind,
                ConversionError.TOOL_MISSING,
                "LibreOffice not found. Install with: sudo apt install libreoffice-writer",
            ) from err
        except CommandTimeout as err:
            raise ConversionError(self.kind, ConversionError.TOOL_FAILED, str(err)) from err

        if not result.ok:
            logger.error(f"LibreOffice failed (rc={result.returncode}): {result.output}")
            raise ConversionError(
                self.kind,
                ConversionError.TOOL_FAILED,
                f"LibreOffice exited with {result.returncode}: {result.output}",
            )

        if not output_path.exists():
            raise ConversionError(
                self.kind, ConversionError.OUTPUT_MISSING, "PDF output file not created"
            )

        logger.info(f"Converted to PDF ({_size_kb(output_path)})")
        return output_path


@dataclass(frozen=True)
class ImageMagickBackend:
    """One ImageMagick command-line variant.

    Attributes:
        label: Name used in logs.
        binary: Executable to run.
    """

    label: str
    binary: str

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None


# Tried in order: v7 single binary first, then the v6 convert/identify suite
IMAGEMAGICK_BACKENDS = (
    ImageMagickBackend(label="ImageMagick v7", binary="magick"),
    ImageMagickBackend(label="ImageMagick v6", binary="convert"),
)


class ImageConverter:
    """PNG/JPEG to a single A4 page PDF via ImageMagick.

    The image is shrunk (never enlarged) to fit 1240x1754 pixels, centered on
    a white canvas of exactly that size and tagged at 150 DPI.
    """

    kind = "image"

    def __init__(
        self,
        backends: tuple[ImageMagickBackend, ...] = IMAGEMAGICK_BACKENDS,
        timeout: float = CONVERSION_TIMEOUT,
    ):
        self.backends = backends
        self.timeout = timeout

    @staticmethod
    def output_path(input_path: Path) -> Path:
        return input_path.with_suffix(".pdf")

    def _tool_missing(self) -> ConversionError:
        return ConversionError(
            self.kind,
            ConversionError.TOOL_MISSING,
            "ImageMagick not found. Install with: sudo apt install imagemagick",
        )

    @staticmethod
    def build_args(input_path: Path, output_path: Path) -> list[str]:
        """ImageMagick arguments, identical for v6 and v7."""
        return [
            str(input_path),
            "-resize",
            f"{A4_150DPI}>",
            "-gravity",
            "center",
            "-background",
            "white",
            "-extent",
            A4_150DPI,
            "-units",
            "PixelsPerInch",
            "-density",
            IMAGE_DPI,
            str(output_path),
        ]

    async def convert(self, input_path: Path) -> Path:
        """Convert an image to PDF beside the input.

        Args:
            input_path: PNG or JPEG image.

        Returns:
            Path: The generated PDF.

        Raises:
            ConversionError: For an unsupported extension, a missing input,
                no usable ImageMagick, or a failed final attempt.
        """
        ext = input_path.suffix.lower()
        if ext not in IMAGE_EXTENSIONS:
            raise ConversionError(
                self.kind, ConversionError.UNSUPPORTED_FORMAT, f"Unsupported image format: {ext}"
            )
        if not input_path.exists():
            raise ConversionError(
                self.kind, ConversionError.TOOL_FAILED, "Input image does not exist"
            )

        output_path = self.output_path(input_path)
        args = self.build_args(input_path, output_path)
        logger.info(f"Converting image to PDF: {input_path.name}")

        last_error = self._tool_missing()
        for backend in self.backends:
            if not backend.is_available():
                logger.info(f"{backend.label} ({backend.binary}) not found")
                last_error = self._tool_missing()
                continue

            logger.info(f"Trying {backend.label} ({backend.binary})...")
            try:
                result = await run_command(backend.binary, *args, timeout=self.timeout)
            except FileNotFoundError:
                logger.info(f"{backend.label} ({backend.binary}) disappeared from PATH")
                last_error = self._tool_missing()
                continue
            except CommandTimeout as err:
                logger.error(f"{backend.label} failed: {err}")
                last_error = ConversionError(self.kind, ConversionError.TOOL_FAILED, str(err))
                continue

            if result.stderr.strip():
                logger.warning(f"ImageMagick stderr: {result.stderr.strip()}")

            if not result.ok:
                logger.error(f"{backend.label} failed (rc={result.returncode})")
                last_error = ConversionError(
                    self.kind,
                    ConversionError.TOOL_FAILED,
                    f"{backend.binary} exited with {result.returncode}: {result.output}",
                )
                continue

            if not output_path.exists():
                logger.error("PDF output not created")
                last_error = ConversionError(
                    self.kind,
                    ConversionError.OUTPUT_MISSING,
                    f"PDF output not created by {backend.binary}",
                )
                continue

            logger.info(f"Converted to PDF ({_size_kb(output_path)})")
            return output_path

        raise last_error


@dataclass
class ToolReport:
    """Availability of the external conversion tools."""

    libreoffice: str | None = None
    imagemagick: str | None = None

    @property
    def documents_enabled(self) -> bool:
        return self.libreoffice is not None

    @property
    def images_enabled(self) -> bool:
        return self.imagemagick is not None


async def _version_line(*args: str, timeout: float) -> str | None:
    try:
        result = await run_command(*args, timeout=timeout)
    except (FileNotFoundError, CommandTimeout):
        return None
    if not result.ok:
        return None
    lines = result.stdout.strip().splitlines()
    return lines[0] if lines else args[0]


async def check_conversion_tools(timeout: float = 10.0) -> ToolReport:
    """Report which conversion tools are installed.

    Missing tools only disable their conversion path; this never raises.

    Returns:
        ToolReport: Version lines of the tools found.
    """
    report = ToolReport()

    report.libreoffice = await _version_line("libreoffice", "--version", timeout=timeout)
    if report.libreoffice:
        logger.info(f"LibreOffice: {report.libreoffice}")
    else:
        logger.warning("LibreOffice not found - document conversion disabled")
        logger.warning("   Install: sudo apt install libreoffice-writer")

    for backend in IMAGEMAGICK_BACKENDS:
        report.imagemagick = await _version_line(backend.binary, "--version", timeout=timeout)
        if report.imagemagick:
            logger.info(f"ImageMagick: {report.imagemagick}")
            break
    else:
        logger.warning("ImageMagick not found - image conversion disabled")
        logger.warning("   Install: sudo apt install imagemagick")

    return report
