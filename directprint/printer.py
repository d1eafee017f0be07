"""CUPS printing functionality for the DirectPrint agent."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from directprint.config import AUTO_PRINTER
from directprint.errors import PrinterError
from directprint.process import CommandTimeout, run_command

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
ERROR = "error"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class StatusRule:
    """Substring rule mapping spooler text to a health classification."""

    phrases: tuple[str, ...]
    status: str
    detail: str | None = None
    unless: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        return any(p in text for p in self.phrases) and not any(u in text for u in self.unless)


# Ordered: the first matching rule wins. Fault phrases come before healthy
# ones because lpstat can report "idle" next to stale fault text.
HEALTH_RULES = (
    StatusRule(("out of paper", "media empty", "no media"), ERROR, "media-empty"),
    StatusRule(("out of ink", "toner empty", "ink empty"), ERROR, "toner-empty"),
    StatusRule(("cover open", "door open"), ERROR, "cover-open"),
    StatusRule(("stopped",), ERROR, "stopped", unless=("idle",)),
    StatusRule(("not connected", "offline"), ERROR, "offline"),
    StatusRule(("idle", "processing"), HEALTHY),
)


@dataclass(frozen=True)
class PrinterHealth:
    """Best-effort printer health derived from spooler status text.

    Attributes:
        status: 'healthy', 'error' or 'unknown'.
        detail: Fault or reason code (None when healthy).
    """

    status: str
    detail: str | None = None

    def to_dict(self) -> dict:
        return {"status": self.status, "detail": self.detail}


def classify_status_text(text: str) -> PrinterHealth:
    """Classify free-form ``lpstat -p`` output.

    Args:
        text: Spooler status output.

    Returns:
        PrinterHealth: Classification; unknown/ipp_unsupported if nothing matches.
    """
    output = text.lower()
    for rule in HEALTH_RULES:
        if rule.matches(output):
            return PrinterHealth(rule.status, rule.detail)
    return PrinterHealth(UNKNOWN, "ipp_unsupported")


def parse_lpstat(output: str) -> tuple[str | None, list[str]]:
    """Parse ``lpstat -p -d`` output.

    Args:
        output: Command output.

    Returns:
        tuple: (default destination or None, printer names in listed order).
    """
    default = None
    printers = []
    for line in output.splitlines():
        if line.startswith("system default destination:"):
            default = line.split(":", 1)[1].strip() or None
        elif line.startswith("printer "):
            match = re.match(r"printer\s+(\S+)", line)
            if match:
                printers.append(match.group(1))
    return default, printers


class PrinterGateway:
    """Wrapper for CUPS command-line operations (lpstat, lp).

    Attributes:
        health_timeout: Seconds allowed for a status query.
        print_timeout: Seconds allowed for a submission.
    """

    def __init__(
        self,
        lpstat_path: str = "lpstat",
        lp_path: str = "lp",
        health_timeout: float = 5.0,
        print_timeout: float = 30.0,
    ):
        self._lpstat = lpstat_path
        self._lp = lp_path
        self.health_timeout = health_timeout
        self.print_timeout = print_timeout

    async def list_printers(self) -> tuple[str | None, list[str]]:
        """Query the spooler for its default and known destinations.

        Returns:
            tuple: (default destination or None, printer names).

        Raises:
            PrinterError: spooler-unavailable if CUPS cannot be queried.
        """
        try:
            result = await run_command(self._lpstat, "-p", "-d", timeout=self.health_timeout)
        except FileNotFoundError as err:
            raise PrinterError(
                PrinterError.SPOOLER_UNAVAILABLE,
                "lpstat not found - is CUPS installed? (sudo apt install cups)",
            ) from err
        except CommandTimeout as err:
            raise PrinterError(PrinterError.SPOOLER_UNAVAILABLE, str(err)) from err

        default, printers = parse_lpstat(result.stdout)
        # lpstat exits non-zero both when the scheduler is down and when no
        # destination exists; only the latter is a plain "no printer".
        if (
            not result.ok
            and not default
            and not printers
            and "no destinations" not in result.output.lower()
        ):
            raise PrinterError(
                PrinterError.SPOOLER_UNAVAILABLE,
                f"lpstat failed (rc={result.returncode}): {result.output}",
            )
        return default, printers

    async def resolve_printer(self, configured: str = AUTO_PRINTER) -> str:
        """Decide which printer to print to.

        Args:
            configured: Explicit CUPS name (returned unchecked) or 'auto'.

        Returns:
            str: Printer name.

        Raises:
            PrinterError: no-printer if CUPS has no destinations,
                spooler-unavailable if CUPS cannot be reached.
        """
        if configured and configured.lower() != AUTO_PRINTER:
            logger.info(f"Using configured printer: {configured}")
            return configured

        default, printers = await self.list_printers()
        if default:
            logger.info(f"Auto-detected default printer: {default}")
            return default
        if printers:
            logger.info(f"Using first available printer: {printers[0]}")
            return printers[0]

        logger.warning("No printers detected via CUPS (check: lpstat -p -d)")
        raise PrinterError(PrinterError.NO_PRINTER, "No printers found")

    async def check_health(self, printer_name: str | None) -> PrinterHealth:
        """Query and classify the status of a printer. Never raises.

        Args:
            printer_name: Printer to check (None if none resolved).

        Returns:
            PrinterHealth: Classified status.
        """
        if not printer_name:
            return PrinterHealth(UNKNOWN, "no_printer_configured")

        try:
            result = await run_command(self._lpstat, "-p", printer_name, timeout=self.health_timeout)
        except (FileNotFoundError, CommandTimeout) as e:
            logger.warning(f"lpstat failed: {e}")
            return PrinterHealth(UNKNOWN, "cups_unavailable")

        if not result.ok and not result.output:
            logger.warning(f"lpstat failed (rc={result.returncode})")
            return PrinterHealth(UNKNOWN, "cups_unavailable")

        return classify_status_text(result.output)

    async def submit(self, printer_name: str, file_path: Path, title: str | None = None) -> str:
        """Hand a file to the spooler.

        The file is left untouched; deleting it is the caller's job.

        Args:
            printer_name: Destination printer.
            file_path: File to print.
            title: Optional job title.

        Returns:
            str: Spooler acknowledgement (e.g. 'request id is HP-12 (1 file(s))').

        Raises:
            PrinterError: submit-failed if lp is missing, fails or times out.
        """
        cmd = [self._lp, "-d", printer_name]
        if title:
            cmd.extend(["-t", title])
        cmd.append(str(file_path))

        try:
            result = await run_command(*cmd, timeout=self.print_timeout)
        except FileNotFoundError as err:
            raise PrinterError(
                PrinterError.SUBMIT_FAILED, "lp command not found - is CUPS installed?", printer_name
            ) from err
        except CommandTimeout as err:
            raise PrinterError(
                PrinterError.SUBMIT_FAILED, "Print command timed out", printer_name
            ) from err

        if not result.ok:
            detail = result.stderr.strip() or result.output or f"lp exited with {result.returncode}"
            logger.error(f"Print failed: {detail}")
            raise PrinterError(
                PrinterError.SUBMIT_FAILED, f"Print command failed: {detail}", printer_name
            )

        logger.info(f"Print job sent to CUPS: {result.stdout.strip()}")
        return result.stdout.strip()
