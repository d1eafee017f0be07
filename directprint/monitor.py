"""Periodic housekeeping: heartbeat, status log, daily reset, scratch sweep.

Each activity is a single tick function so it can be run (and tested) in
isolation; ``every`` turns a tick into an independent timer.
"""

import asyncio
import logging
import resource
import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path

from directprint.jobs import Reporter
from directprint.printer import PrinterGateway
from directprint.state import AgentState

logger = logging.getLogger(__name__)


def memory_mb() -> int:
    """Peak resident memory of this process in MB."""
    return round(resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024)


def heartbeat_payload(kiosk_id: str, state: AgentState) -> dict:
    """Build the heartbeat sent to the cloud from the current state."""
    return {
        "kiosk_id": kiosk_id,
        "uptime": state.uptime,
        "printer_status": "ready" if state.printer_name else "no_printer",
        "printer_ipp_status": state.printer_health.status,
        "printer_ipp_detail": state.printer_health.detail,
        "current_job": state.current_job,
        "pending_jobs": len(state.pending),
        "memory": memory_mb(),
        "poll_count": state.poll_count,
        "jobs_fetched_today": state.jobs_fetched_today,
        "conversions_today": state.conversions_today,
        "last_poll": state.last_poll.isoformat() if state.last_poll else None,
    }


async def heartbeat_tick(
    kiosk_id: str, state: AgentState, gateway: PrinterGateway, reporter: Reporter
) -> dict | None:
    """Check printer health and emit one heartbeat.

    Returns:
        dict | None: The heartbeat sent, or None when disconnected.
    """
    if not reporter.connected:
        return None

    health = await gateway.check_health(state.printer_name)
    if health.status != state.printer_health.status:
        logger.info(f"Printer status: {health.status} ({health.detail or 'ok'})")
    state.printer_health = health

    payload = heartbeat_payload(kiosk_id, state)
    await reporter.emit("heartbeat", payload)
    return payload


def status_line(state: AgentState) -> str:
    return (
        f"Agent alive | Uptime: {int(state.uptime)}s | Polls: {state.poll_count} | "
        f"Fetched: {state.jobs_fetched_today} | Conversions: {state.conversions_today} | "
        f"Pending: {len(state.pending)}"
    )


def status_log_tick(state: AgentState, reporter: Reporter) -> None:
    if reporter.connected:
        logger.info(status_line(state))


def daily_reset_tick(state: AgentState, now: datetime | None = None) -> bool:
    """Zero the daily counters once the local date has changed.

    Returns:
        bool: True if the counters were reset.
    """
    today = (now or datetime.now()).date()
    if today == state.counters_date:
        return False
    state.reset_daily_counters(today)
    logger.info("Daily counters reset")
    return True


def sweep_scratch_dir(temp_dir: Path, max_age: float, now: float | None = None) -> list[Path]:
    """Delete scratch files older than ``max_age`` seconds, whatever their job state.

    Args:
        temp_dir: Scratch directory.
        max_age: Maximum file age in seconds (by modification time).
        now: Current epoch time (defaults to time.time()).

    Returns:
        list[Path]: Deleted files.
    """
    now = time.time() if now is None else now
    removed = []
    if not temp_dir.is_dir():
        return removed

    for path in temp_dir.iterdir():
        try:
            if not path.is_file() or now - path.stat().st_mtime <= max_age:
                continue
            path.unlink()
        except FileNotFoundError:
            continue  # deleted by a job cleanup meanwhile
        except OSError as e:
            logger.warning(f"Could not remove old file {path.name}: {e}")
            continue
        removed.append(path)
        logger.info(f"Cleaned up old file: {path.name}")
    return removed


async def every(interval: float, tick: Callable[[], Awaitable | None], name: str) -> None:
    """Run ``tick`` every ``interval`` seconds until cancelled.

    A failing tick is logged and does not stop the timer.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            result = tick()
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.exception(f"Error in {name}: {e}")
