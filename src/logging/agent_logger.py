"""Run-scoped structured logger for the idea pipeline.

Every entry is appended as a JSON line to ``agent.log`` (plus ``errors.log``
or ``debug.log`` by level) and kept in a bounded in-memory buffer, so the
orchestrator can report a run's warnings in the result's debug block
without re-reading files.  Database and Telegram forwarding happen in
background tasks; :meth:`AgentLogger.flush` waits for them.

Module helpers ``init_logger()`` / ``get_logger()`` manage the process-wide
instance that ``run.py`` creates.
"""

import asyncio
import logging
import traceback
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Set

import aiofiles

from src.logging.models import LogComponent, LogEntry, LogLevel
from src.utils import utc_now

_std_logger = logging.getLogger(__name__)

BUFFER_SIZE = 1000


class AgentLogger:
    """Structured log sink for pipeline runs.

    Parameters:
        log_dir: Directory for the JSON log files (created if missing).
        db: Optional sink exposing ``save_agent_log(dict)``.
        telegram_notifier: Optional notifier exposing ``send_log(str)``.
        min_level: Lowest level forwarded to ``db``.
        telegram_min_level: Lowest level forwarded to Telegram.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        db: Any = None,
        telegram_notifier: Any = None,
        min_level: LogLevel = LogLevel.INFO,
        telegram_min_level: LogLevel = LogLevel.ERROR,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.db = db
        self.telegram = telegram_notifier
        self.min_level = min_level
        self.telegram_min_level = telegram_min_level

        self._run_id: Optional[str] = None
        self._company_id: Optional[str] = None
        self._buffer: Deque[LogEntry] = deque(maxlen=BUFFER_SIZE)
        self._tasks: Set["asyncio.Task[None]"] = set()

    # ------------------------------------------------------------------
    # Run context
    # ------------------------------------------------------------------

    def set_context(
        self, run_id: Optional[str] = None, company_id: Optional[str] = None
    ) -> None:
        """Stamp subsequent entries with the run and company."""
        if run_id is not None:
            self._run_id = run_id
        if company_id is not None:
            self._company_id = company_id

    def clear_context(self) -> None:
        self._run_id = None
        self._company_id = None

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def log(
        self,
        level: LogLevel,
        component: LogComponent,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
        duration_ms: Optional[int] = None,
    ) -> LogEntry:
        """Record one entry and return it.

        Files are written before returning; the database and Telegram
        forwards are background tasks.
        """
        entry = LogEntry(
            timestamp=utc_now(),
            level=level,
            component=component,
            message=message,
            run_id=self._run_id,
            company_id=self._company_id,
            data=data or {},
            duration_ms=duration_ms,
        )
        if error is not None:
            entry.error_type = type(error).__name__
            entry.error_traceback = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        self._buffer.append(entry)
        await self._append_files(entry)

        if self.db is not None and level.value >= self.min_level.value:
            self._spawn(self._forward_to_db(entry))
        if self.telegram is not None and level.value >= self.telegram_min_level.value:
            self._spawn(self._forward_to_telegram(entry))
        return entry

    async def debug(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.DEBUG, component, message, **kwargs)

    async def info(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.INFO, component, message, **kwargs)

    async def warning(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.WARNING, component, message, **kwargs)

    async def error(self, component: LogComponent, message: str, **kwargs: Any) -> LogEntry:
        return await self.log(LogLevel.ERROR, component, message, **kwargs)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def run_entries(
        self,
        run_id: str,
        min_level: LogLevel = LogLevel.DEBUG,
    ) -> List[LogEntry]:
        """Buffered entries of one run at or above ``min_level``, oldest first."""
        return [
            entry
            for entry in self._buffer
            if entry.run_id == run_id and entry.level.value >= min_level.value
        ]

    async def flush(self) -> None:
        """Wait for pending database and Telegram forwards."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks.clear()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _append_files(self, entry: LogEntry) -> None:
        line = entry.to_json() + "\n"
        targets = [self.log_dir / "agent.log"]
        if entry.level.value >= LogLevel.ERROR.value:
            targets.append(self.log_dir / "errors.log")
        elif entry.level == LogLevel.DEBUG:
            targets.append(self.log_dir / "debug.log")

        for path in targets:
            async with aiofiles.open(path, "a", encoding="utf-8") as f:
                await f.write(line)

    async def _forward_to_db(self, entry: LogEntry) -> None:
        try:
            await self.db.save_agent_log(entry.to_dict())
        except Exception as exc:
            _std_logger.warning("[LOGGING] Could not store log entry: %s", exc)

    async def _forward_to_telegram(self, entry: LogEntry) -> None:
        try:
            await self.telegram.send_log(entry.to_readable())
        except Exception as exc:
            _std_logger.warning("[LOGGING] Could not forward log entry to Telegram: %s", exc)


# ======================================================================
# PROCESS-WIDE INSTANCE
# ======================================================================

_logger: Optional[AgentLogger] = None


def init_logger(
    log_dir: str = "logs",
    db: Any = None,
    telegram_notifier: Any = None,
    min_level: LogLevel = LogLevel.INFO,
    telegram_min_level: LogLevel = LogLevel.ERROR,
) -> AgentLogger:
    """Create the process-wide ``AgentLogger`` and return it."""
    global _logger
    _logger = AgentLogger(
        log_dir=log_dir,
        db=db,
        telegram_notifier=telegram_notifier,
        min_level=min_level,
        telegram_min_level=telegram_min_level,
    )
    return _logger


def get_logger() -> AgentLogger:
    """Return the process-wide ``AgentLogger``.

    Raises:
        RuntimeError: If ``init_logger()`` was never called.
    """
    if _logger is None:
        raise RuntimeError("Logger not initialized. Call init_logger() first.")
    return _logger
