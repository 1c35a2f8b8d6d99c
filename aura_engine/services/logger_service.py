"""
Logger Service

Provides structured logging with two categories:
1. Session Logging - analytics trail of a monitoring session (state
   transitions, context snapshots, session switches)
2. System Logging - technical/debugging information, echoed to the console

Each category has its own level threshold. System entries can additionally
be mirrored to a log file.
"""
import csv
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Any, List, Optional

from aura_engine.api.serialization import json_safe


class LogLevel(Enum):
    """Log level hierarchy (ascending severity)."""
    ERROR = 4
    WARNING = 3
    INFO = 2
    DEBUG = 1


@dataclass
class LogEntry:
    """A single log entry."""
    timestamp: float
    level: str
    event_type: str
    data: Dict[str, Any]
    category: str  # "session" or "system"


CATEGORIES = ("session", "system")


class LoggerService:
    """
    Centralized logging service for session and system logs.
    """

    def __init__(
        self,
        session_level: str = "INFO",
        system_level: str = "INFO",
        max_entries: int = 10000,
        log_file_path: Optional[str] = None,
        echo: bool = True,
    ):
        """
        Initialize the logger service.

        Args:
            session_level: Threshold for session logs (DEBUG, INFO, WARNING, ERROR).
            system_level: Threshold for system logs (DEBUG, INFO, WARNING, ERROR).
            max_entries: Maximum entries kept per category, oldest dropped first.
            log_file_path: Optional file that system entries are appended to.
            echo: Print system entries to the console.
        """
        self._entries: Dict[str, List[LogEntry]] = {c: [] for c in CATEGORIES}
        self._levels: Dict[str, LogLevel] = {
            "session": LogLevel[session_level.upper()],
            "system": LogLevel[system_level.upper()],
        }
        self.max_entries = max_entries
        self.echo = echo
        self._log_file: Optional[Path] = Path(log_file_path) if log_file_path else None
        if self._log_file is not None:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)

        # Console dedup state (system prints only)
        self._last_print_signature: Optional[str] = None
        self._last_print_line: Optional[str] = None
        self._last_print_repeat_count: int = 0

    def session(
        self,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
        level: str = "INFO",
    ) -> None:
        """
        Log a session analytics event.

        Args:
            event_type: Type of event (e.g., "state_transition_recorded").
            data: Event data as dictionary.
            level: Log level (DEBUG, INFO, WARNING, ERROR).
        """
        self._record("session", event_type, data, level)

    def system(
        self,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
        level: str = "INFO",
    ) -> None:
        """
        Log a system event.

        Args:
            event_type: Type of event (e.g., "server_started", "sensor_unavailable").
            data: Event data as dictionary.
            level: Log level (DEBUG, INFO, WARNING, ERROR).
        """
        entry = self._record("system", event_type, data, level)
        if entry is None:
            return
        if self.echo:
            self._print_log(entry)
        if self._log_file is not None:
            self._append_to_file(entry)

    def set_level(self, category: str, level: str) -> None:
        """
        Set log level threshold for a category.

        Args:
            category: "session" or "system".
            level: "DEBUG", "INFO", "WARNING", or "ERROR".
        """
        category = category.lower()
        if category not in self._levels:
            raise ValueError(f"Unknown category: {category}")
        self._levels[category] = LogLevel[level.upper()]

    def get_session_logs(
        self,
        event_type: Optional[str] = None,
        level: Optional[str] = None,
    ) -> List[LogEntry]:
        """Retrieve session logs, optionally filtered by event type and level."""
        return self._filter("session", event_type, level)

    def get_system_logs(
        self,
        event_type: Optional[str] = None,
        level: Optional[str] = None,
    ) -> List[LogEntry]:
        """Retrieve system logs, optionally filtered by event type and level."""
        return self._filter("system", event_type, level)

    def clear_logs(self, category: str = "all") -> None:
        """
        Clear logs.

        Args:
            category: "session", "system", or "all".
        """
        for name in CATEGORIES:
            if category.lower() in (name, "all"):
                self._entries[name] = []

    def export_session_logs(self, filepath: str) -> bool:
        """Export session logs to a CSV file. Returns True if successful."""
        return self._export("session", filepath)

    def export_system_logs(self, filepath: str) -> bool:
        """Export system logs to a CSV file. Returns True if successful."""
        return self._export("system", filepath)

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get logging statistics.

        Returns:
            Dictionary with log counts and levels per category.
        """
        stats: Dict[str, Any] = {}
        for name in CATEGORIES:
            by_level: Dict[str, int] = {}
            for entry in self._entries[name]:
                by_level[entry.level] = by_level.get(entry.level, 0) + 1
            stats[name] = {
                "total": len(self._entries[name]),
                "by_level": by_level,
                "level_threshold": self._levels[name].name,
            }
        return stats

    # --- Internal Methods ---

    def _record(
        self,
        category: str,
        event_type: str,
        data: Optional[Dict[str, Any]],
        level: str,
    ) -> Optional[LogEntry]:
        if not self._should_log(level, category):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).timestamp(),
            level=level.upper(),
            event_type=event_type,
            data=data or {},
            category=category,
        )
        entries = self._entries[category]
        entries.append(entry)

        if len(entries) > self.max_entries:
            self._entries[category] = entries[-self.max_entries:]
        return entry

    def _filter(
        self,
        category: str,
        event_type: Optional[str],
        level: Optional[str],
    ) -> List[LogEntry]:
        logs = list(self._entries[category])
        if event_type:
            logs = [entry for entry in logs if entry.event_type == event_type]
        if level:
            logs = [entry for entry in logs if entry.level == level.upper()]
        return logs

    def _should_log(self, level: str, category: str) -> bool:
        """
        Determine if a message passes the category threshold.

        Unknown levels are always logged.
        """
        try:
            level_obj = LogLevel[level.upper()]
        except KeyError:
            return True
        threshold = self._levels.get(category.lower(), self._levels["session"])
        return level_obj.value >= threshold.value

    def _export(self, category: str, filepath: str) -> bool:
        try:
            path = Path(filepath if filepath.endswith(".csv") else f"{filepath}.csv")
            path.parent.mkdir(parents=True, exist_ok=True)
            entries = list(self._entries[category])

            with open(path, "w", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(["timestamp", "level", "event_type", "data"])
                for entry in entries:
                    dt = datetime.fromtimestamp(entry.timestamp, tz=timezone.utc)
                    writer.writerow([
                        dt.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
                        entry.level,
                        entry.event_type,
                        json.dumps(json_safe(entry.data)),
                    ])

            self.system(
                f"export_{category}_logs",
                {"filepath": str(path), "count": len(entries)},
                level="INFO",
            )
            return True
        except OSError as e:
            self.system(
                f"export_{category}_logs_error",
                {"error": str(e)},
                level="ERROR",
            )
            return False

    def _append_to_file(self, entry: LogEntry) -> None:
        line = json.dumps({
            "timestamp": entry.timestamp,
            "level": entry.level,
            "event_type": entry.event_type,
            "data": json_safe(entry.data),
        })
        try:
            with open(self._log_file, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError:
            # Mirror is best effort; the in-memory entry is already kept.
            self._log_file = None

    def _print_log(self, entry: LogEntry) -> None:
        timestamp = datetime.fromtimestamp(entry.timestamp, tz=timezone.utc).strftime("%H:%M:%S")

        colors = {
            "DEBUG": "\033[36m",
            "INFO": "\033[32m",
            "WARNING": "\033[33m",
            "ERROR": "\033[31m",
        }
        reset = "\033[0m"
        color = colors.get(entry.level, "")

        data_obj = json_safe(entry.data) if entry.data else None
        data_str = json.dumps(data_obj) if data_obj else ""
        base_line = f"{color}[{timestamp}] [{entry.level}] {entry.event_type}{reset} {data_str}"

        signature = json.dumps(
            {"level": entry.level, "event_type": entry.event_type, "data": data_obj},
            sort_keys=True,
        )

        if self._last_print_signature is None:
            print(base_line, end="", flush=True)
        elif signature == self._last_print_signature:
            # Same as previous: rewrite the line with a repeat counter
            self._last_print_repeat_count += 1
            updated = f"{base_line} ×{self._last_print_repeat_count}"
            padded = updated.ljust(len(self._last_print_line or ""))
            print(f"\r{padded}", end="", flush=True)
            self._last_print_line = padded
            return
        else:
            print()
            print(base_line, end="", flush=True)

        self._last_print_signature = signature
        self._last_print_line = base_line
        self._last_print_repeat_count = 1


# Fallback instance for components constructed without an injected logger
_logger: Optional[LoggerService] = None


def get_logger() -> LoggerService:
    """
    Get the process-wide fallback logger.

    Components receive their logger through the ``logger=`` keyword; this
    accessor only backs the default when none is given.
    """
    global _logger
    if _logger is None:
        _logger = LoggerService()
    return _logger


def initialize_logger(
    session_level: str = "INFO",
    system_level: str = "INFO",
    log_file_path: Optional[str] = None,
) -> LoggerService:
    """
    Initialize the fallback logger service.

    Args:
        session_level: Log level for session logs.
        system_level: Log level for system logs.
        log_file_path: Optional file mirror for system logs.

    Returns:
        Initialized LoggerService instance.
    """
    global _logger
    _logger = LoggerService(
        session_level=session_level,
        system_level=system_level,
        log_file_path=log_file_path,
    )
    return _logger
