# ABOUTME: Debug session logging for the builder CLI
# ABOUTME: Writes a per-run log with module logs, builder events, dice rolls and a plain-text console transcript

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from rich.console import Console
from rich.text import Text


LOG_FILE_PREFIX = "dnd_builder_"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
KEEP_SESSION_LOGS = 10


def prune_session_logs(log_dir: Path, keep: int = KEEP_SESSION_LOGS) -> List[Path]:
    """
    Delete old session logs so that, with the next one, at most `keep` remain.

    Returns:
        The logs that were removed
    """
    sessions = sorted(
        log_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True
    )
    removed = []
    for stale in sessions[max(keep - 1, 0):]:
        try:
            stale.unlink()
            removed.append(stale)
        except OSError as e:
            logging.getLogger(__name__).error(f"Could not remove old session log {stale}: {e}")
    return removed


def unstyled(text: str) -> str:
    """Remove ANSI styling, keeping line endings."""
    plain = []
    for line in text.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        plain.append(Text.from_ansi(body).plain + line[len(body):])
    return "".join(plain)


class ConsoleTranscript:
    """
    Console file that shows output on the terminal and copies it to the session log.

    The terminal gets Rich's styled output; the log gets the same text with
    the ANSI styling removed.
    """

    def __init__(self, log: TextIO, terminal: TextIO):
        self.log = log
        self.terminal = terminal

    def write(self, text: str) -> int:
        self.terminal.write(text)
        self.log.write(unstyled(text) if "\x1b" in text else text)
        return len(text)

    def flush(self) -> None:
        self.terminal.flush()
        self.log.flush()

    def isatty(self) -> bool:
        return self.terminal.isatty()


def format_event_data(data: Dict[str, Any]) -> str:
    """Render an event payload with the character id first and the rest by key."""
    keys = sorted(data, key=lambda k: (k != "character_id", k))
    parts = []
    for key in keys:
        value = data[key]
        if isinstance(value, (list, tuple, set)):
            value = "[" + ", ".join(str(v) for v in value) + "]"
        parts.append(f"{key}={value}")
    return "{" + ", ".join(parts) + "}"


class LoggingConfig:
    """
    Debug logging for one builder CLI run.

    With debug enabled, a timestamped session log is opened under `log_dir`.
    Module loggers write to it through a root file handler, the console
    created by create_console copies its output into it, and builder events
    and ability rolls are recorded with log_event and log_dice_roll.
    Without debug nothing is written.
    """

    def __init__(self, debug_enabled: bool = False, log_dir: Optional[Path] = None):
        self.debug_enabled = debug_enabled
        self.log_dir = Path(log_dir) if log_dir is not None else Path("logs")
        self.log_file_path: Optional[Path] = None
        self.log_file: Optional[TextIO] = None
        self.tee_console: Optional[Console] = None
        self._file_handler: Optional[logging.Handler] = None
        self._events_logged = 0

        if debug_enabled:
            self._setup_logging()

    def _setup_logging(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        prune_session_logs(self.log_dir)

        started = datetime.now()
        self.log_file_path = self.log_dir / f"{LOG_FILE_PREFIX}{started:%Y%m%d_%H%M%S}.log"
        self.log_file = open(self.log_file_path, 'w', encoding='utf-8', buffering=1)
        self.log_file.write(f"# D&D 5E Character Builder debug session started {started.isoformat(timespec='seconds')}\n")

        handler = logging.StreamHandler(self.log_file)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        root_logger.addHandler(handler)
        self._file_handler = handler

    def create_console(self) -> Console:
        """
        Console for the CLI's output.

        In debug mode its output is also copied, unstyled, into the session log.
        """
        if not (self.debug_enabled and self.log_file):
            return Console()

        self.tee_console = Console(
            file=ConsoleTranscript(self.log_file, sys.stdout),
            force_terminal=True,
            legacy_windows=False
        )
        return self.tee_console

    def log_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Record a builder event, numbered in emission order."""
        if not self.debug_enabled:
            return

        self._events_logged += 1
        logging.getLogger("dnd_builder.events").info(
            f"[EVENT #{self._events_logged:03d}] {event_type}: {format_event_data(data)}"
        )

    def log_dice_roll(self, notation: str, rolls: list, kept: list, total: int) -> None:
        """Record an ability roll with every die and the ones that counted."""
        if not self.debug_enabled:
            return

        logging.getLogger("dnd_builder.dice").info(
            f"[DICE] {notation} -> {rolls} kept {kept} = {total}"
        )

    def get_log_file_path(self) -> Optional[Path]:
        return self.log_file_path

    def close(self) -> None:
        """Detach the root handler and close the session log."""
        if self._file_handler is not None:
            logging.getLogger().removeHandler(self._file_handler)
            self._file_handler.flush()
            self._file_handler = None
        if self.log_file:
            self.log_file.close()
            self.log_file = None


# Process-wide instance, set up by the CLI
_logging_config: Optional[LoggingConfig] = None


def init_logging(debug_enabled: bool = False, log_dir: Optional[Path] = None) -> LoggingConfig:
    """Create the process-wide LoggingConfig and return it."""
    global _logging_config
    _logging_config = LoggingConfig(debug_enabled, log_dir)
    return _logging_config


def get_logging_config() -> Optional[LoggingConfig]:
    """The process-wide LoggingConfig, or None before init_logging."""
    return _logging_config
