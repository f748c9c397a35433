"""Logging setup for processes that build or relay CloudEvents.

Provides:
- Event context via contextvars (event_id, event_source), bound per block
  with ``event_context`` and stamped on records by ``EventContextFilter``
- JSON and human-readable formatters that render that context
- ``setup_logging``: the entry point, reading cloudenvelope.toml and
  applying its ``[runtime]`` section

Usage:
    from cloudenvelope.runtime.logging_config import event_context, setup_logging

    setup_logging()  # or setup_logging(Path("conf/cloudenvelope.toml"), verbose=True)
    with event_context(event):
        relay(event)
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cloudenvelope.config import CloudEnvelopeConfig, load_config

if TYPE_CHECKING:
    from cloudenvelope.models.envelope import CloudEvent

log = logging.getLogger(__name__)

ctx_event_id: ContextVar[str] = ContextVar("ctx_event_id", default="")
ctx_event_source: ContextVar[str] = ContextVar("ctx_event_source", default="")

_CONTEXT_ATTRS = ("event_id", "event_source")


class EventContextFilter(logging.Filter):
    """Stamp the bound event context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.event_id = ctx_event_id.get()  # type: ignore[attr-defined]
        record.event_source = ctx_event_source.get()  # type: ignore[attr-defined]
        return True


@contextmanager
def event_context(event: CloudEvent) -> Iterator[None]:
    """Bind ``event``'s id and source to every record logged inside the block."""
    tok_id = ctx_event_id.set(event.event_id)
    tok_src = ctx_event_source.set(str(event.source))
    try:
        yield
    finally:
        ctx_event_source.reset(tok_src)
        ctx_event_id.reset(tok_id)


def _bound_context(record: logging.LogRecord) -> dict[str, str]:
    return {
        attr: value
        for attr in _CONTEXT_ATTRS
        if (value := getattr(record, attr, ""))
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, event context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_bound_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Plain format plus an ``[event=... src=...]`` suffix when bound."""

    _LABELS = {"event_id": "event", "event_source": "src"}

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        bound = _bound_context(record)
        if not bound:
            return base
        if "event_id" in bound:
            bound["event_id"] = bound["event_id"][:12]
        suffix = " ".join(f"{self._LABELS[k]}={v}" for k, v in bound.items())
        return f"{base} [{suffix}]"


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
    log_dir: str | Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    module_levels: dict[str, str] | None = None,
) -> None:
    """Replace the root handlers.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR).
        json_output: JSON on stderr instead of the human format.
        log_dir: Also write rotating JSON files to ``log_dir/cloudenvelope.log``.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files kept.
        module_levels: Per-logger overrides,
            e.g. {"cloudenvelope.models.envelope": "DEBUG"}.
    """
    root = logging.getLogger()
    root.handlers.clear()
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    ctx_filter = EventContextFilter()
    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(sys.stderr)
    if json_output:
        console.setFormatter(JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        console.setFormatter(
            HumanFormatter(
                fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    handlers.append(console)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "cloudenvelope.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(ctx_filter)
        root.addHandler(handler)

    for mod, mod_level in (module_levels or {}).items():
        logging.getLogger(mod).setLevel(getattr(logging, mod_level.upper(), numeric_level))


def configure_from_config(
    config: CloudEnvelopeConfig | dict[str, Any], *, verbose: bool = False
) -> None:
    """Apply the ``runtime`` section of a loaded config (or raw settings dict).

    ``verbose`` forces the root level to DEBUG.
    """
    if isinstance(config, dict):
        runtime = config.get("runtime", {})
    else:
        runtime = config.runtime.model_dump()

    configure_logging(
        level="DEBUG" if verbose else runtime.get("log_level", "INFO"),
        json_output=runtime.get("log_json", False),
        log_dir=runtime.get("log_dir"),
        module_levels=runtime.get("module_levels"),
    )


def setup_logging(path: Path | None = None, *, verbose: bool = False) -> CloudEnvelopeConfig:
    """Load cloudenvelope.toml (or ``path``) and configure logging from it.

    Returns the loaded config. A missing file means defaults.
    """
    config = load_config(path)
    configure_from_config(config, verbose=verbose)
    log.debug("logging.configured level=%s", logging.getLevelName(logging.getLogger().level))
    return config
