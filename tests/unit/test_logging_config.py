"""Tests for the centralized logging configuration."""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
import textwrap

import pytest

from cloudenvelope.config import CloudEnvelopeConfig, RuntimeConfig
from cloudenvelope.models.envelope import CloudEvent
from cloudenvelope.runtime.logging_config import (
    EventContextFilter,
    HumanFormatter,
    JSONFormatter,
    configure_from_config,
    configure_logging,
    ctx_event_id,
    ctx_event_source,
    event_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset root logger after each test to avoid cross-contamination."""
    yield
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def _record(msg: str = "msg", level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord("test", level, "", 0, msg, (), exc_info)


def _file_handlers() -> list[logging.handlers.RotatingFileHandler]:
    return [
        h
        for h in logging.getLogger().handlers
        if isinstance(h, logging.handlers.RotatingFileHandler)
    ]


class TestEventContextFilter:
    def test_injects_context_vars(self):
        record = _record()
        tok_id = ctx_event_id.set("A234-1234-1234")
        tok_src = ctx_event_source.set("/mycontext")
        try:
            EventContextFilter().filter(record)
            assert record.event_id == "A234-1234-1234"  # type: ignore[attr-defined]
            assert record.event_source == "/mycontext"  # type: ignore[attr-defined]
        finally:
            ctx_event_source.reset(tok_src)
            ctx_event_id.reset(tok_id)

    def test_defaults_to_empty_string(self):
        record = _record()
        assert EventContextFilter().filter(record) is True
        assert record.event_id == ""  # type: ignore[attr-defined]
        assert record.event_source == ""  # type: ignore[attr-defined]


class TestEventContext:
    def test_binds_and_restores(self):
        event = CloudEvent(
            spec_version="0.1", event_type="t", source="/widgets/42", event_id="1234"
        )
        with event_context(event):
            assert ctx_event_id.get() == "1234"
            assert ctx_event_source.get() == "/widgets/42"
        assert ctx_event_id.get() == ""
        assert ctx_event_source.get() == ""


class TestJSONFormatter:
    def test_basic_format(self):
        fmt = JSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S")
        record = logging.LogRecord(
            "cloudenvelope.models.envelope", logging.INFO, "", 0, "hello world", (), None
        )
        data = json.loads(fmt.format(record))
        assert data["level"] == "INFO"
        assert data["logger"] == "cloudenvelope.models.envelope"
        assert data["msg"] == "hello world"
        assert "ts" in data
        assert "event_id" not in data

    def test_includes_event_context(self):
        record = _record()
        record.event_id = "1234"  # type: ignore[attr-defined]
        record.event_source = "/widgets/42"  # type: ignore[attr-defined]
        data = json.loads(JSONFormatter().format(record))
        assert data["event_id"] == "1234"
        assert data["event_source"] == "/widgets/42"

    def test_includes_exception(self):
        try:
            raise ValueError("test error")
        except ValueError:
            record = _record("boom", logging.ERROR, sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError" in data["exception"]


class TestHumanFormatter:
    def test_no_context(self):
        fmt = HumanFormatter(fmt="%(levelname)s: %(message)s")
        output = fmt.format(_record("hello"))
        assert output == "INFO: hello"

    def test_with_context(self):
        fmt = HumanFormatter(fmt="%(message)s")
        record = _record()
        record.event_id = "a" * 36  # type: ignore[attr-defined]
        record.event_source = "/widgets/42"  # type: ignore[attr-defined]
        assert fmt.format(record) == f"msg [event={'a' * 12} src=/widgets/42]"


class TestConfigureLogging:
    def test_sets_root_level(self):
        configure_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_json_output_uses_json_formatter(self):
        configure_logging(json_output=True)
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_human_output_uses_human_formatter(self):
        configure_logging(json_output=False)
        assert isinstance(logging.getLogger().handlers[0].formatter, HumanFormatter)

    def test_file_handler_always_json(self, tmp_path):
        configure_logging(log_dir=tmp_path, json_output=False)
        assert len(logging.getLogger().handlers) == 2  # console + file
        handlers = _file_handlers()
        assert len(handlers) == 1
        assert handlers[0].baseFilename.endswith("cloudenvelope.log")
        assert isinstance(handlers[0].formatter, JSONFormatter)

    def test_module_level_overrides(self):
        configure_logging(
            level="INFO",
            module_levels={"cloudenvelope.models.envelope": "DEBUG"},
        )
        assert logging.getLogger("cloudenvelope.models.envelope").level == logging.DEBUG
        logging.getLogger("cloudenvelope.models.envelope").setLevel(logging.NOTSET)

    def test_reconfigure_clears_old_handlers(self):
        configure_logging(level="INFO")
        configure_logging(level="DEBUG")
        assert len(logging.getLogger().handlers) == 1


class TestConfigureFromConfig:
    def test_uses_dict_level(self):
        configure_from_config({"runtime": {"log_level": "WARNING"}})
        assert logging.getLogger().level == logging.WARNING

    def test_uses_typed_config(self, tmp_path):
        cfg = CloudEnvelopeConfig(
            runtime=RuntimeConfig(log_level="ERROR", log_dir=str(tmp_path))
        )
        configure_from_config(cfg)
        assert logging.getLogger().level == logging.ERROR
        assert len(_file_handlers()) == 1

    def test_verbose_overrides_config(self):
        configure_from_config({"runtime": {"log_level": "WARNING"}}, verbose=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_defaults_when_no_runtime_section(self):
        configure_from_config({})
        assert logging.getLogger().level == logging.INFO


class TestSetupLogging:
    def test_applies_toml_file(self, tmp_path):
        path = tmp_path / "cloudenvelope.toml"
        log_dir = (tmp_path / "logs").as_posix()
        path.write_text(textwrap.dedent(f"""\
            [runtime]
            log_level = "ERROR"
            log_json = true
            log_dir = "{log_dir}"
        """))
        cfg = setup_logging(path)
        assert cfg.runtime.log_level == "ERROR"
        root = logging.getLogger()
        assert root.level == logging.ERROR
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert len(_file_handlers()) == 1

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = setup_logging(tmp_path / "missing.toml")
        assert cfg == CloudEnvelopeConfig()
        assert logging.getLogger().level == logging.INFO
        assert isinstance(logging.getLogger().handlers[0].formatter, HumanFormatter)

    def test_verbose_forces_debug(self, tmp_path):
        setup_logging(tmp_path / "missing.toml", verbose=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_exported_from_package(self):
        import cloudenvelope

        assert cloudenvelope.setup_logging is setup_logging


class TestLogFileOutput:
    def test_publisher_rejection_written_with_event_context(self, tmp_path):
        configure_logging(level="INFO", log_dir=tmp_path)
        event = CloudEvent(
            spec_version="0.1",
            event_type="t",
            source="/widgets/42",
            event_id="1234",
            publisher="p1",
        )
        with event_context(event):
            with pytest.raises(RuntimeError):
                event.set_publisher("p2")

        for h in logging.getLogger().handlers:
            h.flush()

        content = (tmp_path / "cloudenvelope.log").read_text(encoding="utf-8")
        data = json.loads(content.strip().split("\n")[-1])
        assert data["level"] == "WARNING"
        assert data["logger"] == "cloudenvelope.models.envelope"
        assert data["event_id"] == "1234"
        assert data["event_source"] == "/widgets/42"


class TestPackageLayout:
    def test_runtime_is_a_regular_package(self):
        import cloudenvelope.runtime

        assert cloudenvelope.runtime.__file__ is not None
        assert cloudenvelope.runtime.setup_logging is setup_logging
