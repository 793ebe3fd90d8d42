"""
Brief: Tests for dnslookup.config.logging_config.init_logging and formatters.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import logging.handlers
from pathlib import Path

import pytest

from dnslookup.config.logging_config import (
    BracketLevelFormatter,
    SyslogFormatter,
    init_logging,
    resolve_level,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """
    Brief: Put the root logger's handlers and level back after each test.

    Inputs:
      - None

    Outputs:
      - None
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)


def test_init_logging_defaults_to_stderr_at_warn():
    """
    Brief: With no config, a single stderr handler at WARNING is installed.

    Inputs:
      - cfg: None

    Outputs:
      - None: Asserts handler type and level
    """
    init_logging(None)
    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)
    assert isinstance(root.handlers[0].formatter, BracketLevelFormatter)


def test_init_logging_file_handler_writes(tmp_path):
    """
    Brief: init_logging creates parent dirs and writes formatted entries.

    Inputs:
      - cfg: file path below a missing directory, stderr disabled

    Outputs:
      - None: Asserts file created and contains the tagged message
    """
    log_path = tmp_path / "logs" / "dnslookup.log"
    init_logging({"level": "info", "stderr": False, "file": str(log_path)})
    logging.getLogger("dnslookup.test").info("file message")
    for h in logging.getLogger().handlers:
        h.flush()
    content = Path(log_path).read_text()
    assert "file message" in content
    assert "[info] dnslookup.test:" in content


def test_init_logging_syslog(monkeypatch):
    created = {}

    class DummySysLogHandler(logging.Handler):
        LOG_USER = 8
        LOG_LOCAL0 = 128

        def __init__(self, address=None, facility=None):
            super().__init__()
            created["address"] = address
            created["facility"] = facility

    monkeypatch.setattr(logging.handlers, "SysLogHandler", DummySysLogHandler)

    init_logging({"syslog": True})
    assert created == {"address": "/dev/log", "facility": 8}

    created.clear()
    init_logging(
        {"syslog": {"address": ["localhost", 514], "facility": "local0", "tag": "resolver"}}
    )
    assert created == {"address": ("localhost", 514), "facility": 128}
    syslog_handlers = [
        h for h in logging.getLogger().handlers if isinstance(h, DummySysLogHandler)
    ]
    assert syslog_handlers[0].formatter.tag == "resolver"


def test_formatters_produce_expected_tags():
    fmt = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(name)s: %(message)s")
    rec = logging.LogRecord("n", logging.ERROR, __file__, 1, "m", (), None)
    rec.created = 0.0
    out = fmt.format(rec)
    assert out == "1970-01-01T00:00:00Z [error] n: m"

    rec2 = logging.LogRecord("n2", logging.WARNING, __file__, 2, "m2", (), None)
    assert SyslogFormatter().format(rec2) == "dnslookup: [warn] n2: m2"


@pytest.mark.parametrize(
    "name,level",
    [("debug", logging.DEBUG), ("WARN", logging.WARNING), ("crit", logging.CRITICAL), ("bogus", logging.INFO)],
)
def test_resolve_level(name, level):
    assert resolve_level(name) == level
