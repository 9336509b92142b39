import io
import re

import pytest

from keepersim.logger import (
    COLOR_CYAN,
    COLOR_RED,
    COLOR_RESET,
    COLOR_YELLOW,
    LogLevel,
    MonitorToWriter,
    SimpleLogger,
)

STAMP = r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}\.\d{6}"


def make(level=LogLevel.TRACE):
    out = io.StringIO()
    return SimpleLogger(out, level), out


def test_debug_line_format():
    logger, out = make(LogLevel.DEBUG)
    logger.debug("hello")
    assert re.sub(STAMP, "<time>", out.getvalue()) == "[debug] <time> hello\n"


@pytest.mark.parametrize(
    "method, prefix",
    [
        ("critical", "[critical] "),
        ("error", "[error] "),
        ("warn", "[warn] "),
        ("info", "[info] "),
        ("debug", "[debug] "),
        ("trace", "[trace] "),
    ],
)
def test_each_level_has_its_prefix(method, prefix):
    logger, out = make()
    getattr(logger, method)("msg")
    assert out.getvalue().startswith(prefix)


@pytest.mark.parametrize(
    "method, color",
    [("critical", COLOR_RED), ("error", COLOR_YELLOW), ("trace", COLOR_CYAN)],
)
def test_colored_levels(method, color):
    logger, out = make()
    getattr(logger, method)("boom")
    assert out.getvalue().endswith(f"{color}boom{COLOR_RESET}\n")


def test_plain_levels_have_no_color():
    logger, out = make()
    logger.info("quiet")
    assert "\033[" not in out.getvalue()
    assert out.getvalue().endswith(" quiet\n")


def test_fields_are_appended_in_order():
    logger, out = make()
    logger.info("msg", {"a": 1, "b": "x"})
    assert out.getvalue().endswith(" msg, a: 1, b: x\n")


def test_levels_above_maximum_are_dropped():
    logger, out = make(LogLevel.WARN)
    logger.info("skip")
    logger.debug("skip")
    logger.trace("skip")
    assert out.getvalue() == ""
    logger.warn("keep")
    assert out.getvalue().startswith("[warn] ")


def test_critical_only_logger():
    logger, out = make(LogLevel.CRITICAL)
    logger.error("skip")
    logger.critical("keep")
    assert out.getvalue().count("\n") == 1


def test_existing_newline_is_not_doubled():
    logger, out = make(LogLevel.DEBUG)
    logger.debug("line\n")
    assert out.getvalue().endswith(" line\n")
    assert not out.getvalue().endswith("\n\n")


def test_monitor_writes_raw_bytes():
    sink = io.BytesIO()
    monitor = MonitorToWriter(sink)
    monitor.send_log(b"\x00\x01data")
    monitor.send_log(b"more")
    assert sink.getvalue() == b"\x00\x01datamore"