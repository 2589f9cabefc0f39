"""ロガー設定のユニットテスト"""

import json
import logging

import pytest
import structlog

from cicd_lab.logger import new_logger


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_json_format_renders_json(capsys: pytest.CaptureFixture[str]) -> None:
    """JSON フォーマットで 1 行 1 イベントが出力されること。"""
    logger = new_logger(level="INFO", format="json")
    logger.info("flag client ready", toggles=2)
    line = capsys.readouterr().out.strip().splitlines()[-1]
    event = json.loads(line)
    assert event["event"] == "flag client ready"
    assert event["toggles"] == 2
    assert event["level"] == "info"
    assert "timestamp" in event


def test_text_format() -> None:
    logger = new_logger(level="DEBUG", format="text")
    assert logger.bind(flag="show-beta-banner") is not None
    assert logging.getLogger().level == logging.DEBUG


def test_unknown_level_falls_back_to_info() -> None:
    new_logger(level="chatty")
    assert logging.getLogger().level == logging.INFO


def test_stdlib_records_share_the_json_format(capsys: pytest.CaptureFixture[str]) -> None:
    """uvicorn など標準 logging のレコードも同じ JSON 形式で出力されること。"""
    new_logger(level="INFO", format="json")
    logging.getLogger("uvicorn.error").info("Started server process [%d]", 42)
    lines = capsys.readouterr().out.strip().splitlines()
    event = json.loads(lines[-1])
    assert event["event"] == "Started server process [42]"
    assert event["logger"] == "uvicorn.error"
    assert event["level"] == "info"
    assert "timestamp" in event
