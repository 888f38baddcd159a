import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog

from battle.logic.enums import CardType, Side
from battle.logic.state import GameEffect
from shared.logging import _serialize_values, configure_structlog, setup_logging


def _root_handlers() -> list[logging.Handler]:
    return list(logging.getLogger().handlers)


@pytest.fixture(autouse=True)
def _reset_root_handlers():
    yield
    root = logging.getLogger()
    for handler in _root_handlers():
        handler.close()
        root.removeHandler(handler)


@pytest.fixture
def file_logging():
    """Let setup_logging open log files even though pytest is loaded."""
    with patch("shared.logging._is_test", return_value=False):
        yield


class TestHandlers:
    def test_console_only_by_default(self):
        assert setup_logging() is None

        (console,) = _root_handlers()
        assert isinstance(console, logging.StreamHandler)
        assert isinstance(console.formatter, structlog.stdlib.ProcessorFormatter)
        assert logging.getLogger().level == logging.INFO

    def test_repeated_setup_does_not_stack_handlers(self):
        for _ in range(3):
            setup_logging()

        assert len(_root_handlers()) == 1

    @pytest.mark.usefixtures("file_logging")
    def test_log_dir_adds_timestamped_battle_file(self, tmp_path):
        started = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
        with patch("shared.logging.datetime") as clock:
            clock.now.return_value = started
            log_path = setup_logging(log_dir=tmp_path / "battle")

        assert log_path == tmp_path / "battle" / "battle-2025-03-15_10-30-45.log"
        file_handler = _root_handlers()[-1]
        assert isinstance(file_handler, logging.FileHandler)
        assert Path(file_handler.baseFilename) == log_path

    @pytest.mark.usefixtures("file_logging")
    def test_missing_log_dirs_are_created(self, tmp_path):
        log_path = setup_logging(log_dir=str(tmp_path / "logs" / "battle"))

        structlog.get_logger("battle.engine").info("game created", game_id="g-1")

        assert log_path is not None
        assert "game created" in log_path.read_text()

    def test_no_file_under_pytest(self, tmp_path):
        assert setup_logging(log_dir=tmp_path / "battle") is None
        assert not (tmp_path / "battle").exists()

    def test_http_client_loggers_quietened(self):
        setup_logging(level=logging.DEBUG)

        for name in ("httpx", "httpcore"):
            assert logging.getLogger(name).level == logging.WARNING


class TestEnvironment:
    @pytest.mark.parametrize(
        ("env_value", "expected"),
        [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("Error", logging.ERROR)],
    )
    def test_level_from_env_is_case_insensitive(self, monkeypatch, env_value, expected):
        monkeypatch.setenv("LOG_LEVEL", env_value)
        setup_logging()

        assert logging.getLogger().level == expected

    def test_explicit_level_overrides_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CRITICAL")
        setup_logging(level=logging.DEBUG)

        assert logging.getLogger().level == logging.DEBUG

    @pytest.mark.parametrize(("name", "value"), [("LOG_LEVEL", "verbose"), ("LOG_FORMAT", "xml")])
    def test_unknown_values_rejected(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValueError, match=f"Invalid {name}"):
            setup_logging()

    def test_format_error_lists_choices(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "yaml")

        with pytest.raises(ValueError, match="'json', 'console'"):
            setup_logging()

    @pytest.mark.usefixtures("file_logging")
    def test_json_lines_carry_bound_game_context(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_path = setup_logging(log_dir=tmp_path)

        with structlog.contextvars.bound_contextvars(game_id="game-1"):
            structlog.get_logger("battle.engine").warning("turn completed", winner=Side.PLAYER)

        assert log_path is not None
        line = json.loads(log_path.read_text().splitlines()[0])
        assert line["event"] == "turn completed"
        assert line["game_id"] == "game-1"
        assert line["winner"] == "player"
        assert line["level"] == "warning"
        assert line["logger"] == "battle.engine"


class TestConfigureStructlog:
    def test_events_reach_stdlib_logging(self, caplog):
        configure_structlog()

        with caplog.at_level(logging.INFO):
            structlog.get_logger("battle.test").info("card played", card_id="fire-strike", side=Side.PLAYER)

        record = caplog.records[-1]
        assert record.name == "battle.test"
        assert record.msg["event"] == "card played"
        assert record.msg["side"] == "player"


class TestSerializeValues:
    def test_enum_values_become_plain(self):
        result = _serialize_values(None, "info", {"event": "x", "type": CardType.ATTACK})

        assert result["type"] == "attack"
        assert type(result["type"]) is str

    def test_models_become_camel_case_dicts(self):
        effect = GameEffect(multiplier=1.5, bonus_damage=15, description="BIG")

        result = _serialize_values(None, "info", {"effect": effect})

        assert result["effect"] == {"multiplier": 1.5, "bonusDamage": 15, "description": "BIG"}

    def test_nested_dict_values_are_converted(self):
        result = _serialize_values(None, "info", {"sides": {"winner": Side.OPPONENT, "turns": 3}})

        assert result["sides"] == {"winner": "opponent", "turns": 3}
