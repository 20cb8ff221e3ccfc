import logging

from habit_engine.logger import _resolve_level, get_logger, setup_logging


def test_setup_logging_splits_system_and_error_files(tmp_path):
    root = setup_logging(log_level="info", console_level="critical", logs_dir=tmp_path)
    try:
        get_logger("ledger").info("victory recorded")
        get_logger("generator").error("backend exploded")
        for handler in root.handlers:
            handler.flush()

        system_log = (tmp_path / "system.log").read_text(encoding="utf-8")
        error_log = (tmp_path / "error.log").read_text(encoding="utf-8")
        assert "habit_engine.ledger | victory recorded" in system_log
        assert "backend exploded" in error_log
        assert "victory recorded" not in error_log
    finally:
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)
        root.propagate = True


def test_console_only_mode_creates_no_files(tmp_path):
    root = setup_logging(logs_dir=tmp_path, to_files=False)
    try:
        assert list(tmp_path.iterdir()) == []
        assert len(root.handlers) == 1
    finally:
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)
        root.propagate = True


def test_level_resolution(monkeypatch):
    monkeypatch.setenv("HABIT_ENGINE_CONSOLE_LEVEL", "debug")

    assert _resolve_level(None, "HABIT_ENGINE_CONSOLE_LEVEL", logging.WARNING) == logging.DEBUG
    assert _resolve_level("nonsense", "UNUSED_VAR", logging.INFO) == logging.INFO
    assert _resolve_level(logging.ERROR, "UNUSED_VAR", logging.INFO) == logging.ERROR
