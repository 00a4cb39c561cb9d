import logging
import logging.handlers
from pathlib import Path

from agentloop.logging_config import LOGGER_NAME, resolve_level, setup_logging


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def test_resolve_level_accepts_names_and_numbers() -> None:
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("WARNING") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level("chatty") == logging.INFO


def test_setup_logging_replaces_handlers_and_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "agentloop.log"
    try:
        setup_logging("warning")
        logger = setup_logging("warning", log_file)

        assert logger.name == LOGGER_NAME
        assert len(logger.handlers) == 2
        assert any(
            isinstance(handler, logging.handlers.RotatingFileHandler)
            for handler in logger.handlers
        )

        logging.getLogger("agentloop.orchestrator").debug("Enqueued task t1")
        for handler in logger.handlers:
            handler.flush()

        assert "Enqueued task t1" in log_file.read_text(encoding="utf-8")
    finally:
        _reset(logging.getLogger(LOGGER_NAME))
