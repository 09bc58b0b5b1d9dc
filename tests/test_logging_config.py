import logging

from nebula_app.logging_config import LEVEL_ENV_VAR, resolve_level, setup_logging


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "nebula.log"
    setup_logging(logging.DEBUG, str(log_file))
    logger = logging.getLogger("nebula_app")
    try:
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2

        logging.getLogger("nebula_app.test").debug("hello from the test")
        for handler in logger.handlers:
            handler.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "Logging initialized (DEBUG)." in text
        assert "hello from the test" in text
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)


def test_setup_logging_does_not_stack_handlers():
    logger = logging.getLogger("nebula_app")
    try:
        setup_logging()
        setup_logging()
        assert len(logger.handlers) == 1
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)


def test_resolve_level():
    assert resolve_level(debug=True, environ={LEVEL_ENV_VAR: "error"}) == logging.DEBUG
    assert resolve_level(environ={LEVEL_ENV_VAR: "warning"}) == logging.WARNING
    assert resolve_level(environ={LEVEL_ENV_VAR: " Error "}) == logging.ERROR
    assert resolve_level(environ={LEVEL_ENV_VAR: "chatty"}) == logging.INFO
    assert resolve_level(environ={}) == logging.INFO


def test_vispy_logger_follows_debug():
    logger = logging.getLogger("nebula_app")
    vispy_logger = logging.getLogger("vispy")
    previous = vispy_logger.level
    try:
        setup_logging(logging.INFO)
        assert vispy_logger.level == logging.WARNING
        setup_logging(logging.DEBUG)
        assert vispy_logger.level == logging.INFO
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
        vispy_logger.setLevel(previous)
