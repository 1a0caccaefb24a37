from __future__ import annotations

import logging

from synthrig.utils.debug_log import maybe_enable_debug_logger


def test_debug_logger_disabled_without_flag(monkeypatch) -> None:
    monkeypatch.delenv("SYNTHRIG_TEST_DEBUG", raising=False)
    logger = logging.getLogger("synthrig.tests.debug_off")
    assert not maybe_enable_debug_logger(logger, "SYNTHRIG_TEST_DEBUG")
    assert logger.handlers == []


def test_debug_logger_attaches_single_local_handler(monkeypatch) -> None:
    monkeypatch.setenv("SYNTHRIG_TEST_DEBUG", "1")
    logger = logging.getLogger("synthrig.tests.debug_on")
    try:
        assert maybe_enable_debug_logger(logger, "SYNTHRIG_OTHER_DEBUG", "SYNTHRIG_TEST_DEBUG")
        assert maybe_enable_debug_logger(logger, "SYNTHRIG_TEST_DEBUG")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
