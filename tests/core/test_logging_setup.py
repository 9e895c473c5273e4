import logging

import pytest

from src.deckster.core.logging_setup import get_logger, setup_logging


@pytest.fixture
def bare_root():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    root.handlers = []
    try:
        yield root
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_get_logger_leaves_root_logging_alone(bare_root: logging.Logger):
    logger = get_logger("deckster.tests.logging")

    assert logger.name == "deckster.tests.logging"
    assert bare_root.handlers == []


def test_setup_logging_adds_one_handler_and_sets_level(bare_root: logging.Logger):
    setup_logging("debug")
    setup_logging("debug")

    assert len(bare_root.handlers) == 1
    assert bare_root.level == logging.DEBUG


def test_setup_logging_falls_back_to_info_for_unknown_level(bare_root: logging.Logger):
    setup_logging("chatty")
    assert bare_root.level == logging.INFO
