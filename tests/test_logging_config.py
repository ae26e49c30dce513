import logging

from drawer_dispatch.logging_config import configure_logging


def test_configure_logging_applies_level():
    assert configure_logging("debug") == "DEBUG"
    assert logging.getLogger().level == logging.DEBUG


def test_configure_logging_falls_back_on_invalid_level(caplog):
    with caplog.at_level(logging.WARNING):
        applied = configure_logging("chatty")

    assert applied == "INFO"
    assert "Invalid LOG_LEVEL" in caplog.text


def test_configure_logging_does_not_stack_handlers():
    configure_logging("INFO")
    configure_logging("INFO")

    ours = [h for h in logging.getLogger().handlers if getattr(h, "_drawer_dispatch", False)]
    assert len(ours) == 1
