"""
Log formatting
"""
import logging

from salesflow.utils.logger import ContextFormatter, get_logger


def make_record(context=None):
    record = logging.LogRecord("salesflow.test", logging.ERROR, __file__, 1, "number generation failed", None, None)
    if context is not None:
        record.context = context
    return record


def test_context_is_appended_sorted():
    formatter = ContextFormatter("%(levelname)s %(message)s")

    message = formatter.format(make_record({"document_type": "quote", "attempts": 5}))

    assert message == "ERROR number generation failed [attempts=5 document_type=quote]"


def test_plain_records_are_untouched():
    formatter = ContextFormatter("%(message)s")

    assert formatter.format(make_record()) == "number generation failed"


def test_get_logger_installs_one_handler():
    logger = get_logger("salesflow.test-logger")
    again = get_logger("salesflow.test-logger")

    assert logger is again
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, ContextFormatter)
