"""
Test Structured Logging
=======================

Usage:
    pytest test_logging.py
"""

import json
import logging

from bufeo_store import LogEvent, StructuredLogger


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def make_logger(name):
    structured = StructuredLogger(component="test", logger_name=f"test_logging.{name}")
    handler = RecordingHandler()
    structured.logger.addHandler(handler)
    return structured, handler


def test_error_entries_carry_traceback():
    structured, handler = make_logger("error")

    try:
        raise ValueError("bad row")
    except ValueError as e:
        structured.error(LogEvent.STORE_FETCH_FAILED, "Bulk fetch failed", metadata={'kind': 'trips'}, exc_info=e)

    record = handler.records[-1]
    assert record.exc_info[0] is ValueError
    assert record.exc_info[2] is not None

    entry = json.loads(record.getMessage())
    assert entry['event'] == "store.fetch.failed"
    assert entry['component'] == "test"
    assert entry['metadata'] == {'kind': 'trips'}
    assert entry['exception'] == {'type': 'ValueError', 'message': 'bad row'}


def test_non_error_entries_have_no_exc_info():
    structured, handler = make_logger("info")

    structured.warning(LogEvent.STORE_RECORD_SKIPPED, "Skipping malformed row")

    record = handler.records[-1]
    assert record.exc_info is None
    assert json.loads(record.getMessage())['level'] == "WARNING"
