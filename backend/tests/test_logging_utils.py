import asyncio
import logging

import pytest

from exceptions import ValidationError
from utils.logging_utils import (
    StructuredLogger,
    clear_logging_context,
    get_logging_context,
    log_operation,
    set_logging_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_logging_context()
    yield
    clear_logging_context()


def test_context_ids_are_appended_to_messages(caplog):
    set_logging_context(execution_id="exec-1", session_id="c2Vzcw")
    assert get_logging_context() == {"execution_id": "exec-1", "session_id": "c2Vzcw"}

    with caplog.at_level(logging.INFO):
        StructuredLogger("tests.structured").info("Output file created")

    record = caplog.records[-1]
    assert record.getMessage() == "Output file created [execution_id=exec-1 session_id=c2Vzcw]"
    assert record.context["execution_id"] == "exec-1"


def test_log_operation_async_success(caplog):
    @log_operation("begin_execution")
    async def begin(*, execution_id):
        return "done"

    with caplog.at_level(logging.INFO):
        assert asyncio.run(begin(execution_id="exec-2")) == "done"

    messages = [record.getMessage() for record in caplog.records]
    assert "Starting begin_execution [execution_id=exec-2]" in messages
    assert "Completed begin_execution [execution_id=exec-2]" in messages


def test_log_operation_expected_failure_is_a_warning(caplog):
    @log_operation("cancel_execution")
    def cancel(*, execution_id):
        raise ValidationError("No execution ID provided")

    with caplog.at_level(logging.INFO):
        with pytest.raises(ValidationError):
            cancel(execution_id="exec-3")

    failure = caplog.records[-1]
    assert failure.levelno == logging.WARNING
    assert failure.context["error_type"] == "ValidationError"


def test_log_operation_unexpected_failure_is_an_error(caplog):
    @log_operation("calculate_region")
    def broken(*, file_path):
        raise RuntimeError("boom")

    with caplog.at_level(logging.INFO):
        with pytest.raises(RuntimeError):
            broken(file_path="/media/a.mp4")

    failure = caplog.records[-1]
    assert failure.levelno == logging.ERROR
    assert failure.exc_info is not None
