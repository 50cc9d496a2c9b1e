"""Tests for logging configuration."""

import logging

from family_meal.app_logging import ContextFormatter, configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("family_meal")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging("debug")
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert logger.level == logging.DEBUG
    configure_logging()


def test_context_formatter_appends_extra_fields() -> None:
    formatter = ContextFormatter("%(levelname)s: %(message)s")
    record = logging.makeLogRecord(
        {
            "levelname": "INFO",
            "msg": "Deleted meal",
            "meal_id": "meal-1",
            "comments_deleted": 3,
            "uid": None,
        }
    )

    assert formatter.format(record) == (
        "INFO: Deleted meal [comments_deleted=3 meal_id='meal-1']"
    )


def test_context_formatter_leaves_plain_records_alone() -> None:
    formatter = ContextFormatter("%(message)s")
    record = logging.makeLogRecord({"msg": "Rejected payload"})

    assert formatter.format(record) == "Rejected payload"
