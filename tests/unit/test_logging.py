from __future__ import annotations

import json
import logging

from chainindex.utils.logging import _json_formatter, configure_logging, get_logger

EXPECTED_BLOCK = 10
EXPECTED_AMOUNT = 8


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="burn at #%d merged",
        args=(EXPECTED_BLOCK,),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.amount = EXPECTED_AMOUNT
    record.record_type = "transaction"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == f"burn at #{EXPECTED_BLOCK} merged"
    assert payload["amount"] == EXPECTED_AMOUNT
    assert payload["record_type"] == "transaction"
    assert "args" not in payload


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"block": EXPECTED_BLOCK}

    payload = json.loads(_json_formatter(record))

    assert payload["block"] == EXPECTED_BLOCK


def test_json_formatter_renders_big_integers_and_unknown_types() -> None:
    record = _record()
    record.amount = 2**80
    record.key = ("0x01", 3)
    record.when = object()

    payload = json.loads(_json_formatter(record))

    assert payload["amount"] == 2**80
    assert payload["key"] == ["0x01", 3]
    assert isinstance(payload["when"], str)


def test_configure_logging_keeps_module_loggers_enabled() -> None:
    module_logger = get_logger("chainindex.reconcile.burn")
    configure_logging(level="WARNING", json_logs=True)

    assert not module_logger.disabled
    assert logging.getLogger().level == logging.WARNING
