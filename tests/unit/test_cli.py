from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from chainindex.main import app, parse_filters

runner = CliRunner()

BURN = {"kind": "burn", "block_number": 1, "amount": 5, "tx_list": ["0x0a"]}


@pytest.fixture(autouse=True)
def _memory_backend(monkeypatch) -> None:
    monkeypatch.setenv("INDEX_BACKEND", "memory")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


def _write_events(path: Path, *events: dict) -> Path:
    path.write_text("".join(json.dumps(event) + "\n" for event in events), encoding="utf-8")
    return path


def test_info_lists_backends_and_record_types() -> None:
    result = runner.invoke(app, ["info"])

    assert result.exit_code == 0
    assert "backend=memory" in result.output
    assert "Backends: memory, postgres" in result.output
    assert "token_transfer" in result.output


def test_ingest_prints_outcome_tally(tmp_path: Path) -> None:
    events = _write_events(
        tmp_path / "events.jsonl", BURN, BURN, {"kind": "epoch", "id": 1}
    )

    result = runner.invoke(app, ["ingest", str(events)])

    assert result.exit_code == 0, result.output
    assert "Ingested events" in result.output
    assert "already_applied" in result.output
    assert "inserted" in result.output


def test_ingest_aborts_on_partial_burn(tmp_path: Path) -> None:
    partial = dict(BURN, tx_list=["0x0a", "0x0b"])
    events = _write_events(tmp_path / "events.jsonl", BURN, partial)

    result = runner.invoke(app, ["ingest", str(events)])

    assert result.exit_code == 1
    assert "line 2" in result.output


@pytest.mark.parametrize(
    "line",
    [
        json.dumps({"kind": "block", "number": 1}),
        json.dumps({"kind": "epoch", "id": -1}),
        '{"kind": "epoch", "id": ',
    ],
)
def test_ingest_rejects_bad_lines_with_their_position(tmp_path: Path, line: str) -> None:
    events = tmp_path / "events.jsonl"
    events.write_text(json.dumps(BURN) + "\n" + line + "\n", encoding="utf-8")

    result = runner.invoke(app, ["ingest", str(events)])

    assert result.exit_code == 2
    assert "Error at line 2" in result.output
    assert "Traceback" not in result.output


def test_list_prints_json_page() -> None:
    result = runner.invoke(app, ["list", "epoch", "--json", "--count", "5"])

    assert result.exit_code == 0, result.output
    page = json.loads(result.output)
    assert page["record_type"] == "epoch"
    assert page["total"] == 0
    assert page["is_start"] and page["is_end"]
    assert page["collection"] == []


def test_list_unknown_record_type_exits_with_error() -> None:
    result = runner.invoke(app, ["list", "block"])

    assert result.exit_code == 2
    assert "unknown record type 'block'" in result.output


def test_list_rejects_filter_outside_scope() -> None:
    result = runner.invoke(app, ["list", "epoch", "--filter", "sender=0x01"])

    assert result.exit_code == 2
    assert "can not be filtered by 'sender'" in result.output


def test_burns_on_empty_ledger() -> None:
    result = runner.invoke(app, ["burns", "--count", "3"])

    assert result.exit_code == 0, result.output
    assert "Burned native tokens" in result.output


def test_parse_filters() -> None:
    assert parse_filters(["sender=0xab", "type=0,3"]) == {"sender": "0xab", "type": ["0", "3"]}
