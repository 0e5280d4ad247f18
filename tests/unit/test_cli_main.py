from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from botocore.exceptions import NoRegionError

from roster_import.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main
from tests.helpers import GAME_HEADERS, game_row, xlsx_bytes


def _write(temp_workdir: Path, rows: list[list], name: str = "games.xlsx") -> Path:
    path = temp_workdir / "data" / name
    path.write_bytes(xlsx_bytes(rows))
    return path


def test_all_rows_written(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [GAME_HEADERS, game_row("G001"), game_row("G002")])

    code = main([str(path), "--kind", "games", "--store", "memory"])

    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "INFO Successfully processed 2 games (2 inserted, 0 updated)" in out
    assert "SUMMARY kind=games success=true processed=2 inserted=2 updated=0 errors=0" in out
    assert not list((temp_workdir / "logs").glob("errors-*.log"))


def test_partial_failure_exit_code_and_error_log(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [GAME_HEADERS, game_row("G001"), game_row(None)])

    code = main([str(path), "--kind", "games", "--store", "memory"])

    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "WARN Row 3: Missing game_id" in out
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert record["row"] == 3
    assert record["file"] == "games.xlsx"
    assert record["error_type"] == "MISSING_FIELD"


def test_structural_failure_is_fatal(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [["game_name"], ["Maze"]])

    code = main([str(path), "--kind", "games", "--store", "memory"])

    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR upload rejected kind=games" in out
    assert "success=false" in out


def test_json_report(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [GAME_HEADERS, game_row("G001")])

    main([str(path), "--kind", "games", "--store", "memory", "--json"])

    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
    report = json.loads(lines[0])
    assert report == {
        "success": True,
        "message": "Successfully processed 1 games (1 inserted, 0 updated)",
        "processed": 1,
        "inserted": 1,
        "updated": 0,
        "errors": [],
    }


def test_missing_file(temp_workdir: Path, capsys):
    code = main([str(temp_workdir / "data" / "nope.xlsx"), "--kind", "games", "--store", "memory"])
    assert code == EXIT_FATAL
    assert "ERROR file not found" in capsys.readouterr().out


def test_invalid_config(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [GAME_HEADERS, game_row("G001")])
    cfg = temp_workdir / "config" / "upload.yml"
    cfg.write_text("batch_size: 500\n", encoding="utf-8")

    code = main([str(path), "--kind", "games", "--config", str(cfg)])

    assert code == EXIT_FATAL
    assert "ERROR config:" in capsys.readouterr().out


def test_inspect_data(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [GAME_HEADERS + ["colour"], game_row("G001") + ["red"]])

    code = main([str(path), "--kind", "games", "--inspect-data"])

    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "FILE: games.xlsx kind=games rows=1" in out
    assert "unexpected=['colour']" in out
    assert "row 2:" in out


def test_dynamodb_connection_error(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [GAME_HEADERS, game_row("G001")])

    with patch("roster_import.cli.__main__.DynamoDBStore.from_config", side_effect=NoRegionError()):
        code = main([str(path), "--kind", "games"])

    assert code == EXIT_FATAL
    assert "ERROR dynamodb:" in capsys.readouterr().out


def test_debug_flag_logs_stages(temp_workdir: Path, capsys):
    path = _write(temp_workdir, [GAME_HEADERS, game_row("G001")])

    main([str(path), "--kind", "games", "--store", "memory", "--debug"])

    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG upload kind=games stage=batch_write" in out
