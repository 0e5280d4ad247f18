from __future__ import annotations

from datetime import date

import numpy as np
import pandas as pd
import pytest

from roster_import.excel.reader import (
    MissingHeadersError,
    UploadFileError,
    check_headers,
    detect_format,
    map_row_to_object,
    normalize_cell,
    read_upload,
)
from tests.helpers import GAME_HEADERS, csv_bytes, game_row, xlsx_bytes


class TestNormalizeCell:
    def test_numpy_scalars_become_python(self):
        assert normalize_cell(np.int64(3)) == 3
        assert type(normalize_cell(np.int64(3))) is int
        assert normalize_cell(np.bool_(True)) is True

    def test_missing_markers_become_none(self):
        assert normalize_cell(None) is None
        assert normalize_cell(float("nan")) is None
        assert normalize_cell(np.float64("nan")) is None
        assert normalize_cell(pd.NaT) is None

    def test_strings_are_trimmed(self):
        assert normalize_cell("  G001 ") == "G001"
        assert normalize_cell("   ") is None
        assert normalize_cell("") is None

    def test_dates_become_iso_strings(self):
        assert normalize_cell(pd.Timestamp("2024-01-15 10:30:00")) == "2024-01-15T10:30:00.000Z"
        assert normalize_cell(date(2024, 1, 15)) == "2024-01-15"


def test_map_row_to_object_pads_and_truncates():
    headers = ["a", "b", "", "c"]
    assert map_row_to_object(headers, [1, 2, 3]) == {"a": 1, "b": 2, "c": None}
    assert map_row_to_object(["a"], [1, 2, 3]) == {"a": 1}


def test_detect_format_by_extension_and_magic():
    assert detect_format(b"anything", "games.XLSX") == "xlsx"
    assert detect_format(b"anything", "games.csv") == "csv"
    assert detect_format(b"PK\x03\x04rest") == "xlsx"
    assert detect_format(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1rest") == "xls"
    assert detect_format(b"game_id\nG1\n") == "csv"


def test_detect_format_rejects_unknown_extension():
    with pytest.raises(UploadFileError, match="Unsupported file type"):
        detect_format(b"x", "games.pdf")


def test_read_upload_xlsx_numbers_rows_from_two():
    payload = xlsx_bytes([GAME_HEADERS, game_row("G001"), game_row("G002", clicks=5)])
    sheet = read_upload(payload, "games.xlsx")

    assert sheet.headers == GAME_HEADERS
    assert [n for n, _ in sheet.rows] == [2, 3]
    first = map_row_to_object(sheet.headers, sheet.rows[0][1])
    assert first["game_id"] == "G001"
    assert first["scratch_api"] == "https://scratch.mit.edu/projects/G001"
    assert map_row_to_object(sheet.headers, sheet.rows[1][1])["accumulated_click"] == 5


def test_read_upload_skips_blank_rows_but_keeps_numbering():
    payload = csv_bytes([["game_id", "game_name"], ["G1", "A"], [None, None], ["G2", "B"]])
    sheet = read_upload(payload, "games.csv")
    assert [n for n, _ in sheet.rows] == [2, 4]


def test_read_upload_csv_keeps_na_strings():
    payload = csv_bytes([["game_id", "game_name"], ["G1", "NA"]])
    sheet = read_upload(payload)
    assert sheet.rows[0][1] == ["G1", "NA"]


def test_read_upload_csv_rows_wider_than_header():
    payload = b"student_id,name_1\nS1,Alice,EXTRA\nS2,Bob\n"
    sheet = read_upload(payload, "students.csv")

    assert sheet.headers == ["student_id", "name_1", ""]
    assert [n for n, _ in sheet.rows] == [2, 3]
    assert map_row_to_object(sheet.headers, sheet.rows[0][1]) == {"student_id": "S1", "name_1": "Alice"}
    assert map_row_to_object(sheet.headers, sheet.rows[1][1]) == {"student_id": "S2", "name_1": "Bob"}


def test_read_upload_csv_trailing_comma_on_one_row():
    payload = csv_bytes([["game_id", "game_name"], ["G1", "A", None], ["G2", "B"]])
    sheet = read_upload(payload, "games.csv")
    assert [map_row_to_object(sheet.headers, cells)["game_id"] for _, cells in sheet.rows] == ["G1", "G2"]


def test_read_upload_csv_with_bom():
    payload = "\ufeffgame_id,game_name\nG1,A\n".encode("utf-8")
    sheet = read_upload(payload, "games.csv")
    assert sheet.headers == ["game_id", "game_name"]


def test_read_upload_header_only_has_no_rows():
    sheet = read_upload(csv_bytes([GAME_HEADERS]), "games.csv")
    assert sheet.rows == []


def test_read_upload_empty_payload():
    with pytest.raises(UploadFileError, match="File is empty"):
        read_upload(b"", "games.xlsx")


def test_read_upload_corrupt_workbook():
    with pytest.raises(UploadFileError, match="Unable to read xlsx file"):
        read_upload(b"PK\x03\x04not really a zip", "games.xlsx")


def test_check_headers_missing_required():
    with pytest.raises(MissingHeadersError) as exc:
        check_headers(["game_name"], {"game_id"}, {"game_id", "game_name"})
    assert exc.value.missing == ["game_id"]
    assert str(exc.value) == "Missing required headers: game_id"


def test_check_headers_returns_unexpected():
    unexpected = check_headers(["game_id", "colour", ""], {"game_id"}, {"game_id"})
    assert unexpected == ["colour"]
