"""Read uploaded spreadsheets into plain header-first tables."""
from __future__ import annotations

import csv
import io
import zipfile
from typing import Any, List

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from roster_santa.services.errors import UnsupportedSpreadsheet

EXCEL_SUFFIXES = (".xlsx", ".xlsm")
CSV_SUFFIXES = (".csv",)


def is_supported(filename: str) -> bool:
    return filename.lower().endswith(EXCEL_SUFFIXES + CSV_SUFFIXES)


def read_table(filename: str, payload: bytes) -> List[List[Any]]:
    """Return the rows of the first sheet (or the CSV file) as lists of cells.

    ``.xls`` is not readable by openpyxl and is rejected along with any other
    unknown extension.
    """
    name = filename.lower()
    if name.endswith(EXCEL_SUFFIXES):
        return _read_workbook(payload)
    if name.endswith(CSV_SUFFIXES):
        return _read_csv(payload)
    raise UnsupportedSpreadsheet("Please upload an .xlsx or .csv file.")


def _read_workbook(payload: bytes) -> List[List[Any]]:
    try:
        workbook = load_workbook(io.BytesIO(payload), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise UnsupportedSpreadsheet(
            "Error reading Excel file. Please ensure it is a valid Excel file."
        ) from exc
    try:
        worksheet = workbook.worksheets[0]
        return [list(row) for row in worksheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_csv(payload: bytes) -> List[List[Any]]:
    try:
        text = payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise UnsupportedSpreadsheet("CSV files must be UTF-8 encoded.") from exc
    return [row for row in csv.reader(io.StringIO(text))]
