"""
Spreadsheet reader.

Turns uploaded .xlsx / .xls / .csv bytes into plain 2-D grids
(first row = headers) with no other transformation. The workbook flavour is
sniffed from the payload itself, since uploads often carry a misleading
extension or MIME type (CSV files are regularly sent as application/vnd.ms-excel).
"""

import csv
import io
import logging
from pathlib import PurePath
from typing import Any, List, Tuple

import pandas as pd
from openpyxl import load_workbook

from .exceptions import EmptyOrUnreadableDocument, MalformedSourceData

logger = logging.getLogger(__name__)

Grid = List[List[Any]]

ZIP_MAGIC = b"PK\x03\x04"
OLE_MAGIC = b"\xd0\xcf\x11\xe0"

# Hebrew exports from older Excel versions are usually Windows-1255
CSV_ENCODINGS = ("utf-8-sig", "cp1255")


def read_workbook(content: bytes, filename: str = "") -> List[Tuple[str, Grid]]:
    """
    Read every sheet of a spreadsheet payload.

    Returns:
        List of (sheet_name, grid) pairs in workbook order

    Raises:
        EmptyOrUnreadableDocument: If the payload is empty or has no sheets
        MalformedSourceData: If the payload cannot be opened as a spreadsheet
    """
    if not content:
        raise EmptyOrUnreadableDocument("The spreadsheet is empty.")

    try:
        if content.startswith(ZIP_MAGIC):
            sheets = _read_xlsx(content)
        elif content.startswith(OLE_MAGIC):
            sheets = _read_xls(content)
        else:
            sheets = [(PurePath(filename or "data.csv").stem or "Sheet1", _read_csv(content))]
    except (EmptyOrUnreadableDocument, MalformedSourceData):
        raise
    except Exception as e:
        logger.error(f"Cannot open spreadsheet {filename!r}: {e}")
        raise MalformedSourceData(
            f"Failed to parse spreadsheet {filename or ''}: the file could not be opened "
            f"(is it corrupted or saved in a different format?). Details: {e}"
        ) from e

    if not sheets:
        raise EmptyOrUnreadableDocument("No sheets found in the spreadsheet.")

    logger.info(f"Read {len(sheets)} sheet(s) from {filename or 'spreadsheet'}")
    return sheets


def _read_xlsx(content: bytes) -> List[Tuple[str, Grid]]:
    wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        return [
            (ws.title, [list(row) for row in ws.iter_rows(values_only=True)])
            for ws in wb.worksheets
        ]
    finally:
        wb.close()


def _read_xls(content: bytes) -> List[Tuple[str, Grid]]:
    frames = pd.read_excel(io.BytesIO(content), sheet_name=None, header=None, dtype=object, engine="xlrd")
    sheets = []
    for name, frame in frames.items():
        grid = [
            [None if pd.isna(value) else value for value in row]
            for row in frame.itertuples(index=False, name=None)
        ]
        sheets.append((str(name), grid))
    return sheets


def _decode(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1")


def _read_csv(content: bytes) -> Grid:
    text = _decode(content)
    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
    except csv.Error:
        dialect = csv.excel
    reader = csv.reader(io.StringIO(text), dialect)
    return [[cell if cell != "" else None for cell in row] for row in reader]
