from io import BytesIO
from typing import Any, BinaryIO, Iterable, Sequence
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
import xlrd
from xlrd.biffh import XLRDError
from xlrd.compdoc import CompDocError

from ..errors import SpreadsheetError

XLSX_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
)
# OLE2 compound document header used by legacy .xls workbooks.
XLS_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def _xlsx_values(data: bytes) -> list[tuple]:
    try:
        workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise SpreadsheetError(f"Could not read spreadsheet: {exc}") from exc
    try:
        if not workbook.worksheets:
            return []
        return list(workbook.worksheets[0].iter_rows(values_only=True))
    finally:
        workbook.close()


def _xls_values(data: bytes) -> list[tuple]:
    try:
        book = xlrd.open_workbook(file_contents=data, on_demand=True)
    except (CompDocError, XLRDError, ValueError) as exc:
        raise SpreadsheetError(f"Could not read spreadsheet: {exc}") from exc
    try:
        if book.nsheets == 0:
            return []
        sheet = book.sheet_by_index(0)
        return [tuple(sheet.row_values(index)) for index in range(sheet.nrows)]
    finally:
        book.release_resources()


def read_rows(stream: BinaryIO) -> list[dict[str, Any]]:
    """Decode the first worksheet of an .xlsx or legacy .xls file.

    Rows are keyed by the header row. Blank cells come back as "" and fully
    blank rows are skipped.
    """
    data = stream.read()
    if data.startswith(XLS_SIGNATURE):
        values = _xls_values(data)
    else:
        values = _xlsx_values(data)
    if not values:
        return []

    header, body = values[0], values[1:]
    keys = [str(cell).strip() if cell is not None else "" for cell in header]
    rows: list[dict[str, Any]] = []
    for raw in body:
        if raw is None or all(cell is None or cell == "" for cell in raw):
            continue
        row: dict[str, Any] = {}
        for index, key in enumerate(keys):
            if not key:
                continue
            cell = raw[index] if index < len(raw) else None
            row[key] = "" if cell is None else cell
        rows.append(row)
    return rows


def write_rows(
    rows: Iterable[dict[str, Any]], columns: Sequence[str], sheet_name: str
) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    sheet.append(list(columns))
    for row in rows:
        sheet.append([row.get(column, "") for column in columns])

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
