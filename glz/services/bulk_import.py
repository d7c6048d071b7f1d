"""Certificate import from spreadsheets.

Rows are processed one at a time, each in its own transaction, so a row
sees every certificate committed by the rows before it and a rejected row
never blocks the rest of the file. The uploaded file is read from memory
and never written to disk.
"""

from __future__ import annotations

import csv
import io
import logging
import os
import re
import unicodedata
import zipfile
from dataclasses import dataclass, field
from typing import IO, Any, Iterable, Mapping, Optional

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError

from ..constants import IMPORT_COLUMNS, IMPORT_EXTENSIONS
from ..models import User
from ..shared.names import collapse_whitespace
from .certificates import create_certificate
from .errors import AllocationFailure, CertificateValidationError, GroupNotFound
from .groups import find_group
from .validation import DATE_FIELDS

logger = logging.getLogger("glz.import")

UNKNOWN_NAME = "Unknown"


class ImportFileError(ValueError):
    """Raised when an uploaded file cannot be turned into rows."""


def _header_key(label: Any) -> str:
    text = unicodedata.normalize("NFKD", str(label or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return "".join(ch for ch in text.lower() if ch.isalnum())


_HEADER_LOOKUP = {
    _header_key(alias): field_name
    for field_name, aliases in IMPORT_COLUMNS.items()
    for alias in (field_name, *aliases)
}


def _clean_cell(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _is_empty_row(values: Iterable[Any]) -> bool:
    return all(_clean_cell(value) is None for value in values)


def map_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Translate spreadsheet column labels into certificate field names.

    Unknown columns are ignored; when two labels map to the same field the
    first non-empty one is kept.
    """

    mapped: dict[str, Any] = {}
    for label, value in row.items():
        field_name = _HEADER_LOOKUP.get(_header_key(label))
        if field_name is None:
            continue
        value = _clean_cell(value)
        if mapped.get(field_name) is None:
            mapped[field_name] = value
    return mapped


def _read_xlsx(data: bytes) -> list[dict[str, Any]]:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ImportFileError("The spreadsheet could not be read.") from exc
    try:
        sheet = workbook.worksheets[0]
        values = sheet.iter_rows(values_only=True)
        headers = next(values, None)
        if headers is None:
            return []
        labels = [str(h).strip() if h is not None else "" for h in headers]
        rows = []
        for row_values in values:
            if _is_empty_row(row_values):
                continue
            rows.append(
                {label: value for label, value in zip(labels, row_values) if label}
            )
        return rows
    finally:
        workbook.close()


_SERIAL_RE = re.compile(r"^\d{5}(?:\.\d+)?$")


def _typed_csv_cell(label: Any, value: Any) -> Any:
    # CSV carries no cell types; spreadsheet date serials arrive as text.
    if isinstance(value, str) and _HEADER_LOOKUP.get(_header_key(label)) in DATE_FIELDS:
        text = value.strip()
        if _SERIAL_RE.match(text):
            return float(text) if "." in text else int(text)
    return value


def _read_csv(data: bytes) -> list[dict[str, Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = data.decode("cp1252", errors="replace")
    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel
    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    rows = []
    for row in reader:
        row.pop(None, None)
        if _is_empty_row(row.values()):
            continue
        rows.append({label: _typed_csv_cell(label, value) for label, value in row.items()})
    return rows


def _frame_cell(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if hasattr(value, "item"):
        value = value.item()
    if value is None or pd.isna(value):
        return None
    return value


def _read_xls(data: bytes) -> list[dict[str, Any]]:
    try:
        frame = pd.read_excel(io.BytesIO(data), sheet_name=0, engine="xlrd", dtype=object)
    except (XLRDError, ValueError) as exc:
        raise ImportFileError("The spreadsheet could not be read.") from exc
    labels = [str(column).strip() for column in frame.columns]
    rows = []
    for values in frame.itertuples(index=False, name=None):
        values = [_frame_cell(value) for value in values]
        if _is_empty_row(values):
            continue
        rows.append(dict(zip(labels, values)))
    return rows


def read_rows(stream: IO[bytes], filename: str) -> list[dict[str, Any]]:
    """Read the first sheet of an ``.xlsx``, ``.xls`` or ``.csv`` upload into dicts."""

    extension = os.path.splitext(filename or "")[1].lower()
    if extension not in IMPORT_EXTENSIONS:
        raise ImportFileError(
            "Unsupported file format. Please upload an Excel (.xlsx, .xls) or CSV file."
        )
    data = stream.read()
    if extension == ".xlsx":
        return _read_xlsx(data)
    if extension == ".xls":
        return _read_xls(data)
    return _read_csv(data)


@dataclass
class RowOutcome:
    row: int
    full_name: str
    success: bool
    message: str
    kind: Optional[str] = None
    reference_number: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "fullName": self.full_name,
            "success": self.success,
            "message": self.message,
            "kind": self.kind,
            "referenceNumber": self.reference_number,
        }


@dataclass
class ImportResult:
    group_code: str
    results: list[RowOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.results if outcome.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupCode": self.group_code,
            "total": self.total,
            "success": self.succeeded,
            "failed": self.failed,
            "results": [outcome.to_dict() for outcome in self.results],
        }


def import_row(index: int, row: Mapping[str, Any], group_code: str, actor: Optional[User]) -> RowOutcome:
    mapped = map_row(row)
    full_name = collapse_whitespace(str(mapped.get("fullName") or "")) or UNKNOWN_NAME
    try:
        cert = create_certificate(mapped, actor, group_code=group_code)
    except CertificateValidationError as exc:
        logger.info(
            "[CERT-IMPORT] row=%s rejected kind=%s field=%s name=%r",
            index,
            exc.kind,
            exc.field,
            full_name,
        )
        return RowOutcome(index, full_name, False, exc.message, kind=exc.kind)
    except AllocationFailure as exc:
        return RowOutcome(index, full_name, False, str(exc), kind=exc.kind)
    return RowOutcome(
        index,
        full_name,
        True,
        "Certificate created",
        reference_number=cert.reference_number,
    )


def run_import(
    rows: Iterable[Mapping[str, Any]], group_code: str, actor: Optional[User]
) -> ImportResult:
    """Import ``rows`` into ``group_code``, recording one outcome per row."""

    if find_group(group_code) is None:
        raise GroupNotFound(group_code)
    result = ImportResult(group_code=group_code)
    for index, row in enumerate(rows, start=1):
        result.results.append(import_row(index, row, group_code, actor))
    logger.info(
        "[CERT-IMPORT] group=%s total=%s success=%s failed=%s",
        group_code,
        result.total,
        result.succeeded,
        result.failed,
    )
    return result


def import_file(
    stream: IO[bytes], filename: str, group_code: str, actor: Optional[User]
) -> ImportResult:
    if find_group(group_code) is None:
        raise GroupNotFound(group_code)
    rows = read_rows(stream, filename)
    if not rows:
        raise ImportFileError("The file contains no data.")
    return run_import(rows, group_code, actor)
