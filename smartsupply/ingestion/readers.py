"""
Tabular File Reader

Reads CSV and Excel uploads into raw pandas DataFrames.
Supports:
- File paths, raw bytes and binary file-like objects (uploads)
- Format detection from the file name or the file signature
- Delimiter sniffing and encoding fallback for CSV exports
- CSV rows with too many fields set aside instead of failing the file
- Header lookup through configurable alias lists

Cells are kept as raw objects; typing happens in the parsers.
"""

import io
import zipfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd
import structlog

from smartsupply.exceptions import FileFormatError
from .decoders import clean_text, normalize_header

logger = structlog.get_logger(__name__)

TableSource = Union[str, Path, bytes, BinaryIO]

XLSX_SIGNATURE = b"PK\x03\x04"
XLS_SIGNATURE = b"\xd0\xcf\x11\xe0"
CSV_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")
CSV_DELIMITERS = (",", ";", "\t", "|")
FIRST_DATA_ROW = 2  # spreadsheet row of frame index 0
MALFORMED_ROW = "\x00malformed-row"


class TableFormat(str, Enum):
    """Supported tabular formats"""
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"


@dataclass
class Table:
    """Raw cells of an input file; frame index i is spreadsheet row i + 2"""
    frame: pd.DataFrame
    name: str
    malformed_rows: List[int] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.frame) + len(self.malformed_rows)


def source_name(source: TableSource, default: str = "upload") -> str:
    """Best-effort display name for a source"""
    if isinstance(source, (str, Path)):
        return Path(source).name
    name = getattr(source, "name", None) or getattr(source, "filename", None)
    return Path(str(name)).name if name else default


def detect_format(data: bytes, name: Optional[str] = None) -> TableFormat:
    """Pick the reader from the extension, falling back to the file signature"""
    suffix = Path(name).suffix.lower() if name else ""
    if suffix in (".xlsx", ".xlsm"):
        return TableFormat.XLSX
    if suffix == ".xls":
        return TableFormat.XLS
    if suffix in (".csv", ".txt", ".tsv"):
        return TableFormat.CSV

    if data.startswith(XLSX_SIGNATURE):
        return TableFormat.XLSX
    if data.startswith(XLS_SIGNATURE):
        return TableFormat.XLS
    return TableFormat.CSV


def _read_bytes(source: TableSource, name: str) -> bytes:
    """Fully consume the source; paths are opened and released here"""
    if isinstance(source, bytes):
        return source
    if isinstance(source, (str, Path)):
        try:
            with open(source, "rb") as fh:
                return fh.read()
        except OSError as e:
            raise FileFormatError(f"file could not be opened ({e.strerror or e})", file_name=name) from e

    if hasattr(source, "seek"):
        source.seek(0)
    data = source.read()
    if isinstance(data, str):
        data = data.encode("utf-8")
    return data


def _sniff_delimiter(data: bytes) -> str:
    """Most frequent candidate delimiter in the header line"""
    header = data.splitlines()[0].decode("latin-1")
    counts = {sep: header.count(sep) for sep in CSV_DELIMITERS}
    best = max(counts, key=counts.get)
    return best if counts[best] > 0 else ","


def _mark_bad_line(fields: List[str]) -> List[str]:
    """on_bad_lines hook: a row with extra fields stays in place, marked"""
    return [MALFORMED_ROW]


def _header_names(cells: Iterable[Any]) -> List[str]:
    """Header cells as unique column names ("Qty", "Qty.1", "Unnamed: 2")"""
    names: List[str] = []
    seen: Dict[str, int] = {}
    for position, cell in enumerate(cells):
        name = clean_text(cell) or f"Unnamed: {position}"
        count = seen.get(name, 0)
        seen[name] = count + 1
        names.append(f"{name}.{count}" if count else name)
    return names


def _read_csv(data: bytes) -> Tuple[pd.DataFrame, List[int]]:
    """
    Read CSV cells as text.

    The python engine hands rows with too many fields to _mark_bad_line
    instead of failing the file; they are returned as spreadsheet row
    numbers and dropped from the frame.
    """
    delimiter = _sniff_delimiter(data)
    last_error: Optional[Exception] = None
    for encoding in CSV_ENCODINGS:
        try:
            raw = pd.read_csv(
                io.BytesIO(data),
                sep=delimiter,
                header=None,
                dtype=object,
                encoding=encoding,
                engine="python",
                on_bad_lines=_mark_bad_line,
                keep_default_na=False,
                na_values=[""],
                skip_blank_lines=False,
            )
            break
        except UnicodeDecodeError as e:
            last_error = e
    else:
        raise last_error

    df = raw.iloc[1:].reset_index(drop=True)
    df.columns = _header_names(raw.iloc[0])
    malformed = df.iloc[:, 0] == MALFORMED_ROW
    malformed_rows = [int(index) + FIRST_DATA_ROW for index in df.index[malformed]]
    return df[~malformed], malformed_rows


def read_table(
    source: TableSource,
    name: Optional[str] = None,
    sheet: Union[int, str] = 0,
) -> Table:
    """
    Read a tabular file whose first row is the header.

    Args:
        source: Path, bytes or binary file-like object
        name: Display name (also used for format detection)
        sheet: Worksheet read from Excel workbooks

    Returns:
        Table of raw cell values plus the CSV rows set aside as malformed

    Raises:
        FileFormatError: file unreadable or empty
    """
    name = name or source_name(source)
    data = _read_bytes(source, name)
    if not data or not data.strip():
        raise FileFormatError("file is empty", file_name=name)

    table_format = detect_format(data, name)
    malformed_rows: List[int] = []
    try:
        if table_format == TableFormat.CSV:
            df, malformed_rows = _read_csv(data)
        else:
            df = pd.read_excel(io.BytesIO(data), sheet_name=sheet, dtype=object)
    except pd.errors.EmptyDataError as e:
        raise FileFormatError("file is empty", file_name=name) from e
    except (pd.errors.ParserError, UnicodeDecodeError, zipfile.BadZipFile, ValueError, KeyError, ImportError) as e:
        raise FileFormatError(f"file could not be read as {table_format.value.upper()} ({e})", file_name=name) from e

    df.columns = [str(c) for c in df.columns]
    df = df.dropna(how="all")

    logger.info(
        "Table read",
        file=name,
        format=table_format.value,
        rows=len(df),
        columns=len(df.columns),
        malformed_rows=len(malformed_rows),
    )
    return Table(frame=df, name=name, malformed_rows=malformed_rows)


def locate_columns(
    df: pd.DataFrame,
    aliases: Mapping[str, Iterable[str]],
    required: Iterable[str],
    file_name: Optional[str] = None,
) -> Dict[str, str]:
    """
    Map logical column keys to the actual header names of a table.

    Args:
        df: Frame of a Table returned by read_table
        aliases: Logical key -> accepted header names
        required: Keys that must be present

    Returns:
        Logical key -> header name, for every key that was found

    Raises:
        FileFormatError: a required key has no matching header
    """
    by_normalized: Dict[str, str] = {}
    for column in df.columns:
        by_normalized.setdefault(normalize_header(column), column)

    located: Dict[str, str] = {}
    for key, names in aliases.items():
        for alias in names:
            column = by_normalized.get(normalize_header(alias))
            if column is not None:
                located[key] = column
                break

    missing: List[str] = [key for key in required if key not in located]
    if missing:
        expected = "; ".join(
            f"{key} (one of: {', '.join(aliases[key])})" for key in missing
        )
        raise FileFormatError(
            f"required columns not found: {expected}. Found headers: {', '.join(df.columns) or 'none'}",
            file_name=file_name,
            missing_columns=missing,
        )
    return located
