"""
Cell Decoders

Column-wise conversion of loosely typed spreadsheet cells.
Numbers and dates are decoded a whole column at a time with pandas
coercion: a cell that cannot be decoded comes back as NaN/NaT and the
parsers decide whether that rejects the row.
"""

import numbers
import re
import unicodedata
from datetime import date, datetime
from typing import Any, Iterable, Optional, Tuple, Type, Union

import pandas as pd

# Excel stores dates as days since 1899-12-30 (1900 leap-year bug included)
EXCEL_EPOCH = pd.Timestamp("1899-12-30")
EXCEL_MAX_SERIAL = (pd.Timestamp.max.to_pydatetime() - EXCEL_EPOCH.to_pydatetime()).days

SEPARATOR_AUTO = "auto"

# "1.234" / "1,234": thousands grouping or three decimals, cannot tell
AMBIGUOUS_NUMBER = r"^[+-]?[1-9]\d{0,2}[.,]\d{3}$"
# "12,5" / "1.234,5"
DECIMAL_COMMA = r"^[+-]?(?:\d{1,3}(?:\.\d{3})+|\d+),\d+$"
# "1,234,567" / "1,234.5"
COMMA_GROUPED = r"^[+-]?\d{1,3}(?:,\d{3})+(?:\.\d+)?$"
# "1.234.567"
DOT_GROUPED = r"^[+-]?\d{1,3}(?:\.\d{3}){2,}$"

_WHITESPACE = re.compile(r"\s+")
_SPACES = r"\s"


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT/NA and empty or whitespace-only strings"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_text(value: Any) -> str:
    """Render a cell as trimmed text with single internal spaces"""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _WHITESPACE.sub(" ", str(value).strip())


def normalize_header(value: Any) -> str:
    """Case-, accent- and spacing-insensitive form of a header cell"""
    text = unicodedata.normalize("NFKD", clean_text(value))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.replace("_", " ").replace(".", " ")
    return _WHITESPACE.sub(" ", text).strip().casefold()


def _cells_of_type(values: pd.Series, kinds: Union[Type, Tuple[Type, ...]]) -> pd.Series:
    return values.map(lambda v: isinstance(v, kinds)).astype(bool)


def clean_text_column(values: pd.Series) -> pd.Series:
    """clean_text for a whole column; blanks become ''"""
    values = values.astype(object)
    blank = values.isna()
    whole = _cells_of_type(values, float) & ~blank

    text = values.astype(str).str.strip().str.replace(r"\s+", " ", regex=True)
    # Excel numbers read as floats: 1001.0 -> "1001"
    text[whole] = text[whole].str.replace(r"\.0$", "", regex=True)
    return text.where(~blank, "")


def _normalize_separators(text: pd.Series, decimal_separator: str) -> pd.Series:
    """Rewrite numeric text so that '.' is the only separator left"""
    if text.empty:
        return text
    text = text.str.replace(_SPACES, "", regex=True)

    if decimal_separator == ",":
        return text.str.replace(".", "", regex=False).str.replace(",", ".", regex=False)
    if decimal_separator == ".":
        return text.str.replace(",", "", regex=False)

    text = text.mask(text.str.match(AMBIGUOUS_NUMBER).astype(bool), "")
    comma = text.str.match(DECIMAL_COMMA).astype(bool)
    text = text.mask(comma, text.str.replace(".", "", regex=False).str.replace(",", ".", regex=False))
    comma_grouped = text.str.match(COMMA_GROUPED).astype(bool)
    text = text.mask(comma_grouped, text.str.replace(",", "", regex=False))
    dot_grouped = text.str.match(DOT_GROUPED).astype(bool)
    return text.mask(dot_grouped, text.str.replace(".", "", regex=False))


def decode_numbers(values: pd.Series, decimal_separator: str = SEPARATOR_AUTO) -> pd.Series:
    """
    Decode a column of numeric cells into float64.

    Native numbers pass through. Text is normalized as a column: spaces are
    dropped and separators resolved by `decimal_separator`. With "auto" the
    last of two different separators is the decimal one, a repeated
    separator is grouping, and a lone separator followed by exactly three
    digits is ambiguous and left undecoded.

    Blanks, booleans, other text and non-finite values come back as NaN.
    """
    values = values.astype(object)
    is_text = _cells_of_type(values, str)
    is_number = _cells_of_type(values, numbers.Number) & ~_cells_of_type(values, bool)

    decoded = pd.Series(float("nan"), index=values.index, dtype="float64")
    decoded[is_number] = pd.to_numeric(values[is_number], errors="coerce")
    text = _normalize_separators(values[is_text], decimal_separator)
    decoded[is_text] = pd.to_numeric(text, errors="coerce")
    return decoded.where(decoded.abs() < float("inf"))


def ambiguous_numbers(values: pd.Series, decimal_separator: str = SEPARATOR_AUTO) -> pd.Series:
    """Text cells left undecoded because their separator could mean either"""
    values = values.astype(object)
    if decimal_separator != SEPARATOR_AUTO:
        return pd.Series(False, index=values.index, dtype=bool)

    is_text = _cells_of_type(values, str)
    text = values.where(is_text, "").astype(str).str.replace(_SPACES, "", regex=True)
    return text.str.match(AMBIGUOUS_NUMBER).astype(bool) & is_text


def parse_number(value: Any, decimal_separator: str = SEPARATOR_AUTO) -> Optional[float]:
    """Decode a single numeric value; None when it is not a finite number"""
    number = decode_numbers(pd.Series([value], dtype=object), decimal_separator).iloc[0]
    return None if pd.isna(number) else float(number)


def decode_dates(values: pd.Series, formats: Iterable[str]) -> pd.Series:
    """
    Decode a column of date cells into datetime64 at midnight.

    Native date/datetime cells are used as-is. Text cells are tried one
    format at a time, each pass only over the cells still undecoded.
    Whatever remains and reads as a number is taken as an Excel serial date.
    Undecodable cells are NaT.
    """
    values = values.astype(object)
    decoded = pd.Series(pd.NaT, index=values.index, dtype="datetime64[ns]")

    is_native = _cells_of_type(values, (datetime, date))
    decoded[is_native] = pd.to_datetime(values[is_native], errors="coerce")

    is_text = _cells_of_type(values, str)
    text = values[is_text].str.strip().str.replace(r"\s+", " ", regex=True)
    parsed = pd.Series(pd.NaT, index=text.index, dtype="datetime64[ns]")
    for fmt in formats:
        pending = parsed.isna() & (text != "")
        if not pending.any():
            break
        parsed[pending] = pd.to_datetime(text[pending], format=fmt, errors="coerce")
    decoded[is_text] = parsed

    remaining = decoded.isna() & ~is_native
    serials = decode_numbers(values[remaining])
    serials = serials[serials.between(1, EXCEL_MAX_SERIAL)]
    decoded.loc[serials.index] = EXCEL_EPOCH + pd.to_timedelta(serials.floordiv(1), unit="D")

    return decoded.dt.normalize()
