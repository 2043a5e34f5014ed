"""
Loader for daily temperature files.

Parses headerless delimited text with the fixed column order
year, month, day, TX, TN into Record objects.

Validation is limited to the presence of numeric fields:
- year, month and day must be integers (month 1-12, day 1-31)
- TX and TN may be empty (stored as NaN) but must be numeric when present

Any violation raises RecordParseError with the offending line number.
"""

import io
import math
from typing import List, Optional, Union

import pandas as pd

from app.schemas.analysis import Record
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


COLUMNS = ["year", "month", "day", "TX", "TN"]
DATE_COLUMNS = ["year", "month", "day"]
VALUE_COLUMNS = ["TX", "TN"]


class RecordParseError(ValueError):
    """Raised when an input file cannot be turned into records."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        self.message = message
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


def _decode(content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise RecordParseError(f"File is not valid UTF-8 text: {e}")
    return content


def _read_frame(text: str, delimiter: str, has_header: bool) -> pd.DataFrame:
    """Read raw text cells; every cell stays a string."""
    try:
        return pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            header=None,
            skiprows=1 if has_header else 0,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=COLUMNS)
    except pd.errors.ParserError as e:
        raise RecordParseError(f"Malformed row: {e}")


def parse_records(
    content: Union[str, bytes],
    delimiter: str = ",",
    has_header: bool = False
) -> List[Record]:
    """
    Parse delimited text into records.

    Args:
        content: File content (bytes are decoded as UTF-8)
        delimiter: Column separator
        has_header: Skip the first line when True

    Returns:
        Records in file order; empty input gives an empty list

    Raises:
        RecordParseError: On a wrong column count or a non-numeric field
    """
    text = _decode(content)
    frame = _read_frame(text, delimiter, has_header)

    if frame.empty:
        logger.info("Parsed 0 records (empty input)")
        return []

    if frame.shape[1] != len(COLUMNS):
        raise RecordParseError(
            f"Expected {len(COLUMNS)} columns ({', '.join(COLUMNS)}), found {frame.shape[1]}"
        )

    frame.columns = COLUMNS

    # Line numbers as the user sees them in the file
    first_line = 2 if has_header else 1
    line_numbers = _line_numbers(text, first_line, len(frame))

    # Only fields pandas padded onto short rows are NaN; empty cells are ""
    short_rows = frame.isna().any(axis=1).to_numpy().nonzero()[0]
    if len(short_rows):
        position = int(short_rows[0])
        found = int(frame.iloc[position].notna().sum())
        raise RecordParseError(
            f"Expected {len(COLUMNS)} columns ({', '.join(COLUMNS)}), found {found}",
            line_numbers[position]
        )

    frame = frame.apply(lambda column: column.str.strip())

    numeric = frame.apply(pd.to_numeric, errors="coerce")

    for position in range(len(frame)):
        line = line_numbers[position]
        for column in DATE_COLUMNS:
            value = numeric[column].iat[position]
            if pd.isna(value) or not float(value).is_integer():
                raise RecordParseError(
                    f"{column} must be an integer, got '{frame[column].iat[position]}'", line
                )
        for column in VALUE_COLUMNS:
            raw = frame[column].iat[position]
            if raw != "" and pd.isna(numeric[column].iat[position]):
                raise RecordParseError(f"{column} must be numeric, got '{raw}'", line)

        month = int(numeric["month"].iat[position])
        day = int(numeric["day"].iat[position])
        if not 1 <= month <= 12:
            raise RecordParseError(f"month must be between 1 and 12, got {month}", line)
        if not 1 <= day <= 31:
            raise RecordParseError(f"day must be between 1 and 31, got {day}", line)

    records = [
        Record(
            year=int(row.year),
            month=int(row.month),
            day=int(row.day),
            TX=_as_float(row.TX),
            TN=_as_float(row.TN),
        )
        for row in numeric.itertuples(index=False)
    ]

    missing = sum(1 for r in records if math.isnan(r.tx) or math.isnan(r.tn))
    logger.info(f"Parsed {len(records)} records ({missing} with missing TX/TN)")
    return records


def _as_float(value) -> float:
    return math.nan if pd.isna(value) else float(value)


def _line_numbers(text: str, first_line: int, count: int) -> List[int]:
    """Map frame positions to file line numbers, skipping blank lines."""
    numbers = []
    for offset, line in enumerate(text.splitlines()[first_line - 1:]):
        if line.strip():
            numbers.append(first_line + offset)
        if len(numbers) == count:
            break
    # Quoted fields spanning lines can leave us short; fall back to positions
    while len(numbers) < count:
        numbers.append(first_line + len(numbers))
    return numbers
