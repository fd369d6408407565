"""
CSV parser for asset file uploads.

Turns an uploaded spreadsheet into a header list and one string-valued
record per data row. Blank rows are skipped wherever they appear, every
cell is trimmed, short rows are padded with empty strings and cells past
the last header (trailing commas from spreadsheet exports) are dropped.
"""

from dataclasses import dataclass, field
from io import BytesIO, StringIO
from pathlib import Path
from typing import Optional, Union
import warnings
import structlog

import pandas as pd

from config import settings
from exceptions import (
    CSVParseError,
    EmptyFileError,
    FileTooLargeError,
    InvalidFileTypeError,
    NoHeadersError,
)
from utils.text_utils import safe_trim

logger = structlog.get_logger(__name__)


@dataclass
class CSVData:
    """Parsed CSV: ordered headers and one record per data row."""
    headers: list[str] = field(default_factory=list)
    data: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.data)

    def sample_value(self, header: str) -> str:
        """Value of the first data row for a header, or ''."""
        if not self.data:
            return ""
        return self.data[0].get(header, "")

    def column_values(self, header: str) -> list[str]:
        """All values of one column in row order."""
        return [row.get(header, "") for row in self.data]

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "headers": self.headers,
            "row_count": self.row_count,
            "data": self.data,
        }


def validate_upload(filename: str, size: int, max_bytes: Optional[int] = None) -> None:
    """
    Reject a file before parsing.

    Raises:
        InvalidFileTypeError: If the name does not end in .csv
        FileTooLargeError: If size exceeds the configured ceiling
    """
    limit = max_bytes if max_bytes is not None else settings.max_upload_bytes

    if not (filename or "").lower().endswith(".csv"):
        logger.warning("upload_rejected_file_type", filename=filename)
        raise InvalidFileTypeError(filename)

    if size > limit:
        logger.warning("upload_rejected_size", filename=filename, size=size, max_size=limit)
        raise FileTooLargeError(size, limit)


def parse_csv(file: Union[str, Path, bytes, BytesIO, StringIO]) -> CSVData:
    """
    Parse an asset file CSV.

    Args:
        file: File path, raw bytes, or file-like object

    Returns:
        CSVData with headers and trimmed string records

    Raises:
        EmptyFileError: If no data rows remain after skipping blank rows
        NoHeadersError: If every header cell is blank
        CSVParseError: If the parser rejects the file
    """
    logger.info("parsing_csv", file_type=type(file).__name__)

    if isinstance(file, bytes):
        file = BytesIO(file)

    try:
        # Rows wider than the first line are kept; pandas drops their extra cells
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", pd.errors.ParserWarning)
            df = pd.read_csv(
                file,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding="utf-8-sig",
                engine="python",
                on_bad_lines=lambda fields: fields,
            )
    except pd.errors.EmptyDataError:
        raise EmptyFileError()
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.error("csv_read_failed", error=str(e))
        raise CSVParseError(
            message=str(e),
            details={"original_error": str(e)}
        )

    rows = [
        [safe_trim(cell) for cell in row]
        for row in df.fillna("").values.tolist()
    ]
    # Greedy skip: drop rows whose cells are all blank after trimming
    rows = [row for row in rows if any(cell != "" for cell in row)]

    if not rows:
        raise EmptyFileError()

    headers = rows[0]
    if not headers or all(header == "" for header in headers):
        raise NoHeadersError()

    data = []
    for row in rows[1:]:
        record = {}
        for index, header in enumerate(headers):
            record[header] = row[index] if index < len(row) else ""
        data.append(record)

    if not data:
        raise EmptyFileError()

    logger.info(
        "csv_parsed",
        header_count=len(headers),
        row_count=len(data),
    )

    return CSVData(headers=headers, data=data)
