"""
Upload parsers module.
"""

from parsers.csv_parser import (
    parse_csv,
    validate_upload,
    CSVData,
)

__all__ = [
    "parse_csv",
    "validate_upload",
    "CSVData",
]
