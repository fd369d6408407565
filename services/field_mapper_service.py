"""
Field mapper service.

Suggests which semantic field each CSV column holds, validates the
resulting mapping, and turns mapped CSV records into ImportRows.
"""

from typing import Optional
import structlog

from exceptions import DuplicateError, MappingValidationError, RequiredValuesMissingError
from models.asset import FileTypeHint
from models.imports import ColumnMapping, ImportRow, MappedField, REQUIRED_FIELDS
from parsers.csv_parser import CSVData
from utils.text_utils import normalize_header, safe_trim

logger = structlog.get_logger(__name__)

# Ordered: the first matching group wins
ID_PATTERNS = ["mms", "mmsid", "id", "assetid", "recordid"]
URL_PATTERNS = ["url", "link", "href", "uri", "remoteurl"]
TITLE_PATTERNS = ["title", "name", "filename", "filetitle"]
DESCRIPTION_PATTERNS = ["desc", "description", "summary", "abstract"]
TYPE_PATTERNS = ["type", "format", "extension", "filetype", "mimetype"]

FIELD_LABELS = {
    MappedField.MMS_ID: "MMS ID",
    MappedField.REMOTE_URL: "Remote URL",
}

# Row numbers listed per missing-value message
MAX_REPORTED_ROWS = 10
DUPLICATE_ROW_MESSAGE = "Duplicate asset ID and URL"


def _matches(text: str, patterns: list[str]) -> bool:
    return any(pattern in text for pattern in patterns)


def duplicate_key(asset_id: str, url: str) -> str:
    """Key shared by rows that would attach the same URL to the same asset."""
    return f"{safe_trim(asset_id)}||{safe_trim(url).lower()}"


class FieldMapperService:
    """
    CSV column mapping.

    Stateless apart from the file type hints used to recognize a type
    column by its sample value.
    """

    def __init__(self, file_type_hints: Optional[list[FileTypeHint]] = None):
        self.file_type_hints = file_type_hints or []

    # ===================
    # SUGGESTION
    # ===================

    def suggest_field_mapping(self, header: str, sample_value: str = "") -> tuple[MappedField, float]:
        """
        Suggest a field for one column.

        Returns:
            (field, confidence); ignore at 0.1 when nothing matches
        """
        text = normalize_header(header)
        sample = (sample_value or "").lower()

        if _matches(text, ID_PATTERNS):
            return MappedField.MMS_ID, 0.9

        if _matches(text, URL_PATTERNS) or "http" in sample:
            return MappedField.REMOTE_URL, 0.8

        if _matches(text, TITLE_PATTERNS):
            return MappedField.FILE_TITLE, 0.8

        if _matches(text, DESCRIPTION_PATTERNS):
            return MappedField.FILE_DESCRIPTION, 0.7

        if _matches(text, TYPE_PATTERNS) or (
            sample and any(hint.code.lower() in sample for hint in self.file_type_hints if hint.code)
        ):
            return MappedField.FILE_TYPE, 0.8

        return MappedField.IGNORE, 0.1

    def generate_column_mapping(self, csv_data: CSVData) -> list[ColumnMapping]:
        """One suggested mapping per header, using the first row as sample."""
        mappings = []
        for header in csv_data.headers:
            sample = csv_data.sample_value(header)
            field, confidence = self.suggest_field_mapping(header, sample)
            mappings.append(ColumnMapping(
                csv_header=header,
                sample_value=sample,
                mapped_field=field,
                confidence=confidence,
            ))

        logger.debug(
            "column_mapping_generated",
            mapped={m.csv_header: m.mapped_field.value for m in mappings},
        )
        return mappings

    # ===================
    # VALIDATION
    # ===================

    def validate_mapping(self, mappings: list[ColumnMapping]) -> list[str]:
        """
        Collect mapping problems without raising.

        Missing mmsId/remoteUrl each give one message; every non-ignore
        field claimed by two or more columns is reported in one message
        together with the columns involved.
        """
        errors: list[str] = []
        mapped = [m.mapped_field for m in mappings]

        if MappedField.MMS_ID not in mapped:
            errors.append("An MMS ID column mapping is required")
        if MappedField.REMOTE_URL not in mapped:
            errors.append("A Remote URL column mapping is required")

        headers_by_field: dict[MappedField, list[str]] = {}
        for mapping in mappings:
            if mapping.mapped_field == MappedField.IGNORE:
                continue
            headers_by_field.setdefault(mapping.mapped_field, []).append(mapping.csv_header)

        duplicates = {f: h for f, h in headers_by_field.items() if len(h) > 1}
        if duplicates:
            described = ", ".join(
                f"{field.value} ({', '.join(headers)})" for field, headers in duplicates.items()
            )
            errors.append(f"Duplicate field mappings: {described}")

        return errors

    def ensure_valid_mapping(self, mappings: list[ColumnMapping]) -> None:
        """
        Raises:
            MappingValidationError: If validate_mapping reports anything
        """
        errors = self.validate_mapping(mappings)
        if errors:
            logger.warning("mapping_invalid", errors=errors)
            raise MappingValidationError(errors)

    # ===================
    # APPLICATION
    # ===================

    def build_field_mapping(self, mappings: list[ColumnMapping]) -> dict[MappedField, str]:
        """Field -> CSV header, ignore columns excluded."""
        return {
            m.mapped_field: m.csv_header
            for m in mappings
            if m.mapped_field != MappedField.IGNORE
        }

    def validate_required_values(
        self,
        csv_data: CSVData,
        field_mapping: dict[MappedField, str],
    ) -> list[str]:
        """
        Check required columns have a value on every row.

        Row numbers are 1-based spreadsheet rows (the header is row 1).
        """
        messages = []

        for required in REQUIRED_FIELDS:
            label = FIELD_LABELS[required]
            header = field_mapping.get(required)
            if not header:
                messages.append(f"Required column is not mapped: {label}")
                continue

            missing_rows = [
                index + 2
                for index, record in enumerate(csv_data.data)
                if not safe_trim(record.get(header))
            ]
            if missing_rows:
                shown = ", ".join(str(r) for r in missing_rows[:MAX_REPORTED_ROWS])
                suffix = ", ..." if len(missing_rows) > MAX_REPORTED_ROWS else ""
                messages.append(
                    f"{label} is missing in {len(missing_rows)} row(s): {shown}{suffix}"
                )

        return messages

    def rows_from_csv(
        self,
        csv_data: CSVData,
        field_mapping: dict[MappedField, str],
    ) -> list[ImportRow]:
        """Build pending ImportRows from mapped CSV records."""

        def value(record: dict, field: MappedField) -> str:
            header = field_mapping.get(field)
            return safe_trim(record.get(header)) if header else ""

        rows = [
            ImportRow(
                asset_id=value(record, MappedField.MMS_ID),
                remote_url=value(record, MappedField.REMOTE_URL),
                file_title=value(record, MappedField.FILE_TITLE) or None,
                file_description=value(record, MappedField.FILE_DESCRIPTION) or None,
                file_type=value(record, MappedField.FILE_TYPE) or None,
            )
            for record in csv_data.data
        ]

        logger.info("import_rows_built", row_count=len(rows))
        return rows

    def find_duplicate_rows(self, rows: list[ImportRow]) -> list[int]:
        """Indexes of rows whose (asset id, URL) pair occurs more than once."""
        indexes_by_key: dict[str, list[int]] = {}
        for index, row in enumerate(rows):
            if not row.asset_id or not row.remote_url:
                continue
            indexes_by_key.setdefault(duplicate_key(row.asset_id, row.remote_url), []).append(index)

        return sorted(
            index
            for indexes in indexes_by_key.values()
            if len(indexes) > 1
            for index in indexes
        )

    def prepare_rows(self, csv_data: CSVData, mappings: list[ColumnMapping]) -> list[ImportRow]:
        """
        Validate a mapped CSV and build its rows.

        Flags duplicate rows with an error message and blocks processing
        until they are resolved.

        Raises:
            MappingValidationError: Missing or duplicate column mappings
            RequiredValuesMissingError: Blank asset id or URL cells
            DuplicateError: Two rows attach the same URL to the same asset
        """
        self.ensure_valid_mapping(mappings)
        field_mapping = self.build_field_mapping(mappings)

        messages = self.validate_required_values(csv_data, field_mapping)
        if messages:
            raise RequiredValuesMissingError(messages)

        rows = self.rows_from_csv(csv_data, field_mapping)
        self.ensure_no_duplicates(rows)
        return rows

    def ensure_no_duplicates(self, rows: list[ImportRow]) -> None:
        """
        Flag duplicate rows and refuse the batch.

        Rows are numbered as spreadsheet rows, the header being row 1.

        Raises:
            DuplicateError: Two rows attach the same URL to the same asset
        """
        duplicates = self.find_duplicate_rows(rows)
        if not duplicates:
            return

        for index in duplicates:
            rows[index].error_message = DUPLICATE_ROW_MESSAGE
        logger.warning("duplicate_rows_found", rows=[i + 2 for i in duplicates])
        raise DuplicateError(
            resource="Row",
            field="asset_url",
            value=", ".join(f"row {i + 2}" for i in duplicates),
        )


# Singleton instance
_field_mapper_service: Optional[FieldMapperService] = None


def get_field_mapper_service() -> FieldMapperService:
    """Get or create FieldMapperService instance."""
    global _field_mapper_service
    if _field_mapper_service is None:
        _field_mapper_service = FieldMapperService()
    return _field_mapper_service
