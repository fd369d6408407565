"""
Unit tests for FieldMapperService.

Run: pytest tests/unit/test_field_mapper_service.py -v
"""

import pytest

from services.field_mapper_service import FieldMapperService, duplicate_key
from models.asset import FileTypeHint
from models.imports import ColumnMapping, MappedField
from parsers.csv_parser import CSVData
from exceptions import DuplicateError, MappingValidationError, RequiredValuesMissingError
from tests.factories import ImportRowFactory


def _mapping(header: str, field: MappedField) -> ColumnMapping:
    return ColumnMapping(csv_header=header, mapped_field=field, confidence=0.9)


VALID_MAPPINGS = [
    _mapping("MMS ID", MappedField.MMS_ID),
    _mapping("Link", MappedField.REMOTE_URL),
    _mapping("Title", MappedField.FILE_TITLE),
]


# ===================
# SUGGESTION
# ===================

class TestSuggestFieldMapping:
    """Tests for suggest_field_mapping()"""

    def test_id_header(self):
        """MMS ID headers map with 0.9 confidence."""
        service = FieldMapperService()
        assert service.suggest_field_mapping("MMS ID") == (MappedField.MMS_ID, 0.9)

    def test_url_header(self):
        """URL headers map to remoteUrl."""
        service = FieldMapperService()
        assert service.suggest_field_mapping("File URL") == (MappedField.REMOTE_URL, 0.8)

    def test_url_detected_from_sample(self):
        """An unlabelled column holding http links is a URL column."""
        service = FieldMapperService()
        field, confidence = service.suggest_field_mapping("Column C", "https://host/a.pdf")
        assert field == MappedField.REMOTE_URL
        assert confidence == 0.8

    def test_title_header(self):
        service = FieldMapperService()
        assert service.suggest_field_mapping("Title") == (MappedField.FILE_TITLE, 0.8)

    def test_description_header(self):
        service = FieldMapperService()
        assert service.suggest_field_mapping("Description") == (MappedField.FILE_DESCRIPTION, 0.7)

    def test_type_header(self):
        service = FieldMapperService()
        assert service.suggest_field_mapping("Format") == (MappedField.FILE_TYPE, 0.8)

    def test_type_detected_from_hint(self):
        """A sample value containing a known type code marks a type column."""
        service = FieldMapperService(file_type_hints=[FileTypeHint(code="accepted")])
        field, _ = service.suggest_field_mapping("Version", "Accepted manuscript")
        assert field == MappedField.FILE_TYPE

    def test_unknown_header_is_ignored(self):
        service = FieldMapperService()
        assert service.suggest_field_mapping("Notes", "free text") == (MappedField.IGNORE, 0.1)

    def test_id_wins_over_later_groups(self):
        """Groups are checked in order; id patterns come first."""
        service = FieldMapperService()
        field, _ = service.suggest_field_mapping("Record ID URL")
        assert field == MappedField.MMS_ID

    def test_generate_column_mapping(self):
        """One mapping per header, with the first row as sample."""
        csv_data = CSVData(
            headers=["MMS ID", "Link", "Notes"],
            data=[{"MMS ID": "991234", "Link": "https://host/a.pdf", "Notes": "x"}],
        )

        mappings = FieldMapperService().generate_column_mapping(csv_data)

        assert [m.mapped_field for m in mappings] == [
            MappedField.MMS_ID,
            MappedField.REMOTE_URL,
            MappedField.IGNORE,
        ]
        assert mappings[1].sample_value == "https://host/a.pdf"


# ===================
# VALIDATION
# ===================

class TestValidateMapping:
    """Tests for validate_mapping()"""

    def test_valid_mapping_has_no_errors(self):
        assert FieldMapperService().validate_mapping(VALID_MAPPINGS) == []

    def test_missing_required_fields(self):
        """Each missing required field gives its own message."""
        errors = FieldMapperService().validate_mapping([_mapping("Title", MappedField.FILE_TITLE)])

        assert "An MMS ID column mapping is required" in errors
        assert "A Remote URL column mapping is required" in errors

    def test_duplicate_fields_listed_with_columns(self):
        """Fields claimed twice are reported with both column names."""
        mappings = VALID_MAPPINGS + [_mapping("Asset ID", MappedField.MMS_ID)]

        errors = FieldMapperService().validate_mapping(mappings)

        assert errors == ["Duplicate field mappings: mmsId (MMS ID, Asset ID)"]

    def test_ignore_may_repeat(self):
        """Any number of columns can be ignored."""
        mappings = VALID_MAPPINGS + [
            _mapping("Notes", MappedField.IGNORE),
            _mapping("Extra", MappedField.IGNORE),
        ]
        assert FieldMapperService().validate_mapping(mappings) == []

    def test_ensure_valid_mapping_raises(self):
        with pytest.raises(MappingValidationError) as exc_info:
            FieldMapperService().ensure_valid_mapping([])
        assert len(exc_info.value.details["errors"]) == 2


class TestValidateRequiredValues:
    """Tests for validate_required_values()"""

    def test_reports_spreadsheet_row_numbers(self):
        """Row numbers count the header as row 1."""
        csv_data = CSVData(
            headers=["MMS ID", "Link"],
            data=[
                {"MMS ID": "991234", "Link": "https://host/a.pdf"},
                {"MMS ID": "", "Link": "https://host/b.pdf"},
                {"MMS ID": "995678", "Link": " "},
            ],
        )
        service = FieldMapperService()

        messages = service.validate_required_values(csv_data, service.build_field_mapping(VALID_MAPPINGS))

        assert messages == [
            "MMS ID is missing in 1 row(s): 3",
            "Remote URL is missing in 1 row(s): 4",
        ]

    def test_truncates_long_row_lists(self):
        """Only the first ten row numbers are listed."""
        csv_data = CSVData(
            headers=["MMS ID", "Link"],
            data=[{"MMS ID": "", "Link": "https://host/a.pdf"} for _ in range(12)],
        )
        service = FieldMapperService()

        messages = service.validate_required_values(csv_data, service.build_field_mapping(VALID_MAPPINGS))

        assert messages[0].startswith("MMS ID is missing in 12 row(s): 2, 3, 4")
        assert messages[0].endswith("11, ...")


# ===================
# ROW PREPARATION
# ===================

class TestPrepareRows:
    """Tests for prepare_rows()"""

    def _csv(self, *pairs) -> CSVData:
        return CSVData(
            headers=["MMS ID", "Link", "Title"],
            data=[{"MMS ID": a, "Link": u, "Title": f"File {i}"} for i, (a, u) in enumerate(pairs)],
        )

    def test_builds_rows(self):
        rows = FieldMapperService().prepare_rows(
            self._csv(("991234", "https://host/a.pdf")),
            VALID_MAPPINGS,
        )

        assert len(rows) == 1
        assert rows[0].asset_id == "991234"
        assert rows[0].remote_url == "https://host/a.pdf"
        assert rows[0].file_title == "File 0"
        assert rows[0].file_type is None

    def test_same_url_on_two_assets_is_allowed(self):
        rows = FieldMapperService().prepare_rows(
            self._csv(("991234", "https://host/a.pdf"), ("995678", "https://host/a.pdf")),
            VALID_MAPPINGS,
        )
        assert len(rows) == 2

    def test_duplicate_rows_block_processing(self):
        """Same asset and URL (case-insensitive) twice is a duplicate."""
        with pytest.raises(DuplicateError) as exc_info:
            FieldMapperService().prepare_rows(
                self._csv(
                    ("991234", "https://host/a.pdf"),
                    ("995678", "https://host/b.pdf"),
                    ("991234", "HTTPS://HOST/A.PDF"),
                ),
                VALID_MAPPINGS,
            )

        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {"asset_url": "row 2, row 4"}

    def test_duplicate_rows_are_flagged(self):
        rows = [
            ImportRowFactory.create(asset_id="991234", remote_url="https://host/a.pdf"),
            ImportRowFactory.create(asset_id="991234", remote_url="https://host/a.pdf"),
            ImportRowFactory.create(asset_id="991234", remote_url="https://host/b.pdf"),
        ]

        with pytest.raises(DuplicateError) as exc_info:
            FieldMapperService().ensure_no_duplicates(rows)

        assert exc_info.value.details == {"asset_url": "row 2, row 3"}
        assert [row.error_message for row in rows] == [
            "Duplicate asset ID and URL",
            "Duplicate asset ID and URL",
            None,
        ]

    def test_missing_values_block_processing(self):
        with pytest.raises(RequiredValuesMissingError):
            FieldMapperService().prepare_rows(self._csv(("", "https://host/a.pdf")), VALID_MAPPINGS)

    def test_invalid_mapping_blocks_processing(self):
        with pytest.raises(MappingValidationError):
            FieldMapperService().prepare_rows(
                self._csv(("991234", "https://host/a.pdf")),
                [_mapping("MMS ID", MappedField.MMS_ID)],
            )


class TestDuplicateKey:
    """Tests for duplicate_key()"""

    def test_trims_and_lowercases_url(self):
        assert duplicate_key(" 991234 ", " HTTPS://Host/A.pdf ") == "991234||https://host/a.pdf"

    def test_asset_id_case_is_kept(self):
        assert duplicate_key("abc", "u") != duplicate_key("ABC", "u")
