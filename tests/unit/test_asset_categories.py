"""
Unit tests for asset category resolution and text helpers.
"""

from config.asset_categories import ASSET_TYPE_TO_CATEGORY, resolve_asset_category
from exceptions import RemoteApiError, ValidationError, describe_remote_error
from utils.text_utils import normalize_header, safe_trim, url_filename


class TestResolveAssetCategory:
    """Tests for resolve_asset_category()"""

    def test_known_type_code(self):
        assert resolve_asset_category("publication.journalArticle") == "publication"

    def test_category_code(self):
        assert resolve_asset_category("dataset") == "dataset"

    def test_unknown_subtype_of_known_category(self):
        assert resolve_asset_category("software.notebook") == "software"

    def test_unknown(self):
        assert resolve_asset_category("mystery") is None
        assert resolve_asset_category("") is None
        assert resolve_asset_category(None) is None

    def test_every_type_maps_to_its_prefix(self):
        for type_code, category in ASSET_TYPE_TO_CATEGORY.items():
            assert type_code.split(".", 1)[0] == category


class TestTextUtils:
    """Tests for text helpers."""

    def test_safe_trim(self):
        assert safe_trim(None) == ""
        assert safe_trim("  abc ") == "abc"
        assert safe_trim(123) == "123"

    def test_normalize_header(self):
        assert normalize_header("File_Title (optional)") == "filetitleoptional"

    def test_url_filename(self):
        assert url_filename("https://host/a/b/Report%201.pdf?x=1") == "report 1.pdf"
        assert url_filename("https://host/a/b/") == "b"
        assert url_filename("") == ""


class TestDescribeRemoteError:
    """Tests for describe_remote_error()"""

    def test_http_error_with_details(self):
        error = RemoteApiError(
            "Invalid set",
            status=400,
            status_text="Bad Request",
            error_code="60101",
            error_message=" Name in use ",
            tracking_id="unknown",
        )

        message = describe_remote_error(error, "Set creation")

        assert message == (
            "Set creation failed - Bad Request. Status: 400 - Invalid set. "
            "Error Code: 60101. Name in use. You may need to manually perform Set creation."
        )

    def test_other_error(self):
        message = describe_remote_error(ValidationError("Bad input"), "Job submission")
        assert message == "Job submission failed: Bad input. You may need to manually perform Job submission."

    def test_no_message(self):
        assert describe_remote_error(RuntimeError(), "Set creation") == "Set creation failed. Please try again."
