"""
File type service.

Reconciles free-text file type values from a CSV against the repository's
AssetFileAndLinkTypes vocabulary, and filters that vocabulary by asset
category and applicability.
"""

from typing import Optional
import structlog

from config.asset_categories import FALLBACK_FILE_TYPES, resolve_asset_category
from exceptions import RemoteApiError, UnresolvedFileTypesError, ValidationError
from integrations.esploro_client import EsploroClient, get_esploro_client
from models.asset import (
    Applicability,
    FileTypeConversion,
    FileTypeEntry,
    FileTypeHint,
    FileTypeValidationState,
)
from models.imports import ImportRow

logger = structlog.get_logger(__name__)

EXACT_ID_CONFIDENCE = 1.0
EXACT_CODE_CONFIDENCE = 0.95
MANUAL_CONFIDENCE = 0.9
SUBSTRING_CONFIDENCE = 0.7


def _sorted_conversions(conversions: list[FileTypeConversion]) -> list[FileTypeConversion]:
    # Resolved first, then by raw value
    return sorted(conversions, key=lambda c: (c.requires_manual_mapping, c.csv_value.lower(), c.csv_value))


def build_validation_state(conversions: list[FileTypeConversion]) -> FileTypeValidationState:
    """Summarize conversions into a reconciliation state."""
    conversions = _sorted_conversions(conversions)

    unresolved = []
    for conversion in conversions:
        if conversion.requires_manual_mapping and not conversion.matched_id:
            if conversion.csv_value not in unresolved:
                unresolved.append(conversion.csv_value)

    return FileTypeValidationState(
        has_invalid_types=any(
            c.requires_manual_mapping or c.confidence < EXACT_ID_CONFIDENCE for c in conversions
        ),
        conversions=conversions,
        auto_convertible=all(not c.requires_manual_mapping for c in conversions),
        unresolved_values=unresolved,
    )


class FileTypeService:
    """
    File type vocabulary and reconciliation.

    The vocabulary is loaded once per service instance; call
    refresh_vocabulary() to reload it.
    """

    def __init__(
        self,
        client: Optional[EsploroClient] = None,
        vocabulary: Optional[list[FileTypeEntry]] = None,
    ):
        self.client = client
        self._vocabulary = vocabulary

    # ===================
    # VOCABULARY
    # ===================

    async def get_vocabulary(self) -> list[FileTypeEntry]:
        """
        Load the vocabulary, caching it on success.

        A failed load returns an empty list; callers fall back to the
        static hints for type detection.
        """
        if self._vocabulary is not None:
            return self._vocabulary

        client = self.client or get_esploro_client()
        try:
            self._vocabulary = await client.fetch_type_vocabulary()
        except RemoteApiError as e:
            logger.warning("file_type_vocabulary_unavailable", error=e.message, status=e.status)
            return []

        return self._vocabulary

    async def refresh_vocabulary(self) -> list[FileTypeEntry]:
        self._vocabulary = None
        return await self.get_vocabulary()

    def build_hints(self, vocabulary: list[FileTypeEntry]) -> list[FileTypeHint]:
        """
        Type codes the field mapper looks for in sample values.

        Unique by target code and id; static fallbacks when the vocabulary
        is empty.
        """
        if not vocabulary:
            return [FileTypeHint(**entry) for entry in FALLBACK_FILE_TYPES]

        seen = set()
        hints = []
        for entry in vocabulary:
            key = (entry.target_code, entry.id)
            if key in seen:
                continue
            seen.add(key)
            hints.append(FileTypeHint(code=entry.target_code, description=entry.id))
        return hints

    # ===================
    # FILTERING
    # ===================

    def filter_by_applicability(
        self,
        vocabulary: list[FileTypeEntry],
        applicability: Optional[Applicability],
    ) -> list[FileTypeEntry]:
        """Entries usable as the given kind; 'both' and blank entries always match."""
        if not applicability:
            return list(vocabulary)

        allowed = {applicability, "both", ""}
        return [e for e in vocabulary if (e.applicability or "").lower() in allowed]

    def filter_by_asset_type(
        self,
        vocabulary: list[FileTypeEntry],
        asset_type: Optional[str],
        applicability: Optional[Applicability] = None,
    ) -> list[FileTypeEntry]:
        """
        Entries applicable to an asset type.

        Blank applicable_asset_types means universal; otherwise the asset's
        category (or its full type code) must be in the comma-separated list.
        An unknown category leaves only the universal entries.
        """
        category = resolve_asset_category(asset_type)
        candidates = {c for c in (category, (asset_type or "").strip()) if c}

        result = []
        for entry in self.filter_by_applicability(vocabulary, applicability):
            listed = [
                code.strip()
                for code in (entry.applicable_asset_types or "").split(",")
                if code.strip()
            ]
            if not listed or candidates.intersection(listed):
                result.append(entry)

        return result

    def default_type(
        self,
        vocabulary: list[FileTypeEntry],
        asset_type: Optional[str],
    ) -> Optional[str]:
        """
        Default file type id for an asset.

        First entry usable as both file and link for the asset's type, or
        the first entry overall when the asset type is unknown.
        """
        if asset_type:
            applicable = self.filter_by_asset_type(vocabulary, asset_type, "both")
        else:
            applicable = vocabulary

        return applicable[0].id if applicable else None

    # ===================
    # RECONCILIATION
    # ===================

    def match_value(self, csv_value: str, vocabulary: list[FileTypeEntry]) -> FileTypeConversion:
        """
        Resolve one raw value.

        Exact id (1.0), then exact case-insensitive target code (0.95), then
        substring in either direction (0.7), otherwise manual mapping.
        """
        for entry in vocabulary:
            if entry.id == csv_value:
                return FileTypeConversion(
                    csv_value=csv_value,
                    matched_id=entry.id,
                    matched_target_code=entry.target_code,
                    confidence=EXACT_ID_CONFIDENCE,
                    requires_manual_mapping=False,
                )

        normalized = csv_value.strip().lower()

        for entry in vocabulary:
            if entry.target_code.lower() == normalized:
                return FileTypeConversion(
                    csv_value=csv_value,
                    matched_id=entry.id,
                    matched_target_code=entry.target_code,
                    confidence=EXACT_CODE_CONFIDENCE,
                    requires_manual_mapping=False,
                )

        if normalized:
            for entry in vocabulary:
                code = entry.target_code.lower()
                if normalized in code or code in normalized:
                    return FileTypeConversion(
                        csv_value=csv_value,
                        matched_id=entry.id,
                        matched_target_code=entry.target_code,
                        confidence=SUBSTRING_CONFIDENCE,
                        requires_manual_mapping=False,
                    )

        return FileTypeConversion(
            csv_value=csv_value,
            confidence=0.0,
            requires_manual_mapping=True,
        )

    def reconcile(
        self,
        rows: list[ImportRow],
        vocabulary: list[FileTypeEntry],
    ) -> FileTypeValidationState:
        """Classify every distinct non-blank file type among rows."""
        if not vocabulary:
            return FileTypeValidationState()

        distinct: list[str] = []
        for row in rows:
            value = (row.file_type or "").strip()
            if value and value not in distinct:
                distinct.append(value)

        state = build_validation_state([self.match_value(v, vocabulary) for v in distinct])

        logger.info(
            "file_types_reconciled",
            distinct_values=len(distinct),
            unresolved=len(state.unresolved_values),
            has_invalid_types=state.has_invalid_types,
        )
        return state

    def apply_override(
        self,
        state: FileTypeValidationState,
        csv_value: str,
        selected_id: str,
        vocabulary: list[FileTypeEntry],
    ) -> FileTypeValidationState:
        """
        Manually map a raw value to a vocabulary id.

        Raises:
            ValidationError: If the id or the raw value is unknown
        """
        entry = next((e for e in vocabulary if e.id == selected_id), None)
        if entry is None:
            raise ValidationError(
                message=f"Unknown file type id: {selected_id}",
                code="FILE_TYPE_UNKNOWN",
                details={"id": selected_id}
            )

        conversions = [c.model_copy() for c in state.conversions]
        target = next((c for c in conversions if c.csv_value == csv_value), None)
        if target is None:
            raise ValidationError(
                message=f"File type value not found: {csv_value}",
                code="FILE_TYPE_VALUE_NOT_FOUND",
                details={"value": csv_value}
            )

        target.matched_id = entry.id
        target.matched_target_code = entry.target_code
        target.confidence = MANUAL_CONFIDENCE
        target.requires_manual_mapping = False

        logger.info("file_type_override_applied", csv_value=csv_value, matched_id=entry.id)
        return build_validation_state(conversions)

    def apply_conversions(
        self,
        rows: list[ImportRow],
        state: FileTypeValidationState,
    ) -> list[ImportRow]:
        """
        Rewrite each row's raw file type to its matched id.

        Raises:
            UnresolvedFileTypesError: If any value still needs manual mapping
        """
        if state.unresolved_values or not state.auto_convertible:
            raise UnresolvedFileTypesError(
                state.unresolved_values
                or [c.csv_value for c in state.conversions if c.requires_manual_mapping]
            )

        conversion_map = {c.csv_value: c.matched_id for c in state.conversions if c.matched_id}

        converted = 0
        for row in rows:
            value = (row.file_type or "").strip()
            if value in conversion_map:
                row.file_type = conversion_map[value]
                converted += 1

        logger.info("file_types_converted", rows=converted, values=len(conversion_map))
        return rows


# Singleton instance
_file_type_service: Optional[FileTypeService] = None


def get_file_type_service() -> FileTypeService:
    """Get or create FileTypeService instance."""
    global _file_type_service
    if _file_type_service is None:
        _file_type_service = FileTypeService()
    return _file_type_service
