"""
Manual entry service.

Holds the rows of one manual entry form and keeps a single validation
state per row in sync with edits, duplicate detection and batch asset
validation.

State per row:
    pending            no asset id yet
    pendingNew         asset id not in the last validation result
    validatedExisting  asset id found by an earlier validation
    valid / invalid / duplicate   set by validate()
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import structlog

from exceptions import AppError, NotFoundError, ValidationError
from models.asset import AssetFileLink, AssetMetadata
from models.imports import ImportRow
from models.manual_entry import (
    EntryError,
    ManualEntryInput,
    ManualEntryView,
    ManualValidationResponse,
    RowValidationState,
)
from services.asset_service import AssetService, get_asset_service, unique_ids
from services.export_service import entries_csv
from services.field_mapper_service import duplicate_key
from services.file_type_service import FileTypeService, get_file_type_service
from utils.text_utils import safe_trim

logger = structlog.get_logger(__name__)

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

EDITABLE_FIELDS = ("asset_id", "url", "title", "description", "type", "supplemental")


@dataclass
class DeletedEntry:
    """Removed row kept for restore or export."""
    entry: ManualEntryView
    deleted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _snapshot(entry: ManualEntryInput) -> tuple:
    # Asset id is not part of the snapshot
    return (
        safe_trim(entry.url),
        safe_trim(entry.title),
        safe_trim(entry.description),
        safe_trim(entry.type),
        bool(entry.supplemental),
    )


def _has_data(entry: ManualEntryInput) -> bool:
    return entry.supplemental or any(
        safe_trim(getattr(entry, name)) for name in ("asset_id", "url", "title", "description", "type")
    )


def _add_error(errors: list[EntryError], error: EntryError) -> None:
    if error not in errors:
        errors.append(error)


def _drop_error(errors: list[EntryError], error: EntryError) -> list[EntryError]:
    return [e for e in errors if e != error]


class ManualEntrySession:
    """
    Rows of one manual entry form.

    The asset metadata map is refreshed by every validate() call and is
    what pendingNew/validatedExisting are computed against.
    """

    def __init__(
        self,
        entries: Optional[list[ManualEntryInput]] = None,
        asset_service: Optional[AssetService] = None,
        file_type_service: Optional[FileTypeService] = None,
    ):
        self.asset_service = asset_service or get_asset_service()
        self.file_type_service = file_type_service or get_file_type_service()

        self.entries: list[ManualEntryView] = []
        self.deleted: list[DeletedEntry] = []
        self.metadata_map: dict[str, AssetMetadata] = {}
        self.retry_asset_ids: list[str] = []
        self._next_id = 1

        for data in entries or [ManualEntryInput()]:
            self.add_entry(data)

    # ===================
    # STATE
    # ===================

    def compute_pending_state(self, entry: ManualEntryInput) -> RowValidationState:
        asset_id = safe_trim(entry.asset_id)
        if not asset_id:
            return RowValidationState.PENDING
        if asset_id in self.metadata_map:
            return RowValidationState.VALIDATED_EXISTING
        return RowValidationState.PENDING_NEW

    def get_entry(self, entry_id: int) -> ManualEntryView:
        for entry in self.entries:
            if entry.entry_id == entry_id:
                return entry
        raise NotFoundError(resource="Entry", identifier=str(entry_id), code="ENTRY_NOT_FOUND")

    def _index_of(self, entry_id: int) -> int:
        return self.entries.index(self.get_entry(entry_id))

    def _new_view(self, data: ManualEntryInput) -> ManualEntryView:
        view = ManualEntryView(entry_id=self._next_id, **data.model_dump(include=set(EDITABLE_FIELDS)))
        self._next_id += 1
        view.state = self.compute_pending_state(view)
        return view

    # ===================
    # DUPLICATES
    # ===================

    def detect_duplicates(self) -> dict[str, list[ManualEntryView]]:
        """Entries grouped by asset id + lowercased URL, only groups of 2+."""
        groups: dict[str, list[ManualEntryView]] = {}
        for entry in self.entries:
            asset_id = safe_trim(entry.asset_id)
            url = safe_trim(entry.url)
            if not asset_id or not url:
                continue
            groups.setdefault(duplicate_key(asset_id, url), []).append(entry)

        return {key: group for key, group in groups.items() if len(group) > 1}

    def refresh_duplicates(self) -> list[int]:
        """
        Clear old duplicate markers and apply current ones.

        Returns:
            Entry ids now flagged duplicate
        """
        for entry in self.entries:
            had_flag = EntryError.DUPLICATE_ASSET_URL in entry.asset_errors
            entry.asset_errors = _drop_error(entry.asset_errors, EntryError.DUPLICATE_ASSET_URL)
            entry.url_errors = _drop_error(entry.url_errors, EntryError.DUPLICATE_ASSET_URL)
            if had_flag or entry.state == RowValidationState.DUPLICATE:
                entry.state = self.compute_pending_state(entry)

        flagged = []
        for group in self.detect_duplicates().values():
            for entry in group:
                _add_error(entry.asset_errors, EntryError.DUPLICATE_ASSET_URL)
                _add_error(entry.url_errors, EntryError.DUPLICATE_ASSET_URL)
                entry.state = RowValidationState.DUPLICATE
                flagged.append(entry.entry_id)

        return flagged

    # ===================
    # ROW OPERATIONS
    # ===================

    def add_entry(self, data: Optional[ManualEntryInput] = None) -> ManualEntryView:
        view = self._new_view(data or ManualEntryInput())
        self.entries.append(view)
        self.refresh_duplicates()
        return view

    def duplicate_entry(self, entry_id: int) -> ManualEntryView:
        """Copy a row below itself, without its asset id."""
        index = self._index_of(entry_id)
        source = self.entries[index]

        clone = self._new_view(ManualEntryInput(
            url=source.url,
            title=source.title,
            description=source.description,
            type=source.type,
            supplemental=source.supplemental,
        ))
        self.entries.insert(index + 1, clone)
        self.refresh_duplicates()
        return clone

    def remove_entry(self, entry_id: int) -> None:
        """
        Remove a row; rows holding data are kept in the deleted list.

        Raises:
            ValidationError: If it is the last remaining row
        """
        if len(self.entries) == 1:
            raise ValidationError(message="The last entry cannot be removed", code="LAST_ENTRY")

        index = self._index_of(entry_id)
        removed = self.entries.pop(index)

        if _has_data(removed):
            self.deleted.append(DeletedEntry(entry=removed))

        self._forget_asset_if_unused(safe_trim(removed.asset_id))
        self.refresh_duplicates()

    def restore_deleted(self, index: int, insert_index: Optional[int] = None) -> ManualEntryView:
        if index < 0 or index >= len(self.deleted):
            raise NotFoundError(resource="Deleted entry", identifier=str(index), code="DELETED_ENTRY_NOT_FOUND")

        restored = self.deleted.pop(index).entry
        restored.asset_errors = []
        restored.url_errors = []
        restored.state = RowValidationState.PENDING

        position = len(self.entries) if insert_index is None else max(0, min(insert_index, len(self.entries)))
        self.entries.insert(position, restored)
        self.refresh_duplicates()
        return restored

    def purge_deleted(self, index: int) -> None:
        if 0 <= index < len(self.deleted):
            self.deleted.pop(index)

    def update_entry(self, entry_id: int, **changes) -> ManualEntryView:
        """
        Edit fields of one row.

        Changing the asset id re-evaluates the row against the last
        validation; any edit re-runs duplicate detection and drops deleted
        rows the edited row now matches.
        """
        entry = self.get_entry(entry_id)
        previous_asset_id = safe_trim(entry.asset_id)

        for name, value in changes.items():
            if name not in EDITABLE_FIELDS:
                raise ValidationError(message=f"Unknown entry field: {name}", code="ENTRY_FIELD_UNKNOWN")
            setattr(entry, name, value)

        if "url" in changes:
            entry.url_errors = [
                e for e in entry.url_errors
                if e not in (EntryError.REQUIRED, EntryError.INVALID_URL)
            ]

        asset_id = safe_trim(entry.asset_id)
        if asset_id != previous_asset_id:
            entry.asset_errors = []
            if previous_asset_id:
                self._forget_asset_if_unused(previous_asset_id)
            if asset_id and asset_id not in self.metadata_map:
                if asset_id not in self.retry_asset_ids:
                    self.retry_asset_ids.append(asset_id)
            elif asset_id in self.retry_asset_ids:
                self.retry_asset_ids.remove(asset_id)
            entry.state = self.compute_pending_state(entry)

        self.refresh_duplicates()
        self._drop_matching_deleted(entry)
        return entry

    def _drop_matching_deleted(self, entry: ManualEntryView) -> None:
        if not self.deleted:
            return
        active = _snapshot(entry)
        self.deleted = [d for d in self.deleted if _snapshot(d.entry) != active]

    def _forget_asset_if_unused(self, asset_id: str) -> None:
        if not asset_id:
            return
        if any(safe_trim(e.asset_id) == asset_id for e in self.entries):
            return
        self.metadata_map.pop(asset_id, None)
        if asset_id in self.retry_asset_ids:
            self.retry_asset_ids.remove(asset_id)

    # ===================
    # VALIDATION
    # ===================

    def check_required_fields(self) -> bool:
        """Flag blank asset ids, blank URLs and URLs without http(s)://."""
        ok = True
        for entry in self.entries:
            entry.asset_id = safe_trim(entry.asset_id)
            entry.url = safe_trim(entry.url)

            entry.asset_errors = _drop_error(entry.asset_errors, EntryError.REQUIRED)
            entry.url_errors = [
                e for e in entry.url_errors
                if e not in (EntryError.REQUIRED, EntryError.INVALID_URL)
            ]

            if not entry.asset_id:
                _add_error(entry.asset_errors, EntryError.REQUIRED)
                ok = False
            if not entry.url:
                _add_error(entry.url_errors, EntryError.REQUIRED)
                ok = False
            elif not URL_PATTERN.match(entry.url):
                _add_error(entry.url_errors, EntryError.INVALID_URL)
                ok = False

        return ok

    def _response(self, valid: bool, messages: list[str], error: Optional[str] = None) -> ManualValidationResponse:
        invalid_ids = unique_ids([
            e.asset_id for e in self.entries if EntryError.INVALID_ASSET in e.asset_errors
        ])
        return ManualValidationResponse(
            valid=valid,
            entries=self.entries,
            messages=messages,
            invalid_asset_ids=invalid_ids,
            retry_asset_ids=list(self.retry_asset_ids),
            error=error,
        )

    def reorder(self, invalid_ids: list[int], duplicate_ids: list[int]) -> None:
        """Invalid rows first, then duplicates, then everything else."""
        invalid = set(invalid_ids)
        duplicate = set(duplicate_ids) - invalid
        self.entries = (
            [e for e in self.entries if e.entry_id in invalid]
            + [e for e in self.entries if e.entry_id in duplicate]
            + [e for e in self.entries if e.entry_id not in invalid and e.entry_id not in duplicate]
        )

    async def validate(self) -> ManualValidationResponse:
        """
        Validate every row against the repository.

        Rows whose asset id failed or is absent from the result become
        invalid and move to the front, duplicates follow.
        """
        for entry in self.entries:
            entry.asset_errors = _drop_error(entry.asset_errors, EntryError.INVALID_ASSET)

        if not self.check_required_fields():
            return self._response(
                False,
                ["Please provide an Asset ID and a valid File URL for each entry before continuing."],
            )

        ids = unique_ids([e.asset_id for e in self.entries])
        if not ids:
            return self._response(False, ["Enter at least one Asset ID to continue."])

        try:
            batch = await self.asset_service.validate_assets(ids)
        except AppError as e:
            logger.error("manual_validation_failed", error=e.message)
            return self._response(False, [], error=f"Failed to validate asset IDs: {e.message}")

        self.metadata_map = dict(batch.metadata_map)
        self.retry_asset_ids = unique_ids(batch.missing_asset_ids + batch.failed_asset_ids)

        invalid_ids = []
        for entry in self.entries:
            if entry.asset_id in self.metadata_map:
                continue
            _add_error(entry.asset_errors, EntryError.INVALID_ASSET)
            entry.state = RowValidationState.INVALID
            invalid_ids.append(entry.entry_id)
            if entry.asset_id not in self.retry_asset_ids:
                self.retry_asset_ids.append(entry.asset_id)

        duplicate_ids = [
            entry_id for entry_id in self.refresh_duplicates() if entry_id not in invalid_ids
        ]
        # refresh_duplicates recomputes states, so re-apply invalid ones
        for entry in self.entries:
            if entry.entry_id in invalid_ids:
                entry.state = RowValidationState.INVALID

        self.reorder(invalid_ids, duplicate_ids)

        flagged = set(invalid_ids) | set(duplicate_ids)
        for entry in self.entries:
            if entry.entry_id in flagged:
                continue
            if entry.state != RowValidationState.VALIDATED_EXISTING:
                entry.state = RowValidationState.VALID

        messages = []
        if invalid_ids:
            messages.append("Some asset IDs could not be validated. They have been moved to the top for correction.")
        if duplicate_ids:
            messages.append(
                "Duplicate asset ID and URL combinations detected. "
                "Please ensure each entry is unique before continuing."
            )
        if batch.failed_asset_ids:
            messages.append("One or more assets could not be validated due to API errors. Please try again.")

        logger.info(
            "manual_entries_validated",
            entries=len(self.entries),
            invalid=len(invalid_ids),
            duplicates=len(duplicate_ids),
        )
        return self._response(not invalid_ids and not duplicate_ids, messages)

    async def retry_validation(self) -> list[str]:
        """
        Re-check ids that failed earlier.

        Returns:
            Ids that now resolve
        """
        if not self.retry_asset_ids:
            return []

        batch = await self.asset_service.validate_assets(list(self.retry_asset_ids))
        resolved = []
        for asset_id, metadata in batch.metadata_map.items():
            self.metadata_map[asset_id] = metadata
            if asset_id in self.retry_asset_ids:
                self.retry_asset_ids.remove(asset_id)
            resolved.append(asset_id)

        for entry in self.entries:
            if entry.asset_id in resolved:
                entry.asset_errors = _drop_error(entry.asset_errors, EntryError.INVALID_ASSET)
                if entry.state == RowValidationState.INVALID:
                    entry.state = self.compute_pending_state(entry)

        logger.info("manual_retry_finished", resolved=len(resolved), remaining=len(self.retry_asset_ids))
        return resolved

    # ===================
    # SUBMISSION
    # ===================

    async def assign_default_types(self) -> bool:
        """
        Fill blank types with the default for each row's asset.

        Returns:
            False if some row could not be given a type
        """
        vocabulary = await self.file_type_service.get_vocabulary()

        all_assigned = True
        for entry in self.entries:
            if safe_trim(entry.type):
                continue
            metadata = self.metadata_map.get(safe_trim(entry.asset_id))
            default = self.file_type_service.default_type(
                vocabulary,
                metadata.asset_type if metadata else None,
            )
            if default:
                entry.type = default
            else:
                all_assigned = False

        return all_assigned

    def build_payload(self) -> dict[str, list[AssetFileLink]]:
        """
        Files to submit grouped by asset id.

        Rows without an asset id or URL are skipped.

        Raises:
            ValidationError: If nothing is left or a row has no file type
        """
        payload: dict[str, list[AssetFileLink]] = {}
        for entry in self.entries:
            asset_id = safe_trim(entry.asset_id)
            url = safe_trim(entry.url)
            if not asset_id or not url:
                continue

            payload.setdefault(asset_id, []).append(AssetFileLink(
                url=url,
                title=entry.title or None,
                description=entry.description or None,
                type=entry.type or None,
                supplemental=entry.supplemental,
            ))

        if not payload:
            raise ValidationError(
                message="There are no entries to submit. Please add at least one file.",
                code="NO_ENTRIES"
            )

        if any(not f.type for files in payload.values() for f in files):
            raise ValidationError(
                message="One or more entries are missing file types. Please specify them before submitting.",
                code="FILE_TYPE_REQUIRED"
            )

        return payload

    def to_import_rows(self) -> list[ImportRow]:
        """Payload as ImportRows for the orchestrator."""
        return [
            ImportRow(
                asset_id=asset_id,
                remote_url=link.url,
                file_title=link.title,
                file_description=link.description,
                file_type=link.type,
                supplemental=link.supplemental,
            )
            for asset_id, files in self.build_payload().items()
            for link in files
        ]

    # ===================
    # EXPORTS
    # ===================

    def export_valid(self) -> str:
        states = {RowValidationState.VALID, RowValidationState.VALIDATED_EXISTING}
        return entries_csv(e for e in self.entries if e.state in states)

    def export_invalid(self) -> str:
        states = {RowValidationState.INVALID, RowValidationState.DUPLICATE}
        return entries_csv(e for e in self.entries if e.state in states)

    def export_deleted(self) -> str:
        return entries_csv(d.entry for d in self.deleted)
