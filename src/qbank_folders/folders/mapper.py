"""Mapping of raw folder records into folder models."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from qbank_folders.folders.models import (
    FIELD_CREATED,
    FIELD_FOLDER_ID,
    FIELD_NAME,
    FIELD_OWNER,
    FIELD_PROPERTIES,
    FIELD_SYSTEM_NAME,
    FIELD_TREE,
    FIELD_UPDATED,
    FIELD_VALUE,
    Folder,
    FolderId,
    Property,
    SimpleFolder,
)
from qbank_folders.folders.tree import DEFAULT_TREE_SEPARATOR, coerce_id, tree_segments


class RecordFormatError(ValueError):
    """Raised when a server record does not have the expected shape."""


def parse_timestamp(text: Any) -> int:
    """Parse a server timestamp into epoch seconds.

    Accepts ISO-8601 (with or without a ``Z`` or offset) and
    ``YYYY-MM-DD HH:MM:SS``. Values without a timezone are taken as UTC.

    Raises:
        RecordFormatError: If the value cannot be parsed.
    """
    if not isinstance(text, str) or not text.strip():
        raise RecordFormatError(f"Invalid timestamp: {text!r}")
    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError as exc:
        raise RecordFormatError(f"Invalid timestamp: {text!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def map_property(raw: Any) -> Property:
    """Build a Property from a ``{systemName, value}`` record or a single key/value pair."""
    if isinstance(raw, dict):
        if FIELD_SYSTEM_NAME in raw:
            return Property(system_name=str(raw[FIELD_SYSTEM_NAME]), value=raw.get(FIELD_VALUE))
        if len(raw) == 1:
            ((key, value),) = raw.items()
            return Property(system_name=str(key), value=value)
    raise RecordFormatError(f"Invalid property record: {raw!r}")


def map_properties(raw: Iterable[Any] | None) -> list[Property]:
    """Map property records in order, keeping duplicates.

    Args:
        raw: Property records, or None when the record carries none.

    Returns:
        Properties in record order; empty for None.
    """
    if raw is None:
        return []
    return [map_property(item) for item in raw]


def _require(record: dict[str, Any], key: str) -> Any:
    if key not in record:
        raise RecordFormatError(f"Folder record is missing '{key}'")
    return record[key]


def _folder_id(
    record: dict[str, Any], folder_id: FolderId | None, separator: str
) -> FolderId:
    if record.get(FIELD_FOLDER_ID) is not None:
        return coerce_id(record[FIELD_FOLDER_ID])
    if folder_id is not None:
        return coerce_id(folder_id)
    segments = tree_segments(record.get(FIELD_TREE), separator)
    if not segments:
        raise RecordFormatError("Folder record has neither folderId nor tree")
    return coerce_id(segments[-1])


def _simple_fields(
    record: dict[str, Any], folder_id: FolderId | None, separator: str
) -> dict[str, Any]:
    if not isinstance(record, dict):
        raise RecordFormatError(f"Invalid folder record: {record!r}")
    return {
        "id": _folder_id(record, folder_id, separator),
        "name": _require(record, FIELD_NAME),
        "tree": str(_require(record, FIELD_TREE)),
        "owner": record.get(FIELD_OWNER),
        "created": parse_timestamp(_require(record, FIELD_CREATED)),
        "updated": parse_timestamp(_require(record, FIELD_UPDATED)),
    }


def map_simple_folder(
    record: dict[str, Any],
    folder_id: FolderId | None = None,
    separator: str = DEFAULT_TREE_SEPARATOR,
) -> SimpleFolder:
    """Build a SimpleFolder; any property data in the record is ignored.

    Args:
        record: Raw folder record.
        folder_id: Identifier to use when the record carries no ``folderId``.
        separator: Separator of the ancestry path segments.
    """
    return SimpleFolder(**_simple_fields(record, folder_id, separator))


def map_full_folder(
    record: dict[str, Any],
    folder_id: FolderId | None = None,
    separator: str = DEFAULT_TREE_SEPARATOR,
) -> Folder:
    """Build a Folder with every property of the record, in order."""
    fields = _simple_fields(record, folder_id, separator)
    return Folder(**fields, properties=map_properties(record.get(FIELD_PROPERTIES)))


def map_folder(
    record: dict[str, Any],
    include_properties: bool,
    folder_id: FolderId | None = None,
    separator: str = DEFAULT_TREE_SEPARATOR,
) -> SimpleFolder | Folder:
    """Map a folder record to a Folder or a SimpleFolder.

    Args:
        record: Raw folder record.
        include_properties: Build a Folder with properties instead of a
            SimpleFolder.
        folder_id: Identifier to use when the record carries none.
        separator: Separator of the ancestry path segments.

    Returns:
        The mapped folder.

    Raises:
        RecordFormatError: A required field is missing or malformed.
    """
    if include_properties:
        return map_full_folder(record, folder_id, separator)
    return map_simple_folder(record, folder_id, separator)


def map_folders(
    records: Iterable[dict[str, Any]],
    include_properties: bool,
    separator: str = DEFAULT_TREE_SEPARATOR,
) -> dict[FolderId, Any]:
    """Map a flat listing into folders keyed by identifier, in server order."""
    folders: dict[FolderId, Any] = {}
    for record in records:
        folder = map_folder(record, include_properties, separator=separator)
        folders[folder.id] = folder
    return folders
