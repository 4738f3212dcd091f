"""
Version Ledger.

Keeps an append-only history of content items in the ``history``
collection. Before every versioned mutation the item's current
title/content/formatted content is copied into a snapshot tagged with the
item's ``version_count``; the item is then written with the count bumped by
one. Snapshots are never updated or deleted.

The document store has no transactions, so each multi-step operation is an
ordered sequence of calls:

- versioned update: snapshot (best effort) -> write patch + bump
- restore: find snapshot -> read item -> snapshot current state (best
  effort) -> write snapshot fields + bump

A failure after the snapshot step leaves an extra snapshot with no matching
item change. That is accepted; nothing is rolled back.
"""

import logging
from typing import Any, Dict, List, Optional

from app.exceptions import (
    ErrorCode,
    HistoryNotConfiguredError,
    ResourceNotFoundError,
)
from app.models.content import (
    COLLECTION_HISTORY,
    ContentFields,
    ContentItem,
    HistoryFields,
    SchemaCapabilities,
    VersionSnapshot,
)
from app.storage.base import DocumentStore

from .field_mapping import (
    build_snapshot_fields,
    read_content_item,
    read_snapshot,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

RESTORE_NOTE = "Before restore to version {version}"


class VersionLedger:
    """Snapshot, history and restore operations over a document store."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    @property
    def enabled(self) -> bool:
        """Whether the history collection is configured."""
        return self.store.is_configured(COLLECTION_HISTORY)

    def versions(self, capabilities: SchemaCapabilities) -> bool:
        """
        Whether updates to a collection with ``capabilities`` are versioned.

        Snapshot numbers come from the item's ``version_count``; without
        that field every snapshot would share version 0.
        """
        return self.enabled and capabilities.has(ContentFields.VERSION_COUNT)

    async def record_snapshot(
        self,
        item: ContentItem,
        change_note: Optional[str] = None,
    ) -> Optional[str]:
        """
        Persist a snapshot of ``item`` as it is now.

        Failures are logged and swallowed: losing a history entry is
        preferable to blocking the edit that follows.

        Returns:
            The snapshot id, or None if history is disabled or the write failed.
        """
        if not self.enabled:
            return None

        try:
            snapshot_id = await self.store.create_item(
                COLLECTION_HISTORY,
                build_snapshot_fields(item, change_note),
            )
        except Exception as e:
            logger.warning(
                f"Failed to save history for {item.id} at version {item.version_count}: {e}",
                extra={"content_id": item.id, "version_number": item.version_count},
            )
            return None

        logger.info(
            f"Saved snapshot of {item.id} at version {item.version_count}",
            extra={"content_id": item.id, "version_number": item.version_count},
        )
        return snapshot_id

    async def apply_update(
        self,
        item: ContentItem,
        patch: Dict[str, Any],
        capabilities: SchemaCapabilities,
    ) -> int:
        """
        Write ``patch`` to the item and bump its version.

        ``version_count`` and ``last_modified`` are only written when the
        collection has those fields; without ``version_count`` the version
        stays where it is.

        Returns:
            The new version number.
        """
        new_version = item.version_count
        if capabilities.has(ContentFields.VERSION_COUNT):
            new_version += 1
        fields = dict(patch)
        fields.update(capabilities.filter({
            ContentFields.VERSION_COUNT: new_version,
            ContentFields.LAST_MODIFIED: utc_now_iso(),
        }))

        await self.store.update_item(item.id, fields)
        logger.info(
            f"Updated {item.id} to version {new_version}",
            extra={"content_id": item.id, "version_number": new_version},
        )
        return new_version

    async def get_history(self, content_id: str) -> List[VersionSnapshot]:
        """All snapshots of an item, newest version first."""
        if not self.enabled:
            return []

        stored = await self.store.query_items(
            COLLECTION_HISTORY,
            {HistoryFields.CONTENT_ID: content_id},
        )
        snapshots = [read_snapshot(s) for s in stored]
        snapshots.sort(key=lambda s: s.version_number, reverse=True)
        return snapshots

    async def get_version(self, content_id: str, version_number: int) -> VersionSnapshot:
        """
        Find the snapshot with the given version number.

        Raises:
            ResourceNotFoundError: If no such snapshot exists.
        """
        stored = await self.store.query_items(
            COLLECTION_HISTORY,
            {
                HistoryFields.CONTENT_ID: content_id,
                HistoryFields.VERSION_NUMBER: version_number,
            },
        )
        if not stored:
            raise ResourceNotFoundError(
                "Version not found",
                resource_type="version",
                resource_id=f"{content_id}@{version_number}",
                error_code=ErrorCode.VERSION_NOT_FOUND,
            )
        return read_snapshot(stored[0])

    async def restore_version(self, content_id: str, version_number: int) -> int:
        """
        Restore an item's editable fields from a snapshot.

        The pre-restore state is snapshotted first with the change note
        "Before restore to version N", so a restore can itself be undone.

        Returns:
            The item's new version number.

        Raises:
            HistoryNotConfiguredError: If there is no history collection.
            ResourceNotFoundError: If the snapshot or the item does not exist.
        """
        if not self.enabled:
            raise HistoryNotConfiguredError()

        snapshot = await self.get_version(content_id, version_number)

        stored = await self.store.retrieve_item(content_id)
        schema = await self.store.retrieve_schema(stored.collection)
        caps = schema.capabilities()
        current = read_content_item(stored, caps)

        if self.versions(caps):
            await self.record_snapshot(
                current,
                change_note=RESTORE_NOTE.format(version=version_number),
            )

        restored_fields = caps.filter({
            ContentFields.TITLE: snapshot.title,
            ContentFields.CONTENT: snapshot.content,
            ContentFields.FORMATTED: snapshot.formatted_content,
        })
        new_version = await self.apply_update(current, restored_fields, caps)

        logger.info(
            f"Restored {content_id} to version {version_number} (now version {new_version})",
            extra={"content_id": content_id, "version_number": new_version},
        )
        return new_version
