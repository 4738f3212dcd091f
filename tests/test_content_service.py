"""
Tests for the content service: listing, creation, partial updates and
reorder.
"""

import os
import sys
import unittest

# Set environment before imports
os.environ["ENVIRONMENT"] = "development"
os.environ["STORE_BACKEND"] = "memory"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.exceptions import ErrorCode, UpstreamError, ValidationError
from app.models.content import (
    CollectionSchema,
    ContentFields,
    FieldSpec,
    FieldType,
)
from app.models.requests import ContentCreateRequest, ContentPatch, ReorderEntry
from app.services import ContentService, resolve_collection
from app.services.field_mapping import today_iso
from app.storage import InMemoryDocumentStore


class TestResolveCollection(unittest.TestCase):

    def test_prompts_selector(self):
        self.assertEqual(resolve_collection("prompts"), "prompts")
        self.assertEqual(resolve_collection(" Prompts "), "prompts")

    def test_anything_else_is_contents(self):
        for db in (None, "", "contents", "history", "unknown"):
            self.assertEqual(resolve_collection(db), "contents")


class TestListItems(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryDocumentStore()
        self.service = ContentService(self.store)

    async def test_sorted_by_order_then_newest(self):
        await self.store.create_item("contents", {"title": "old", "date_created": "2024-01-01"})
        await self.store.create_item("contents", {"title": "new", "date_created": "2024-06-01"})
        await self.store.create_item(
            "contents", {"title": "pinned", "date_created": "2023-01-01", "sort_order": 1}
        )

        items = await self.service.list_items()

        self.assertEqual([i.title for i in items], ["pinned", "new", "old"])

    async def test_absent_fields_defaulted(self):
        await self.store.create_item("contents", {"title": "bare"})

        item = (await self.service.list_items())[0]

        self.assertEqual(item.content, "")
        self.assertEqual(item.tags, [])
        self.assertEqual(item.use_count, 0)
        self.assertEqual(item.sort_order, 9999)
        self.assertEqual(item.version_count, 0)

    async def test_negative_stored_counters_read_as_zero(self):
        await self.store.create_item(
            "contents", {"title": "hand-edited", "use_count": -1, "version_count": -2}
        )

        item = (await self.service.list_items())[0]

        self.assertEqual(item.use_count, 0)
        self.assertEqual(item.version_count, 0)

    async def test_collection_without_category_field(self):
        store = InMemoryDocumentStore(schemas={
            "contents": CollectionSchema(fields={
                ContentFields.TITLE: FieldSpec(type=FieldType.TITLE),
            }),
        })
        await store.create_item("contents", {"title": "T"})

        item = (await ContentService(store).list_items())[0]

        self.assertEqual(item.category, "General")

    async def test_prompts_listed_separately(self):
        await self.store.create_item("prompts", {"title": "prompt"})
        await self.store.create_item("contents", {"title": "content"})

        prompts = await self.service.list_items("prompts")

        self.assertEqual([i.title for i in prompts], ["prompt"])


class TestCreateItem(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryDocumentStore()
        self.service = ContentService(self.store)

    async def test_defaults(self):
        item_id = await self.service.create_item(
            ContentCreateRequest(title="Hello", content="Body")
        )

        stored = (await self.store.retrieve_item(item_id)).fields
        self.assertEqual(stored["category"], "General")
        self.assertEqual(stored["formatted_content"], "Body")
        self.assertEqual(stored["date_created"], today_iso())
        self.assertEqual(stored["use_count"], 0)
        self.assertEqual(stored["version_count"], 0)
        self.assertNotIn("folder", stored)

    async def test_attachments_without_url_dropped(self):
        item_id = await self.service.create_item(ContentCreateRequest(
            title="Files",
            attachments=[{"url": "https://example.com/a.png"}, {"name": "broken"}],
            tags=["a", "b", "a"],
        ))

        stored = (await self.store.retrieve_item(item_id)).fields
        self.assertEqual(
            stored["attachments"],
            [{"name": "attachment", "url": "https://example.com/a.png"}],
        )
        self.assertEqual(stored["tags"], ["a", "b"])

    async def test_fields_missing_from_schema_are_skipped(self):
        store = InMemoryDocumentStore(schemas={
            "contents": CollectionSchema(fields={
                ContentFields.TITLE: FieldSpec(type=FieldType.TITLE),
                ContentFields.CONTENT: FieldSpec(type=FieldType.RICH_TEXT),
            }),
        })
        service = ContentService(store)

        item_id = await service.create_item(
            ContentCreateRequest(title="T", content="C", folder="F", useCount=3)
        )

        self.assertEqual(
            (await store.retrieve_item(item_id)).fields,
            {"title": "T", "content": "C"},
        )

    async def test_title_field_required(self):
        store = InMemoryDocumentStore(schemas={
            "contents": CollectionSchema(fields={
                ContentFields.CONTENT: FieldSpec(type=FieldType.RICH_TEXT),
            }),
        })

        with self.assertRaises(ValidationError) as ctx:
            await ContentService(store).create_item(ContentCreateRequest(title="T"))

        self.assertEqual(ctx.exception.error_code, ErrorCode.SCHEMA_MISMATCH)
        self.assertIn("Title", ctx.exception.hint)


class TestPatchSemantics(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryDocumentStore()
        self.service = ContentService(self.store)
        self.item_id = await self.store.create_item("contents", {
            "title": "T",
            "content": "C",
            "category": "Leads",
            "folder": "Inbox",
            "tags": ["x"],
            "version_count": 0,
        })

    async def fields(self):
        return (await self.store.retrieve_item(self.item_id)).fields

    async def test_absent_fields_unchanged(self):
        await self.service.update_item(self.item_id, ContentPatch(title="New"))

        fields = await self.fields()
        self.assertEqual(fields["title"], "New")
        self.assertEqual(fields["content"], "C")
        self.assertEqual(fields["folder"], "Inbox")
        self.assertEqual(fields["tags"], ["x"])

    async def test_empty_folder_clears(self):
        await self.service.update_item(self.item_id, ContentPatch(folder=""))

        item = (await self.service.list_items())[0]
        self.assertEqual(item.folder, "")

    async def test_empty_category_ignored(self):
        await self.service.update_item(self.item_id, ContentPatch(category=""))

        self.assertEqual((await self.fields())["category"], "Leads")

    async def test_missing_id_rejected(self):
        with self.assertRaises(ValidationError):
            await self.service.update_item(None, ContentPatch(title="X"))


class TestReorder(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = InMemoryDocumentStore()
        self.service = ContentService(self.store)
        self.ids = [
            await self.store.create_item("contents", {"title": f"item-{n}"})
            for n in range(3)
        ]

    async def test_reorder_applies_sort_order(self):
        entries = [
            ReorderEntry(id=self.ids[2], sort_order=0),
            ReorderEntry(id=self.ids[0], sort_order=1),
            ReorderEntry(id=self.ids[1], sort_order=2),
        ]

        updated = await self.service.reorder(entries)

        self.assertEqual(updated, 3)
        titles = [i.title for i in await self.service.list_items()]
        self.assertEqual(titles, ["item-2", "item-0", "item-1"])

    async def test_reorder_does_not_touch_versions(self):
        await self.service.reorder([ReorderEntry(id=self.ids[0], sort_order=5)])

        self.assertEqual(await self.service.ledger.get_history(self.ids[0]), [])

    async def test_empty_list_rejected(self):
        with self.assertRaises(ValidationError):
            await self.service.reorder([])

    async def test_duplicate_ids_rejected(self):
        entries = [
            ReorderEntry(id=self.ids[0], sort_order=1),
            ReorderEntry(id=self.ids[0], sort_order=2),
        ]

        with self.assertRaises(ValidationError) as ctx:
            await self.service.reorder(entries)

        self.assertEqual(ctx.exception.details["field"], "items")
        item = await self.store.retrieve_item(self.ids[0])
        self.assertNotIn("sort_order", item.fields)

    async def test_sort_order_field_required(self):
        store = InMemoryDocumentStore(schemas={
            "contents": CollectionSchema(fields={
                ContentFields.TITLE: FieldSpec(type=FieldType.TITLE),
            }),
        })

        with self.assertRaises(ValidationError) as ctx:
            await ContentService(store).reorder([ReorderEntry(id="a", sort_order=1)])

        self.assertEqual(ctx.exception.error_code, ErrorCode.SCHEMA_MISMATCH)

    async def test_unknown_item_partial_failure(self):
        entries = [
            ReorderEntry(id=self.ids[0], sort_order=0),
            ReorderEntry(id="missing", sort_order=1),
        ]

        with self.assertRaises(UpstreamError) as ctx:
            await self.service.reorder(entries)

        self.assertEqual(ctx.exception.error_code, ErrorCode.PARTIAL_FAILURE)
        self.assertEqual(ctx.exception.details["succeeded"], 1)
        self.assertEqual(ctx.exception.details["failed"], 1)
        stored = await self.store.retrieve_item(self.ids[0])
        self.assertEqual(stored.fields["sort_order"], 0)


class TestServiceHistoryGuards(unittest.IsolatedAsyncioTestCase):

    async def test_missing_content_id(self):
        service = ContentService(InMemoryDocumentStore())
        with self.assertRaises(ValidationError):
            await service.get_history("")
        with self.assertRaises(ValidationError):
            await service.restore_version("abc", None)


if __name__ == "__main__":
    unittest.main()
