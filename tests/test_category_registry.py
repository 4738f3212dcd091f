"""
Tests for the category registry.

Covers usage counting, add/rename/delete validation, migration ordering,
the delete probe and partial migration failures.
"""

import asyncio
import os
import sys
import unittest

# Set environment before imports
os.environ["ENVIRONMENT"] = "development"
os.environ["STORE_BACKEND"] = "memory"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.exceptions import (
    ConflictError,
    ErrorCode,
    ResourceNotFoundError,
    UpstreamError,
    ValidationError,
)
from app.models.content import (
    CategoryOption,
    CollectionSchema,
    ContentFields,
    FieldSpec,
    FieldType,
)
from app.services import CategoryRegistry
from app.storage import InMemoryDocumentStore


class RegistryTestCase(unittest.IsolatedAsyncioTestCase):
    """Registry over a store with General and Leads registered."""

    async def asyncSetUp(self):
        self.store = InMemoryDocumentStore()
        self.registry = CategoryRegistry(self.store)
        await self.registry.add_category("contents", "Leads")

    async def create(self, category, title="Item"):
        return await self.store.create_item(
            "contents", {"title": title, "category": category}
        )

    async def category_of(self, item_id):
        return (await self.store.retrieve_item(item_id)).fields["category"]

    async def option_names(self, collection="contents"):
        schema = await self.store.retrieve_schema(collection)
        return [o.name for o in schema.field(ContentFields.CATEGORY).options]


class TestListCategories(RegistryTestCase):

    async def test_counts_exact_matches(self):
        await self.create("Leads")
        await self.create("Leads")
        await self.create("leads")
        await self.create("General")

        usage = {c.name: c.count for c in await self.registry.list_categories("contents")}

        self.assertEqual(usage, {"General": 1, "Leads": 2})

    async def test_includes_color(self):
        categories = await self.registry.list_categories("contents")
        self.assertTrue(all(c.color == "default" for c in categories))

    async def test_collections_are_separate(self):
        await self.create("Leads")
        usage = await self.registry.list_categories("prompts")
        self.assertEqual([(c.name, c.count) for c in usage], [("General", 0)])

    async def test_no_category_field_yields_empty_list(self):
        store = InMemoryDocumentStore(schemas={
            "contents": CollectionSchema(fields={
                ContentFields.TITLE: FieldSpec(type=FieldType.TITLE),
                ContentFields.CATEGORY: FieldSpec(type=FieldType.RICH_TEXT),
            }),
        })
        registry = CategoryRegistry(store)

        self.assertEqual(await registry.list_categories("contents"), [])
        with self.assertRaises(ValidationError) as ctx:
            await registry.add_category("contents", "Leads")
        self.assertEqual(ctx.exception.error_code, ErrorCode.SCHEMA_MISMATCH)


class TestAddCategory(RegistryTestCase):

    async def test_add_appends_option(self):
        option = await self.registry.add_category("contents", "  Prospects  ")

        self.assertEqual(option.name, "Prospects")
        self.assertEqual(option.color, "default")
        self.assertEqual(await self.option_names(), ["General", "Leads", "Prospects"])

    async def test_duplicate_is_case_insensitive(self):
        """Adding "leads" after "Leads" exists is a conflict."""
        with self.assertRaises(ConflictError):
            await self.registry.add_category("contents", "leads")
        with self.assertRaises(ConflictError):
            await self.registry.add_category("contents", "GENERAL")

    async def test_empty_name_rejected(self):
        with self.assertRaises(ValidationError):
            await self.registry.add_category("contents", "   ")

    async def test_name_length_limit(self):
        await self.registry.add_category("contents", "x" * 100)
        with self.assertRaises(ValidationError):
            await self.registry.add_category("contents", "y" * 101)


class TestRenameCategory(RegistryTestCase):

    async def test_rename_scenario(self):
        """Item X in Leads moves to Prospects and updatedCount is 1."""
        item_x = await self.create("Leads")
        other = await self.create("General")

        updated = await self.registry.rename_category("contents", "Leads", "Prospects")

        self.assertEqual(updated, 1)
        self.assertEqual(await self.category_of(item_x), "Prospects")
        self.assertEqual(await self.category_of(other), "General")
        self.assertEqual(await self.option_names(), ["General", "Prospects"])

    async def test_no_item_keeps_old_name(self):
        ids = [await self.create("Leads") for _ in range(5)]

        updated = await self.registry.rename_category("contents", "Leads", "Prospects")

        self.assertEqual(updated, len(ids))
        remaining = await self.store.query_items("contents", {"category": "Leads"})
        self.assertEqual(remaining, [])

    async def test_rename_keeps_option_identity(self):
        schema = await self.store.retrieve_schema("contents")
        before = [o for o in schema.field("category").options if o.name == "Leads"][0]

        await self.registry.rename_category("contents", "Leads", "Prospects")

        schema = await self.store.retrieve_schema("contents")
        after = [o for o in schema.field("category").options if o.name == "Prospects"][0]
        self.assertEqual(after.id, before.id)

    async def test_case_only_rename_allowed(self):
        await self.create("Leads")
        updated = await self.registry.rename_category("contents", "Leads", "LEADS")
        self.assertEqual(updated, 1)
        self.assertIn("LEADS", await self.option_names())

    async def test_general_is_protected(self):
        with self.assertRaises(ConflictError) as ctx:
            await self.registry.rename_category("contents", "General", "Misc")
        self.assertEqual(ctx.exception.error_code, ErrorCode.PROTECTED_RESOURCE)

    async def test_duplicate_target_rejected(self):
        await self.registry.add_category("contents", "Prospects")
        item_id = await self.create("Leads")

        with self.assertRaises(ConflictError):
            await self.registry.rename_category("contents", "Leads", "prospects")
        self.assertEqual(await self.category_of(item_id), "Leads")

    async def test_missing_names_rejected(self):
        with self.assertRaises(ValidationError):
            await self.registry.rename_category("contents", "", "Prospects")
        with self.assertRaises(ValidationError):
            await self.registry.rename_category("contents", "Leads", None)

    async def test_new_name_length_limit(self):
        with self.assertRaises(ValidationError):
            await self.registry.rename_category("contents", "Leads", "z" * 101)

    async def test_unknown_category_not_found(self):
        with self.assertRaises(ResourceNotFoundError):
            await self.registry.rename_category("contents", "Nope", "Prospects")

    async def test_items_migrated_before_schema(self):
        calls = []
        original_update = self.store.update_item
        original_options = self.store.update_schema_options

        async def update(item_id, fields):
            calls.append("item")
            return await original_update(item_id, fields)

        async def options(collection, field_name, opts):
            calls.append("schema")
            return await original_options(collection, field_name, opts)

        self.store.update_item = update
        self.store.update_schema_options = options
        await self.create("Leads")
        await self.create("Leads")

        await self.registry.rename_category("contents", "Leads", "Prospects")

        self.assertEqual(calls, ["item", "item", "schema"])

    async def test_schema_failure_leaves_items_migrated(self):
        item_id = await self.create("Leads")

        async def failing_options(collection, field_name, opts):
            raise UpstreamError("schema update failed", operation="update_schema_options")

        self.store.update_schema_options = failing_options

        with self.assertRaises(UpstreamError):
            await self.registry.rename_category("contents", "Leads", "Prospects")

        self.assertEqual(await self.category_of(item_id), "Prospects")
        self.assertIn("Leads", await self.option_names())

    async def test_partial_migration_reports_counts(self):
        good = await self.create("Leads")
        bad = await self.create("Leads")
        original_update = self.store.update_item

        async def flaky_update(item_id, fields):
            if item_id == bad:
                raise RuntimeError("rate limited")
            return await original_update(item_id, fields)

        self.store.update_item = flaky_update

        with self.assertRaises(UpstreamError) as ctx:
            await self.registry.rename_category("contents", "Leads", "Prospects")

        self.assertEqual(ctx.exception.details["succeeded"], 1)
        self.assertEqual(ctx.exception.details["failed"], 1)
        self.assertEqual(await self.category_of(good), "Prospects")
        self.assertEqual(await self.category_of(bad), "Leads")
        self.assertIn("Leads", await self.option_names())

    async def test_migration_respects_store_concurrency(self):
        item_ids = [await self.create("Leads", title=f"Item {i}") for i in range(12)]
        self.store.max_concurrency = 2
        original_update = self.store.update_item
        in_flight = 0
        peak = 0

        async def slow_update(item_id, fields):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0.001)
                return await original_update(item_id, fields)
            finally:
                in_flight -= 1

        self.store.update_item = slow_update

        updated = await self.registry.rename_category("contents", "Leads", "Prospects")

        self.assertEqual(updated, 12)
        self.assertEqual(peak, 2)
        for item_id in item_ids:
            self.assertEqual(await self.category_of(item_id), "Prospects")


class TestDeleteCategory(RegistryTestCase):

    async def test_probe_blocks_and_mutates_nothing(self):
        """delete(force=False) on a used category reports the exact count."""
        item_x = await self.create("Leads")
        await self.create("Leads")
        writes = []
        original_update = self.store.update_item

        async def update(item_id, fields):
            writes.append(item_id)
            return await original_update(item_id, fields)

        self.store.update_item = update

        outcome = await self.registry.delete_category("contents", "Leads")

        self.assertFalse(outcome.can_delete)
        self.assertEqual(outcome.count, 2)
        self.assertEqual(writes, [])
        self.assertEqual(await self.category_of(item_x), "Leads")
        self.assertIn("Leads", await self.option_names())

    async def test_force_migrates_to_general(self):
        item_x = await self.create("Leads")

        outcome = await self.registry.delete_category("contents", "Leads", force=True)

        self.assertTrue(outcome.can_delete)
        self.assertEqual(outcome.migrated_count, 1)
        self.assertEqual(await self.category_of(item_x), "General")
        self.assertNotIn("Leads", await self.option_names())
        names = [c.name for c in await self.registry.list_categories("contents")]
        self.assertNotIn("Leads", names)

    async def test_unused_category_deleted_without_force(self):
        outcome = await self.registry.delete_category("contents", "Leads")

        self.assertTrue(outcome.can_delete)
        self.assertEqual(outcome.migrated_count, 0)
        self.assertEqual(await self.option_names(), ["General"])

    async def test_general_is_protected(self):
        with self.assertRaises(ConflictError):
            await self.registry.delete_category("contents", "General", force=True)

    async def test_unknown_category_not_found(self):
        with self.assertRaises(ResourceNotFoundError) as ctx:
            await self.registry.delete_category("contents", "Nope", force=True)
        self.assertEqual(ctx.exception.error_code, ErrorCode.CATEGORY_NOT_FOUND)

    async def test_empty_name_rejected(self):
        with self.assertRaises(ValidationError):
            await self.registry.delete_category("contents", "")

    async def test_general_restored_if_missing(self):
        await self.store.update_schema_options(
            "contents", "category", [CategoryOption(name="Leads")]
        )
        await self.create("Leads")

        await self.registry.delete_category("contents", "Leads", force=True)

        self.assertEqual(await self.option_names(), ["General"])


class TestCategoryScenario(RegistryTestCase):
    """Rename, probe and forced delete in sequence."""

    async def test_full_lifecycle(self):
        item_x = await self.create("Leads")

        updated = await self.registry.rename_category("contents", "Leads", "Prospects")
        self.assertEqual(updated, 1)
        self.assertEqual(await self.category_of(item_x), "Prospects")

        probe = await self.registry.delete_category("contents", "Prospects")
        self.assertFalse(probe.can_delete)
        self.assertEqual(probe.count, 1)
        self.assertEqual(await self.category_of(item_x), "Prospects")

        forced = await self.registry.delete_category("contents", "Prospects", force=True)
        self.assertEqual(forced.migrated_count, 1)
        self.assertEqual(await self.category_of(item_x), "General")
        names = [c.name for c in await self.registry.list_categories("contents")]
        self.assertNotIn("Prospects", names)


if __name__ == "__main__":
    unittest.main()
