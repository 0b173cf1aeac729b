"""Tests for the migration orchestrator."""

import json
from dataclasses import replace

import pytest

from sanity2strapi.errors import PreFlightError
from sanity2strapi.models.migration import MigrationStatus
from sanity2strapi.orchestrator import MigrationOrchestrator

from conftest import InMemoryLoader


class BrokenLoader(InMemoryLoader):
    async def validate_connection(self):
        raise RuntimeError("server exploded")


class TestPreFlight:
    """Test checks that run before anything is written."""

    def test_missing_export(self, config, tmp_path):
        orchestrator = MigrationOrchestrator(replace(config, sanity_export_path=str(tmp_path / "nope")))
        with pytest.raises(PreFlightError, match="export path not found"):
            orchestrator.validate_content_migration()

    def test_export_without_documents(self, config, tmp_path):
        empty = tmp_path / "empty-export"
        empty.mkdir()
        with pytest.raises(PreFlightError, match="data.ndjson"):
            MigrationOrchestrator(replace(config, sanity_export_path=str(empty))).validate_export()

    def test_missing_token(self, config):
        with pytest.raises(PreFlightError, match="API token"):
            MigrationOrchestrator(replace(config, api_token=None)).validate_content_migration()

    def test_injected_loader_needs_no_token(self, config):
        MigrationOrchestrator(replace(config, api_token=None), loader=InMemoryLoader()).validate_content_migration()

    def test_cloudinary_without_credentials(self, config):
        orchestrator = MigrationOrchestrator(
            replace(config, asset_provider="cloudinary", cloudinary={"cloud_name": "demo"})
        )
        with pytest.raises(PreFlightError, match="api_key, api_secret"):
            orchestrator.validate_content_migration()

    def test_unknown_asset_provider(self, config):
        with pytest.raises(PreFlightError, match="Unknown asset provider"):
            MigrationOrchestrator(replace(config, asset_provider="s3")).validate_asset_provider()

    def test_missing_strapi_project(self, config, tmp_path):
        with pytest.raises(PreFlightError, match="Strapi project path"):
            MigrationOrchestrator(replace(config, strapi_project_path=None)).validate_schema_generation()

    async def test_run_aborts_before_writing(self, config, tmp_path):
        bad = replace(config, api_token=None)

        with pytest.raises(PreFlightError):
            await MigrationOrchestrator(bad).run_migration()

        assert not (tmp_path / "schema-generation-report.json").exists()
        assert not (tmp_path / "strapi" / "src").exists()


class TestSchemaGeneration:
    def test_analyze(self, config):
        summary = MigrationOrchestrator(config).analyze()

        assert summary["documentTypes"] == ["category", "person", "post", "siteSettings"]
        assert summary["objectTypes"] == ["seo"]
        assert summary["singletons"] == ["siteSettings"]
        assert summary["documentCounts"]["category"] == 2

    def test_generate_schemas_writes_project_files(self, config, strapi_path, tmp_path):
        catalog = MigrationOrchestrator(config).generate_schemas()

        assert (strapi_path / "src" / "api" / "post" / "content-types" / "post" / "schema.json").exists()
        assert (strapi_path / "src" / "components" / "tag" / "tagses.json").exists()
        assert catalog.get_schema("category").description == "Migrated from Sanity (2 documents)"

        report = json.loads((tmp_path / "schema-generation-report.json").read_text())
        assert report["summary"]["totalSchemas"] == 4
        assert report["skippedFiles"] == []


class TestMigrationOrder:
    def test_configured_types_first(self, config, catalog):
        orchestrator = MigrationOrchestrator(config)
        order = orchestrator.migration_order(catalog, ["siteSettings", "post", "zeta", "category"])
        assert order == ["category", "post", "siteSettings", "zeta"]

    def test_unconfigured_types_by_relation_count(self, config, catalog):
        orchestrator = MigrationOrchestrator(replace(config, migration_order=[]))
        order = orchestrator.migration_order(catalog, ["post", "person", "category"])
        assert order == ["category", "person", "post"]

    def test_batch_iterator(self):
        batches = list(MigrationOrchestrator._batch_iterator(list(range(5)), 2))
        assert batches == [[0, 1], [2, 3], [4]]


class TestContentMigration:
    """Run the full pipeline against an in-memory target."""

    async def test_full_run(self, config, tmp_path):
        loader = InMemoryLoader()

        context = await MigrationOrchestrator(config, loader=loader).run_migration()

        assert context.status == MigrationStatus.COMPLETED
        assert context.progress.assets.to_dict() == {"total": 2, "completed": 1, "failed": 0}
        assert context.progress.entities.to_dict() == {"total": 5, "completed": 5, "failed": 0}
        assert context.progress.relationships.to_dict() == {"total": 3, "completed": 3, "failed": 0}
        assert context.errors == []

        assert [t for t, _ in loader.created] == ["category", "category", "person", "post", "siteSettings"]
        post = loader.entities["doc-post-1"]
        assert post["mainImage"] == "media-abc123"
        assert post["author"] == "doc-p1"
        assert post["categories"] == ["doc-c1", "doc-c2"]
        assert loader.closed

        report = json.loads((tmp_path / "universal-migration-report.json").read_text())["migration"]
        assert report["status"] == "completed"
        assert report["summary"]["migratedEntities"] == 5
        assert report["entityMappings"]["p1"]["documentId"] == "doc-p1"
        assert report["assetMappings"]["abc123"]["id"] == "media-abc123"

    async def test_rejected_document_does_not_stop_the_batch(self, config):
        loader = InMemoryLoader(reject={"c2"})

        context = await MigrationOrchestrator(config, loader=loader).run_migration()

        assert context.status == MigrationStatus.COMPLETED
        assert context.progress.entities.completed == 4
        assert context.progress.entities.failed == 1

        rejected = [e for e in context.errors if e["type"] == "create_rejected"]
        assert len(rejected) == 1
        assert rejected[0]["id"] == "c2"
        assert rejected[0]["status"] == 400
        assert rejected[0]["body"] == {"error": {"message": "invalid"}}
        assert rejected[0]["message"] == "Target rejected entity creation"

        # c2 never got an identity, so its relation is reported but c1 still links
        assert context.progress.relationships.failed == 1
        assert loader.entities["doc-post-1"]["categories"] == ["doc-c1"]

    async def test_batch_of_three_with_second_rejected(self, config, catalog, tmp_path):
        export = tmp_path / "three"
        export.mkdir()
        (export / "data.ndjson").write_text("\n".join(
            json.dumps({"_id": f"c{i}", "_type": "category", "title": f"Category {i}"}) for i in (1, 2, 3)
        ))
        loader = InMemoryLoader(reject={"c2"})

        context = await MigrationOrchestrator(
            replace(config, sanity_export_path=str(export)), loader=loader
        ).migrate_content(catalog)

        assert context.progress.entities.completed == 2
        assert context.progress.entities.failed == 1
        assert len(context.errors) == 1
        assert context.errors[0]["id"] == "c2"
        assert [source_id for _, source_id in loader.created] == ["c1", "c3"]

    async def test_document_without_schema_is_recorded(self, config, export_path):
        with open(export_path / "data.ndjson", "a", encoding="utf-8") as f:
            f.write(json.dumps({"_id": "g1", "_type": "ghost", "name": "?"}) + "\n")

        context = await MigrationOrchestrator(config, loader=InMemoryLoader()).run_migration()

        assert context.progress.entities.total == 6
        missing = [e for e in context.errors if e["type"] == "schema_missing"]
        assert missing[0]["id"] == "g1"
        assert missing[0]["contentType"] == "ghost"

    async def test_catalog_loaded_from_project(self, config):
        MigrationOrchestrator(config).generate_schemas()
        loader = InMemoryLoader()

        context = await MigrationOrchestrator(config, loader=loader).migrate_content()

        assert context.progress.entities.completed == 5
        assert loader.entities["doc-post-1"]["tags"] == [{"name": "news"}, {"name": "tech"}]

    async def test_unexpected_failure_marks_run_failed(self, config, tmp_path):
        loader = BrokenLoader()

        context = await MigrationOrchestrator(config, loader=loader).run_migration()

        assert context.status == MigrationStatus.FAILED
        assert context.errors[0]["type"] == "migration"
        assert "server exploded" in context.errors[0]["error"]
        assert (tmp_path / "universal-migration-report.json").exists()
        assert loader.closed
