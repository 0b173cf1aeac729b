"""Tests for writing and loading schema artifacts."""

import json

import pytest

from sanity2strapi.extractors.schema_extractor import SchemaExtractor
from sanity2strapi.services.relationship_inference import RelationshipInferencer
from sanity2strapi.services.schema_converter import SchemaConverter
from sanity2strapi.services.schema_registry import SchemaRegistry


@pytest.fixture
def catalog(studio_path):
    recovery = SchemaExtractor(str(studio_path)).recover()
    inference = RelationshipInferencer(recovery.documents).infer()
    return SchemaConverter(recovery, inference, {"post": 1, "category": 2}).convert()


class TestWriting:
    """Test the project layout produced by write_catalog."""

    def test_schema_files(self, catalog, strapi_path):
        registry = SchemaRegistry(str(strapi_path))
        registry.write_catalog(catalog)

        path = strapi_path / "src" / "api" / "post" / "content-types" / "post" / "schema.json"
        data = json.loads(path.read_text())
        assert data["collectionName"] == "posts"
        assert data["attributes"]["slug"] == {"type": "uid", "targetField": "title", "required": False}

    def test_handler_stubs(self, catalog, strapi_path):
        SchemaRegistry(str(strapi_path)).write_catalog(catalog)

        for kind in ("controllers", "routes", "services"):
            content = (strapi_path / "src" / "api" / "post" / kind / "post.ts").read_text()
            assert "api::post.post" in content
        controller = (strapi_path / "src" / "api" / "post" / "controllers" / "post.ts").read_text()
        assert "createCoreController" in controller

    def test_component_files(self, catalog, strapi_path):
        SchemaRegistry(str(strapi_path)).write_catalog(catalog)

        data = json.loads((strapi_path / "src" / "components" / "seo" / "seos.json").read_text())
        assert data["collectionName"] == "components_seo_seoses"
        assert data["info"]["displayName"] == "seo"
        assert set(data["attributes"]) == {"metaTitle", "ogImage"}


class TestLoading:
    """Test loading a previously written catalog."""

    def test_round_trip(self, catalog, strapi_path):
        registry = SchemaRegistry(str(strapi_path))
        registry.write_catalog(catalog)

        loaded = registry.load_catalog()

        assert sorted(loaded.list_schemas()) == sorted(catalog.list_schemas())
        assert sorted(loaded.list_components()) == sorted(catalog.list_components())
        for name in catalog.list_schemas():
            assert loaded.get_schema(name).attributes == catalog.get_schema(name).attributes
            assert loaded.get_schema(name).kind == catalog.get_schema(name).kind

    def test_unreadable_schema_is_skipped(self, strapi_path):
        registry = SchemaRegistry(str(strapi_path))
        path = registry.schema_file("broken")
        path.parent.mkdir(parents=True)
        path.write_text("{oops")

        assert registry.load_catalog().list_schemas() == []

    def test_empty_project(self, strapi_path):
        catalog = SchemaRegistry(str(strapi_path)).load_catalog()
        assert catalog.list_schemas() == []
        assert catalog.list_components() == []


class TestReport:
    def test_report_summary(self, catalog, strapi_path):
        report = SchemaRegistry(str(strapi_path)).build_report(catalog, {"post": 10})

        assert report["summary"]["totalSchemas"] == 4
        assert report["summary"]["singletonTypes"] == ["siteSettings"]
        assert report["summary"]["totalDocuments"] == 3

        post = next(s for s in report["schemas"] if s["name"] == "post")
        assert post == {"name": "post", "type": "collection", "documentCount": 1, "fieldCount": 10}
        assert set(report["relationships"]["post"]) == {"author", "categories"}

    def test_save_report(self, catalog, strapi_path, tmp_path):
        registry = SchemaRegistry(str(strapi_path))
        path = tmp_path / "report.json"

        registry.save_report(registry.build_report(catalog), str(path))

        assert json.loads(path.read_text())["summary"]["totalComponents"] == 2
