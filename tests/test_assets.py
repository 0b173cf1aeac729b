"""Tests for asset identity and the asset migration phase."""

from sanity2strapi.extractors.export_reader import ExportReader
from sanity2strapi.loaders.base import AssetUploader
from sanity2strapi.models.migration import MigrationContext
from sanity2strapi.models.record import AssetEntry
from sanity2strapi.services.assets import AssetMigrator, asset_key_from_value


class FakeUploader(AssetUploader):
    provider = "fake"

    def __init__(self, fail=False):
        self.fail = fail
        self.uploaded = []

    async def upload_asset(self, file_path, entry):
        if self.fail:
            raise RuntimeError("storage unavailable")
        self.uploaded.append(file_path)
        return {"id": f"media-{entry.sha1hash}", "url": f"/uploads/{entry.original_filename}", "provider": "fake"}


class TestIdentity:
    """Test how asset values map to identity keys."""

    def test_identity_is_content_hash(self):
        entry = AssetEntry(key="image-abc123-100x200-png", sha1hash="abc123")
        assert entry.identity == "abc123"

    def test_identity_falls_back_to_key(self):
        assert AssetEntry(key="file-beef01-pdf", sha1hash="").identity == "beef01"

    def test_key_from_reference(self):
        value = {"_type": "image", "asset": {"_type": "reference", "_ref": "image-abc123-100x200-png"}}
        assert asset_key_from_value(value) == "abc123"

    def test_key_from_embedded_asset(self):
        value = {"_sanityAsset": "image@file://./images/abc123-100x200.png"}
        assert asset_key_from_value(value) == "abc123"

    def test_unrecognized_values(self):
        assert asset_key_from_value("image-abc123") is None
        assert asset_key_from_value({"asset": {"_ref": "not-an-asset"}}) is None
        assert asset_key_from_value({}) is None


class TestAssetMigrator:
    """Test uploading the asset index."""

    async def test_missing_file_is_a_warning(self, export_path):
        reader = ExportReader(str(export_path))
        uploader = FakeUploader()
        context = MigrationContext()

        await AssetMigrator(uploader, str(reader.images_path)).migrate(reader.load_assets(), context)

        assert context.progress.assets.total == 2
        assert context.progress.assets.completed == 1
        assert context.progress.assets.failed == 0
        assert context.errors == []
        assert any("def456" in w for w in context.warnings)
        assert context.resolve_asset("abc123") == "media-abc123"
        assert uploader.uploaded[0].endswith("abc123-100x200.png")

    async def test_upload_failure_is_logged(self, export_path):
        reader = ExportReader(str(export_path))
        context = MigrationContext()

        await AssetMigrator(FakeUploader(fail=True), str(reader.images_path)).migrate(reader.load_assets(), context)

        assert context.progress.assets.failed == 1
        assert context.errors[0]["type"] == "asset_unresolved"
        assert context.errors[0]["id"] == "abc123"
        assert context.resolve_asset("abc123") is None

    async def test_no_assets(self, tmp_path):
        context = MigrationContext()
        await AssetMigrator(FakeUploader(), str(tmp_path)).migrate([], context)
        assert context.progress.assets.total == 0
