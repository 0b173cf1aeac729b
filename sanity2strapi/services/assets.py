"""Asset identity resolution and the asset migration phase."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import ErrorKind
from ..loaders.base import AssetUploader
from ..models.migration import MigrationContext
from ..models.record import AssetEntry

logger = logging.getLogger(__name__)


ASSET_REF_PATTERN = re.compile(r"^(?:image|file)-([a-f0-9]+)-")
SANITY_ASSET_PATTERN = re.compile(r"images/([^-]+)")


def asset_key_from_value(value: Any) -> Optional[str]:
    """
    Identity key referenced by an image/file value.

    Accepts ``{"asset": {"_ref": "image-<hash>-..."}}`` and
    ``{"_sanityAsset": "image@file://./images/<hash>-..."}``.
    """
    if not isinstance(value, dict):
        return None

    sanity_asset = value.get("_sanityAsset")
    if isinstance(sanity_asset, str):
        match = SANITY_ASSET_PATTERN.search(sanity_asset)
        return match.group(1) if match else sanity_asset

    asset = value.get("asset")
    if isinstance(asset, dict) and isinstance(asset.get("_ref"), str):
        match = ASSET_REF_PATTERN.match(asset["_ref"])
        return match.group(1) if match else None

    return None


def asset_file_path(entry: AssetEntry, images_path: Path) -> Path:
    """On-disk location of an exported asset."""
    return images_path / entry.file_name


class AssetMigrator:
    """
    Uploads indexed assets and records them in the run's asset mapping.

    A file missing from the export is a warning, not a failure. An upload
    error is counted as a failed asset and logged.
    """

    def __init__(self, uploader: AssetUploader, images_path: str):
        """
        Initialize the asset migrator.

        Args:
            uploader: Storage provider used for uploads
            images_path: Export directory holding asset files
        """
        self.uploader = uploader
        self.images_path = Path(images_path)

    async def migrate(self, assets: List[AssetEntry], context: MigrationContext) -> None:
        """Upload every asset sequentially."""
        if not assets:
            logger.info("No assets to migrate")
            return

        logger.info(f"Migrating {len(assets)} assets...")
        context.progress.assets.total = len(assets)

        for entry in assets:
            await self.migrate_asset(entry, context)

    async def migrate_asset(self, entry: AssetEntry, context: MigrationContext) -> Optional[Dict[str, Any]]:
        key = entry.identity
        path = asset_file_path(entry, self.images_path)

        if not path.exists():
            message = f"Asset file not found: {path}"
            logger.warning(message)
            context.add_warning(message)
            return None

        try:
            uploaded = await self.uploader.upload_asset(str(path), entry)
        except Exception as e:
            context.progress.assets.failed += 1
            context.add_error(ErrorKind.ASSET_UNRESOLVED.value, e, entity="asset", id=key, file=entry.original_filename)
            logger.error(f"Failed to migrate asset {entry.original_filename}: {e}")
            return None

        context.assets[key] = uploaded
        context.progress.assets.completed += 1
        logger.info(f"Asset migrated: {entry.original_filename} -> {uploaded.get('id') or uploaded.get('url')}")
        return uploaded
