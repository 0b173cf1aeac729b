"""Reader for a dataset export directory (data.ndjson, assets.json, images/)."""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Dict, Iterator, List

from ..models.record import AssetEntry, SourceDocument, SYSTEM_TYPE_PREFIX

logger = logging.getLogger(__name__)


DOCUMENTS_FILE = "data.ndjson"
ASSETS_FILE = "assets.json"
IMAGES_DIR = "images"


class ExportReader:
    """
    Reads documents and the asset index from an export directory.

    Infrastructure records (``_type`` starting with ``sanity.``) are never
    returned as documents.
    """

    def __init__(self, export_path: str):
        self.export_path = Path(export_path)

    @property
    def documents_path(self) -> Path:
        return self.export_path / DOCUMENTS_FILE

    @property
    def assets_path(self) -> Path:
        return self.export_path / ASSETS_FILE

    @property
    def images_path(self) -> Path:
        return self.export_path / IMAGES_DIR

    def iter_documents(self) -> Iterator[SourceDocument]:
        """
        Stream content documents from data.ndjson.

        Yields:
            SourceDocument for every valid, non-system record

        Raises:
            FileNotFoundError: If data.ndjson does not exist
        """
        with open(self.documents_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    raw = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"Skipped invalid JSON on line {line_num}: {line[:100]}...")
                    continue

                doc_type = raw.get("_type") if isinstance(raw, dict) else None
                if not isinstance(doc_type, str):
                    logger.warning(f"Skipped record without _type on line {line_num}")
                    continue
                if doc_type.startswith(SYSTEM_TYPE_PREFIX):
                    continue

                yield SourceDocument.from_dict(raw)

    def load_documents(self) -> List[SourceDocument]:
        return list(self.iter_documents())

    def document_counts(self) -> Dict[str, int]:
        """Number of documents per type."""
        counts = Counter(doc.type for doc in self.iter_documents())
        logger.info(f"Analyzed {len(counts)} document types")
        return dict(counts)

    def load_assets(self) -> List[AssetEntry]:
        """
        Load the asset index.

        Returns:
            List of AssetEntry; empty if assets.json is missing or unreadable
        """
        if not self.assets_path.exists():
            logger.warning(f"No {ASSETS_FILE} found at {self.assets_path}")
            return []

        try:
            with open(self.assets_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load {ASSETS_FILE}: {e}")
            return []

        if not isinstance(data, dict):
            logger.warning(f"{ASSETS_FILE} is not an object, ignoring")
            return []

        return [
            AssetEntry.from_dict(key, entry)
            for key, entry in data.items()
            if isinstance(entry, dict)
        ]
