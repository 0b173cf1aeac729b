"""Record models for exported source data and load results."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


SYSTEM_FIELD_PREFIX = "_"
SYSTEM_TYPE_PREFIX = "sanity."


@dataclass
class SourceDocument:
    """A record read from the export stream."""
    id: str
    type: str
    data: Dict[str, Any]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceDocument":
        return cls(id=str(data.get("_id", "")), type=data.get("_type", ""), data=data)


@dataclass
class AssetEntry:
    """One entry of the exported assets index."""
    key: str
    sha1hash: str
    original_filename: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    mime_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def file_name(self) -> str:
        """On-disk file name inside the export's images directory."""
        return f"{self.sha1hash}-{self.width}x{self.height}.png"

    @property
    def identity(self) -> str:
        """Identity key of the asset: its content hash, else the hash segment of its key."""
        if self.sha1hash:
            return self.sha1hash
        key = self.key
        for prefix in ("image-", "file-"):
            if key.startswith(prefix):
                key = key[len(prefix):]
                break
        return key.split("-", 1)[0]

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "AssetEntry":
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        dimensions = metadata.get("dimensions")
        if not isinstance(dimensions, dict):
            dimensions = {}
        return cls(
            key=key,
            sha1hash=data.get("sha1hash") or "",
            original_filename=data.get("originalFilename") or "",
            width=dimensions.get("width"),
            height=dimensions.get("height"),
            mime_type=data.get("mimeType"),
            metadata=metadata,
        )


@dataclass
class TransformResult:
    """Payload produced for one source document."""
    document_id: str
    content_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    dropped_fields: List[str] = field(default_factory=list)


@dataclass
class MigrationResult:
    """Result of writing one entity to the target."""
    record_id: str
    target_id: Optional[Any] = None  # ID assigned by target system
    document_id: Optional[str] = None  # Secondary ID assigned by target system
    success: bool = False
