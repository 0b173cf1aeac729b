"""Migration execution models."""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional
from enum import Enum
from datetime import datetime
import uuid

from ..errors import ERRORS
from .relationship import RelationKind


DEFAULT_MIGRATION_ORDER = ["category", "person", "product", "page", "post"]


class MigrationStatus(str, Enum):
    """Status of a migration run."""
    PENDING = "pending"
    MIGRATING_ASSETS = "migrating_assets"
    MIGRATING_CONTENT = "migrating_content"
    RESOLVING_RELATIONSHIPS = "resolving_relationships"
    COMPLETED = "completed"
    FAILED = "failed"


class AssetProvider(str, Enum):
    """Where uploaded assets are stored."""
    STRAPI = "strapi"
    CLOUDINARY = "cloudinary"


@dataclass
class MigrationConfig:
    """Configuration for a migration."""
    # Source
    sanity_project_path: Optional[str] = None
    sanity_export_path: Optional[str] = None

    # Target
    strapi_project_path: Optional[str] = None
    strapi_url: str = "http://localhost:1337"
    api_token: Optional[str] = None

    # Assets
    asset_provider: str = AssetProvider.STRAPI.value
    cloudinary: Dict[str, str] = field(default_factory=dict)  # cloud_name, api_key, api_secret

    # Execution options
    batch_size: int = 10
    batch_delay: float = 0.5  # Seconds between batches
    retry_attempts: int = 3
    retry_delay: float = 1.0  # Seconds, doubled per retry
    request_timeout: float = 30.0
    migration_order: List[str] = field(default_factory=lambda: list(DEFAULT_MIGRATION_ORDER))

    # Phases
    generate_schemas: bool = True
    migrate_content: bool = True

    # Output
    generation_report_path: str = "schema-generation-report.json"
    migration_report_path: str = "universal-migration-report.json"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (credentials omitted)."""
        return {
            "sanity_project_path": self.sanity_project_path,
            "sanity_export_path": self.sanity_export_path,
            "strapi_project_path": self.strapi_project_path,
            "strapi_url": self.strapi_url,
            "asset_provider": self.asset_provider,
            "cloudinary_cloud_name": self.cloudinary.get("cloud_name"),
            "batch_size": self.batch_size,
            "batch_delay": self.batch_delay,
            "retry_attempts": self.retry_attempts,
            "retry_delay": self.retry_delay,
            "request_timeout": self.request_timeout,
            "migration_order": self.migration_order,
            "generate_schemas": self.generate_schemas,
            "migrate_content": self.migrate_content,
            "generation_report_path": self.generation_report_path,
            "migration_report_path": self.migration_report_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        return cls(
            sanity_project_path=data.get("sanity_project_path"),
            sanity_export_path=data.get("sanity_export_path"),
            strapi_project_path=data.get("strapi_project_path"),
            strapi_url=data.get("strapi_url", "http://localhost:1337"),
            api_token=data.get("api_token"),
            asset_provider=data.get("asset_provider", AssetProvider.STRAPI.value),
            cloudinary=dict(data.get("cloudinary", {}) or {}),
            batch_size=int(data.get("batch_size", 10)),
            batch_delay=float(data.get("batch_delay", 0.5)),
            retry_attempts=int(data.get("retry_attempts", 3)),
            retry_delay=float(data.get("retry_delay", 1.0)),
            request_timeout=float(data.get("request_timeout", 30.0)),
            migration_order=list(data.get("migration_order", DEFAULT_MIGRATION_ORDER)),
            generate_schemas=data.get("generate_schemas", True),
            migrate_content=data.get("migrate_content", True),
            generation_report_path=data.get("generation_report_path", "schema-generation-report.json"),
            migration_report_path=data.get("migration_report_path", "universal-migration-report.json"),
        )


@dataclass
class PhaseProgress:
    """Counters for one migration phase."""
    total: int = 0
    completed: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "completed": self.completed, "failed": self.failed}


@dataclass
class MigrationProgress:
    """Counters for assets, entities and relationships."""
    assets: PhaseProgress = field(default_factory=PhaseProgress)
    entities: PhaseProgress = field(default_factory=PhaseProgress)
    relationships: PhaseProgress = field(default_factory=PhaseProgress)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assets": self.assets.to_dict(),
            "entities": self.entities.to_dict(),
            "relationships": self.relationships.to_dict(),
        }


@dataclass(frozen=True)
class EntityIdentity:
    """Target identifiers of one created entity."""
    target_id: Any
    document_id: Optional[str]
    content_type: str

    @property
    def reference_id(self) -> Any:
        """Identifier used when linking to this entity."""
        return self.document_id or self.target_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strapiId": self.target_id,
            "documentId": self.document_id,
            "contentType": self.content_type,
        }


class IdentityMapping:
    """Append-only source id -> target identity table."""

    def __init__(self):
        self._entries: Dict[str, EntityIdentity] = {}

    def record(self, source_id: str, target_id: Any, document_id: Optional[str], content_type: str) -> EntityIdentity:
        """Record a created entity.

        Raises:
            ValueError: If the source id has already been recorded.
        """
        if source_id in self._entries:
            raise ValueError(f"Identity for {source_id} already recorded")
        identity = EntityIdentity(target_id=target_id, document_id=document_id, content_type=content_type)
        self._entries[source_id] = identity
        return identity

    def get(self, source_id: str) -> Optional[EntityIdentity]:
        return self._entries.get(source_id)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v.to_dict() for k, v in self._entries.items()}


@dataclass(frozen=True)
class PendingRelationship:
    """One deferred relation write."""
    source_type: str
    source_id: str
    field_name: str
    target_source_id: str
    is_array: bool
    relation: RelationKind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceType": self.source_type,
            "sourceId": self.source_id,
            "fieldName": self.field_name,
            "targetId": self.target_source_id,
            "isArray": self.is_array,
            "relation": self.relation.value,
        }


@dataclass
class MigrationContext:
    """Mutable state of one migration run, threaded through every stage."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: MigrationStatus = MigrationStatus.PENDING
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    progress: MigrationProgress = field(default_factory=MigrationProgress)
    identities: IdentityMapping = field(default_factory=IdentityMapping)
    assets: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # asset identity key -> uploaded asset
    pending: Deque[PendingRelationship] = field(default_factory=deque)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, kind: str, error: Any, **details: Any) -> Dict[str, Any]:
        """Append an entry to the ordered error log."""
        entry = {"type": kind, "message": ERRORS.get(kind, ""), "error": str(error), **details}
        self.errors.append(entry)
        return entry

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def enqueue(self, relationship: PendingRelationship) -> None:
        self.pending.append(relationship)

    def resolve_asset(self, key: Optional[str]) -> Optional[Any]:
        """Target id of an uploaded asset, or None if it was never migrated."""
        if not key:
            return None
        asset = self.assets.get(key)
        return asset.get("id") if asset else None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_report(
        self,
        config: MigrationConfig,
        schemas_used: List[str],
        components_used: List[str],
    ) -> Dict[str, Any]:
        """Finalize the run into the migration report structure."""
        progress = self.progress
        return {
            "migration": {
                "id": self.id,
                "timestamp": (self.completed_at or datetime.utcnow()).isoformat(),
                "status": self.status.value,
                "duration_seconds": self.duration_seconds,
                "config": {
                    "strapiUrl": config.strapi_url,
                    "assetProvider": config.asset_provider,
                    "batchSize": config.batch_size,
                },
                "progress": progress.to_dict(),
                "summary": {
                    "totalAssets": progress.assets.total,
                    "migratedAssets": progress.assets.completed,
                    "totalEntities": progress.entities.total,
                    "migratedEntities": progress.entities.completed,
                    "totalRelationships": progress.relationships.total,
                    "processedRelationships": progress.relationships.completed,
                },
                "errors": self.errors,
                "warnings": self.warnings,
                "entityMappings": self.identities.to_dict(),
                "assetMappings": self.assets,
                "schemasUsed": schemas_used,
                "componentsUsed": components_used,
            }
        }
