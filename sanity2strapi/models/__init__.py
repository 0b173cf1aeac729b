"""Data models for the migration application."""

from .schema import (
    DeclarationKind,
    ValidationRules,
    EnumOption,
    FieldOptions,
    ArrayItem,
    FieldDeclaration,
    EntityTypeDeclaration,
    RecoveryResult,
)
from .relationship import (
    RelationKind,
    ReferenceEdge,
    RelationshipRecord,
    RelationEnd,
    pair_key,
)
from .target import (
    TargetFieldKind,
    TargetField,
    PrimitiveField,
    MediaField,
    RelationField,
    ComponentField,
    EnumerationField,
    UidField,
    RichTextField,
    OpaqueField,
    SchemaKind,
    TargetSchema,
    ComponentSchema,
    SchemaCatalog,
)
from .migration import (
    MigrationConfig,
    MigrationStatus,
    AssetProvider,
    PhaseProgress,
    MigrationProgress,
    IdentityMapping,
    PendingRelationship,
    MigrationContext,
)
from .record import (
    SourceDocument,
    AssetEntry,
    TransformResult,
    MigrationResult,
)

__all__ = [
    "DeclarationKind",
    "ValidationRules",
    "EnumOption",
    "FieldOptions",
    "ArrayItem",
    "FieldDeclaration",
    "EntityTypeDeclaration",
    "RecoveryResult",
    "RelationKind",
    "ReferenceEdge",
    "RelationshipRecord",
    "RelationEnd",
    "pair_key",
    "TargetFieldKind",
    "TargetField",
    "PrimitiveField",
    "MediaField",
    "RelationField",
    "ComponentField",
    "EnumerationField",
    "UidField",
    "RichTextField",
    "OpaqueField",
    "SchemaKind",
    "TargetSchema",
    "ComponentSchema",
    "SchemaCatalog",
    "MigrationConfig",
    "MigrationStatus",
    "AssetProvider",
    "PhaseProgress",
    "MigrationProgress",
    "IdentityMapping",
    "PendingRelationship",
    "MigrationContext",
    "SourceDocument",
    "AssetEntry",
    "TransformResult",
    "MigrationResult",
]
