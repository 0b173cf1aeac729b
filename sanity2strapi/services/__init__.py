"""Service layer for the migration application."""

from .schema_registry import SchemaRegistry
from .schema_converter import SchemaConverter
from .relationship_inference import RelationshipInferencer, InferenceResult
from .relationship_resolver import RelationshipResolver
from .transformer import ContentTransformer
from .assets import AssetMigrator

__all__ = [
    "SchemaRegistry",
    "SchemaConverter",
    "RelationshipInferencer",
    "InferenceResult",
    "RelationshipResolver",
    "ContentTransformer",
    "AssetMigrator",
]
