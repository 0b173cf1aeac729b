"""Conversion of recovered source declarations into target schemas."""

import logging
from typing import Dict, List, Optional

from ..models.schema import ArrayItem, EntityTypeDeclaration, FieldDeclaration, RecoveryResult
from ..models.target import (
    ComponentField,
    ComponentSchema,
    EnumerationField,
    MediaField,
    OpaqueField,
    PrimitiveField,
    RelationField,
    RichTextField,
    SchemaCatalog,
    SchemaKind,
    TargetField,
    TargetSchema,
    UidField,
)
from .inflection import component_key, pluralize, singularize
from .relationship_inference import InferenceResult

logger = logging.getLogger(__name__)


PRIMITIVE_TYPES: Dict[str, str] = {
    "string": "string",
    "text": "text",
    "number": "decimal",
    "boolean": "boolean",
    "datetime": "datetime",
    "date": "date",
    "email": "string",
    "url": "string",
}
MEDIA_TYPES = {"image", "file"}
STRUCTURED_TYPES = {"array", "object", "reference", "slug", "block"}


class SchemaConverter:
    """
    Maps recovered declarations and inferred relations to target schemas.

    Field rules, first match wins:
    1. an inferred relation end for (type, field)
    2. slug -> uid bound to ``options.source`` (default ``title``)
    3. arrays -> media, string component, rich text, object component or opaque
    4. objects and named object types -> non-repeatable component
    5. image/file -> single media
    6. options list -> enumeration
    7. primitive table, unknown kinds -> string
    """

    def __init__(
        self,
        recovery: RecoveryResult,
        inference: InferenceResult,
        document_counts: Optional[Dict[str, int]] = None,
    ):
        """
        Initialize the converter.

        Args:
            recovery: Output of schema recovery
            inference: Output of relationship inference
            document_counts: Observed documents per type, informational only
        """
        self.recovery = recovery
        self.inference = inference
        self.document_counts = document_counts or {}
        self._components: Dict[str, ComponentSchema] = {}

    def convert(self) -> SchemaCatalog:
        """Convert every document type and build the catalog."""
        self._components = {}
        schemas = {}
        for name, declaration in self.recovery.documents.items():
            schemas[name] = self.convert_type(declaration)
            logger.info(f"Generated schema for: {name}")

        logger.info(f"Generated {len(schemas)} schemas and {len(self._components)} components")
        return SchemaCatalog(
            schemas=schemas,
            components=self._components,
            relationships=self.inference.records,
            document_counts=self.document_counts,
        )

    def convert_type(self, declaration: EntityTypeDeclaration) -> TargetSchema:
        """Convert one document type into a target schema."""
        name = declaration.name
        count = self.document_counts.get(name, 0)
        kind = SchemaKind.SINGLETON if self.recovery.is_singleton(name) else SchemaKind.COLLECTION

        attributes: Dict[str, TargetField] = {}
        for declared in declaration.fields:
            attributes[declared.name] = self.convert_field(name, declared)

        return TargetSchema(
            singular_name=name,
            plural_name=pluralize(name),
            kind=kind,
            display_name=declaration.title or name,
            description=f"Migrated from Sanity ({count} documents)",
            attributes=attributes,
        )

    def convert_field(self, type_name: str, declared: FieldDeclaration) -> TargetField:
        """Convert one top-level field of a document type."""
        end = self.inference.end_for(type_name, declared.name)
        if end:
            return RelationField(
                relation=end.relation,
                target=end.target_type,
                mapped_by=end.mapped_by,
                inversed_by=end.inversed_by,
            )

        if declared.opaque:
            return OpaqueField()

        declared = self._resolve_alias(declared)
        field_type = declared.type

        if field_type == "slug":
            return UidField(
                target_field=declared.options.source or "title",
                required=declared.validation.required,
            )

        if field_type == "array":
            return self._array_field(declared)

        if field_type == "reference":
            logger.warning(
                f"Reference {type_name}.{declared.name} has no inferred relation, using json"
            )
            return OpaqueField()

        if field_type == "object":
            return self._object_component(declared.name, declared.fields, repeatable=False)

        if field_type in self.recovery.object_types:
            object_type = self.recovery.object_types[field_type]
            return self._object_component(declared.name, object_type.fields, repeatable=False)

        if field_type in MEDIA_TYPES:
            return MediaField(multiple=False)

        if declared.options.enum_options:
            return EnumerationField(
                values=tuple(declared.options.enum_values),
                required=declared.validation.required,
            )

        if field_type == "block":
            return RichTextField()

        return self._primitive(declared)

    def _resolve_alias(self, declared: FieldDeclaration) -> FieldDeclaration:
        """Replace a field typed by a named alias with the alias structure."""
        alias = self.recovery.type_aliases.get(declared.type)
        if alias is None or declared.type in PRIMITIVE_TYPES or declared.type in STRUCTURED_TYPES:
            return declared
        return FieldDeclaration(
            name=declared.name,
            type=alias.type,
            title=declared.title,
            validation=declared.validation,
            options=declared.options if declared.options.to_dict() else alias.options,
            of=alias.of,
            to=alias.to,
            fields=alias.fields,
        )

    def _array_field(self, declared: FieldDeclaration) -> TargetField:
        items = declared.of
        if not items:
            logger.warning(f"Array field {declared.name} has no item types, using json")
            return OpaqueField()

        if any(item.is_reference for item in items):
            logger.warning(f"Unprocessed reference in array field {declared.name}, using json")
            return OpaqueField()

        if any(item.type in MEDIA_TYPES for item in items):
            return MediaField(multiple=True)

        first = items[0]
        if first.type == "string":
            return self._string_component(declared.name)

        if first.type == "block":
            return RichTextField()

        object_items = [item for item in items if item.type != "block"]
        if len({item.type for item in object_items}) > 1:
            logger.warning(
                f"Array field {declared.name} mixes item types "
                f"{sorted({item.type for item in object_items})}, using json"
            )
            return OpaqueField()

        nested = self._item_fields(first)
        if nested is not None:
            return self._object_component(declared.name, nested, repeatable=True)

        return OpaqueField()

    def _item_fields(self, item: ArrayItem) -> Optional[List[FieldDeclaration]]:
        """Nested fields of an object-like array item, or None."""
        if item.type == "object":
            return item.fields
        if item.type in self.recovery.object_types:
            return item.fields or self.recovery.object_types[item.type].fields
        return None

    def _string_component(self, field_name: str) -> ComponentField:
        key = component_key(field_name)
        self._register_component(ComponentSchema(
            key=key,
            display_name=singularize(field_name),
            attributes={"name": PrimitiveField(type="string")},
        ))
        return ComponentField(component=key, repeatable=True)

    def _object_component(
        self, field_name: str, nested: List[FieldDeclaration], repeatable: bool
    ) -> ComponentField:
        key = component_key(field_name)
        attributes: Dict[str, TargetField] = {}
        if nested:
            for declared in nested:
                attributes[declared.name] = self.convert_nested_field(declared)
        else:
            attributes["data"] = OpaqueField()

        self._register_component(ComponentSchema(
            key=key,
            display_name=singularize(field_name),
            attributes=attributes,
        ))
        return ComponentField(component=key, repeatable=repeatable)

    def _register_component(self, component: ComponentSchema) -> None:
        if component.key in self._components:
            logger.debug(f"Component {component.key} already registered, reusing")
            return
        self._components[component.key] = component
        logger.debug(f"Registered component: {component.key}")

    def convert_nested_field(self, declared: FieldDeclaration) -> TargetField:
        """Convert a field inside a component: primitives and media only."""
        if declared.opaque:
            return OpaqueField()
        if declared.type in MEDIA_TYPES:
            return MediaField(multiple=False)
        if (declared.type in STRUCTURED_TYPES
                or declared.type in self.recovery.object_types
                or declared.type in self.recovery.type_aliases
                or declared.type in self.recovery.documents):
            return OpaqueField()
        return self._primitive(declared)

    @staticmethod
    def _primitive(declared: FieldDeclaration) -> PrimitiveField:
        return PrimitiveField(
            type=PRIMITIVE_TYPES.get(declared.type, "string"),
            required=declared.validation.required,
            min=declared.validation.min,
            max=declared.validation.max,
        )
