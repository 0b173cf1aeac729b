"""Target schema models: field variants, entity schemas and components."""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple
from enum import Enum

from .relationship import RelationKind, RelationshipRecord


MEDIA_ALLOWED_TYPES = ["images", "files", "videos", "audios"]


class TargetFieldKind(str, Enum):
    """Closed set of target field variants."""
    PRIMITIVE = "primitive"
    MEDIA = "media"
    RELATION = "relation"
    COMPONENT = "component"
    ENUMERATION = "enumeration"
    UID = "uid"
    RICHTEXT = "richtext"
    OPAQUE = "opaque"


class SchemaKind(str, Enum):
    """Kind of a generated entity schema."""
    COLLECTION = "collectionType"
    SINGLETON = "singleType"


def api_uid(type_name: str) -> str:
    """Target API identifier for an entity type."""
    return f"api::{type_name}.{type_name}"


@dataclass(frozen=True)
class TargetField:
    """Base class for converted fields."""
    kind: ClassVar[TargetFieldKind]

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class PrimitiveField(TargetField):
    """Scalar value passed through unchanged."""
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.PRIMITIVE
    type: str = "string"
    required: bool = False
    min: Optional[int] = None
    max: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type}
        if self.required:
            result["required"] = True
        if self.min is not None:
            result["min"] = self.min
        if self.max is not None:
            result["max"] = self.max
        return result


@dataclass(frozen=True)
class MediaField(TargetField):
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.MEDIA
    multiple: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "media",
            "multiple": self.multiple,
            "allowedTypes": list(MEDIA_ALLOWED_TYPES),
        }


@dataclass(frozen=True)
class RelationField(TargetField):
    """Reference to another entity type, written in the resolution pass."""
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.RELATION
    relation: RelationKind = RelationKind.ONE_TO_ONE
    target: str = ""
    mapped_by: Optional[str] = None
    inversed_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": "relation",
            "relation": self.relation.value,
            "target": api_uid(self.target),
        }
        if self.mapped_by:
            result["mappedBy"] = self.mapped_by
        if self.inversed_by:
            result["inversedBy"] = self.inversed_by
        return result


@dataclass(frozen=True)
class ComponentField(TargetField):
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.COMPONENT
    component: str = ""
    repeatable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "component",
            "repeatable": self.repeatable,
            "component": self.component,
        }


@dataclass(frozen=True)
class EnumerationField(TargetField):
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.ENUMERATION
    values: Tuple[str, ...] = ()
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": "enumeration", "enum": list(self.values)}
        if self.required:
            result["required"] = True
        return result


@dataclass(frozen=True)
class UidField(TargetField):
    """Unique identifier derived from another attribute."""
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.UID
    target_field: str = "title"
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "uid", "targetField": self.target_field, "required": self.required}


@dataclass(frozen=True)
class RichTextField(TargetField):
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.RICHTEXT

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "blocks"}


@dataclass(frozen=True)
class OpaqueField(TargetField):
    """Structured value stored as JSON without interpretation."""
    kind: ClassVar[TargetFieldKind] = TargetFieldKind.OPAQUE

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "json"}


FIELD_VARIANTS = (
    PrimitiveField,
    MediaField,
    RelationField,
    ComponentField,
    EnumerationField,
    UidField,
    RichTextField,
    OpaqueField,
)


def field_from_dict(data: Dict[str, Any]) -> TargetField:
    """Parse a persisted attribute definition back into a field variant."""
    field_type = data.get("type", "string")

    if field_type == "media":
        return MediaField(multiple=bool(data.get("multiple", False)))
    if field_type == "relation":
        target = data.get("target", "")
        # api::post.post -> post
        if target.startswith("api::"):
            target = target[len("api::"):].split(".")[0]
        try:
            relation = RelationKind(data.get("relation", "oneToOne"))
        except ValueError:
            relation = RelationKind.ONE_TO_ONE
        return RelationField(
            relation=relation,
            target=target,
            mapped_by=data.get("mappedBy"),
            inversed_by=data.get("inversedBy"),
        )
    if field_type == "component":
        return ComponentField(
            component=data.get("component", ""),
            repeatable=bool(data.get("repeatable", False)),
        )
    if field_type == "enumeration":
        return EnumerationField(
            values=tuple(data.get("enum", [])),
            required=bool(data.get("required", False)),
        )
    if field_type == "uid":
        return UidField(
            target_field=data.get("targetField", "title"),
            required=bool(data.get("required", False)),
        )
    if field_type == "blocks":
        return RichTextField()
    if field_type == "json":
        return OpaqueField()

    return PrimitiveField(
        type=field_type,
        required=bool(data.get("required", False)),
        min=data.get("min"),
        max=data.get("max"),
    )


@dataclass
class TargetSchema:
    """One generated entity schema."""
    singular_name: str
    plural_name: str
    kind: SchemaKind = SchemaKind.COLLECTION
    display_name: str = ""
    description: str = ""
    attributes: Dict[str, TargetField] = field(default_factory=dict)

    @property
    def is_singleton(self) -> bool:
        return self.kind == SchemaKind.SINGLETON

    @property
    def collection_name(self) -> str:
        return self.singular_name if self.is_singleton else self.plural_name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted schema.json representation."""
        return {
            "kind": self.kind.value,
            "collectionName": self.collection_name,
            "info": {
                "singularName": self.singular_name,
                "pluralName": self.plural_name,
                "displayName": self.display_name or self.singular_name,
                "description": self.description,
            },
            "options": {"draftAndPublish": True},
            "pluginOptions": {},
            "attributes": {k: v.to_dict() for k, v in self.attributes.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetSchema":
        """Create from the persisted schema.json representation."""
        info = data.get("info", {})
        try:
            kind = SchemaKind(data.get("kind", "collectionType"))
        except ValueError:
            kind = SchemaKind.COLLECTION
        return cls(
            singular_name=info.get("singularName", ""),
            plural_name=info.get("pluralName", ""),
            kind=kind,
            display_name=info.get("displayName", ""),
            description=info.get("description", ""),
            attributes={
                name: field_from_dict(attr)
                for name, attr in data.get("attributes", {}).items()
                if isinstance(attr, dict)
            },
        )


@dataclass
class ComponentSchema:
    """One embeddable shape, addressed by ``category.name``."""
    key: str
    display_name: str = ""
    attributes: Dict[str, TargetField] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.key.split(".", 1)[-1]

    def to_dict(self, collection_name: str = "") -> Dict[str, Any]:
        """Convert to the persisted component representation."""
        return {
            "collectionName": collection_name,
            "info": {"displayName": self.display_name or self.name},
            "options": {},
            "attributes": {k: v.to_dict() for k, v in self.attributes.items()},
            "config": {},
        }

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "ComponentSchema":
        """Create from the persisted component representation."""
        return cls(
            key=key,
            display_name=data.get("info", {}).get("displayName", ""),
            attributes={
                name: field_from_dict(attr)
                for name, attr in data.get("attributes", {}).items()
                if isinstance(attr, dict)
            },
        )


class SchemaCatalog:
    """Read-only result of recovery, inference and conversion.

    Built once per run and passed by reference into every later stage.
    Accessors hand out the stored objects; callers must not mutate them.
    """

    def __init__(
        self,
        schemas: Dict[str, TargetSchema],
        components: Dict[str, ComponentSchema],
        relationships: Optional[Dict[str, RelationshipRecord]] = None,
        document_counts: Optional[Dict[str, int]] = None,
    ):
        self._schemas = dict(schemas)
        self._components = dict(components)
        self._relationships = dict(relationships or {})
        self._document_counts = dict(document_counts or {})

    @property
    def schemas(self) -> Dict[str, TargetSchema]:
        return dict(self._schemas)

    @property
    def components(self) -> Dict[str, ComponentSchema]:
        return dict(self._components)

    @property
    def relationships(self) -> Dict[str, RelationshipRecord]:
        return dict(self._relationships)

    @property
    def document_counts(self) -> Dict[str, int]:
        return dict(self._document_counts)

    @property
    def singleton_types(self) -> List[str]:
        return [name for name, s in self._schemas.items() if s.is_singleton]

    def get_schema(self, type_name: str) -> Optional[TargetSchema]:
        return self._schemas.get(type_name)

    def get_component(self, key: str) -> Optional[ComponentSchema]:
        return self._components.get(key)

    def list_schemas(self) -> List[str]:
        return list(self._schemas.keys())

    def list_components(self) -> List[str]:
        return list(self._components.keys())

    def relations_of(self, type_name: str) -> Dict[str, RelationField]:
        """Relation fields declared on one entity type."""
        schema = self._schemas.get(type_name)
        if not schema:
            return {}
        return {
            name: attr for name, attr in schema.attributes.items()
            if isinstance(attr, RelationField)
        }
