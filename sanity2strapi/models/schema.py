"""Source schema models recovered from studio type declarations."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class DeclarationKind(str, Enum):
    """Kind of a declared source type."""
    DOCUMENT = "document"
    OBJECT = "object"


@dataclass(frozen=True)
class ValidationRules:
    """Validation constraints detected on a field."""
    required: bool = False
    min: Optional[int] = None
    max: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {"required": self.required}
        if self.min is not None:
            result["min"] = self.min
        if self.max is not None:
            result["max"] = self.max
        return result


@dataclass(frozen=True)
class EnumOption:
    """One entry of an options list."""
    title: str
    value: str


@dataclass(frozen=True)
class FieldOptions:
    """Options block of a field declaration."""
    source: Optional[str] = None
    enum_options: List[EnumOption] = field(default_factory=list)
    hotspot: bool = False

    @property
    def enum_values(self) -> List[str]:
        return [o.value for o in self.enum_options]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {}
        if self.source:
            result["source"] = self.source
        if self.enum_options:
            result["list"] = [{"title": o.title, "value": o.value} for o in self.enum_options]
        if self.hotspot:
            result["hotspot"] = True
        return result


@dataclass(frozen=True)
class ArrayItem:
    """Descriptor for one allowed item type of an array field."""
    type: str
    reference_targets: List[str] = field(default_factory=list)
    fields: List["FieldDeclaration"] = field(default_factory=list)
    options: FieldOptions = field(default_factory=FieldOptions)
    name: Optional[str] = None

    @property
    def is_reference(self) -> bool:
        return self.type == "reference"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {"type": self.type}
        if self.name:
            result["name"] = self.name
        if self.reference_targets:
            result["to"] = [{"type": t} for t in self.reference_targets]
        if self.fields:
            result["fields"] = [f.to_dict() for f in self.fields]
        options = self.options.to_dict()
        if options:
            result["options"] = options
        return result


@dataclass(frozen=True)
class FieldDeclaration:
    """One field on a source entity type."""
    name: str
    type: str
    title: str = ""
    validation: ValidationRules = field(default_factory=ValidationRules)
    options: FieldOptions = field(default_factory=FieldOptions)
    of: List[ArrayItem] = field(default_factory=list)  # For array types
    to: Optional[str] = None  # Reference target, first declared only
    fields: List["FieldDeclaration"] = field(default_factory=list)  # For object types
    opaque: bool = False  # Salvaged by pattern, structure unknown

    @property
    def is_reference(self) -> bool:
        return self.type == "reference"

    @property
    def is_array(self) -> bool:
        return self.type == "array"

    @property
    def first_reference_item(self) -> Optional[ArrayItem]:
        """First array item that is a reference, if any."""
        for item in self.of:
            if item.is_reference:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "title": self.title,
            "validation": self.validation.to_dict(),
        }
        options = self.options.to_dict()
        if options:
            result["options"] = options
        if self.of:
            result["of"] = [item.to_dict() for item in self.of]
        if self.to:
            result["to"] = self.to
        if self.fields:
            result["fields"] = [f.to_dict() for f in self.fields]
        if self.opaque:
            result["opaque"] = True
        return result


@dataclass(frozen=True)
class EntityTypeDeclaration:
    """A declared document or object type."""
    name: str
    kind: DeclarationKind = DeclarationKind.DOCUMENT
    title: str = ""
    fields: List[FieldDeclaration] = field(default_factory=list)
    is_singleton: bool = False
    source_file: Optional[str] = None

    def get_field(self, name: str) -> Optional[FieldDeclaration]:
        """Get a field declaration by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "title": self.title,
            "fields": [f.to_dict() for f in self.fields],
            "is_singleton": self.is_singleton,
            "source_file": self.source_file,
        }


@dataclass
class RecoveryResult:
    """Everything recovered from a studio's schema directory."""
    documents: Dict[str, EntityTypeDeclaration] = field(default_factory=dict)
    object_types: Dict[str, EntityTypeDeclaration] = field(default_factory=dict)
    type_aliases: Dict[str, FieldDeclaration] = field(default_factory=dict)  # e.g. blockContent -> array of block
    singletons: List[str] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def is_singleton(self, type_name: str) -> bool:
        return type_name in self.singletons

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "documents": {k: v.to_dict() for k, v in self.documents.items()},
            "object_types": {k: v.to_dict() for k, v in self.object_types.items()},
            "type_aliases": {k: v.to_dict() for k, v in self.type_aliases.items()},
            "singletons": self.singletons,
            "skipped_files": self.skipped_files,
            "warnings": self.warnings,
        }
