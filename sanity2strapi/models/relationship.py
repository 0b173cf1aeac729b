"""Relationship models produced by reference inference."""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from enum import Enum


class RelationKind(str, Enum):
    """Cardinality of one relation end."""
    ONE_TO_ONE = "oneToOne"
    ONE_TO_MANY = "oneToMany"
    MANY_TO_ONE = "manyToOne"
    MANY_TO_MANY = "manyToMany"


def pair_key(type_a: str, type_b: str) -> str:
    """Canonical unordered key for two type names."""
    return "-".join(sorted((type_a, type_b)))


@dataclass(frozen=True)
class ReferenceEdge:
    """One directed reference from a field to a target type."""
    source_type: str
    field_name: str
    target_type: str
    is_array: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "from": self.source_type,
            "field": self.field_name,
            "to": self.target_type,
            "isArray": self.is_array,
        }


@dataclass
class RelationshipRecord:
    """Classified relationship between the two types of one pair key."""
    schema_a: str
    schema_b: str
    a_to_b: Optional[ReferenceEdge] = None
    b_to_a: Optional[ReferenceEdge] = None
    cardinality: Optional[RelationKind] = None

    @property
    def key(self) -> str:
        return pair_key(self.schema_a, self.schema_b)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "schemaA": self.schema_a,
            "schemaB": self.schema_b,
            "aToB": self.a_to_b.to_dict() if self.a_to_b else None,
            "bToA": self.b_to_a.to_dict() if self.b_to_a else None,
            "cardinality": self.cardinality.value if self.cardinality else None,
        }


@dataclass(frozen=True)
class RelationEnd:
    """Relation metadata for one (entity type, field) end."""
    source_type: str
    field_name: str
    target_type: str
    relation: RelationKind
    mapped_by: Optional[str] = None
    inversed_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {
            "type": self.relation.value,
            "target": self.target_type,
        }
        if self.mapped_by:
            result["mappedBy"] = self.mapped_by
        if self.inversed_by:
            result["inversedBy"] = self.inversed_by
        return result
