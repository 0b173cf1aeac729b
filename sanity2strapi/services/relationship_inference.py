"""Relationship cardinality inference from declared reference fields."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ErrorKind
from ..models.relationship import (
    ReferenceEdge,
    RelationEnd,
    RelationKind,
    RelationshipRecord,
    pair_key,
)
from ..models.schema import EntityTypeDeclaration, FieldDeclaration

logger = logging.getLogger(__name__)


@dataclass
class InferenceResult:
    """Relationship records per pair key and relation ends per field."""
    records: Dict[str, RelationshipRecord] = field(default_factory=dict)
    ends: Dict[Tuple[str, str], RelationEnd] = field(default_factory=dict)
    ambiguities: List[Dict[str, Any]] = field(default_factory=list)

    def end_for(self, type_name: str, field_name: str) -> Optional[RelationEnd]:
        return self.ends.get((type_name, field_name))

    def ends_of(self, type_name: str) -> Dict[str, RelationEnd]:
        return {f: end for (t, f), end in self.ends.items() if t == type_name}


class RelationshipInferencer:
    """
    Classifies every pair of document types that reference each other.

    Edges are grouped by an unordered pair key. The first edge seen for a
    key fixes which type is ``schema_a``; each record then holds at most
    one A->B and one B->A edge, and the presence and array-ness of those
    two edges decide the cardinality.
    """

    def __init__(self, documents: Dict[str, EntityTypeDeclaration]):
        """
        Initialize the inferencer.

        Args:
            documents: Recovered document types by name
        """
        self.documents = documents
        self.ambiguities: List[Dict[str, Any]] = []

    def infer(self) -> InferenceResult:
        """Run edge collection, grouping and classification."""
        self.ambiguities = []
        edges = self.collect_edges()
        records = self.group_edges(edges)

        result = InferenceResult(records=records, ambiguities=self.ambiguities)
        for record in records.values():
            for end in self.classify(record):
                result.ends[(end.source_type, end.field_name)] = end

        logger.info(
            f"Inferred {len(records)} relationships from {len(edges)} reference fields"
        )
        return result

    def collect_edges(self) -> List[ReferenceEdge]:
        """Outgoing reference edges of every document type."""
        edges = []
        for type_name, declaration in self.documents.items():
            for declared in declaration.fields:
                edge = self._edge_for_field(type_name, declared)
                if edge:
                    edges.append(edge)
        return edges

    def _edge_for_field(self, type_name: str, declared: FieldDeclaration) -> Optional[ReferenceEdge]:
        if declared.opaque:
            return None

        if declared.is_reference:
            target = declared.to
            is_array = False
        elif declared.is_array:
            item = declared.first_reference_item
            if item is None:
                return None
            target = item.reference_targets[0] if item.reference_targets else None
            is_array = True
        else:
            return None

        if not target:
            self._ambiguous(type_name, declared.name, None, "reference has no target type")
            return None
        if target not in self.documents:
            self._ambiguous(type_name, declared.name, target, "target is not a document type")
            return None

        return ReferenceEdge(
            source_type=type_name,
            field_name=declared.name,
            target_type=target,
            is_array=is_array,
        )

    def _ambiguous(self, type_name: str, field_name: str, target: Optional[str], reason: str) -> None:
        logger.warning(f"Cannot resolve reference {type_name}.{field_name} -> {target}: {reason}")
        self.ambiguities.append({
            "type": ErrorKind.INFERENCE_AMBIGUITY.value,
            "contentType": type_name,
            "field": field_name,
            "target": target,
            "error": reason,
        })

    def group_edges(self, edges: List[ReferenceEdge]) -> Dict[str, RelationshipRecord]:
        """Group edges into one record per pair key."""
        records: Dict[str, RelationshipRecord] = {}

        for edge in edges:
            key = pair_key(edge.source_type, edge.target_type)
            record = records.get(key)
            if record is None:
                record = RelationshipRecord(schema_a=edge.source_type, schema_b=edge.target_type)
                records[key] = record

            if edge.source_type == record.schema_a:
                displaced, record.a_to_b = record.a_to_b, edge
            else:
                displaced, record.b_to_a = record.b_to_a, edge

            if displaced:
                self._ambiguous(
                    displaced.source_type,
                    displaced.field_name,
                    displaced.target_type,
                    f"replaced by {edge.source_type}.{edge.field_name} for pair {key}",
                )

        return records

    def classify(self, record: RelationshipRecord) -> List[RelationEnd]:
        """Set the record's cardinality and return its relation ends."""
        a_to_b, b_to_a = record.a_to_b, record.b_to_a

        if a_to_b and b_to_a:
            if a_to_b.is_array and b_to_a.is_array:
                record.cardinality = RelationKind.MANY_TO_MANY
                return self._cross_linked(RelationKind.MANY_TO_MANY, a_to_b, b_to_a)
            if a_to_b.is_array:
                # B holds a single reference: B is the "one" side
                record.cardinality = RelationKind.ONE_TO_MANY
                return self._one_to_many(one=b_to_a, many=a_to_b)
            if b_to_a.is_array:
                record.cardinality = RelationKind.ONE_TO_MANY
                return self._one_to_many(one=a_to_b, many=b_to_a)
            record.cardinality = RelationKind.ONE_TO_ONE
            return self._cross_linked(RelationKind.ONE_TO_ONE, a_to_b, b_to_a)

        edge = a_to_b or b_to_a
        if edge is None:
            return []
        relation = RelationKind.ONE_TO_MANY if edge.is_array else RelationKind.ONE_TO_ONE
        record.cardinality = relation
        logger.debug(f"Unidirectional {relation.value}: {edge.source_type}.{edge.field_name} -> {edge.target_type}")
        return [RelationEnd(
            source_type=edge.source_type,
            field_name=edge.field_name,
            target_type=edge.target_type,
            relation=relation,
        )]

    @staticmethod
    def _cross_linked(relation: RelationKind, a_to_b: ReferenceEdge, b_to_a: ReferenceEdge) -> List[RelationEnd]:
        logger.debug(
            f"Bidirectional {relation.value}: "
            f"{a_to_b.source_type}.{a_to_b.field_name} <-> {b_to_a.source_type}.{b_to_a.field_name}"
        )
        return [
            RelationEnd(
                source_type=a_to_b.source_type,
                field_name=a_to_b.field_name,
                target_type=a_to_b.target_type,
                relation=relation,
                mapped_by=b_to_a.field_name,
            ),
            RelationEnd(
                source_type=b_to_a.source_type,
                field_name=b_to_a.field_name,
                target_type=b_to_a.target_type,
                relation=relation,
                inversed_by=a_to_b.field_name,
            ),
        ]

    @staticmethod
    def _one_to_many(one: ReferenceEdge, many: ReferenceEdge) -> List[RelationEnd]:
        logger.debug(
            f"oneToMany: {one.source_type}.{one.field_name} (one) <-> "
            f"{many.source_type}.{many.field_name} (many)"
        )
        return [
            RelationEnd(
                source_type=one.source_type,
                field_name=one.field_name,
                target_type=one.target_type,
                relation=RelationKind.ONE_TO_MANY,
                mapped_by=many.field_name,
            ),
            RelationEnd(
                source_type=many.source_type,
                field_name=many.field_name,
                target_type=many.target_type,
                relation=RelationKind.MANY_TO_ONE,
                inversed_by=one.field_name,
            ),
        ]
