"""Deferred relationship resolution."""

import logging
from typing import Any, Dict, List

from ..errors import ErrorKind, RelationshipUnresolvedError
from ..loaders.base import BaseLoader
from ..models.migration import EntityIdentity, MigrationContext, PendingRelationship
from ..models.target import SchemaCatalog

logger = logging.getLogger(__name__)


READ_ONLY_KEYS = ("id", "documentId", "createdAt", "updatedAt", "publishedAt")


def flatten_entity(entity: Dict[str, Any]) -> Dict[str, Any]:
    """Merge a nested ``attributes`` envelope into the top level."""
    attributes = entity.get("attributes")
    if not isinstance(attributes, dict):
        return dict(entity)
    flat = {k: v for k, v in entity.items() if k != "attributes"}
    flat.update(attributes)
    return flat


def reference_ids(item: Any) -> List[Any]:
    """Identifiers an existing relation item can be matched by."""
    if isinstance(item, dict):
        return [v for v in (item.get("documentId"), item.get("id")) if v is not None]
    return [item]


def merge_relation(
    entity: Dict[str, Any],
    field_name: str,
    target: EntityIdentity,
    is_array: bool,
) -> Dict[str, Any]:
    """
    Merge one relation into an entity's writable attributes.

    Array relations append the target only when no existing item matches
    either of its identifiers, so merging twice changes nothing.
    """
    merged = flatten_entity(entity)
    for key in READ_ONLY_KEYS:
        merged.pop(key, None)

    if is_array:
        existing = merged.get(field_name)
        if isinstance(existing, dict) and isinstance(existing.get("data"), list):
            existing = existing["data"]
        items = [reference_ids(item)[0] for item in (existing or []) if reference_ids(item)]
        known = {target.document_id, target.target_id} - {None}
        already_linked = any(
            ref in known
            for item in (existing or [])
            for ref in reference_ids(item)
        )
        if not already_linked:
            items.append(target.reference_id)
        merged[field_name] = items
    else:
        merged[field_name] = target.reference_id

    return merged


class RelationshipResolver:
    """
    Writes queued relationships once every entity exists.

    The queue is drained one item at a time so two writes never race on
    the same entity. Failures are counted and logged; none abort the run.
    """

    def __init__(self, loader: BaseLoader, catalog: SchemaCatalog):
        self.loader = loader
        self.catalog = catalog

    async def resolve_all(self, context: MigrationContext) -> None:
        """Drain the pending relationship queue."""
        progress = context.progress.relationships
        progress.total += len(context.pending)

        if not context.pending:
            logger.info("No relationships to resolve")
            return

        logger.info(f"Resolving {len(context.pending)} relationships...")
        while context.pending:
            relationship = context.pending.popleft()
            try:
                await self.resolve(relationship, context)
            except Exception as e:
                progress.failed += 1
                context.add_error(
                    ErrorKind.RELATIONSHIP_UNRESOLVED.value, e,
                    entity="relationship",
                    **relationship.to_dict(),
                )
                logger.error(
                    f"Failed to resolve {relationship.source_type}.{relationship.field_name} "
                    f"({relationship.source_id} -> {relationship.target_source_id}): {e}"
                )
            else:
                progress.completed += 1

        logger.info(
            f"Relationships: {progress.completed}/{progress.total} resolved, {progress.failed} failed"
        )

    async def resolve(self, relationship: PendingRelationship, context: MigrationContext) -> Dict[str, Any]:
        """
        Apply one relationship with a read-merge-write cycle.

        Raises:
            RelationshipUnresolvedError: If either end has no identity or no schema
        """
        source = context.identities.get(relationship.source_id)
        target = context.identities.get(relationship.target_source_id)
        if source is None or target is None:
            missing = relationship.source_id if source is None else relationship.target_source_id
            message = f"No target identity for {missing}, skipping {relationship.source_type}.{relationship.field_name}"
            logger.warning(message)
            context.add_warning(message)
            raise RelationshipUnresolvedError(message)

        schema = self.catalog.get_schema(source.content_type)
        if schema is None:
            raise RelationshipUnresolvedError(f"No target schema for {source.content_type}")

        entity = await self.loader.fetch_entity(schema, source.reference_id)
        merged = merge_relation(entity, relationship.field_name, target, relationship.is_array)
        logger.debug(
            f"Linking {relationship.source_type}:{source.reference_id}.{relationship.field_name} "
            f"-> {target.content_type}:{target.reference_id}"
        )
        return await self.loader.update_entity(schema, source.reference_id, merged)


def pending_summary(pending: List[PendingRelationship]) -> Dict[str, int]:
    """Count of pending relationships per ``type.field``."""
    counts: Dict[str, int] = {}
    for relationship in pending:
        key = f"{relationship.source_type}.{relationship.field_name}"
        counts[key] = counts.get(key, 0) + 1
    return counts
