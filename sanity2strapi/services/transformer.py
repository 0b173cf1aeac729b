"""Schema-driven transformation of source documents into target payloads."""

import logging
from typing import Any, Callable, Dict, List, Optional, Type
from datetime import datetime, timezone
from dateutil import parser as date_parser

from ..errors import FieldTransformError, SchemaMissingError
from ..models.migration import MigrationContext, PendingRelationship
from ..models.record import SourceDocument, TransformResult, SYSTEM_FIELD_PREFIX
from ..models.target import (
    FIELD_VARIANTS,
    ComponentField,
    ComponentSchema,
    EnumerationField,
    MediaField,
    OpaqueField,
    PrimitiveField,
    RelationField,
    RichTextField,
    SchemaCatalog,
    TargetField,
    UidField,
)
from .assets import asset_key_from_value
from .rich_text import convert_blocks

logger = logging.getLogger(__name__)


PUBLISHED_AT = "publishedAt"

FieldHandler = Callable[[str, Any, Any, SourceDocument, MigrationContext, List[str]], Any]


def normalize_timestamp(value: Any) -> Optional[str]:
    """ISO-8601 form of a timestamp string, assuming UTC when no zone is given."""
    if not value:
        return None
    try:
        parsed = date_parser.parse(str(value))
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable {PUBLISHED_AT} value {value!r}, passing through")
        return str(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


class ContentTransformer:
    """
    Transforms source documents field by field against their target schema.

    Relation fields are never written inline: every reference found is
    queued on the migration context and the field is left out of the
    payload. A field that fails to transform is logged and skipped.
    """

    def __init__(self, catalog: SchemaCatalog):
        """
        Initialize the transformer.

        Args:
            catalog: Target schemas and components
        """
        self.catalog = catalog
        self._handlers = self._register_field_handlers()

        missing = [v.__name__ for v in FIELD_VARIANTS if v not in self._handlers]
        if missing:
            raise TypeError(f"No transform handler for field variants: {missing}")

    def _register_field_handlers(self) -> Dict[Type[TargetField], FieldHandler]:
        """Register one handler per target field variant."""
        return {
            PrimitiveField: self._transform_primitive,
            MediaField: self._transform_media,
            RelationField: self._transform_relation,
            ComponentField: self._transform_component,
            EnumerationField: self._transform_enumeration,
            UidField: self._transform_uid,
            RichTextField: self._transform_rich_text,
            OpaqueField: self._transform_opaque,
        }

    def transform_document(self, document: SourceDocument, context: MigrationContext) -> TransformResult:
        """
        Build the target payload for one document.

        Args:
            document: Source document
            context: Run state receiving pending relationships and warnings

        Returns:
            TransformResult with the payload

        Raises:
            SchemaMissingError: If the catalog has no schema for the document type
        """
        schema = self.catalog.get_schema(document.type)
        if schema is None:
            raise SchemaMissingError(f"No target schema found for content type: {document.type}")

        result = TransformResult(document_id=document.id, content_type=document.type)

        for name, value in document.data.items():
            if name.startswith(SYSTEM_FIELD_PREFIX):
                continue

            target_field = schema.attributes.get(name)
            if target_field is None:
                logger.warning(f"Field {name} not found in schema for {document.type}, skipping")
                result.dropped_fields.append(name)
                continue

            if value is None:
                continue

            try:
                transformed = self.transform_field(name, value, target_field, document, context, result.warnings)
            except Exception as e:
                message = f"Failed to transform field {name} of {document.id}: {e}"
                logger.warning(message)
                result.warnings.append(message)
                continue

            if transformed is not None:
                result.data[name] = transformed

        if not result.data.get(PUBLISHED_AT):
            result.data[PUBLISHED_AT] = (
                normalize_timestamp(document.data.get(PUBLISHED_AT))
                or datetime.now(timezone.utc).isoformat()
            )

        return result

    def transform_field(
        self,
        name: str,
        value: Any,
        target_field: TargetField,
        document: SourceDocument,
        context: MigrationContext,
        warnings: List[str],
    ) -> Any:
        """Dispatch one field to the handler of its variant."""
        handler = self._handlers[type(target_field)]
        return handler(name, value, target_field, document, context, warnings)

    # Handlers

    def _transform_primitive(self, name, value, target_field, document, context, warnings) -> Any:
        return value

    def _transform_opaque(self, name, value, target_field, document, context, warnings) -> Any:
        return value

    def _transform_uid(self, name, value, target_field, document, context, warnings) -> Any:
        if isinstance(value, dict):
            return value.get("current")
        return value

    def _transform_enumeration(self, name, value, target_field: EnumerationField, document, context, warnings) -> Any:
        if target_field.values and str(value) not in target_field.values:
            raise FieldTransformError(f"Value {value!r} is not one of {list(target_field.values)}")
        return value

    def _transform_rich_text(self, name, value, target_field, document, context, warnings) -> Any:
        return convert_blocks(value)

    def _transform_media(self, name, value, target_field: MediaField, document, context, warnings) -> Any:
        if isinstance(value, list):
            if target_field.multiple:
                resolved = []
                for item in value:
                    asset_id = self._resolve_asset(name, item, document, context)
                    if asset_id is not None:
                        resolved.append(asset_id)
                return resolved
            message = f"Array value for single media field {name} on {document.id}, taking first item"
            logger.warning(message)
            warnings.append(message)
            value = value[0] if value else None

        return self._resolve_asset(name, value, document, context)

    def _resolve_asset(self, name: str, value: Any, document: SourceDocument, context: MigrationContext) -> Optional[Any]:
        key = asset_key_from_value(value)
        asset_id = context.resolve_asset(key)
        if asset_id is None and key:
            message = f"Asset {key} referenced by {document.id}.{name} was not migrated"
            logger.warning(message)
            context.add_warning(message)
        return asset_id

    def _transform_relation(self, name, value, target_field: RelationField, document, context, warnings) -> Any:
        is_array = isinstance(value, list)
        references = value if is_array else [value]

        for reference in references:
            target_id = reference.get("_ref") if isinstance(reference, dict) else None
            if not isinstance(target_id, str):
                continue
            context.enqueue(PendingRelationship(
                source_type=document.type,
                source_id=document.id,
                field_name=name,
                target_source_id=target_id,
                is_array=is_array,
                relation=target_field.relation,
            ))
        return None

    def _transform_component(self, name, value, target_field: ComponentField, document, context, warnings) -> Any:
        component = self.catalog.get_component(target_field.component)
        if component is None:
            message = f"Component {target_field.component} not found for field {name}"
            logger.warning(message)
            warnings.append(message)
            return None

        if target_field.repeatable:
            if not isinstance(value, list):
                raise FieldTransformError(
                    f"Expected array for repeatable component {target_field.component}, "
                    f"got {type(value).__name__}"
                )
            items = [self.transform_component_item(item, component, document, context) for item in value]
            return [item for item in items if item is not None]

        return self.transform_component_item(value, component, document, context)

    def transform_component_item(
        self,
        value: Any,
        component: ComponentSchema,
        document: SourceDocument,
        context: MigrationContext,
    ) -> Optional[Dict[str, Any]]:
        """
        Transform one component value using primitives and media only.

        Returns:
            The attribute map, or None when nothing survives
        """
        if not isinstance(value, dict):
            if value is not None and len(component.attributes) == 1:
                # Scalar items of a single-attribute component, e.g. string lists
                value = {next(iter(component.attributes)): value}
            else:
                return None

        transformed: Dict[str, Any] = {}
        for name, raw in value.items():
            if name.startswith(SYSTEM_FIELD_PREFIX) or raw is None:
                continue

            attribute = component.attributes.get(name)
            if attribute is None:
                logger.warning(f"Component field {name} not found in component {component.key}")
                continue

            if isinstance(attribute, MediaField):
                resolved = self._transform_media(name, raw, attribute, document, context, [])
            elif isinstance(attribute, (PrimitiveField, EnumerationField, OpaqueField)):
                resolved = raw
            elif isinstance(attribute, UidField):
                resolved = self._transform_uid(name, raw, attribute, document, context, [])
            else:
                logger.warning(
                    f"Component field {component.key}.{name} of kind {attribute.kind.value} "
                    f"is not supported inside components, skipping"
                )
                continue

            if resolved is not None and resolved != []:
                transformed[name] = resolved

        return transformed or None
