"""Migration orchestrator - coordinates schema generation and content migration."""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import ErrorKind, MigrationError, PreFlightError
from .extractors.export_reader import ExportReader
from .extractors.schema_extractor import SchemaExtractor
from .loaders.base import AssetUploader, BaseLoader
from .loaders.cloudinary_loader import REQUIRED_CREDENTIALS, CloudinaryUploader
from .loaders.strapi_loader import StrapiLoader
from .models.migration import (
    AssetProvider,
    MigrationConfig,
    MigrationContext,
    MigrationStatus,
)
from .models.record import SourceDocument
from .models.schema import RecoveryResult
from .models.target import SchemaCatalog
from .services.assets import AssetMigrator
from .services.relationship_inference import InferenceResult, RelationshipInferencer
from .services.relationship_resolver import RelationshipResolver, pending_summary
from .services.schema_converter import SchemaConverter
from .services.schema_registry import SchemaRegistry
from .services.transformer import ContentTransformer

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Orchestrates the complete migration process.

    Handles:
    - Pre-flight validation of paths, credentials and asset provider
    - Schema recovery, relationship inference and schema generation
    - Asset upload
    - Batched content creation
    - Deferred relationship resolution
    - Progress tracking and reporting

    Only pre-flight problems abort a run. Everything after pre-flight is
    recorded in the run's error log and the run continues to its report.
    """

    def __init__(
        self,
        config: MigrationConfig,
        loader: Optional[BaseLoader] = None,
        uploader: Optional[AssetUploader] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration
            loader: Target store; built from the config when omitted
            uploader: Asset provider; built from the config when omitted
        """
        self.config = config
        self.loader = loader
        self.uploader = uploader

        # Runtime state
        self.catalog: Optional[SchemaCatalog] = None
        self.context: Optional[MigrationContext] = None

    # Pre-flight

    def validate_export(self) -> None:
        export_path = self.config.sanity_export_path
        if not export_path:
            raise PreFlightError("Sanity export path is required")
        reader = ExportReader(export_path)
        if not reader.export_path.is_dir():
            raise PreFlightError(f"Sanity export path not found: {export_path}")
        if not reader.documents_path.is_file():
            raise PreFlightError(f"data.ndjson not found in export: {reader.documents_path}")

    def validate_sanity_project(self) -> None:
        project_path = self.config.sanity_project_path
        if not project_path:
            raise PreFlightError("Sanity project path is required")
        if not Path(project_path).is_dir():
            raise PreFlightError(f"Sanity project path not found: {project_path}")

    def validate_strapi_project(self) -> None:
        project_path = self.config.strapi_project_path
        if not project_path:
            raise PreFlightError("Strapi project path is required")
        if not Path(project_path).is_dir():
            raise PreFlightError(f"Strapi project path not found: {project_path}")

    def validate_asset_provider(self) -> None:
        provider = self.config.asset_provider
        if provider not in {p.value for p in AssetProvider}:
            raise PreFlightError(
                f"Unknown asset provider: {provider} "
                f"(expected one of: {', '.join(p.value for p in AssetProvider)})"
            )
        if provider == AssetProvider.CLOUDINARY.value and self.uploader is None:
            missing = [k for k in REQUIRED_CREDENTIALS if not self.config.cloudinary.get(k)]
            if missing:
                raise PreFlightError(f"Cloudinary asset provider requires: {', '.join(missing)}")

    def validate_analysis(self) -> None:
        self.validate_sanity_project()
        self.validate_export()

    def validate_schema_generation(self) -> None:
        self.validate_sanity_project()
        self.validate_export()
        self.validate_strapi_project()

    def validate_content_migration(self) -> None:
        """
        Raises:
            PreFlightError: If paths, credentials or the asset provider are invalid
        """
        self.validate_export()
        self.validate_strapi_project()
        if not self.config.api_token and self.loader is None:
            raise PreFlightError("Strapi API token is required for content migration")
        self.validate_asset_provider()

    # Analysis and schema generation

    def recover(self) -> Tuple[RecoveryResult, Dict[str, int], InferenceResult]:
        """Recover declarations, count documents and infer relationships."""
        recovery = SchemaExtractor(self.config.sanity_project_path).recover()
        counts = ExportReader(self.config.sanity_export_path).document_counts()

        for type_name, count in sorted(counts.items()):
            if count == 1 and not recovery.is_singleton(type_name):
                logger.info(f"{type_name} has a single document; consider marking it as a singleton")

        inference = RelationshipInferencer(recovery.documents).infer()
        return recovery, counts, inference

    def analyze(self) -> Dict[str, Any]:
        """
        Report what a schema generation would produce, without writing.

        Returns:
            Summary of recovered types, counts and relationships
        """
        self.validate_analysis()
        logger.info("=== ANALYSIS ===")
        recovery, counts, inference = self.recover()

        summary = {
            "documentTypes": sorted(recovery.documents),
            "objectTypes": sorted(recovery.object_types),
            "singletons": sorted(recovery.singletons),
            "documentCounts": counts,
            "relationships": [record.to_dict() for record in inference.records.values()],
            "skippedFiles": recovery.skipped_files,
            "ambiguities": inference.ambiguities,
        }
        logger.info(
            f"Found {len(recovery.documents)} document types, "
            f"{len(inference.records)} relationships, "
            f"{sum(counts.values())} documents"
        )
        return summary

    def generate_schemas(self, validate: bool = True) -> SchemaCatalog:
        """
        Generate and write target schemas, components and handler stubs.

        Returns:
            The generated SchemaCatalog
        """
        if validate:
            self.validate_schema_generation()

        logger.info("=== PHASE 1: SCHEMA GENERATION ===")
        recovery, counts, inference = self.recover()
        catalog = SchemaConverter(recovery, inference, counts).convert()

        registry = SchemaRegistry(self.config.strapi_project_path)
        registry.write_catalog(catalog)

        field_counts = {name: len(decl.fields) for name, decl in recovery.documents.items()}
        report = registry.build_report(catalog, field_counts)
        report["skippedFiles"] = recovery.skipped_files
        report["ambiguities"] = inference.ambiguities
        registry.save_report(report, self.config.generation_report_path)

        self.catalog = catalog
        return catalog

    # Content migration

    def _create_loader(self) -> BaseLoader:
        return StrapiLoader.from_config(self.config)

    def _create_uploader(self) -> AssetUploader:
        if self.config.asset_provider == AssetProvider.CLOUDINARY.value:
            return CloudinaryUploader.from_credentials(
                self.config.cloudinary,
                retry_attempts=self.config.retry_attempts,
                retry_delay=self.config.retry_delay,
            )
        return self.loader

    def migration_order(self, catalog: SchemaCatalog, types: List[str]) -> List[str]:
        """
        Order content types for creation.

        Configured types come first in configured order; the rest follow by
        ascending number of outgoing relations, then by name.
        """
        configured = [t for t in self.config.migration_order if t in types]
        remaining = sorted(
            (t for t in types if t not in configured),
            key=lambda t: (len(catalog.relations_of(t)), t),
        )
        return configured + remaining

    @staticmethod
    def _batch_iterator(documents: List[SourceDocument], batch_size: int) -> Iterator[List[SourceDocument]]:
        """Yield batches of documents."""
        batch_size = max(1, batch_size)
        for i in range(0, len(documents), batch_size):
            yield documents[i:i + batch_size]

    async def migrate_content(self, catalog: Optional[SchemaCatalog] = None, validate: bool = True) -> MigrationContext:
        """
        Upload assets, create entities and resolve relationships.

        Args:
            catalog: Schemas to migrate against; loaded from the Strapi
                project when omitted
            validate: Run pre-flight checks first

        Returns:
            The finished MigrationContext
        """
        if validate:
            self.validate_content_migration()

        catalog = catalog or self.catalog or SchemaRegistry(self.config.strapi_project_path).load_catalog()
        self.catalog = catalog
        context = MigrationContext()
        self.context = context

        if self.loader is None:
            self.loader = self._create_loader()
        if self.uploader is None:
            self.uploader = self._create_uploader()

        reader = ExportReader(self.config.sanity_export_path)

        try:
            if not await self.loader.validate_connection():
                logger.warning(f"Strapi server at {self.config.strapi_url} did not answer the health check")

            logger.info("=== PHASE 2: ASSET MIGRATION ===")
            context.status = MigrationStatus.MIGRATING_ASSETS
            await AssetMigrator(self.uploader, str(reader.images_path)).migrate(reader.load_assets(), context)

            logger.info("=== PHASE 3: CONTENT MIGRATION ===")
            context.status = MigrationStatus.MIGRATING_CONTENT
            await self._migrate_documents(reader.load_documents(), catalog, context)

            logger.info("=== PHASE 4: RELATIONSHIP RESOLUTION ===")
            context.status = MigrationStatus.RESOLVING_RELATIONSHIPS
            for key, count in pending_summary(list(context.pending)).items():
                logger.debug(f"Pending relationships for {key}: {count}")
            await RelationshipResolver(self.loader, catalog).resolve_all(context)

            context.status = MigrationStatus.COMPLETED
            logger.info("=== MIGRATION COMPLETED ===")

        except Exception as e:
            logger.error(f"Migration failed: {e}")
            context.status = MigrationStatus.FAILED
            context.add_error("migration", e, timestamp=datetime.utcnow().isoformat())

        finally:
            context.completed_at = datetime.utcnow()
            self._save_report(context, catalog)
            self._log_summary(context)
            await self.close()

        return context

    async def _migrate_documents(
        self,
        documents: List[SourceDocument],
        catalog: SchemaCatalog,
        context: MigrationContext,
    ) -> None:
        by_type: Dict[str, List[SourceDocument]] = {}
        for document in documents:
            by_type.setdefault(document.type, []).append(document)

        context.progress.entities.total = len(documents)
        transformer = ContentTransformer(catalog)

        for content_type in self.migration_order(catalog, list(by_type)):
            type_documents = by_type[content_type]
            logger.info(f"Migrating {len(type_documents)} {content_type} documents...")

            for index, batch in enumerate(self._batch_iterator(type_documents, self.config.batch_size)):
                if index > 0 and self.config.batch_delay > 0:
                    await asyncio.sleep(self.config.batch_delay)

                results = await asyncio.gather(
                    *(self.migrate_document(doc, transformer, catalog, context) for doc in batch),
                    return_exceptions=True,
                )
                for document, result in zip(batch, results):
                    if isinstance(result, BaseException):
                        self._record_failure(document, result, context)

    async def migrate_document(
        self,
        document: SourceDocument,
        transformer: ContentTransformer,
        catalog: SchemaCatalog,
        context: MigrationContext,
    ) -> None:
        """
        Transform and create one document, recording its identity.

        Raises:
            SchemaMissingError: If the document's type has no schema
            CreateRejectedError: If the target rejects the entity
        """
        transformed = transformer.transform_document(document, context)
        schema = catalog.get_schema(document.type)

        result = await self.loader.create_entity(schema, transformed.data, source_id=document.id)
        context.identities.record(document.id, result.target_id, result.document_id, document.type)
        context.progress.entities.completed += 1
        logger.debug(f"Created {document.type} {document.id} -> {result.document_id or result.target_id}")

    @staticmethod
    def _record_failure(document: SourceDocument, error: BaseException, context: MigrationContext) -> None:
        context.progress.entities.failed += 1
        kind = error.kind.value if isinstance(error, MigrationError) and error.kind else ErrorKind.CREATE_REJECTED.value
        details: Dict[str, Any] = {
            "entity": "document",
            "id": document.id,
            "contentType": document.type,
        }
        status = getattr(error, "status_code", None)
        if status is not None:
            details["status"] = status
            details["body"] = getattr(error, "body", None)
        context.add_error(kind, error, **details)
        logger.error(f"Failed to migrate {document.type} {document.id}: {error}")

    async def run_migration(self) -> Optional[MigrationContext]:
        """
        Run the phases enabled in the configuration.

        All pre-flight checks run before anything is written.

        Returns:
            MigrationContext when content was migrated
        """
        if self.config.generate_schemas:
            self.validate_schema_generation()
        if self.config.migrate_content:
            self.validate_content_migration()

        catalog = None
        if self.config.generate_schemas:
            catalog = self.generate_schemas(validate=False)
        if self.config.migrate_content:
            return await self.migrate_content(catalog, validate=False)
        return None

    # Reporting

    def _save_report(self, context: MigrationContext, catalog: SchemaCatalog) -> None:
        """Save the migration report."""
        report = context.to_report(self.config, catalog.list_schemas(), catalog.list_components())
        report_path = Path(self.config.migration_report_path)
        try:
            with open(report_path, "w", encoding="utf-8") as f:
                json.dump(report, f, indent=2, default=str)
            logger.info(f"Migration report saved: {report_path}")
        except OSError as e:
            logger.error(f"Failed to save migration report to {report_path}: {e}")

    @staticmethod
    def _log_summary(context: MigrationContext) -> None:
        progress = context.progress
        logger.info("Migration summary:")
        for name, phase in (
            ("Assets", progress.assets),
            ("Entities", progress.entities),
            ("Relationships", progress.relationships),
        ):
            logger.info(f"  {name}: {phase.completed}/{phase.total} ({phase.failed} failed)")
        if context.errors:
            logger.info(f"  Errors: {len(context.errors)}")
        if context.duration_seconds is not None:
            logger.info(f"  Duration: {context.duration_seconds:.2f} seconds")

    async def close(self) -> None:
        """Close the loader and a separate uploader."""
        if self.uploader is not None and self.uploader is not self.loader:
            await self.uploader.close()
        if self.loader is not None:
            await self.loader.close()
