"""Command line interface for the Sanity to Strapi migration."""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from .errors import PreFlightError
from .models.migration import MigrationConfig
from .orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)


ENVIRONMENT = {
    "sanity_project_path": "SANITY_PROJECT_PATH",
    "sanity_export_path": "SANITY_EXPORT_PATH",
    "strapi_project_path": "STRAPI_PROJECT_PATH",
    "strapi_url": "STRAPI_URL",
    "api_token": "STRAPI_API_TOKEN",
    "asset_provider": "ASSET_PROVIDER",
}

CLOUDINARY_ENVIRONMENT = {
    "cloud_name": "CLOUDINARY_CLOUD_NAME",
    "api_key": "CLOUDINARY_API_KEY",
    "api_secret": "CLOUDINARY_API_SECRET",
}

# argparse dest -> config key
FLAGS = {
    "sanity_project": "sanity_project_path",
    "sanity_export": "sanity_export_path",
    "strapi_project": "strapi_project_path",
    "strapi_url": "strapi_url",
    "token": "api_token",
    "asset_provider": "asset_provider",
    "batch_size": "batch_size",
    "batch_delay": "batch_delay",
    "retry_attempts": "retry_attempts",
    "retry_delay": "retry_delay",
}


def build_config(args: argparse.Namespace, environ: Optional[Dict[str, str]] = None) -> MigrationConfig:
    """
    Merge configuration sources.

    Precedence: command line flags, then the JSON config file, then
    environment variables, then defaults.
    """
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    for key, variable in ENVIRONMENT.items():
        if environ.get(variable):
            data[key] = environ[variable]
    cloudinary = {k: environ[v] for k, v in CLOUDINARY_ENVIRONMENT.items() if environ.get(v)}
    if cloudinary:
        data["cloudinary"] = cloudinary

    if getattr(args, "config", None):
        with open(args.config) as f:
            file_data = json.load(f)
        if "cloudinary" in file_data:
            data["cloudinary"] = {**data.get("cloudinary", {}), **(file_data.pop("cloudinary") or {})}
        data.update(file_data)

    for dest, key in FLAGS.items():
        value = getattr(args, dest, None)
        if value is not None:
            data[key] = value

    return MigrationConfig.from_dict(data)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument("--sanity-project", help="Sanity studio project directory")
    parser.add_argument("--sanity-export", help="Sanity export directory (data.ndjson, assets.json, images/)")
    parser.add_argument("--strapi-project", help="Strapi project directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")


def add_content_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--strapi-url", help="Strapi server URL")
    parser.add_argument("--token", help="Strapi API token")
    parser.add_argument("--asset-provider", choices=["strapi", "cloudinary"], help="Where to upload assets")
    parser.add_argument("--batch-size", type=int, help="Documents created concurrently per batch")
    parser.add_argument("--batch-delay", type=float, help="Seconds to wait between batches")
    parser.add_argument("--retry-attempts", type=int, help="Retries for failed requests")
    parser.add_argument("--retry-delay", type=float, help="Initial retry delay in seconds")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Sanity to Strapi migration - generate schemas and migrate content"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Analyze
    analyze_parser = subparsers.add_parser("analyze", help="Analyze schemas and export without writing")
    add_common_arguments(analyze_parser)
    analyze_parser.add_argument("--output", help="Write the analysis to a JSON file")

    # Schema generation
    schemas_parser = subparsers.add_parser("schemas", help="Generate Strapi schemas")
    add_common_arguments(schemas_parser)

    # Content migration
    content_parser = subparsers.add_parser("content", help="Migrate assets, content and relationships")
    add_common_arguments(content_parser)
    add_content_arguments(content_parser)

    # Full migration
    migrate_parser = subparsers.add_parser("migrate", help="Generate schemas, then migrate content")
    add_common_arguments(migrate_parser)
    add_content_arguments(migrate_parser)

    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: could not read config: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "analyze":
            return run_analyze(config, args)
        elif args.command == "schemas":
            return run_schemas(config)
        elif args.command == "content":
            return run_content(config)
        elif args.command == "migrate":
            return run_migrate(config)
    except PreFlightError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def run_analyze(config: MigrationConfig, args: argparse.Namespace) -> int:
    """Print the analysis of a Sanity project and export."""
    analysis = MigrationOrchestrator(config).analyze()

    print("\n" + "=" * 60)
    print("ANALYSIS")
    print("=" * 60)
    print(f"Document types: {', '.join(analysis['documentTypes']) or '-'}")
    print(f"Object types: {', '.join(analysis['objectTypes']) or '-'}")
    print(f"Singletons: {', '.join(analysis['singletons']) or '-'}")
    for type_name, count in sorted(analysis["documentCounts"].items()):
        print(f"  {type_name}: {count} documents")
    print(f"Relationships: {len(analysis['relationships'])}")
    if analysis["skippedFiles"]:
        print(f"Skipped files: {len(analysis['skippedFiles'])}")

    if args.output:
        with open(args.output, "w") as f:
            json.dump(analysis, f, indent=2, default=str)
        print(f"\nAnalysis saved to: {args.output}")
    return 0


def run_schemas(config: MigrationConfig) -> int:
    """Generate schemas into the Strapi project."""
    catalog = MigrationOrchestrator(config).generate_schemas()

    print("\n" + "=" * 60)
    print("SCHEMA GENERATION COMPLETE")
    print("=" * 60)
    print(f"Schemas: {len(catalog.schemas)}")
    print(f"Components: {len(catalog.components)}")
    print(f"Singletons: {', '.join(catalog.singleton_types) or '-'}")
    print(f"Report: {config.generation_report_path}")
    return 0


def run_content(config: MigrationConfig) -> int:
    """Migrate content against existing schemas."""
    config.generate_schemas = False
    config.migrate_content = True
    return run_migrate(config)


def run_migrate(config: MigrationConfig) -> int:
    """Run the configured phases and print the summary."""
    orchestrator = MigrationOrchestrator(config)
    context = asyncio.run(orchestrator.run_migration())

    print("\n" + "=" * 60)
    print("MIGRATION COMPLETE")
    print("=" * 60)
    if context is None:
        return 0

    progress = context.progress
    print(f"Status: {context.status.value}")
    print(f"Assets: {progress.assets.completed}/{progress.assets.total} ({progress.assets.failed} failed)")
    print(f"Entities: {progress.entities.completed}/{progress.entities.total} ({progress.entities.failed} failed)")
    print(
        f"Relationships: {progress.relationships.completed}/{progress.relationships.total} "
        f"({progress.relationships.failed} failed)"
    )
    print(f"Errors: {len(context.errors)}")
    if context.duration_seconds:
        print(f"Duration: {context.duration_seconds:.2f} seconds")
    print(f"Report: {config.migration_report_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
