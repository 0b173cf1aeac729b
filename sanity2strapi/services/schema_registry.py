"""Schema registry for persisting and loading target schema artifacts."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.target import ComponentSchema, SchemaCatalog, TargetSchema
from .inflection import component_collection_name

logger = logging.getLogger(__name__)


API_DIR = Path("src") / "api"
COMPONENTS_DIR = Path("src") / "components"

HANDLER_TEMPLATES = {
    "controllers": (
        "/**\n * {name} controller\n */\n\n"
        "import {{ factories }} from '@strapi/strapi'\n\n"
        "export default factories.createCoreController('api::{name}.{name}');"
    ),
    "routes": (
        "/**\n * {name} router\n */\n\n"
        "import {{ factories }} from '@strapi/strapi';\n\n"
        "export default factories.createCoreRouter('api::{name}.{name}');"
    ),
    "services": (
        "/**\n * {name} service\n */\n\n"
        "import {{ factories }} from '@strapi/strapi';\n\n"
        "export default factories.createCoreService('api::{name}.{name}');"
    ),
}


class SchemaRegistry:
    """
    Reads and writes schema artifacts inside a target project.

    Layout:
    - ``src/api/<type>/content-types/<type>/schema.json``
    - ``src/api/<type>/{controllers,routes,services}/<type>.ts``
    - ``src/components/<category>/<name>.json``
    """

    def __init__(self, project_path: str):
        """
        Initialize the schema registry.

        Args:
            project_path: Root of the target project
        """
        self.project_path = Path(project_path)

    @property
    def api_path(self) -> Path:
        return self.project_path / API_DIR

    @property
    def components_path(self) -> Path:
        return self.project_path / COMPONENTS_DIR

    def schema_file(self, type_name: str) -> Path:
        return self.api_path / type_name / "content-types" / type_name / "schema.json"

    def component_file(self, key: str) -> Path:
        category, _, name = key.partition(".")
        return self.components_path / category / f"{name}.json"

    # Writing

    def write_catalog(self, catalog: SchemaCatalog) -> List[Path]:
        """
        Write every schema, handler stub and component of a catalog.

        Returns:
            Paths of the files written
        """
        written = []
        for name, schema in catalog.schemas.items():
            written.append(self.write_schema(schema))
            written.extend(self.write_handlers(name))
            logger.info(f"Generated schema for: {name} ({schema.kind.value})")

        for key, component in catalog.components.items():
            written.append(self.write_component(component))
            logger.info(f"Generated component: {key.replace('.', '/')}")

        return written

    def write_schema(self, schema: TargetSchema) -> Path:
        path = self.schema_file(schema.singular_name)
        self._write_json(path, schema.to_dict())
        return path

    def write_component(self, component: ComponentSchema) -> Path:
        path = self.component_file(component.key)
        self._write_json(path, component.to_dict(component_collection_name(component.key)))
        return path

    def write_handlers(self, type_name: str) -> List[Path]:
        """Write the pass-through controller, router and service files."""
        paths = []
        for kind, template in HANDLER_TEMPLATES.items():
            path = self.api_path / type_name / kind / f"{type_name}.ts"
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(template.format(name=type_name), encoding="utf-8")
            paths.append(path)
        return paths

    @staticmethod
    def _write_json(path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    # Loading

    def load_catalog(self) -> SchemaCatalog:
        """
        Load schemas and components previously written to the project.

        Unreadable files are skipped with a warning.
        """
        schemas: Dict[str, TargetSchema] = {}
        components: Dict[str, ComponentSchema] = {}

        if self.api_path.exists():
            for type_dir in sorted(p for p in self.api_path.iterdir() if p.is_dir()):
                path = self.schema_file(type_dir.name)
                if not path.exists():
                    continue
                try:
                    schemas[type_dir.name] = TargetSchema.from_dict(self._read_json(path))
                    logger.debug(f"Loaded schema for: {type_dir.name}")
                except (OSError, ValueError, AttributeError) as e:
                    logger.warning(f"Failed to load schema for {type_dir.name}: {e}")

        if self.components_path.exists():
            for category_dir in sorted(p for p in self.components_path.iterdir() if p.is_dir()):
                for path in sorted(category_dir.glob("*.json")):
                    key = f"{category_dir.name}.{path.stem}"
                    try:
                        components[key] = ComponentSchema.from_dict(key, self._read_json(path))
                        logger.debug(f"Loaded component: {key}")
                    except (OSError, ValueError, AttributeError) as e:
                        logger.warning(f"Failed to load component {key}: {e}")

        logger.info(f"Loaded {len(schemas)} schemas and {len(components)} components")
        return SchemaCatalog(schemas=schemas, components=components)

    @staticmethod
    def _read_json(path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{path} does not contain a JSON object")
        return data

    # Report

    def build_report(self, catalog: SchemaCatalog, field_counts: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        """
        Build the schema generation report.

        Args:
            catalog: Converted schemas
            field_counts: Declared field count per type (defaults to attribute count)
        """
        counts = catalog.document_counts
        field_counts = field_counts or {}
        return {
            "generatedAt": datetime.utcnow().isoformat(),
            "summary": {
                "totalSchemas": len(catalog.schemas),
                "totalComponents": len(catalog.components),
                "singletonTypes": catalog.singleton_types,
                "totalDocuments": sum(counts.values()),
            },
            "schemas": [
                {
                    "name": name,
                    "type": "singleton" if schema.is_singleton else "collection",
                    "documentCount": counts.get(name, 0),
                    "fieldCount": field_counts.get(name, len(schema.attributes)),
                }
                for name, schema in catalog.schemas.items()
            ],
            "components": catalog.list_components(),
            "relationships": {
                name: {field: attr.to_dict() for field, attr in catalog.relations_of(name).items()}
                for name in catalog.list_schemas()
                if catalog.relations_of(name)
            },
        }

    def save_report(self, report: Dict[str, Any], path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, default=str)
        logger.info(f"Generated schema report: {path}")
