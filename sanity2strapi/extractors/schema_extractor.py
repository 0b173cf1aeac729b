"""Schema recovery from a studio's ``schemaTypes`` directory."""

import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Tuple

from ..errors import DefinitionParseError, PreFlightError
from ..models.schema import (
    ArrayItem,
    DeclarationKind,
    EntityTypeDeclaration,
    EnumOption,
    FieldDeclaration,
    FieldOptions,
    RecoveryResult,
    ValidationRules,
)
from .definition_parser import DefinitionParser, Expression, parse_value, unwrap

logger = logging.getLogger(__name__)


SCHEMA_DIR = "schemaTypes"
SOURCE_SUFFIXES = (".ts", ".js")
INDEX_FILES = {"index.ts", "index.js"}
SINGLETON_FOLDERS = {"singleton", "singletons"}
SINGLETON_MARKER = ".singleton."
WRAPPERS = ("defineType", "defineField", "defineArrayMember")

# Deepest bracket nesting accepted when salvaging a single field block
MAX_BLOCK_DEPTH = 8

REQUIRED_PATTERN = re.compile(r"\.required\(\)")
MIN_PATTERN = re.compile(r"\.min\((\d+)\)")
MAX_PATTERN = re.compile(r"\.max\((\d+)\)")
FIELD_BLOCK_PATTERN = re.compile(r"defineField\s*\(")


def _property_pattern(name: str) -> "re.Pattern[str]":
    return re.compile(name + r"""\s*:\s*['"]([^'"]*)['"]""")


NAME_PATTERN = _property_pattern("name")
TYPE_PATTERN = _property_pattern("type")
TITLE_PATTERN = _property_pattern("title")


class SchemaExtractor:
    """
    Recovers entity type declarations from studio schema sources.

    Supports two layouts under ``<project>/schemaTypes``:
    - category folders (``documents/``, ``objects/``, ``singletons/``)
    - a flat directory of definition files

    A file that cannot be read or parsed is skipped with a warning;
    recovery never aborts for one bad file.
    """

    def __init__(self, project_path: str):
        """
        Initialize the extractor.

        Args:
            project_path: Root of the studio project
        """
        self.project_path = Path(project_path)
        self.schema_path = self.project_path / SCHEMA_DIR

    def recover(self) -> RecoveryResult:
        """
        Parse every schema source file.

        Returns:
            RecoveryResult with document types, object types and singletons

        Raises:
            PreFlightError: If the schema directory does not exist
        """
        if not self.schema_path.is_dir():
            raise PreFlightError(f"Schema path not found: {self.schema_path}")

        result = RecoveryResult()
        organized, folders, files = self.detect_layout()
        logger.info(
            f"Analyzing schemas in {self.schema_path} "
            f"({'category-organized' if organized else 'flat'} layout)"
        )

        for file_path in files:
            if file_path.name in INDEX_FILES:
                continue
            self._collect(result, file_path, self._is_marked_singleton(file_path.name))

        for folder in folders:
            for file_path in sorted(folder.rglob("*")):
                if not file_path.is_file() or file_path.suffix not in SOURCE_SUFFIXES:
                    continue
                if file_path.name in INDEX_FILES:
                    continue
                # Any enclosing folder named singleton(s) marks the type
                parents = file_path.relative_to(self.schema_path).parts[:-1]
                singleton = (
                    any(part in SINGLETON_FOLDERS for part in parents)
                    or self._is_marked_singleton(file_path.name)
                )
                self._collect(result, file_path, singleton)

        logger.info(
            f"Recovered {len(result.documents)} document types, "
            f"{len(result.object_types)} object types, "
            f"{len(result.singletons)} singletons"
        )
        return result

    def detect_layout(self) -> Tuple[bool, List[Path], List[Path]]:
        """Return (organized, sub-folders, top-level source files)."""
        folders = []
        files = []
        for item in sorted(self.schema_path.iterdir()):
            if item.is_dir():
                folders.append(item)
            elif item.suffix in SOURCE_SUFFIXES:
                files.append(item)
        return bool(folders), folders, files

    @staticmethod
    def _is_marked_singleton(file_name: str) -> bool:
        return SINGLETON_MARKER in file_name

    def _collect(self, result: RecoveryResult, file_path: Path, singleton: bool) -> None:
        declarations = self.parse_file(file_path, result)
        for declaration in declarations:
            if declaration.kind == DeclarationKind.OBJECT:
                result.object_types[declaration.name] = declaration
                continue

            if declaration.name in result.documents:
                previous = result.documents[declaration.name].source_file
                message = (
                    f"Duplicate document type '{declaration.name}' in {file_path}, "
                    f"replacing declaration from {previous}"
                )
                logger.warning(message)
                result.warnings.append(message)

            if singleton:
                declaration = EntityTypeDeclaration(
                    name=declaration.name,
                    kind=declaration.kind,
                    title=declaration.title,
                    fields=declaration.fields,
                    is_singleton=True,
                    source_file=declaration.source_file,
                )
                if declaration.name not in result.singletons:
                    result.singletons.append(declaration.name)

            result.documents[declaration.name] = declaration
            logger.debug(f"Parsed schema: {declaration.name} ({len(declaration.fields)} fields)")

    def parse_file(self, file_path: Path, result: Optional[RecoveryResult] = None) -> List[EntityTypeDeclaration]:
        """
        Parse one schema source file.

        Args:
            file_path: Path to a .ts or .js definition file
            result: Recovery result receiving warnings, skipped files and aliases

        Returns:
            Declarations found in the file (possibly empty)
        """
        result = result if result is not None else RecoveryResult()

        try:
            source = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self._skip(result, file_path, f"Could not read {file_path}: {e}")
            return []

        try:
            literals = DefinitionParser(source).find_declarations()
        except (DefinitionParseError, RecursionError) as e:
            logger.warning(f"Could not parse {file_path} ({e}), salvaging field blocks")
            declaration = self.salvage(source, str(file_path), result)
            if declaration is None:
                self._skip(result, file_path, f"No declaration recovered from {file_path}")
                return []
            return [declaration]

        declarations = []
        recognized = 0
        for literal in literals:
            data = unwrap(literal, WRAPPERS)
            if not isinstance(data, dict):
                continue
            recognized += 1
            declaration = self._declaration_from_literal(data, str(file_path), result)
            if declaration:
                declarations.append(declaration)

        if not recognized and "defineType" in source:
            self._skip(result, file_path, f"No declaration recovered from {file_path}")
        elif not declarations:
            logger.debug(f"No type declaration found in {file_path}")
        return declarations

    def _skip(self, result: RecoveryResult, file_path: Path, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)
        result.skipped_files.append(str(file_path))

    # Literal -> IR

    def _declaration_from_literal(
        self, data: dict, source_file: str, result: RecoveryResult
    ) -> Optional[EntityTypeDeclaration]:
        name = data.get("name")
        if not isinstance(name, str) or not name:
            logger.warning(f"Type declaration without a name in {source_file}, skipping")
            return None

        base_type = data.get("type", "document")
        if not isinstance(base_type, str):
            base_type = "document"

        if base_type not in (DeclarationKind.DOCUMENT.value, DeclarationKind.OBJECT.value):
            # Named reusable type such as blockContent (array of block)
            alias = self._field_from_literal(data, name, result)
            if alias:
                result.type_aliases[name] = alias
                logger.debug(f"Registered type alias: {name} -> {alias.type}")
            return None

        title = data.get("title")
        fields = self._fields_from_list(data.get("fields"), name, result)
        return EntityTypeDeclaration(
            name=name,
            kind=DeclarationKind(base_type),
            title=title if isinstance(title, str) and title else name,
            fields=fields,
            source_file=source_file,
        )

    def _fields_from_list(self, value: Any, owner: str, result: RecoveryResult) -> List[FieldDeclaration]:
        if not isinstance(value, list):
            return []

        fields: List[FieldDeclaration] = []
        seen = set()
        for item in value:
            declaration = self._field_from_literal(unwrap(item, WRAPPERS), owner, result)
            if declaration is None:
                continue
            if declaration.name in seen:
                message = f"Duplicate field '{declaration.name}' on {owner}, keeping the first"
                logger.warning(message)
                result.warnings.append(message)
                continue
            seen.add(declaration.name)
            fields.append(declaration)
        return fields

    def _field_from_literal(self, data: Any, owner: str, result: RecoveryResult) -> Optional[FieldDeclaration]:
        if not isinstance(data, dict):
            message = f"Unrecognized field definition on {owner}, skipping"
            logger.warning(message)
            result.warnings.append(message)
            return None

        name = data.get("name")
        field_type = data.get("type")
        if not isinstance(name, str) or not isinstance(field_type, str):
            message = f"Field without name or type on {owner}, skipping"
            logger.warning(message)
            result.warnings.append(message)
            return None

        title = data.get("title")
        of: List[ArrayItem] = []
        if field_type == "array":
            of = self._array_items(data.get("of"), f"{owner}.{name}", result)

        to = None
        if field_type == "reference":
            targets = reference_targets(data.get("to"))
            to = targets[0] if targets else None

        return FieldDeclaration(
            name=name,
            type=field_type,
            title=title if isinstance(title, str) else "",
            validation=parse_validation(data.get("validation")),
            options=parse_options(data.get("options")),
            of=of,
            to=to,
            fields=self._fields_from_list(data.get("fields"), f"{owner}.{name}", result),
        )

    def _array_items(self, value: Any, owner: str, result: RecoveryResult) -> List[ArrayItem]:
        if not isinstance(value, list):
            return []

        items = []
        for raw in value:
            data = unwrap(raw, WRAPPERS)
            if not isinstance(data, dict) or not isinstance(data.get("type"), str):
                logger.warning(f"Could not parse array item on {owner}")
                continue

            item_type = data["type"]
            targets = reference_targets(data.get("to")) if item_type == "reference" else []
            if item_type == "reference" and not targets:
                logger.warning(f"Reference item on {owner} has no target type")

            name = data.get("name")
            items.append(ArrayItem(
                type=item_type,
                reference_targets=targets,
                fields=self._fields_from_list(data.get("fields"), owner, result),
                options=parse_options(data.get("options")),
                name=name if isinstance(name, str) else None,
            ))
        return items

    # Salvage

    def salvage(self, source: str, source_file: str, result: RecoveryResult) -> Optional[EntityTypeDeclaration]:
        """
        Recover what is possible from a file the parser rejected.

        Each ``defineField(...)`` block is located by bounded bracket
        matching and parsed on its own. A block that still fails is kept as
        an opaque field when its name and type can be read.
        """
        name_match = NAME_PATTERN.search(source)
        if not name_match:
            return None

        type_match = TYPE_PATTERN.search(source)
        title_match = TITLE_PATTERN.search(source)
        base_type = type_match.group(1) if type_match else DeclarationKind.DOCUMENT.value
        if base_type not in (DeclarationKind.DOCUMENT.value, DeclarationKind.OBJECT.value):
            base_type = DeclarationKind.DOCUMENT.value

        fields: List[FieldDeclaration] = []
        seen = set()
        for match in FIELD_BLOCK_PATTERN.finditer(source):
            declaration = self._salvage_block(source, match.start(), match.end() - 1, result)
            if declaration and declaration.name not in seen:
                seen.add(declaration.name)
                fields.append(declaration)

        return EntityTypeDeclaration(
            name=name_match.group(1),
            kind=DeclarationKind(base_type),
            title=title_match.group(1) if title_match else name_match.group(1),
            fields=fields,
            source_file=source_file,
        )

    def _salvage_block(self, source: str, start: int, open_index: int, result: RecoveryResult) -> Optional[FieldDeclaration]:
        end = match_block(source, open_index, MAX_BLOCK_DEPTH)
        if end != -1:
            try:
                value = unwrap(parse_value(source[start:end]), WRAPPERS)
                declaration = self._field_from_literal(value, "salvaged block", result)
                if declaration:
                    return declaration
            except DefinitionParseError as e:
                logger.debug(f"Field block at offset {start} did not parse: {e}")

        # Keep the field as opaque if its name and type are readable
        snippet = source[open_index:end if end != -1 else open_index + 500]
        name_match = NAME_PATTERN.search(snippet)
        type_match = TYPE_PATTERN.search(snippet)
        if not name_match or not type_match:
            message = f"Unrecoverable field block at offset {start}, skipping"
            logger.warning(message)
            result.warnings.append(message)
            return None

        message = f"Field '{name_match.group(1)}' recovered as opaque"
        logger.warning(message)
        result.warnings.append(message)
        return FieldDeclaration(name=name_match.group(1), type=type_match.group(1), opaque=True)


def match_block(source: str, open_index: int, max_depth: int) -> int:
    """
    Offset just past the bracket closing the one at ``open_index``.

    Returns -1 when the brackets are unbalanced or nest deeper than
    ``max_depth``.
    """
    pairs = {"(": ")", "[": "]", "{": "}"}
    stack = []
    i = open_index
    quote = None
    while i < len(source):
        ch = source[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch in pairs:
            stack.append(pairs[ch])
            if len(stack) > max_depth:
                return -1
        elif ch in (")", "]", "}"):
            if not stack or stack.pop() != ch:
                return -1
            if not stack:
                return i + 1
        i += 1
    return -1


def expression_text(value: Any) -> str:
    """Source text of a validation value (arrow function, chain or list)."""
    if isinstance(value, Expression):
        return value.source
    if isinstance(value, list):
        return " ".join(expression_text(v) for v in value)
    if isinstance(value, str):
        return value
    return ""


def parse_validation(value: Any) -> ValidationRules:
    """Detect required/min/max in a validation expression."""
    text = expression_text(value)
    if not text:
        return ValidationRules()

    min_match = MIN_PATTERN.search(text)
    max_match = MAX_PATTERN.search(text)
    return ValidationRules(
        required=bool(REQUIRED_PATTERN.search(text)),
        min=int(min_match.group(1)) if min_match else None,
        max=int(max_match.group(1)) if max_match else None,
    )


def parse_options(value: Any) -> FieldOptions:
    """Read slug source, enumeration list and hotspot flag from options."""
    if not isinstance(value, dict):
        return FieldOptions()

    source = value.get("source")
    enum_options = []
    raw_list = value.get("list")
    if isinstance(raw_list, list):
        for item in raw_list:
            if isinstance(item, dict):
                enum_options.append(EnumOption(
                    title=str(item.get("title", "")),
                    value=str(item.get("value", "")),
                ))
            elif isinstance(item, (str, int, float)):
                enum_options.append(EnumOption(title=str(item), value=str(item)))

    return FieldOptions(
        source=source if isinstance(source, str) else None,
        enum_options=enum_options,
        hotspot=value.get("hotspot") is True,
    )


def reference_targets(value: Any) -> List[str]:
    """Target type names of a reference ``to`` property, in order."""
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []

    targets = []
    for item in value:
        item = unwrap(item, WRAPPERS)
        if isinstance(item, dict) and isinstance(item.get("type"), str):
            targets.append(item["type"])
    return targets
