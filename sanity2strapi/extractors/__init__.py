"""Readers for the source studio project and dataset export."""

from .definition_parser import DefinitionParser, parse_value
from .schema_extractor import SchemaExtractor
from .export_reader import ExportReader

__all__ = [
    "DefinitionParser",
    "parse_value",
    "SchemaExtractor",
    "ExportReader",
]
