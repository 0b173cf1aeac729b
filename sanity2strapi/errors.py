"""Error taxonomy for the migration pipeline.

Only :class:`PreFlightError` aborts a run. Every other error is caught at
its local boundary, logged, and appended to the run's error log using one
of the :class:`ErrorKind` codes below.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Codes recorded in the migration error log."""
    RECOVERY = "recovery_error"
    INFERENCE_AMBIGUITY = "inference_ambiguity"
    SCHEMA_MISSING = "schema_missing"
    FIELD_TRANSFORM = "field_transform_error"
    ASSET_UNRESOLVED = "asset_unresolved"
    CREATE_REJECTED = "create_rejected"
    RELATIONSHIP_UNRESOLVED = "relationship_unresolved"


ERRORS: Dict[str, str] = {
    ErrorKind.RECOVERY.value: "Schema source could not be parsed",
    ErrorKind.INFERENCE_AMBIGUITY.value: "Reference target could not be determined",
    ErrorKind.SCHEMA_MISSING.value: "No target schema for document type",
    ErrorKind.FIELD_TRANSFORM.value: "Field could not be transformed",
    ErrorKind.ASSET_UNRESOLVED.value: "Asset was not migrated",
    ErrorKind.CREATE_REJECTED.value: "Target rejected entity creation",
    ErrorKind.RELATIONSHIP_UNRESOLVED.value: "Relationship could not be applied",
}


class MigrationError(Exception):
    """Base class for all migration errors."""

    kind: Optional[ErrorKind] = None


class PreFlightError(MigrationError):
    """Raised when the run cannot start (bad paths, credentials, provider)."""


class DefinitionParseError(MigrationError):
    """Raised by the definition parser on malformed input."""

    kind = ErrorKind.RECOVERY

    def __init__(self, message: str, position: int = -1):
        super().__init__(f"{message} (at offset {position})" if position >= 0 else message)
        self.position = position


class SchemaMissingError(MigrationError):
    """No target schema exists for a document's type."""

    kind = ErrorKind.SCHEMA_MISSING


class FieldTransformError(MigrationError):
    """A single field could not be converted."""

    kind = ErrorKind.FIELD_TRANSFORM


class CreateRejectedError(MigrationError):
    """The target store answered a write with a non-retryable error."""

    kind = ErrorKind.CREATE_REJECTED

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RelationshipUnresolvedError(MigrationError):
    """A deferred relationship could not be written."""

    kind = ErrorKind.RELATIONSHIP_UNRESOLVED
