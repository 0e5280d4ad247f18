"""Domain models for the bulk upload engine.

Schema registry, row level models and the upload report.
"""

from .error_record import ErrorRecord
from .row_data import RowData, RowError, RowOutcome
from .schema import EntityKind, EntitySchema, FieldSpec, FieldType, get_schema
from .upload_report import UploadReport, UploadStage

__all__ = [
    # Schema registry
    "EntityKind",
    "EntitySchema",
    "FieldSpec",
    "FieldType",
    "get_schema",
    # Processing models
    "ErrorRecord",
    "RowData",
    "RowError",
    "RowOutcome",
    "UploadReport",
    "UploadStage",
]
