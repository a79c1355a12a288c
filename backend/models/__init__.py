from models.catalog import RelationRef, RawColumnRow, RawConstraintRow, RawTypeRow  # noqa: F401
from models.connection import ConnectionRequest, ConnectionResponse, ConnectionListItem, ExtractRequest  # noqa: F401
from models.schema import (  # noqa: F401
    Annotation,
    Column,
    CustomType,
    ExtractionIssue,
    ExtractionResult,
    ForeignKeyRef,
    Schema,
    Table,
    View,
)
