from core.errors import (  # noqa: F401
    CatalogMismatch,
    CatalogUnavailable,
    CyclicViewDependency,
    ExtractionTimeout,
    SchemaExtractionError,
    UnparsableViewDefinition,
)
from core.annotations import parse_annotation  # noqa: F401
from core.relation_builder import build_table, normalize_type  # noqa: F401
from core.view_analyzer import analyze_view  # noqa: F401
from core.view_resolver import ViewResolver  # noqa: F401
from core.schema_extractor import extract_schema  # noqa: F401
