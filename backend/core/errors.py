"""Exception taxonomy for a schema extraction pass."""


class SchemaExtractionError(Exception):
    """Base class for every error raised by the extraction core."""


class CatalogUnavailable(SchemaExtractionError):
    """Raised when the database catalog cannot be queried (transport, auth, driver)."""


class CatalogMismatch(SchemaExtractionError):
    """Raised when catalog rows for one relation contradict each other."""

    def __init__(self, relation: str, message: str):
        super().__init__(f"{relation}: {message}")
        self.relation = relation


class UnparsableViewDefinition(SchemaExtractionError):
    """Raised when a view's query cannot be split into sources and a projection list."""

    def __init__(self, relation: str, message: str):
        super().__init__(f"{relation}: {message}")
        self.relation = relation


class CyclicViewDependency(SchemaExtractionError):
    """Raised when a view depends on itself, directly or through other views."""

    def __init__(self, relations: list[str]):
        super().__init__("Cyclic view dependency: " + " -> ".join(relations))
        self.relations = relations


class ExtractionTimeout(SchemaExtractionError):
    """Raised when a pass exceeds the caller's timeout. No partial schema is returned."""
