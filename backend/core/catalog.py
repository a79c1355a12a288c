"""
Catalog access port — the narrow interface the extraction core reads the database through.
Implementations live in integrations/; every method may raise CatalogUnavailable.
"""
from typing import Optional, Protocol

from models.catalog import RawColumnRow, RawConstraintRow, RawTypeRow, RelationRef


class CatalogPort(Protocol):
    # sqlglot dialect name used to parse view definitions ("postgres", "sqlite", ...)
    dialect: str

    def list_relations(self, schema_name: str) -> list[RelationRef]: ...

    def get_columns(self, ref: RelationRef) -> list[RawColumnRow]: ...

    def get_constraints(self, ref: RelationRef) -> list[RawConstraintRow]: ...

    def get_view_definition(self, ref: RelationRef) -> Optional[str]: ...

    def get_comment(self, ref: RelationRef) -> Optional[str]: ...

    def list_types(self, schema_name: str) -> list[RawTypeRow]: ...
