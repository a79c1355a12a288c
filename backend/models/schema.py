"""Pydantic schemas for the extracted schema tree.

Everything here is plain data and serializes with ``model_dump(mode="json")``.
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field, computed_field

from models.catalog import RelationRef

ForeignKeyAction = Literal["NO ACTION", "CASCADE", "SET NULL", "SET DEFAULT", "RESTRICT"]

UNKNOWN_TYPE = "unknown"


class Annotation(BaseModel):
    """Structured metadata mined from a comment string."""
    description: Optional[str] = None
    type_override: Optional[str] = None     # @type:<name>
    deprecated: Optional[str] = None        # @deprecated[:reason]
    fixed: bool = False                     # @fixed
    extra_tags: dict[str, str] = Field(default_factory=dict)

    @computed_field
    @property
    def tags(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        if self.type_override is not None:
            merged["type"] = self.type_override
        if self.deprecated is not None:
            merged["deprecated"] = self.deprecated
        if self.fixed:
            merged["fixed"] = ""
        merged.update(self.extra_tags)
        return merged

    @property
    def is_empty(self) -> bool:
        return self.description is None and not self.tags


class ForeignKeyRef(BaseModel):
    schema_name: str
    table_name: str
    column_name: str
    on_delete: ForeignKeyAction = "NO ACTION"
    on_update: ForeignKeyAction = "NO ACTION"
    constraint_name: Optional[str] = None
    ambiguous: bool = False                 # best-effort pick from a multi-column/overlapping FK


class Column(BaseModel):
    name: str
    ordinal_position: int
    data_type: str = UNKNOWN_TYPE
    nullable: bool = True
    is_primary: bool = False
    default: Optional[str] = None
    annotation: Optional[Annotation] = None
    reference: Optional[ForeignKeyRef] = None


class Relation(BaseModel):
    name: str
    schema_name: str
    columns: list[Column] = Field(default_factory=list)
    annotation: Optional[Annotation] = None

    def get_column(self, name: str) -> Optional[Column]:
        for col in self.columns:
            if col.name == name:
                return col
        return None


class Table(Relation):
    kind: Literal["table"] = "table"


class View(Relation):
    kind: Literal["view"] = "view"
    is_materialized: bool = False
    depends_on: list[RelationRef] = Field(default_factory=list)
    definition: Optional[str] = None


class CustomType(BaseModel):
    name: str
    schema_name: str
    kind: Literal["enum", "domain"] = "enum"
    labels: list[str] = Field(default_factory=list)
    base_type: Optional[str] = None
    annotation: Optional[Annotation] = None


class Schema(BaseModel):
    name: str
    tables: list[Table] = Field(default_factory=list)
    views: list[View] = Field(default_factory=list)
    types: list[CustomType] = Field(default_factory=list)

    def get_relation(self, name: str) -> Optional[Relation]:
        for rel in [*self.tables, *self.views]:
            if rel.name == name:
                return rel
        return None


class ExtractionIssue(BaseModel):
    kind: Literal["skipped_relation", "degraded_view", "ambiguous_reference"]
    relation: str                           # schema.name
    column: Optional[str] = None
    message: str


class ExtractionResult(BaseModel):
    database_schema: Schema
    issues: list[ExtractionIssue] = Field(default_factory=list)
