"""Pydantic schemas for raw system-catalog rows returned by a catalog port."""
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

RelationKind = Literal["table", "view", "materialized_view"]


class RelationRef(BaseModel):
    """Identity of a table or view inside a schema. Hashable, used as a cache key."""
    model_config = ConfigDict(frozen=True)

    schema_name: str
    name: str
    kind: RelationKind = "table"

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"

    @property
    def is_view(self) -> bool:
        return self.kind != "table"


class RawColumnRow(BaseModel):
    name: str
    ordinal_position: int
    data_type: Optional[str] = None
    is_not_null: bool = False
    default: Optional[str] = None
    comment: Optional[str] = None


class RawConstraintRow(BaseModel):
    name: Optional[str] = None
    kind: Literal["primary_key", "foreign_key"]
    columns: list[str]
    referred_schema: Optional[str] = None
    referred_table: Optional[str] = None
    referred_columns: list[str] = Field(default_factory=list)
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


class RawTypeRow(BaseModel):
    name: str
    schema_name: str
    kind: Literal["enum", "domain"] = "enum"
    labels: list[str] = Field(default_factory=list)
    base_type: Optional[str] = None
    comment: Optional[str] = None
