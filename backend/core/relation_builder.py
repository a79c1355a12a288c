"""
Relation metadata builder — turns raw catalog rows for one table into a Table model.
Resolves canonical types, nullability, defaults, primary-key membership and
foreign-key references, and merges parsed comment annotations.
"""
import logging
import re
from typing import Optional

from core.annotations import parse_optional_annotation
from core.errors import CatalogMismatch
from models.catalog import RawColumnRow, RawConstraintRow, RelationRef
from models.schema import UNKNOWN_TYPE, Column, ForeignKeyRef, Table

logger = logging.getLogger(__name__)

# Short internal names reported by some catalogs → canonical spelling
TYPE_ALIASES = {
    "int2": "smallint",
    "int4": "integer",
    "int": "integer",
    "int8": "bigint",
    "bool": "boolean",
    "float4": "real",
    "float8": "double precision",
    "timestamptz": "timestamp with time zone",
    "timetz": "time with time zone",
    "bpchar": "character",
}

FK_ACTIONS = {"NO ACTION", "CASCADE", "SET NULL", "SET DEFAULT", "RESTRICT"}

_MODIFIER_RE = re.compile(r"\([^)]*\)")


def normalize_type(raw: Optional[str]) -> str:
    """Lowercase a catalog type name and strip length/precision modifiers.

    VARCHAR(255)      → varchar
    NUMERIC(10, 2)    → numeric
    INTEGER[]         → integer[]
    int4              → integer
    """
    if not raw or not raw.strip():
        return UNKNOWN_TYPE
    name = _MODIFIER_RE.sub("", raw.strip().lower())
    name = " ".join(name.split()).replace('"', "")
    suffix = ""
    while name.endswith("[]"):
        name, suffix = name[:-2].rstrip(), suffix + "[]"
    return TYPE_ALIASES.get(name, name) + suffix


def _fk_action(raw: Optional[str]) -> str:
    action = " ".join((raw or "").upper().split())
    return action if action in FK_ACTIONS else "NO ACTION"


def _check_columns(ref: RelationRef, constraint: RawConstraintRow, known: set[str]) -> None:
    missing = [c for c in constraint.columns if c not in known]
    if missing:
        raise CatalogMismatch(
            ref.qualified_name,
            f"constraint {constraint.name or constraint.kind} references unknown column(s) {', '.join(missing)}",
        )


def _collect_references(
    ref: RelationRef, foreign_keys: list[RawConstraintRow]
) -> dict[str, ForeignKeyRef]:
    """Map each constrained column to the column it references.

    A column covered by exactly one single-column FK gets an exact reference.
    Multi-column FKs and columns covered by several FKs fall back to the first
    constraint's positionally matching target, flagged ambiguous.
    """
    hits: dict[str, list[tuple[RawConstraintRow, int]]] = {}
    for fk in foreign_keys:
        for pos, col_name in enumerate(fk.columns):
            hits.setdefault(col_name, []).append((fk, pos))

    refs: dict[str, ForeignKeyRef] = {}
    for col_name, matches in hits.items():
        fk, pos = matches[0]
        if pos >= len(fk.referred_columns) or not fk.referred_table:
            logger.debug("FK %s on %s has no target for %s", fk.name, ref.qualified_name, col_name)
            continue
        ambiguous = len(matches) > 1 or len(fk.columns) > 1
        refs[col_name] = ForeignKeyRef(
            schema_name=fk.referred_schema or ref.schema_name,
            table_name=fk.referred_table,
            column_name=fk.referred_columns[pos],
            on_delete=_fk_action(fk.on_delete),
            on_update=_fk_action(fk.on_update),
            constraint_name=fk.name,
            ambiguous=ambiguous,
        )
    return refs


def build_columns(
    ref: RelationRef, raw_columns: list[RawColumnRow], constraints: list[RawConstraintRow]
) -> list[Column]:
    """Build the canonical column list for a relation, ordered by ordinal position."""
    ordered = sorted(raw_columns, key=lambda c: c.ordinal_position)
    known: set[str] = set()
    for raw in ordered:
        if raw.name in known:
            raise CatalogMismatch(ref.qualified_name, f"column {raw.name} reported more than once")
        known.add(raw.name)

    pk_cols: set[str] = set()
    foreign_keys: list[RawConstraintRow] = []
    for constraint in constraints:
        _check_columns(ref, constraint, known)
        if constraint.kind == "primary_key":
            pk_cols.update(constraint.columns)
        else:
            foreign_keys.append(constraint)
    fk_map = _collect_references(ref, foreign_keys)

    return [
        Column(
            name=raw.name,
            ordinal_position=raw.ordinal_position,
            data_type=normalize_type(raw.data_type),
            nullable=not raw.is_not_null,
            is_primary=raw.name in pk_cols,
            default=raw.default,
            annotation=parse_optional_annotation(raw.comment),
            reference=fk_map.get(raw.name),
        )
        for raw in ordered
    ]


def build_table(
    ref: RelationRef,
    raw_columns: list[RawColumnRow],
    constraints: list[RawConstraintRow],
    comment: Optional[str] = None,
) -> Table:
    """Build a Table from its catalog rows. Raises CatalogMismatch on inconsistent rows."""
    return Table(
        name=ref.name,
        schema_name=ref.schema_name,
        columns=build_columns(ref, raw_columns, constraints),
        annotation=parse_optional_annotation(comment),
    )
