"""
SQLAlchemy-backed catalog port.
Reads tables, views, columns, constraints, comments and custom types through
``sqlalchemy.inspect``, with a few PostgreSQL catalog queries for what the
inspector does not expose (partitions, type comments).
"""
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import CompileError, SQLAlchemyError

from core.errors import CatalogUnavailable
from models.catalog import RawColumnRow, RawConstraintRow, RawTypeRow, RelationRef

logger = logging.getLogger(__name__)

# SQLAlchemy dialect name → sqlglot dialect name
SQLGLOT_DIALECTS = {"postgresql": "postgres", "sqlite": "sqlite", "mysql": "mysql"}

PARTITIONS_SQL = text(
    "SELECT c.relname FROM pg_catalog.pg_class c "
    "JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace "
    "WHERE n.nspname = :schema AND c.relispartition"
)

TYPE_COMMENTS_SQL = text(
    "SELECT t.typname, obj_description(t.oid, 'pg_type') AS comment "
    "FROM pg_catalog.pg_type t "
    "JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace "
    "WHERE n.nspname = :schema"
)


@contextmanager
def _catalog_call(what: str):
    try:
        yield
    except SQLAlchemyError as e:
        raise CatalogUnavailable(f"Catalog query failed ({what}): {e}") from e


class SqlAlchemyCatalog:
    """Catalog port over a SQLAlchemy engine. Safe to call from several threads."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.dialect = SQLGLOT_DIALECTS.get(engine.dialect.name, engine.dialect.name)
        self._is_postgres = engine.dialect.name == "postgresql"

    def _inspector(self):
        # a fresh Inspector per call: its reflection cache is not shared between threads
        return inspect(self.engine)

    # ── Relations ─────────────────────────────────────────────────────────────

    def list_relations(self, schema_name: str) -> list[RelationRef]:
        with _catalog_call(f"list relations in {schema_name}"):
            insp = self._inspector()
            tables = insp.get_table_names(schema=schema_name)
            partitions = self._partition_names(schema_name)
            views = insp.get_view_names(schema=schema_name)
            try:
                materialized = insp.get_materialized_view_names(schema=schema_name)
            except NotImplementedError:
                materialized = []

        refs = [RelationRef(schema_name=schema_name, name=t, kind="table") for t in tables if t not in partitions]
        refs += [RelationRef(schema_name=schema_name, name=v, kind="view") for v in views]
        refs += [RelationRef(schema_name=schema_name, name=m, kind="materialized_view") for m in materialized]
        logger.debug("Listed %d relations in %s (%d partitions excluded)", len(refs), schema_name, len(partitions))
        return refs

    def _partition_names(self, schema_name: str) -> set[str]:
        if not self._is_postgres:
            return set()
        with self.engine.connect() as conn:
            return {row[0] for row in conn.execute(PARTITIONS_SQL, {"schema": schema_name})}

    # ── Columns & constraints ─────────────────────────────────────────────────

    def _type_name(self, sa_type) -> Optional[str]:
        try:
            return sa_type.compile(dialect=self.engine.dialect)
        except CompileError:
            return None

    def get_columns(self, ref: RelationRef) -> list[RawColumnRow]:
        with _catalog_call(f"columns of {ref.qualified_name}"):
            raw_cols = self._inspector().get_columns(ref.name, schema=ref.schema_name)
        result = []
        for position, col in enumerate(raw_cols, start=1):
            default = col.get("default")
            result.append(RawColumnRow(
                name=col["name"],
                ordinal_position=position,
                data_type=self._type_name(col["type"]),
                is_not_null=not col.get("nullable", True),
                default=str(default) if default is not None else None,
                comment=col.get("comment"),
            ))
        return result

    def get_constraints(self, ref: RelationRef) -> list[RawConstraintRow]:
        with _catalog_call(f"constraints of {ref.qualified_name}"):
            insp = self._inspector()
            pk = insp.get_pk_constraint(ref.name, schema=ref.schema_name)
            fks = insp.get_foreign_keys(ref.name, schema=ref.schema_name)
            default_schema = insp.default_schema_name

        rows = []
        if pk and pk.get("constrained_columns"):
            rows.append(RawConstraintRow(
                name=pk.get("name"),
                kind="primary_key",
                columns=pk["constrained_columns"],
            ))
        for fk in fks:
            options = fk.get("options") or {}
            rows.append(RawConstraintRow(
                name=fk.get("name"),
                kind="foreign_key",
                columns=fk["constrained_columns"],
                # None means the target is on the search path
                referred_schema=fk.get("referred_schema") or default_schema or ref.schema_name,
                referred_table=fk["referred_table"],
                referred_columns=fk["referred_columns"],
                on_delete=options.get("ondelete"),
                on_update=options.get("onupdate"),
            ))
        return rows

    # ── Views & comments ──────────────────────────────────────────────────────

    def get_view_definition(self, ref: RelationRef) -> Optional[str]:
        with _catalog_call(f"definition of {ref.qualified_name}"):
            return self._inspector().get_view_definition(ref.name, schema=ref.schema_name)

    def get_comment(self, ref: RelationRef) -> Optional[str]:
        with _catalog_call(f"comment of {ref.qualified_name}"):
            try:
                return self._inspector().get_table_comment(ref.name, schema=ref.schema_name).get("text")
            except NotImplementedError:
                return None

    # ── Types ─────────────────────────────────────────────────────────────────

    def list_types(self, schema_name: str) -> list[RawTypeRow]:
        if not self._is_postgres:
            return []
        with _catalog_call(f"types in {schema_name}"):
            insp = self._inspector()
            enums = insp.get_enums(schema=schema_name)
            domains = insp.get_domains(schema=schema_name)
            with self.engine.connect() as conn:
                comments = {
                    row.typname: row.comment
                    for row in conn.execute(TYPE_COMMENTS_SQL, {"schema": schema_name})
                }

        rows = [
            RawTypeRow(
                name=e["name"],
                schema_name=e.get("schema") or schema_name,
                kind="enum",
                labels=list(e.get("labels") or []),
                comment=comments.get(e["name"]),
            )
            for e in enums
        ]
        rows += [
            RawTypeRow(
                name=d["name"],
                schema_name=d.get("schema") or schema_name,
                kind="domain",
                base_type=str(d.get("type")) if d.get("type") is not None else None,
                comment=comments.get(d["name"]),
            )
            for d in domains
        ]
        return rows
