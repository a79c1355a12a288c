"""
Schema extractor — drives one extraction pass over a target schema.

  1. List relations and types through the catalog port
  2. Build tables concurrently (results kept in catalog discovery order)
  3. Load views, analyze their definitions and resolve columns in dependency order
  4. Attach custom types and return the Schema with any non-fatal issues
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Optional

from config import settings
from core.annotations import parse_optional_annotation
from core.catalog import CatalogPort
from core.errors import CatalogMismatch, ExtractionTimeout, UnparsableViewDefinition
from core.relation_builder import build_table, normalize_type
from core.view_analyzer import analyze_view
from core.view_resolver import ViewResolver, ViewSource, unresolved_view
from models.catalog import RawTypeRow, RelationRef
from models.schema import CustomType, ExtractionIssue, ExtractionResult, Schema, Table

logger = logging.getLogger(__name__)


def _issue(kind: str, ref: RelationRef, message: str, column: Optional[str] = None) -> ExtractionIssue:
    logger.warning("%s: %s", ref.qualified_name, message)
    return ExtractionIssue(kind=kind, relation=ref.qualified_name, column=column, message=message)


# ── Per-relation loaders (run on the worker pool) ─────────────────────────────

def _load_table(catalog: CatalogPort, ref: RelationRef) -> tuple[Optional[Table], list[ExtractionIssue]]:
    columns = catalog.get_columns(ref)
    constraints = catalog.get_constraints(ref)
    comment = catalog.get_comment(ref)
    try:
        table = build_table(ref, columns, constraints, comment)
    except CatalogMismatch as e:
        return None, [_issue("skipped_relation", ref, f"skipped: {e}")]

    issues = [
        _issue(
            "ambiguous_reference", ref,
            f"column {col.name} is part of a multi-column or overlapping foreign key; "
            f"using {col.reference.table_name}.{col.reference.column_name}",
            column=col.name,
        )
        for col in table.columns
        if col.reference is not None and col.reference.ambiguous
    ]
    logger.debug("Built table %s (%d columns)", ref.qualified_name, len(table.columns))
    return table, issues


def _load_view(catalog: CatalogPort, ref: RelationRef) -> ViewSource:
    return ViewSource(
        ref=ref,
        raw_columns=catalog.get_columns(ref),
        comment=catalog.get_comment(ref),
        definition=catalog.get_view_definition(ref),
    )


def _build_type(row: RawTypeRow) -> CustomType:
    return CustomType(
        name=row.name,
        schema_name=row.schema_name,
        kind=row.kind,
        labels=list(row.labels),
        base_type=normalize_type(row.base_type) if row.base_type else None,
        annotation=parse_optional_annotation(row.comment),
    )


# ── Pass ──────────────────────────────────────────────────────────────────────

def _run_pass(
    catalog: CatalogPort, schema_name: str, resolve_views: bool, max_workers: int
) -> ExtractionResult:
    t0 = time.time()
    relations = catalog.list_relations(schema_name)
    raw_types = catalog.list_types(schema_name)
    table_refs = [r for r in relations if not r.is_view]
    view_refs = [r for r in relations if r.is_view]
    logger.info(
        "Discovered %d tables, %d views, %d types in schema %s",
        len(table_refs), len(view_refs), len(raw_types), schema_name,
    )

    issues: list[ExtractionIssue] = []
    tables: dict[RelationRef, Table] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        # map() yields in submission order, not completion order
        for ref, (table, table_issues) in zip(table_refs, pool.map(lambda r: _load_table(catalog, r), table_refs)):
            issues.extend(table_issues)
            if table is not None:
                tables[ref] = table
        view_sources = list(pool.map(lambda r: _load_view(catalog, r), view_refs))

    if resolve_views:
        known_columns = {ref: [c.name for c in t.columns] for ref, t in tables.items()}
        known_columns.update({v.ref: [c.name for c in v.raw_columns] for v in view_sources})
        for source in view_sources:
            try:
                source.analysis = analyze_view(source.definition, source.ref, known_columns, catalog.dialect)
            except UnparsableViewDefinition as e:
                issues.append(_issue("degraded_view", source.ref, f"columns left unresolved: {e}"))
        views = ViewResolver(tables, view_sources).resolve_all(max_workers=max_workers)
    else:
        views = [unresolved_view(source) for source in view_sources]

    schema = Schema(
        name=schema_name,
        tables=list(tables.values()),
        views=views,
        types=[_build_type(row) for row in raw_types],
    )
    logger.info(
        "Extracted schema %s in %.2fs (%d tables, %d views, %d issues)",
        schema_name, time.time() - t0, len(schema.tables), len(schema.views), len(issues),
    )
    return ExtractionResult(database_schema=schema, issues=issues)


def extract_schema(
    catalog: CatalogPort,
    schema_name: str,
    resolve_views: Optional[bool] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> ExtractionResult:
    """
    Extract tables, views and types of ``schema_name`` from ``catalog``.

    Non-fatal problems (skipped tables, degraded views, ambiguous references)
    come back in ``ExtractionResult.issues``. CatalogUnavailable,
    CyclicViewDependency and ExtractionTimeout abort the pass with no result.
    """
    if resolve_views is None:
        resolve_views = settings.RESOLVE_VIEWS
    workers = max_workers or settings.EXTRACT_MAX_WORKERS
    if not timeout or timeout <= 0:
        return _run_pass(catalog, schema_name, resolve_views, workers)

    runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix="schema-extract")
    future = runner.submit(_run_pass, catalog, schema_name, resolve_views, workers)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout as e:
        raise ExtractionTimeout(f"Extraction of schema {schema_name!r} exceeded {timeout}s") from e
    finally:
        # the abandoned pass keeps running in the background; its result is discarded
        runner.shutdown(wait=False)
