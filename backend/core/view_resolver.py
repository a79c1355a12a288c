"""
View column resolver — gives every view column the metadata a table column would carry.

Direct and wildcard projections copy type, nullability, primary-key membership
and foreign-key reference from their source column; views over views are
resolved recursively and each relation is resolved once per resolver instance.
Everything else gets the conservative default (nullable, not primary, no reference).
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter
from typing import Iterable, Mapping, Optional

from core.annotations import parse_optional_annotation
from core.errors import CyclicViewDependency
from core.relation_builder import normalize_type
from core.view_analyzer import DirectColumn, Opaque, Projection, ViewAnalysis, WildcardExpansion
from models.catalog import RawColumnRow, RelationRef
from models.schema import Column, Relation, Table, View

logger = logging.getLogger(__name__)


@dataclass
class ViewSource:
    """Everything the catalog told us about one view."""
    ref: RelationRef
    raw_columns: list[RawColumnRow]
    comment: Optional[str] = None
    definition: Optional[str] = None
    analysis: Optional[ViewAnalysis] = None     # None → every column is opaque

    def __post_init__(self):
        self.raw_columns = sorted(self.raw_columns, key=lambda c: c.ordinal_position)


def opaque_column(raw: RawColumnRow) -> Column:
    """A view column with no traceable provenance."""
    return Column(
        name=raw.name,
        ordinal_position=raw.ordinal_position,
        data_type=normalize_type(raw.data_type),
        nullable=True,
        is_primary=False,
        default=raw.default,
        annotation=parse_optional_annotation(raw.comment),
    )


def unresolved_view(source: ViewSource) -> View:
    """Build a view from catalog rows alone, without lineage."""
    return View(
        name=source.ref.name,
        schema_name=source.ref.schema_name,
        columns=[opaque_column(raw) for raw in source.raw_columns],
        annotation=parse_optional_annotation(source.comment),
        is_materialized=source.ref.kind == "materialized_view",
        depends_on=list(source.analysis.sources) if source.analysis else [],
        definition=source.definition,
    )


class ViewResolver:
    """
    Per-pass resolution arena. Tables are seeded up front; views are resolved on
    demand and cached by RelationRef, so a view shared by many dependents is
    resolved once. Do not reuse an instance across extraction passes.
    """

    def __init__(self, tables: Mapping[RelationRef, Table], views: Iterable[ViewSource]):
        self._arena: dict[RelationRef, Relation] = dict(tables)
        self._views: dict[RelationRef, ViewSource] = {v.ref: v for v in views}
        self._lock = threading.Lock()

    # ── Public API ────────────────────────────────────────────────────────────

    def resolve(self, ref: RelationRef) -> Optional[Relation]:
        """Return the resolved relation for ``ref``, or None if it is not part of this pass."""
        return self._resolve(ref, ())

    def resolve_all(self, max_workers: int = 4) -> list[View]:
        """Resolve every view in topological order and return them in input order.

        Views in the same rank have no dependency on each other and are resolved
        concurrently. Raises CyclicViewDependency before any view is resolved.
        """
        sorter: TopologicalSorter = TopologicalSorter()
        for ref, source in self._views.items():
            deps = [d for d in (source.analysis.sources if source.analysis else []) if d in self._views]
            sorter.add(ref, *deps)
        try:
            sorter.prepare()
        except CycleError as e:
            cycle = e.args[1] if len(e.args) > 1 else []
            raise CyclicViewDependency([r.qualified_name for r in cycle]) from e

        rank = 0
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            while sorter.is_active():
                ready = sorter.get_ready()
                logger.debug("Resolving view rank %d: %s", rank, ", ".join(r.qualified_name for r in ready))
                list(pool.map(self.resolve, ready))
                sorter.done(*ready)
                rank += 1

        return [self._arena[ref] for ref in self._views]

    # ── Resolution ────────────────────────────────────────────────────────────

    def _resolve(self, ref: RelationRef, resolving: tuple) -> Optional[Relation]:
        with self._lock:
            cached = self._arena.get(ref)
        if cached is not None:
            return cached
        source = self._views.get(ref)
        if source is None:
            return None
        if ref in resolving:
            chain = [r.qualified_name for r in resolving[resolving.index(ref):]] + [ref.qualified_name]
            raise CyclicViewDependency(chain)

        view = self._build(source, resolving + (ref,))
        with self._lock:
            view = self._arena.setdefault(ref, view)
        return view

    def _build(self, source: ViewSource, resolving: tuple) -> View:
        if source.analysis is None:
            return unresolved_view(source)

        expanded, complete = self._expand(source.analysis.projections, resolving)
        pairs = self._pair(source.raw_columns, expanded, complete)
        columns = [self._column_for(raw, desc, resolving) for raw, desc in pairs]

        logger.debug("Resolved %s (%d columns)", source.ref.qualified_name, len(columns))
        return View(
            name=source.ref.name,
            schema_name=source.ref.schema_name,
            columns=columns,
            annotation=parse_optional_annotation(source.comment),
            is_materialized=source.ref.kind == "materialized_view",
            depends_on=list(source.analysis.sources),
            definition=source.definition,
        )

    def _expand(self, projections: list[Projection], resolving: tuple) -> tuple[list[Projection], bool]:
        """Splice wildcard expansions into per-column descriptors.

        The second value is False when a wildcard could not be expanded, in
        which case positions are no longer reliable.
        """
        expanded: list[Projection] = []
        complete = True
        for desc in projections:
            if not isinstance(desc, WildcardExpansion):
                expanded.append(desc)
                continue
            relation = self._resolve(desc.source, resolving) if desc.source else None
            if relation is None:
                complete = False
                continue
            expanded.extend(DirectColumn(desc.source, col.name, col.name) for col in relation.columns)
        return expanded, complete

    @staticmethod
    def _pair(
        raw_columns: list[RawColumnRow], expanded: list[Projection], complete: bool
    ) -> list[tuple[RawColumnRow, Projection]]:
        """Line descriptors up with the catalog's ordinal column list.

        Positional when the counts agree (this also covers view column lists
        that rename outputs); otherwise by output name.
        """
        if complete and len(expanded) == len(raw_columns):
            return list(zip(raw_columns, expanded))
        by_name: dict[str, Projection] = {}
        for desc in expanded:
            by_name.setdefault(desc.output_name, desc)
        return [(raw, by_name.get(raw.name, Opaque(raw.name))) for raw in raw_columns]

    def _column_for(self, raw: RawColumnRow, desc: Projection, resolving: tuple) -> Column:
        if not isinstance(desc, DirectColumn):
            return opaque_column(raw)
        relation = self._resolve(desc.source, resolving)
        origin = relation.get_column(desc.source_column) if relation is not None else None
        if origin is None:
            return opaque_column(raw)
        return Column(
            name=raw.name,
            ordinal_position=raw.ordinal_position,
            data_type=origin.data_type,
            nullable=origin.nullable,
            is_primary=origin.is_primary,
            default=raw.default,
            annotation=parse_optional_annotation(raw.comment),
            reference=origin.reference,
        )
