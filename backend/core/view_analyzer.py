"""
View definition analyzer — decomposes a view's defining query into projection descriptors.

Each output column of the view is described by where it comes from:
  - DirectColumn       exactly one column of one source relation (possibly aliased)
  - WildcardExpansion  ``*`` or ``alias.*``, expanded later against the resolved source
  - Opaque             any other expression; no provenance is recoverable

Parsing is done with sqlglot so both PostgreSQL ``pg_get_viewdef`` output and
SQLite ``CREATE VIEW ... AS SELECT`` statements are accepted.
"""
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Union

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from core.errors import UnparsableViewDefinition
from models.catalog import RelationRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectColumn:
    source: RelationRef
    source_column: str
    output_name: str


@dataclass(frozen=True)
class WildcardExpansion:
    # None when the source is a derived table, a CTE, or outside the known relations
    source: Optional[RelationRef]


@dataclass(frozen=True)
class Opaque:
    output_name: str


Projection = Union[DirectColumn, WildcardExpansion, Opaque]


@dataclass
class ViewAnalysis:
    """Known source relations (FROM/JOIN order) and one descriptor per projected item."""
    sources: list[RelationRef] = field(default_factory=list)
    projections: list[Projection] = field(default_factory=list)


@dataclass
class _Source:
    alias: str
    ref: Optional[RelationRef]
    columns: Optional[list[str]]    # None when the column list is unknown


def _match_name(name: str, candidates: Sequence[str]) -> Optional[str]:
    """Exact match first, then a case-insensitive one if it is unique."""
    if name in candidates:
        return name
    folded = [c for c in candidates if c.casefold() == name.casefold()]
    return folded[0] if len(folded) == 1 else None


class _RelationIndex:
    def __init__(self, relations: Mapping[RelationRef, Sequence[str]], default_schema: str):
        self.relations = relations
        self.default_schema = default_schema
        self.by_key = {(ref.schema_name, ref.name): ref for ref in relations}

    def lookup(self, schema: Optional[str], name: str) -> Optional[RelationRef]:
        """Schema-qualified names match exactly; bare names prefer the view's own schema."""
        ref = self.by_key.get((schema or self.default_schema, name))
        if ref is not None:
            return ref
        candidates = [
            r for r in self.relations
            if r.name.casefold() == name.casefold()
            and (schema is None or r.schema_name.casefold() == schema.casefold())
        ]
        return candidates[0] if len(candidates) == 1 else None


def _parse_select(definition: Optional[str], view: RelationRef, dialect: str) -> exp.Select:
    text = (definition or "").strip().rstrip(";").strip()
    if not text:
        raise UnparsableViewDefinition(view.qualified_name, "view definition is empty")
    try:
        tree = sqlglot.parse_one(text, read=dialect)
    except SqlglotError as e:
        raise UnparsableViewDefinition(view.qualified_name, f"could not parse definition: {e}") from e

    # SQLite reports the whole CREATE VIEW statement
    if isinstance(tree, exp.Create):
        tree = tree.expression
    while isinstance(tree, (exp.Subquery, exp.Paren)):
        tree = tree.this
    if not isinstance(tree, exp.Select):
        kind = type(tree).__name__ if tree is not None else "nothing"
        raise UnparsableViewDefinition(view.qualified_name, f"expected a single SELECT, found {kind}")
    return tree


def _derived_columns(query: exp.Expression) -> Optional[list[str]]:
    if not isinstance(query, exp.Select):
        return None
    names = []
    for projection in query.expressions:
        if isinstance(projection, exp.Star) or (
            isinstance(projection, exp.Column) and isinstance(projection.this, exp.Star)
        ):
            return None
        names.append(projection.output_name)
    return names


def _collect_sources(
    node: Optional[exp.Expression],
    index: _RelationIndex,
    cte_names: set[str],
    out: list[_Source],
) -> None:
    """Walk a FROM item (table, derived table, parenthesized join) in clause order."""
    if node is None:
        return
    if isinstance(node, exp.Table):
        ref = None
        if not node.db and node.name in cte_names:
            logger.debug("Source %s is a CTE; provenance not traced", node.name)
        else:
            ref = index.lookup(node.db or None, node.name)
        columns = list(index.relations[ref]) if ref is not None else None
        out.append(_Source(alias=node.alias_or_name, ref=ref, columns=columns))
    elif isinstance(node, exp.Subquery) and isinstance(node.this, (exp.Select, exp.SetOperation)):
        out.append(_Source(alias=node.alias_or_name, ref=None, columns=_derived_columns(node.this)))
    elif isinstance(node, (exp.Subquery, exp.Paren)):
        _collect_sources(node.this, index, cte_names, out)
    else:
        # table functions, VALUES lists, LATERAL ...
        out.append(_Source(alias=node.alias_or_name, ref=None, columns=None))

    for join in node.args.get("joins") or []:
        _collect_sources(join.this, index, cte_names, out)


def _sources_of(select: exp.Select, index: _RelationIndex) -> list[_Source]:
    cte_names = {cte.alias_or_name for cte in select.ctes}
    sources: list[_Source] = []
    from_clause = select.args.get("from_")
    if isinstance(from_clause, exp.From):
        _collect_sources(from_clause.this, index, cte_names, sources)
        # implicit comma joins kept on the FROM node by some dialects
        for extra in from_clause.expressions:
            _collect_sources(extra, index, cte_names, sources)
    for join in select.args.get("joins") or []:
        _collect_sources(join.this, index, cte_names, sources)
    return sources


def _resolve_column(
    column: exp.Column, output_name: str, sources: list[_Source], qualified_aliases: set[str]
) -> Projection:
    qualifier = column.table
    if qualifier:
        src = next((s for s in sources if s.alias == qualifier), None)
        if src is None:
            src = next((s for s in sources if s.alias.casefold() == qualifier.casefold()), None)
        if src is None or src.ref is None or src.columns is None:
            return Opaque(output_name)
        name = _match_name(column.name, src.columns)
        return DirectColumn(src.ref, name, output_name) if name else Opaque(output_name)

    matches = [(s, _match_name(column.name, s.columns)) for s in sources if s.columns is not None]
    matches = [(s, name) for s, name in matches if name]
    if any(s.columns is None for s in sources):
        # an unknown source may also provide this column
        return Opaque(output_name)
    if len(matches) > 1:
        preferred = [(s, name) for s, name in matches if s.alias in qualified_aliases]
        matches = preferred
    if len(matches) != 1:
        return Opaque(output_name)
    src, name = matches[0]
    if src.ref is None:
        return Opaque(output_name)
    return DirectColumn(src.ref, name, output_name)


def analyze_view(
    definition: Optional[str],
    view: RelationRef,
    relations: Mapping[RelationRef, Sequence[str]],
    dialect: str = "postgres",
) -> ViewAnalysis:
    """
    Decompose a view definition into its source relations and projection descriptors.

    ``relations`` maps every candidate source relation to its catalog column
    names (in ordinal order). Raises UnparsableViewDefinition when the query is
    not a single SELECT (set operations, syntax sqlglot cannot read).
    """
    select = _parse_select(definition, view, dialect)
    index = _RelationIndex(relations, view.schema_name)
    sources = _sources_of(select, index)

    qualified_aliases = {
        col.table for item in select.expressions for col in item.find_all(exp.Column) if col.table
    }

    projections: list[Projection] = []
    for item in select.expressions:
        if isinstance(item, exp.Star):
            projections.extend(WildcardExpansion(s.ref) for s in sources)
            continue
        if isinstance(item, exp.Column) and isinstance(item.this, exp.Star):
            src = next((s for s in sources if s.alias == item.table), None)
            projections.append(WildcardExpansion(src.ref if src else None))
            continue

        output_name = item.output_name or "?column?"
        inner = item.this if isinstance(item, exp.Alias) else item
        while isinstance(inner, exp.Paren):
            inner = inner.this
        if isinstance(inner, exp.Column) and not isinstance(inner.this, exp.Star):
            projections.append(_resolve_column(inner, output_name, sources, qualified_aliases))
        else:
            projections.append(Opaque(output_name))

    # FROM/JOIN relations first, then relations read inside subqueries and CTEs
    cte_names = {cte.alias_or_name for cte in select.ctes}
    nested = [
        index.lookup(table.db or None, table.name)
        for table in select.find_all(exp.Table)
        if table.db or table.name not in cte_names
    ]
    known: list[RelationRef] = []
    for ref in [src.ref for src in sources] + nested:
        if ref is not None and ref not in known:
            known.append(ref)

    logger.debug(
        "Analyzed %s: %d source(s), %d projection(s)",
        view.qualified_name, len(known), len(projections),
    )
    return ViewAnalysis(sources=known, projections=projections)
