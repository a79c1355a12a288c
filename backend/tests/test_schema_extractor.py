import json

import pytest

from core.errors import CatalogUnavailable, CyclicViewDependency, ExtractionTimeout
from core.schema_extractor import extract_schema
from fakes import InMemoryCatalog, col, fk, pk


def _extract(catalog, **kwargs):
    kwargs.setdefault("resolve_views", True)
    return extract_schema(catalog, catalog.schema_name, **kwargs)


def _base_catalog():
    catalog = InMemoryCatalog("public")
    catalog.add_table(
        "secondary",
        [col("id", not_null=True)],
        [pk("id")],
    )
    catalog.add_table(
        "source",
        [col("id", not_null=True), col("name", "text"), col("secondary_ref", not_null=True)],
        [pk("id"), fk("secondary_ref", "secondary", "id")],
    )
    return catalog


def test_order_summary_reference_is_resolved(orders_catalog):
    result = _extract(orders_catalog)
    view = result.database_schema.get_relation("order_summary")

    ref = view.get_column("customer_id").reference
    assert (ref.schema_name, ref.table_name, ref.column_name) == ("public", "customers", "id")
    assert view.get_column("id").is_primary
    assert result.issues == []


def test_select_star_matches_source_table():
    catalog = _base_catalog()
    catalog.add_view(
        "v", "SELECT * FROM source",
        [col("id"), col("name", "text"), col("secondary_ref")],
    )
    result = _extract(catalog)
    source = result.database_schema.get_relation("source")
    view = result.database_schema.get_relation("v")

    assert [c.name for c in view.columns] == [c.name for c in source.columns]
    for view_col, table_col in zip(view.columns, source.columns):
        assert view_col.nullable == table_col.nullable
        assert view_col.is_primary == table_col.is_primary
        assert view_col.reference == table_col.reference
    assert view.get_column("secondary_ref").reference.on_delete == "NO ACTION"


def test_view_over_view_is_transitive():
    catalog = _base_catalog()
    columns = [col("id"), col("name", "text"), col("secondary_ref")]
    # dependent listed before its source to exercise topological ordering
    catalog.add_view("v2", "SELECT * FROM v1", columns)
    catalog.add_view("v1", "SELECT * FROM source", columns)
    schema = _extract(catalog).database_schema

    source = schema.get_relation("source")
    v2 = schema.get_relation("v2")
    assert [v.name for v in schema.views] == ["v2", "v1"]
    for view_col, table_col in zip(v2.columns, source.columns):
        assert (view_col.nullable, view_col.is_primary, view_col.reference) == (
            table_col.nullable, table_col.is_primary, table_col.reference,
        )


def test_literal_projection_is_conservative():
    catalog = _base_catalog()
    catalog.add_view("lit", "SELECT 1 AS literal_col FROM source", [col("literal_col")])
    column = _extract(catalog).database_schema.get_relation("lit").columns[0]
    assert (column.nullable, column.is_primary, column.reference) == (True, False, None)


def test_join_columns_keep_their_own_side_reference():
    catalog = InMemoryCatalog("public")
    catalog.add_table("t0", [col("id", not_null=True)], [pk("id")])
    catalog.add_table("t1", [col("id", not_null=True), col("t0_id")], [pk("id"), fk("t0_id", "t0", "id")])
    catalog.add_table(
        "t2",
        [col("id", not_null=True), col("ref_id"), col("t1_id")],
        [pk("id"), fk("ref_id", "t0", "id"), fk("t1_id", "t1", "id")],
    )
    catalog.add_view(
        "joined",
        "SELECT t1.id, t2.ref_id FROM t1 JOIN t2 ON t2.t1_id = t1.id",
        [col("id"), col("ref_id")],
    )
    schema = _extract(catalog).database_schema
    joined = schema.get_relation("joined")

    assert joined.get_column("id").reference is None
    assert joined.get_column("id").is_primary
    assert joined.get_column("ref_id").reference == schema.get_relation("t2").get_column("ref_id").reference
    assert joined.depends_on[0].name == "t1"


def test_cyclic_views_abort_the_pass():
    catalog = _base_catalog()
    catalog.add_view("a", "SELECT b.id FROM b", [col("id")])
    catalog.add_view("b", "SELECT c.id FROM c", [col("id")])
    catalog.add_view("c", "SELECT a.id FROM a", [col("id")])
    with pytest.raises(CyclicViewDependency):
        _extract(catalog)


def test_self_referencing_view_aborts_the_pass():
    catalog = _base_catalog()
    catalog.add_view("selfish", "SELECT selfish.id FROM selfish", [col("id")])
    with pytest.raises(CyclicViewDependency):
        _extract(catalog)


def test_table_resolution_is_deterministic(orders_catalog):
    first = _extract(orders_catalog).database_schema
    second = _extract(orders_catalog).database_schema
    assert first.tables == second.tables


def test_mismatched_table_is_skipped_and_reported():
    catalog = _base_catalog()
    catalog.add_table("broken", [col("id")], [pk("id"), fk("ghost_id", "source", "id")])
    catalog.add_view("over_broken", "SELECT broken.id FROM broken", [col("id")])
    result = _extract(catalog)

    assert [t.name for t in result.database_schema.tables] == ["secondary", "source"]
    assert [i.kind for i in result.issues] == ["skipped_relation"]
    assert result.issues[0].relation == "public.broken"
    view_col = result.database_schema.get_relation("over_broken").columns[0]
    assert view_col.nullable and not view_col.is_primary


def test_unparsable_view_degrades_and_extraction_continues():
    catalog = _base_catalog()
    catalog.add_view(
        "merged",
        "SELECT source.id FROM source UNION SELECT secondary.id FROM secondary",
        [col("id", "integer")],
    )
    catalog.add_view("plain", "SELECT source.id FROM source", [col("id")])
    result = _extract(catalog)

    merged = result.database_schema.get_relation("merged")
    assert merged.columns[0].nullable and not merged.columns[0].is_primary
    assert merged.columns[0].data_type == "integer"
    assert [(i.kind, i.relation) for i in result.issues] == [("degraded_view", "public.merged")]
    assert result.database_schema.get_relation("plain").columns[0].is_primary


def test_ambiguous_reference_is_a_warning():
    catalog = _base_catalog()
    catalog.add_table(
        "pairs",
        [col("a_id"), col("b_id")],
        [fk(["a_id", "b_id"], "source", ["id", "secondary_ref"])],
    )
    result = _extract(catalog)

    pairs = result.database_schema.get_relation("pairs")
    assert pairs.get_column("b_id").reference.column_name == "secondary_ref"
    assert [(i.kind, i.column) for i in result.issues] == [
        ("ambiguous_reference", "a_id"),
        ("ambiguous_reference", "b_id"),
    ]


def test_view_resolution_can_be_disabled(orders_catalog):
    schema = _extract(orders_catalog, resolve_views=False).database_schema
    view = schema.get_relation("order_summary")

    assert all(c.nullable and c.reference is None and not c.is_primary for c in view.columns)
    assert view.depends_on == []
    assert view.definition is not None


def test_types_materialized_views_and_comments():
    catalog = _base_catalog()
    catalog.add_enum("mood", ["sad", "ok", "happy"], comment="How it went @owner:crm")
    catalog.add_view(
        "totals", "SELECT source.id FROM source", [col("id")],
        comment="Nightly snapshot", materialized=True,
    )
    schema = _extract(catalog).database_schema

    mood = schema.types[0]
    assert (mood.name, mood.kind, mood.labels) == ("mood", "enum", ["sad", "ok", "happy"])
    assert mood.annotation.extra_tags == {"owner": "crm"}
    totals = schema.get_relation("totals")
    assert totals.is_materialized
    assert totals.annotation.description == "Nightly snapshot"
    assert totals.columns[0].is_primary


def test_tables_keep_discovery_order_under_concurrency():
    catalog = InMemoryCatalog("public")
    for name in ["slow", "medium", "fast"]:
        catalog.add_table(name, [col("id", not_null=True)], [pk("id")])
    catalog.delays = {"slow": 0.2, "medium": 0.1}
    schema = _extract(catalog, max_workers=3).database_schema
    assert [t.name for t in schema.tables] == ["slow", "medium", "fast"]


def test_catalog_unavailable_is_fatal(orders_catalog):
    orders_catalog.unavailable = True
    with pytest.raises(CatalogUnavailable):
        _extract(orders_catalog)


def test_timeout_abandons_the_pass(orders_catalog):
    orders_catalog.delays = {"orders": 1.0}
    with pytest.raises(ExtractionTimeout):
        _extract(orders_catalog, timeout=0.05)


def test_result_is_json_serializable(orders_catalog):
    result = _extract(orders_catalog)
    payload = json.loads(json.dumps(result.model_dump(mode="json")))

    orders = next(t for t in payload["database_schema"]["tables"] if t["name"] == "orders")
    customer_id = orders["columns"][1]
    assert customer_id["annotation"]["tags"] == {"type": "CustomerId"}
    assert customer_id["reference"]["table_name"] == "customers"
    assert orders["columns"][2]["data_type"] == "character varying"
