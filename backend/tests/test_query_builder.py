from __future__ import annotations

from datetime import datetime, timezone

import pytest
from bson import ObjectId

ADMIN = {"Authorization": "Bearer admin-token"}


def test_filters_cast_by_field_type_and_skip_reserved_keys():
    from clinic.query.builder import QuerySpec, parse_filters

    spec = QuerySpec(field_types={"price": "number", "isActive": "bool", "date": "date"})
    out = parse_filters(
        {
            "price[gte]": "10",
            "price[lt]": "50.5",
            "isActive": "true",
            "date[gt]": "2024-01-01T00:00:00Z",
            "page": "2",
            "limit": "5",
            "sort": "-price",
            "select": "name",
            "search": "x",
        },
        spec,
    )
    assert out == {
        "price": {"$gte": 10, "$lt": 50.5},
        "isActive": True,
        "date": {"$gt": datetime(2024, 1, 1, tzinfo=timezone.utc)},
    }


def test_repeated_plain_key_becomes_in_and_in_operator_splits_commas():
    from clinic.query.builder import QuerySpec, parse_filters

    spec = QuerySpec()
    assert parse_filters({"status": ["draft", "active"]}, spec) == {"status": {"$in": ["draft", "active"]}}
    assert parse_filters({"tags[in]": "a, b,c"}, spec) == {"tags": {"$in": ["a", "b", "c"]}}


@pytest.mark.parametrize(
    "params",
    [
        {"price[regex]": "1"},
        {"price[gte]": "abc"},
        {"$where": "1"},
    ],
)
def test_bad_filters_are_validation_errors(params):
    from clinic.errors import ValidationFailed
    from clinic.query.builder import QuerySpec, parse_filters

    with pytest.raises(ValidationFailed):
        parse_filters(params, QuerySpec(field_types={"price": "number"}))


def test_sort_appends_id_tiebreaker_and_projection_keeps_id():
    from clinic.query.builder import parse_projection, parse_sort

    assert parse_sort("-price,name", "-createdAt") == [("price", -1), ("name", 1), ("_id", 1)]
    assert parse_sort(None, "-createdAt") == [("createdAt", -1), ("_id", 1)]
    assert parse_projection("name, price") == {"name": 1, "price": 1, "_id": 1}
    assert parse_projection("") is None


def test_page_window_and_limit_cap():
    from clinic.query.builder import QuerySpec, build_list_query
    from clinic.settings import settings

    q = build_list_query({"page": "3", "limit": "10"}, QuerySpec())
    assert (q.page, q.limit, q.skip) == (3, 10, 20)

    capped = build_list_query({"limit": str(settings.max_page_limit + 500)}, QuerySpec())
    assert capped.limit == settings.max_page_limit


@pytest.mark.parametrize("page", ["0", "-1", "two"])
def test_page_must_be_positive_integer(page):
    from clinic.errors import ValidationFailed
    from clinic.query.builder import QuerySpec, build_list_query

    with pytest.raises(ValidationFailed) as exc:
        build_list_query({"page": page}, QuerySpec())
    assert exc.value.errors[0]["field"] == "page"


def test_search_is_escaped_and_combined_with_base_filter():
    from clinic.query.builder import QuerySpec, build_list_query

    spec = QuerySpec(search_fields=("name", "sku"))
    q = build_list_query({"search": "a.b", "status": "active"}, spec, base_filter={"category": "c1"})
    assert q.filter == {
        "$and": [
            {"category": "c1"},
            {"status": "active"},
            {"$or": [{"name": {"$regex": r"a\.b", "$options": "i"}}, {"sku": {"$regex": r"a\.b", "$options": "i"}}]},
        ]
    }


def test_count_and_page_share_the_same_filter(db):
    from clinic.db.mongo.collection import get_collection
    from clinic.query.builder import QuerySpec, list_resource

    coll = get_collection("things")
    coll.insert_many([{"name": f"t{i}", "kind": "a" if i % 2 else "b", "n": i} for i in range(7)])

    result = list_resource(coll, {"kind": "a", "limit": "2", "sort": "n"}, QuerySpec(field_types={"n": "int"}))
    assert result.total == 3
    assert [d["n"] for d in result.items] == [1, 3]
    assert result.pagination == {"next": {"page": 2, "limit": 2}}

    last = list_resource(coll, {"kind": "a", "limit": "2", "page": "2", "sort": "n"}, QuerySpec())
    assert [d["n"] for d in last.items] == [5]
    assert last.pagination == {"prev": {"page": 1, "limit": 2}}


def test_list_endpoint_returns_envelope_with_pagination(client, db):
    category = db["categories"].insert_one({"name": "Speech", "isActive": True}).inserted_id
    for i in range(3):
        db["products"].insert_one(
            {
                "_id": ObjectId(),
                "name": f"Product {i}",
                "price": 10 + i,
                "category": category,
                "isActive": True,
                "createdAt": datetime(2024, 1, 1 + i),
            }
        )

    r = client.get("/api/products", params={"limit": 2, "sort": "price", "price[gte]": 11})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert body["total"] == 2
    assert [p["name"] for p in body["data"]] == ["Product 1", "Product 2"]
    assert body["data"][0]["category"]["name"] == "Speech"
    assert body["pagination"] == {}


def test_list_endpoint_rejects_bad_page(client):
    r = client.get("/api/products", params={"page": "0"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["errors"][0]["field"] == "page"
