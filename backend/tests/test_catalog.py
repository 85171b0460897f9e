from __future__ import annotations

from bson import ObjectId

ADMIN = {"Authorization": "Bearer admin-token"}


def _category(client, name: str, parent: str | None = None) -> str:
    body = {"name": name}
    if parent:
        body["parent"] = parent
    r = client.post("/api/categories", json=body, headers=ADMIN)
    assert r.status_code == 201, r.text
    return r.json()["data"]["id"]


def _product(client, category: str, **extra) -> dict:
    body = {"name": "Therapy Putty", "description": "Hand strength putty", "price": 100, "category": category}
    body.update(extra)
    r = client.post("/api/products/admin", json=body, headers=ADMIN)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_category_cannot_parent_itself(client):
    a = _category(client, "Speech")
    r = client.put(f"/api/categories/{a}", json={"parent": a}, headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error"] == "Category cannot be a parent of itself"


def test_category_cycle_through_descendant_is_rejected(client):
    a = _category(client, "Speech")
    b = _category(client, "Articulation", parent=a)
    c = _category(client, "Lisp", parent=b)

    r = client.put(f"/api/categories/{a}", json={"parent": c}, headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error"] == "Category cannot be moved under its own subcategory"

    # Moving a leaf elsewhere is fine.
    other = _category(client, "Motor")
    assert client.put(f"/api/categories/{c}", json={"parent": other}, headers=ADMIN).status_code == 200


def test_category_unknown_parent_is_404(client):
    r = client.post("/api/categories", json={"name": "Orphan", "parent": "0123456789abcdef01234567"}, headers=ADMIN)
    assert r.status_code == 404
    assert r.json()["error"] == "Parent category not found"


def test_category_delete_blocked_by_children_and_products(client):
    parent = _category(client, "Speech")
    child = _category(client, "Articulation", parent=parent)

    r = client.delete(f"/api/categories/{parent}", headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot delete category with subcategories"

    _product(client, child)
    r = client.delete(f"/api/categories/{child}", headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot delete category with associated products"


def test_category_tree_and_detail(client):
    parent = _category(client, "Speech")
    _category(client, "Fluency", parent=parent)
    _category(client, "Articulation", parent=parent)

    tree = client.get("/api/categories/tree").json()
    assert [c["name"] for c in tree["data"]] == ["Speech"]
    assert [s["name"] for s in tree["data"][0]["subcategories"]] == ["Articulation", "Fluency"]

    detail = client.get(f"/api/categories/{parent}").json()["data"]
    assert len(detail["subcategories"]) == 2


def test_product_create_computes_discount_and_checks_refs(client):
    cat = _category(client, "Sensory")
    p = _product(client, cat, discountType="percentage", discountPercentage=10, sku="PUT-1")
    assert p["discountedPrice"] == 90
    assert p["category"]["name"] == "Sensory"

    missing = client.post(
        "/api/products/admin",
        json={"name": "X", "description": "d", "price": 1, "category": "0123456789abcdef01234567"},
        headers=ADMIN,
    )
    assert missing.status_code == 404
    assert missing.json()["error"] == "Category not found"

    dup = client.post(
        "/api/products/admin",
        json={"name": "Y", "description": "d", "price": 1, "category": cat, "sku": "PUT-1"},
        headers=ADMIN,
    )
    assert dup.status_code == 400
    assert dup.json()["error"] == "Duplicate field value entered"


def test_product_validation_errors(client):
    cat = _category(client, "Sensory")
    r = client.post(
        "/api/products/admin",
        json={"name": "", "description": "d", "price": -1, "category": cat},
        headers=ADMIN,
    )
    assert r.status_code == 400
    fields = [e["field"] for e in r.json()["errors"]]
    assert fields == ["name", "price"]


def test_product_delete_discontinues_when_ordered(client, db):
    cat = _category(client, "Sensory")
    ordered = _product(client, cat)
    loose = _product(client, cat, name="Chewy Tube")
    db["orders"].insert_one({"items": [{"product": ObjectId(ordered["id"]), "quantity": 1}]})

    r = client.delete(f"/api/products/admin/{ordered['id']}", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "discontinued"
    assert r.json()["data"]["isActive"] is False

    assert client.delete(f"/api/products/admin/{loose['id']}", headers=ADMIN).json()["data"] == {}
    assert client.get(f"/api/products/{loose['id']}").status_code == 404


def test_products_by_category_include_subcategories(client):
    parent = _category(client, "Speech")
    child = _category(client, "Fluency", parent=parent)
    _product(client, parent, name="Flash Cards")
    _product(client, child, name="Metronome")
    _product(client, _category(client, "Motor"), name="Balance Board")

    r = client.get(f"/api/products/category/{parent}", params={"sort": "name"})
    assert [p["name"] for p in r.json()["data"]] == ["Flash Cards", "Metronome"]


def test_stock_update_and_low_stock_report(client):
    cat = _category(client, "Sensory")
    p = _product(client, cat, quantity=20)
    _product(client, cat, name="Fidget", quantity=0)

    r = client.put(f"/api/products/admin/{p['id']}/stock", json={"quantity": 3}, headers=ADMIN)
    assert r.json()["data"]["quantity"] == 3

    low = client.get("/api/products/admin/inventory", params={"threshold": 5}, headers=ADMIN).json()
    assert [(row["name"], row["stockStatus"]) for row in low["data"]] == [
        ("Fidget", "Out of Stock"),
        ("Therapy Putty", "Low Stock"),
    ]

    bad = client.get("/api/products/admin/inventory", params={"threshold": 0}, headers=ADMIN)
    assert bad.status_code == 400

    assert client.get("/api/products/admin/inventory").status_code == 401


def test_assign_products_to_category(client):
    a = _category(client, "Speech")
    b = _category(client, "Motor")
    p = _product(client, a)

    r = client.put(f"/api/categories/{b}/products", json={"products": [p["id"]]}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["data"]["products"] == [p["id"]]
    assert client.get(f"/api/products/{p['id']}").json()["data"]["category"]["name"] == "Motor"

    bad = client.put(
        f"/api/categories/{b}/products",
        json={"products": ["0123456789abcdef01234567"]},
        headers=ADMIN,
    )
    assert bad.status_code == 400


def test_product_list_price_range_and_select(client):
    cat = _category(client, "Sensory")
    for name, price in [("A", 3), ("B", 5), ("C", 7), ("D", 10), ("E", 12)]:
        _product(client, cat, name=name, price=price)

    r = client.get(
        "/api/products",
        params={"price[gte]": "5", "price[lte]": "10", "select": "price", "sort": "price"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total"] == 3
    assert [row["price"] for row in body["data"]] == [5, 7, 10]
    for row in body["data"]:
        assert row["id"]
        assert "name" not in row
        assert "description" not in row
