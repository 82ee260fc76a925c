from pymongo.errors import PyMongoError

import main
from conftest import order_payload


def test_stats_empty_store(client, auth_headers):
    res = client.get("/stats", headers=auth_headers)
    assert res.status_code == 200
    stats = res.json()
    assert stats["total_orders"] == 0
    assert stats["total_sales"] == 0
    assert stats["total_profit"] == 0
    assert stats["average_order_value"] == 0
    assert stats["profit_by_source"] == {}


def test_stats_two_orders(client, auth_headers, make_source, make_product):
    source = make_source("Dhaka Wholesale")
    big = make_product(source["id"], name="Saree", price=100, buying_price=80)
    small = make_product(source["id"], name="Scarf", price=50, buying_price=40)
    client.post("/orders", json=order_payload([{"product": big["id"], "quantity": 1}]), headers=auth_headers)
    client.post("/orders", json=order_payload([{"product": small["id"], "quantity": 1}]), headers=auth_headers)

    stats = client.get("/stats", headers=auth_headers).json()
    assert stats["total_orders"] == 2
    assert stats["total_products"] == 2
    assert stats["total_sources"] == 1
    assert stats["total_sales"] == 150.00
    assert stats["total_profit"] == 30.00
    assert stats["average_order_value"] == 75.00
    assert stats["total_products_sold"] == 2
    assert stats["profit_by_source"] == {source["id"]: {"name": "Dhaka Wholesale", "total_profit": 30.0}}


def test_stats_uses_stored_order_totals(client, auth_headers, db):
    db["order"].insert_many([
        {"title": "a", "products": [], "total_amount": 100, "total_profit": 20},
        {"title": "b", "products": [], "total_amount": 50, "total_profit": 10},
        {"title": "c", "products": [], "total_amount": 10.25, "total_profit": 1},
    ])
    stats = client.get("/stats", headers=auth_headers).json()
    assert stats["total_orders"] == 3
    assert stats["total_sales"] == 160.25
    assert stats["average_order_value"] == 53.42


def test_profit_by_source_covers_every_source(client, auth_headers, make_source, make_product):
    products = []
    for i, margin in enumerate((5, 30, 15)):
        source = make_source(f"Source {i}")
        products.append(make_product(source["id"], name=f"Item {i}", price=100, buying_price=100 - margin))
    lines = [{"product": p["id"], "quantity": 2} for p in products]
    client.post("/orders", json=order_payload(lines), headers=auth_headers)

    breakdown = client.get("/stats", headers=auth_headers).json()["profit_by_source"]
    assert len(breakdown) == 3
    assert [v["name"] for v in breakdown.values()] == ["Source 1", "Source 2", "Source 0"]
    assert [v["total_profit"] for v in breakdown.values()] == [60.0, 30.0, 10.0]


def test_stats_failure(client, auth_headers, monkeypatch):
    def boom(db):
        raise PyMongoError("store unreachable")

    monkeypatch.setattr(main, "compute_stats", boom)
    res = client.get("/stats", headers=auth_headers)
    assert res.status_code == 500
    assert res.json()["detail"] == "Failed to fetch statistics"


def test_unexpected_stats_error(client, auth_headers, monkeypatch):
    def broken(db):
        raise ValueError("could not convert string to float: 'abc'")

    monkeypatch.setattr(main, "compute_stats", broken)
    res = client.get("/stats", headers=auth_headers)
    assert res.status_code == 500
    assert res.json()["detail"] == "Failed to fetch statistics"


def test_profit_by_source_uses_prices_at_time_of_sale(client, auth_headers, make_source, make_product):
    source = make_source("Dhaka Wholesale")
    product = make_product(source["id"], price=100, buying_price=80)
    client.post("/orders", json=order_payload([{"product": product["id"], "quantity": 1}]), headers=auth_headers)
    client.put("/products", json={"id": product["id"], "data": {"price": 300, "buying_price": 100}},
               headers=auth_headers)

    stats = client.get("/stats", headers=auth_headers).json()
    assert stats["total_profit"] == 20
    assert stats["profit_by_source"][source["id"]]["total_profit"] == 20
