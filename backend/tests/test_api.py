"""HTTP surface: JSON shapes and error translation."""

from conftest import line, make_customer


def test_health_reports_degraded_until_seeded(client, db_session):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json["status"] == "degraded"


def test_health_ok_after_seed(client, loyalty_defaults):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json["status"] == "healthy"


def test_sale_lifecycle_over_http(client, loyalty_defaults, products):
    response = client.post("/api/sales/", json={
        "items": [line("oil-1l", 1, 45000), line("spark-plug", 2, 15000)],
        "customer": {"code": "mh 12 xy 9", "name": "Neha"},
        "amount_paid": 50000,
    })
    assert response.status_code == 201
    sale = response.json["sale"]
    assert sale["customer_id"] == "MH12XY9"
    assert sale["total_cents"] == 75000
    assert sale["payment_status"] == "PARTIAL"
    assert len(sale["items"]) == 2

    fetched = client.get(f"/api/sales/{sale['id']}")
    assert fetched.status_code == 200

    listing = client.get("/api/sales/?customer_id=mh12xy9")
    assert [s["id"] for s in listing.json["sales"]] == [sale["id"]]

    spark_item = next(i for i in sale["items"] if i["product_id"] == "spark-plug")
    reversed_ = client.post(f"/api/sales/{sale['id']}/reverse", json={"item_ids": [spark_item["id"]]})
    assert reversed_.status_code == 200
    assert reversed_.json["deleted"] is False
    assert reversed_.json["sale"]["total_cents"] == 45000

    customer = client.get("/api/customers/MH12XY9")
    assert customer.json["customer"]["balance_cents"] == 0


def test_validation_errors_are_json(client, loyalty_defaults, products):
    response = client.post("/api/sales/", json={"items": []})
    assert response.status_code == 400
    assert response.json["error"]

    stock = client.post("/api/sales/", json={"items": [line("chain-kit", 5, 1000)]})
    assert stock.status_code == 400
    assert stock.json["details"]["items"][0]["on_hand"] == 2

    missing = client.get("/api/sales/nope")
    assert missing.status_code == 404


def test_malformed_bodies_are_bad_requests(client, loyalty_defaults, products):
    as_list = client.post("/api/sales/", json=[line("oil-1l")])
    assert as_list.status_code == 400
    assert as_list.json["error"] == "Request body must be a JSON object"

    as_text = client.post("/api/sales/", data="items=oil", content_type="text/plain")
    assert as_text.status_code == 400
    assert as_text.json["error"] == "Request body must be valid JSON"

    broken = client.put("/api/loyalty/redemption-rule", data="{", content_type="application/json")
    assert broken.status_code == 400

    # an empty body still means "no options"
    assert client.post("/api/loyalty/maintenance").status_code == 200


def test_points_and_payments(client, loyalty_defaults):
    make_customer(loyalty_defaults, code="API1", points=5, balance_cents=3000)

    adjust = client.post("/api/customers/API1/points", json={"points": -10, "reason": "typo"})
    assert adjust.status_code == 409

    adjust = client.post("/api/customers/api1/points", json={"points": 10, "reason": "Birthday"})
    assert adjust.status_code == 201
    assert adjust.json["transaction"]["points_after"] == 15

    pay = client.post("/api/customers/API1/payments", json={"amount_cents": 3000, "notes": "UPI"})
    assert pay.status_code == 201
    assert client.get("/api/customers/due").json["customers"] == []

    loyalty = client.get("/api/customers/API1/loyalty")
    assert loyalty.json["loyalty_points"] == 15
    assert loyalty.json["points_expiring_soon"] == 0
    assert len(loyalty.json["transactions"]) == 2


def test_loyalty_configuration_endpoints(client, loyalty_defaults):
    rules = client.put("/api/loyalty/earning-rules", json={"rules": [
        {"min_spend_cents": 0, "max_spend_cents": None, "points_per_hundred": 2},
    ]})
    assert rules.status_code == 200
    assert rules.json["rules"][0]["points_per_hundred"] == 2

    bad = client.put("/api/loyalty/redemption-rule", json={"method": "nope"})
    assert bad.status_code == 400

    promo = client.post("/api/loyalty/promotions", json={
        "name": "Weekend", "start_date": "2026-10-17", "end_date": "2026-10-18", "multiplier": 2,
    })
    assert promo.status_code == 201
    promo_id = promo.json["promotion"]["id"]
    assert client.delete(f"/api/loyalty/promotions/{promo_id}").status_code == 200
    assert client.delete(f"/api/loyalty/promotions/{promo_id}").status_code == 404

    first = client.post("/api/loyalty/maintenance", json={})
    second = client.post("/api/loyalty/maintenance", json={})
    assert first.json["ran"] is True
    assert second.json["ran"] is False


def test_product_endpoints(client, db_session):
    created = client.post("/api/products/", json={"name": "Clutch Cable", "barcode": "555", "quantity": 1})
    assert created.status_code == 201
    product_id = created.json["product"]["id"]

    stocked = client.post(f"/api/products/{product_id}/stock", json={"quantity": 4})
    assert stocked.json["product"]["quantity"] == 5

    assert client.get("/api/products/barcode/555").json["product"]["id"] == product_id
    assert client.get("/api/products/barcode/000").status_code == 404


def test_category_endpoints(client, db_session):
    root = client.post("/api/categories/", json={"name": "Lubricants"})
    assert root.status_code == 201
    root_id = root.json["category"]["id"]
    child = client.post("/api/categories/", json={"name": "Engine Oil", "parent_id": root_id})
    assert child.json["category"]["parent_id"] == root_id

    assert client.post("/api/categories/", json={"name": ""}).status_code == 400
    renamed = client.put(f"/api/categories/{root_id}", json={"name": "Oils"})
    assert renamed.json["category"]["name"] == "Oils"

    product = client.post("/api/products/", json={
        "name": "Gear Oil", "category_id": root_id, "sub_category_id": child.json["category"]["id"],
    })
    assert product.status_code == 201
    bad = client.post("/api/products/", json={"name": "Gear Oil", "category_id": "missing"})
    assert bad.status_code == 400

    deleted = client.delete(f"/api/categories/{root_id}")
    assert deleted.json == {"deleted": True, "removed": 2}
    assert client.get("/api/categories/").json["categories"] == []
    assert client.delete(f"/api/categories/{root_id}").status_code == 404
