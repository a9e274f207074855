"""Integration tests for loyalty, subscription and product endpoints."""

STAFF = {"X-User-Id": "staff-001", "X-User-Role": "Staff"}
ADA = {"X-User-Id": "cust-001"}
BOB = {"X-User-Id": "cust-002"}


class TestLoyaltyEndpoints:
    def test_signup_then_duplicate(self, client):
        response = client.post("/loyalty/accounts", headers=ADA)
        assert response.status_code == 201
        assert response.json()["points"] == 100
        assert client.post("/loyalty/accounts", headers=ADA).status_code == 409

    def test_me_opens_lazily(self, client):
        me = client.get("/loyalty/me", headers=BOB).json()
        assert me["points"] == 0
        assert me["tier"] == "Bronze"

    def test_redeem_and_history(self, client):
        account = client.post("/loyalty/accounts", headers=ADA).json()
        path = f"/loyalty/accounts/{account['account_id']}/redeem"

        assert client.post(path, json={"points": 40}, headers=ADA).json()["points"] == 60
        response = client.post(path, json={"points": 400}, headers=ADA)
        assert response.status_code == 422
        assert response.json()["error"] == "INSUFFICIENT_POINTS"

        history = client.get("/loyalty/me/transactions", headers=ADA).json()
        assert [h["points"] for h in history] == [-40, 100]

    def test_cannot_redeem_from_another_account(self, client):
        account = client.post("/loyalty/accounts", headers=ADA).json()
        response = client.post(f"/loyalty/accounts/{account['account_id']}/redeem", json={"points": 1}, headers=BOB)
        assert response.status_code == 403

    def test_staff_credit_adjust_and_qr_lookup(self, client):
        account = client.post("/loyalty/accounts", headers=ADA).json()
        base = f"/loyalty/accounts/{account['account_id']}"

        assert client.post(f"{base}/credit", json={"points": 5}, headers=ADA).status_code == 403
        credited = client.post(f"{base}/credit", json={"points": 950, "order_id": "ord-1"}, headers=STAFF).json()
        assert credited["tier"] == "Silver"

        adjusted = client.post(f"{base}/adjust", json={"points": -50, "description": "Fix"}, headers=STAFF).json()
        assert adjusted["points"] == 1000
        assert adjusted["lifetime_points"] == 1050

        found = client.get(f"/loyalty/qr/{account['qr_code']}", headers=STAFF)
        assert found.json()["account_id"] == account["account_id"]
        assert client.get(f"/loyalty/qr/{account['qr_code']}", headers=ADA).status_code == 403


class TestSubscriptionEndpoints:
    def test_subscription_lifecycle(self, client, api_product):
        product_id = api_product(name="Beans", price=14.0, is_subscribable=True, subscription_price=12.5)
        response = client.post(
            "/subscriptions",
            json={"interval": "monthly", "items": [{"product_id": product_id, "quantity": 2}]},
            headers=ADA,
        )
        assert response.status_code == 201
        subscription_id = response.json()["subscription_id"]

        assert client.post(f"/subscriptions/{subscription_id}/pause", headers=ADA).status_code == 200
        assert client.post(f"/subscriptions/{subscription_id}/pause", headers=ADA).status_code == 422
        assert client.post(f"/subscriptions/{subscription_id}/resume", headers=BOB).status_code == 403
        assert client.post(f"/subscriptions/{subscription_id}/rewind", headers=ADA).status_code == 404

        [view] = client.get("/subscriptions", headers=ADA).json()
        assert view["status"] == "Paused"
        assert view["quote"]["subtotal"] == 25.0


class TestProductEndpoints:
    def test_registration_is_staff_only(self, client):
        body = {"name": "Kettle", "sku": "KET-1", "price": 40.0}
        assert client.post("/products", json=body, headers=ADA).status_code == 403
        assert client.post("/products", json=body).status_code == 401

    def test_browse(self, client, api_product):
        api_product(name="Kettle", price=40.0, category="kitchen")
        api_product(name="Teapot", price=25.0, category="kitchen", stock=0)
        api_product(name="Tea", price=6.0, category="pantry")

        response = client.get("/products", params={"category": "kitchen", "sort": "price_asc"})
        assert [p["name"] for p in response.json()] == ["Teapot", "Kettle"]

        in_stock = client.get("/products", params={"in_stock_only": True, "sort": "name"}).json()
        assert [p["name"] for p in in_stock] == ["Kettle", "Tea"]

    def test_bad_price_range(self, client):
        response = client.get("/products", params={"min_price": 50, "max_price": 10})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION"

    def test_unknown_role_header(self, client):
        assert client.get("/cart", headers={"X-User-Id": "cust-001", "X-User-Role": "Wizard"}).status_code == 400
