STORE_PAYLOAD = {
    "shopifyStoreId": "example.myshopify.com",
    "storeName": "Example Store",
    "accessToken": "shpat_test",
}


def _create_store(api_client, **overrides):
    response = api_client.post("/api/stores", json={**STORE_PAYLOAD, **overrides})
    assert response.status_code == 200
    return response.json()


def _store_with_milestones(api_client):
    store = _create_store(api_client)
    response = api_client.post(f"/api/stores/{store['id']}/initialize-milestones")
    assert response.status_code == 200
    return store


def _cart_session(api_client, store_id, cart_token="cart-abc"):
    response = api_client.post("/api/cart-sessions", json={"storeId": store_id, "cartToken": cart_token})
    assert response.status_code == 200
    return response.json()


def test_health_endpoints(api_client):
    assert api_client.get("/health").json()["status"] == "healthy"
    assert "/stores" in api_client.get("/api/health").json()["endpoints_available"]


def test_create_and_fetch_store(api_client):
    created = _create_store(api_client)

    assert created["shopifyStoreId"] == "example.myshopify.com"
    assert created["storeName"] == "Example Store"
    assert created["isActive"] is True
    assert created["id"]

    response = api_client.get("/api/stores/example.myshopify.com")

    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


def test_unknown_store_returns_not_found_message(api_client):
    response = api_client.get("/api/stores/missing.myshopify.com")

    assert response.status_code == 404
    assert response.json() == {"message": "Store not found"}


def test_duplicate_store_is_rejected(api_client):
    _create_store(api_client)

    response = api_client.post("/api/stores", json=STORE_PAYLOAD)

    assert response.status_code == 409
    assert "already exists" in response.json()["message"]


def test_invalid_store_body_is_rejected(api_client):
    response = api_client.post("/api/stores", json={"shopifyStoreId": "example.myshopify.com", "storeName": ""})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid Request"
    assert "accessToken" in body["message"]


def test_initialize_milestones_seeds_defaults(api_client):
    store = _store_with_milestones(api_client)

    milestones = api_client.get(f"/api/stores/{store['id']}/milestones").json()

    assert [m["thresholdAmount"] for m in milestones] == [2500, 3000, 4000, 5000]
    assert milestones[0]["rewardType"] == "free_delivery"
    assert [m["freeProductCount"] for m in milestones[1:]] == [1, 2, 3]


def test_initialize_milestones_for_unknown_store(api_client):
    response = api_client.post("/api/stores/unknown/initialize-milestones")

    assert response.status_code == 404


def test_rewards_for_cart_value(api_client):
    store = _store_with_milestones(api_client)

    response = api_client.get(f"/api/stores/{store['id']}/rewards", params={"cart_value": 3500})

    assert response.status_code == 200
    rewards = response.json()
    assert rewards["maxFreeProducts"] == 1
    assert rewards["hasFreeDelivery"] is True
    assert rewards["amountToNext"] == 500
    assert rewards["nextMilestone"]["thresholdAmount"] == 4000
    assert rewards["progressPercentage"] == 70.0


def test_rewards_reject_negative_cart_value(api_client):
    store = _store_with_milestones(api_client)

    response = api_client.get(f"/api/stores/{store['id']}/rewards", params={"cart_value": -1})

    assert response.status_code == 400


def test_eligible_products_exclude_bundles(api_client):
    store = _create_store(api_client)
    for product_id, is_bundle in (("101", False), ("102", True)):
        response = api_client.post("/api/products", json={
            "shopifyProductId": product_id,
            "storeId": store["id"],
            "title": f"Product {product_id}",
            "handle": f"product-{product_id}",
            "price": 1200,
            "isBundle": is_bundle,
        })
        assert response.status_code == 200

    all_products = api_client.get(f"/api/stores/{store['id']}/products").json()
    eligible = api_client.get(f"/api/stores/{store['id']}/products/eligible").json()

    assert len(all_products) == 2
    assert [p["shopifyProductId"] for p in eligible] == ["101"]


def test_cart_session_lifecycle(api_client, db_service):
    store = _store_with_milestones(api_client)
    session = _cart_session(api_client, store["id"])

    assert session["currentValue"] == 0
    assert session["selectedFreeProducts"] == []
    assert session["timerExpiresAt"]

    response = api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": 3200})
    assert response.status_code == 200
    body = response.json()
    assert body["newMilestones"] is True
    assert len(body["unlockedMilestones"]) == 2
    assert body["session"]["currentValue"] == 3200

    response = api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": 3300})
    assert response.json()["newMilestones"] is False

    history = db_service.get_reward_history_by_store(store["id"])
    assert len(history) == 2
    delivery = [r for r in history if r.reward_type == "free_delivery"]
    assert delivery[0].reward_value == 300


def test_free_product_selection_is_limited_by_cart_value(api_client):
    store = _store_with_milestones(api_client)
    _cart_session(api_client, store["id"])
    api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": 3200})

    response = api_client.put("/api/cart-sessions/cart-abc/free-products", json={"productIds": ["p1", "p2"]})
    assert response.status_code == 400

    response = api_client.put("/api/cart-sessions/cart-abc/free-products", json={"productIds": ["p1", "p1"]})
    assert response.status_code == 200
    assert response.json()["selectedFreeProducts"] == ["p1"]

    assert api_client.get("/api/cart-sessions/cart-abc").json()["selectedFreeProducts"] == ["p1"]


def test_unknown_cart_session(api_client):
    assert api_client.get("/api/cart-sessions/missing").status_code == 404
    assert api_client.put("/api/cart-sessions/missing/value", json={"currentValue": 10}).status_code == 404


def test_cart_session_for_unknown_store(api_client):
    response = api_client.post("/api/cart-sessions", json={"storeId": "unknown", "cartToken": "cart-xyz"})

    assert response.status_code == 404


def test_lower_cart_value_drops_latest_free_products(api_client):
    store = _store_with_milestones(api_client)
    _cart_session(api_client, store["id"])
    api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": 5200})
    response = api_client.put("/api/cart-sessions/cart-abc/free-products", json={"productIds": ["p1", "p2", "p3"]})
    assert response.status_code == 200

    response = api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": 3100})

    assert response.json()["session"]["selectedFreeProducts"] == ["p1"]
    assert api_client.get("/api/cart-sessions/cart-abc").json()["selectedFreeProducts"] == ["p1"]


def test_milestone_is_rewarded_once_per_session(api_client, db_service):
    store = _store_with_milestones(api_client)
    _cart_session(api_client, store["id"])

    for value in (3200, 1000):
        api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": value})
    response = api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": 3200})

    assert response.json()["newMilestones"] is False
    assert len(response.json()["unlockedMilestones"]) == 2
    assert len(db_service.get_reward_history_by_store(store["id"])) == 2


def test_store_analytics_counts_reward_history(api_client):
    store = _store_with_milestones(api_client)
    _cart_session(api_client, store["id"])

    empty = api_client.get(f"/api/stores/{store['id']}/analytics")
    assert empty.status_code == 200
    assert empty.json() == {"totalRewardsUnlocked": 0, "milestonesHit": 0}

    api_client.put("/api/cart-sessions/cart-abc/value", json={"currentValue": 4100})

    analytics = api_client.get(f"/api/stores/{store['id']}/analytics").json()
    assert analytics == {"totalRewardsUnlocked": 3, "milestonesHit": 0}


def test_analytics_for_unknown_store(api_client):
    assert api_client.get("/api/stores/unknown/analytics").status_code == 404
