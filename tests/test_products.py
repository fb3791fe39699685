import uuid


async def test_health(product_client):
    response = await product_client.get("/health")
    assert response.json() == {"service": "product", "status": "running"}


async def test_admin_creates_product(product_client, admin_headers):
    response = await product_client.post(
        "/",
        json={"name": "Ambre Noir", "price": "320.00", "stock_quantity": 4},
        headers=admin_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Ambre Noir"
    assert body["stock_quantity"] == 4
    assert body["is_active"] is True

    fetched = await product_client.get(f"/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["price"] == "320.00"


async def test_customers_cannot_create_products(product_client, customer_headers):
    response = await product_client.post(
        "/", json={"name": "Ambre Noir", "price": "320.00"}, headers=customer_headers
    )
    assert response.status_code == 403


async def test_negative_price_is_rejected(product_client, admin_headers):
    response = await product_client.post(
        "/", json={"name": "Ambre Noir", "price": "-1"}, headers=admin_headers
    )

    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "price"


async def test_list_and_search(product_client, products):
    names = [p["name"] for p in (await product_client.get("/")).json()]
    assert names == ["Oud Royal", "Rose Musk"]

    found = (await product_client.get("/", params={"query": "rose"})).json()
    assert [p["name"] for p in found] == ["Rose Musk"]


async def test_unknown_product(product_client):
    response = await product_client.get(f"/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json() == {"message": "Product not found"}
