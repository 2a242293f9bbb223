import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def product(client, admin_auth):
    _, headers = admin_auth
    response = await client.post(
        "/api/v1/products",
        headers=headers,
        json={"name": "Cotton kurta", "base_price": 400, "image_urls": ["https://cdn.example.com/k.jpg"]},
    )
    product = response.json()
    variant = await client.post(
        f"/api/v1/products/{product['id']}/variants",
        headers=headers,
        json={"size": "M", "color": "Red", "price": 450, "image_urls": ["https://cdn.example.com/k-red.jpg"]},
    )
    product["variant"] = variant.json()
    return product


async def _add(client, headers, **payload):
    return await client.post("/api/v1/cart/items", headers=headers, json=payload)


class TestCart:
    @pytest.mark.asyncio
    async def test_empty_cart(self, client, user_auth):
        _, headers = user_auth

        cart = (await client.get("/api/v1/cart", headers=headers)).json()

        assert cart == {"items": [], "item_count": 0, "subtotal": 0}

    @pytest.mark.asyncio
    async def test_add_copies_catalog_details(self, client, user_auth, product):
        _, headers = user_auth

        plain = await _add(client, headers, product_id=product["id"], quantity=2)
        cart = (
            await _add(client, headers, product_id=product["id"], variant_id=product["variant"]["id"])
        ).json()

        assert plain.status_code == 201
        base, variant = cart["items"]
        assert (base["price"], base["size"], base["product_image"]) == (400, None, "https://cdn.example.com/k.jpg")
        assert (variant["price"], variant["size"], variant["color"]) == (450, "M", "Red")
        assert variant["product_image"] == "https://cdn.example.com/k-red.jpg"
        assert cart["item_count"] == 3
        assert cart["subtotal"] == 1250

    @pytest.mark.asyncio
    async def test_same_line_is_merged(self, client, user_auth, product):
        _, headers = user_auth

        await _add(client, headers, product_id=product["id"])
        cart = (await _add(client, headers, product_id=product["id"], quantity=2)).json()

        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 3
        assert cart["items"][0]["line_total"] == 1200

    @pytest.mark.asyncio
    async def test_unknown_product_or_variant(self, client, user_auth, product):
        _, headers = user_auth

        missing = await _add(client, headers, product_id="nope")
        wrong_variant = await _add(client, headers, product_id=product["id"], variant_id="nope")

        assert missing.status_code == 404
        assert wrong_variant.status_code == 404

    @pytest.mark.asyncio
    async def test_inactive_product_cannot_be_added(self, client, user_auth, admin_auth, product):
        _, headers = user_auth
        _, admin_headers = admin_auth
        await client.delete(f"/api/v1/products/{product['id']}", headers=admin_headers)

        response = await _add(client, headers, product_id=product["id"])

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_and_remove(self, client, user_auth, product):
        _, headers = user_auth
        item_id = (await _add(client, headers, product_id=product["id"])).json()["items"][0]["id"]

        updated = await client.put(f"/api/v1/cart/items/{item_id}", headers=headers, json={"quantity": 5})
        removed = await client.put(f"/api/v1/cart/items/{item_id}", headers=headers, json={"quantity": 0})
        again = await client.delete(f"/api/v1/cart/items/{item_id}", headers=headers)

        assert updated.json()["item_count"] == 5
        assert removed.json()["items"] == []
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_carts_are_private(self, client, user_auth, other_auth, product):
        _, headers = user_auth
        _, other_headers = other_auth
        item_id = (await _add(client, headers, product_id=product["id"])).json()["items"][0]["id"]

        response = await client.put(f"/api/v1/cart/items/{item_id}", headers=other_headers, json={"quantity": 9})

        assert response.status_code == 404
        assert (await client.get("/api/v1/cart", headers=other_headers)).json()["items"] == []
        assert (await client.get("/api/v1/cart", headers=headers)).json()["item_count"] == 1

    @pytest.mark.asyncio
    async def test_clear(self, client, user_auth, product):
        _, headers = user_auth
        await _add(client, headers, product_id=product["id"])

        response = await client.delete("/api/v1/cart", headers=headers)

        assert response.status_code == 204
        assert (await client.get("/api/v1/cart", headers=headers)).json()["items"] == []
