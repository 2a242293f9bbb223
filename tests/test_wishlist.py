import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def product(client, admin_auth):
    _, headers = admin_auth
    response = await client.post("/api/v1/products", headers=headers, json={"name": "Silk saree", "base_price": 2500})
    return response.json()


async def _collection(client, headers, **payload):
    payload.setdefault("name", "Wedding looks")
    response = await client.post("/api/v1/wishlist", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestCollections:
    @pytest.mark.asyncio
    async def test_create_defaults_to_private(self, client, user_auth):
        user, headers = user_auth

        collection = await _collection(client, headers)

        assert collection["user_id"] == user.id
        assert collection["is_private"] is True
        assert collection["product_count"] == 0

    @pytest.mark.asyncio
    async def test_listing_hides_private_collections_from_others(self, client, user_auth, other_auth):
        user, headers = user_auth
        _, other_headers = other_auth
        await _collection(client, headers, name="Favourites", is_default=True)
        await _collection(client, headers, name="Shared", is_private=False)

        own = (await client.get(f"/api/v1/wishlist/user/{user.id}", headers=headers)).json()
        theirs = (await client.get(f"/api/v1/wishlist/user/{user.id}", headers=other_headers)).json()

        assert [c["name"] for c in own] == ["Favourites", "Shared"]
        assert [c["name"] for c in theirs] == ["Shared"]

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, client, user_auth):
        _, headers = user_auth

        response = await client.post("/api/v1/wishlist", headers=headers, json={"name": "  "})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_own_only(self, client, user_auth, other_auth):
        _, headers = user_auth
        _, other_headers = other_auth
        collection = await _collection(client, headers)
        url = f"/api/v1/wishlist/{collection['id']}"

        assert (await client.delete(url, headers=other_headers)).status_code == 404
        assert (await client.delete(url, headers=headers)).status_code == 204
        assert (await client.delete(url, headers=headers)).status_code == 404


class TestCollectionProducts:
    @pytest.mark.asyncio
    async def test_adding_twice_keeps_one_entry(self, client, user_auth, product):
        _, headers = user_auth
        collection = await _collection(client, headers)
        url = f"/api/v1/wishlist/{collection['id']}/products"

        await client.post(url, headers=headers, json={"product_id": product["id"]})
        response = await client.post(url, headers=headers, json={"product_id": product["id"]})
        products = (await client.get(url, headers=headers)).json()

        assert response.status_code == 200
        assert response.json()["product_count"] == 1
        assert [p["id"] for p in products] == [product["id"]]

    @pytest.mark.asyncio
    async def test_unknown_product(self, client, user_auth):
        _, headers = user_auth
        collection = await _collection(client, headers)

        response = await client.post(
            f"/api/v1/wishlist/{collection['id']}/products", headers=headers, json={"product_id": "nope"}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_only_owner_can_change(self, client, user_auth, other_auth, product):
        _, headers = user_auth
        _, other_headers = other_auth
        collection = await _collection(client, headers, is_private=False)
        url = f"/api/v1/wishlist/{collection['id']}/products"

        added = await client.post(url, headers=other_headers, json={"product_id": product["id"]})
        await client.post(url, headers=headers, json={"product_id": product["id"]})
        removed = await client.delete(f"{url}/{product['id']}", headers=other_headers)

        assert added.status_code == 404
        assert removed.status_code == 404
        assert len((await client.get(url)).json()) == 1

    @pytest.mark.asyncio
    async def test_private_products_hidden(self, client, user_auth, other_auth, product):
        _, headers = user_auth
        _, other_headers = other_auth
        collection = await _collection(client, headers)
        url = f"/api/v1/wishlist/{collection['id']}/products"
        await client.post(url, headers=headers, json={"product_id": product["id"]})

        assert (await client.get(url, headers=other_headers)).status_code == 404
        assert (await client.get(url)).status_code == 404
        assert (await client.get(url, headers=headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_remove_product(self, client, user_auth, product):
        _, headers = user_auth
        collection = await _collection(client, headers)
        url = f"/api/v1/wishlist/{collection['id']}/products"
        await client.post(url, headers=headers, json={"product_id": product["id"]})

        response = await client.delete(f"{url}/{product['id']}", headers=headers)

        assert response.status_code == 204
        assert (await client.get(url, headers=headers)).json() == []
