import pytest

from only2u_api.app.services.review_service import DuplicateReviewError, ReviewService
from only2u_api.app.schemas.review import ReviewCreate

from .conftest import login


async def _review(client, headers, product_id="prod-1", rating=5, **extra):
    payload = {"product_id": product_id, "rating": rating, **extra}
    return await client.post("/api/v1/reviews", headers=headers, json=payload)


class TestCreateReview:
    @pytest.mark.asyncio
    async def test_create(self, client, user_auth):
        user, headers = user_auth

        response = await _review(client, headers, comment="  Lovely fabric  ", is_verified=True)

        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == user.id
        assert data["comment"] == "Lovely fabric"
        assert data["reviewer_name"] == "Anonymous"
        assert data["is_verified"] is True
        assert data["helpful_count"] == 0

    @pytest.mark.asyncio
    async def test_reviewer_name_defaults_to_profile_name(self, client, user_auth):
        _, headers = user_auth
        await client.put("/api/v1/users/me", headers=headers, json={"full_name": "Asha"})

        response = await _review(client, headers)

        assert response.json()["reviewer_name"] == "Asha"

    @pytest.mark.asyncio
    async def test_second_review_of_product_conflicts(self, client, user_auth):
        _, headers = user_auth
        await _review(client, headers)

        response = await _review(client, headers, rating=1)

        assert response.status_code == 409
        assert response.json()["detail"] == "User has already reviewed this product"

    @pytest.mark.asyncio
    async def test_duplicate_raised_by_service(self, user_auth):
        user, _ = user_auth
        data = ReviewCreate(product_id="prod-1", rating=4)
        await ReviewService.create_review(data, user.id)

        with pytest.raises(DuplicateReviewError):
            await ReviewService.create_review(data, user.id)

    @pytest.mark.asyncio
    async def test_rating_out_of_range(self, client, user_auth):
        _, headers = user_auth

        response = await _review(client, headers, rating=6)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_comment_too_long(self, client, user_auth):
        _, headers = user_auth

        response = await _review(client, headers, comment="x" * 1001)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        response = await _review(client, {})

        assert response.status_code == 401


class TestProductReviews:
    @pytest.mark.asyncio
    async def test_average_rating(self, client):
        for i, rating in enumerate((5, 4, 4)):
            _, headers = await login(f"+91980000010{i}")
            await _review(client, headers, rating=rating)

        response = await client.get("/api/v1/reviews/product/prod-1")

        data = response.json()
        assert data["total"] == 3
        assert data["average_rating"] == 4.3
        assert len(data["reviews"]) == 3

    @pytest.mark.asyncio
    async def test_paging_keeps_totals(self, client):
        for i in range(3):
            _, headers = await login(f"+91980000020{i}")
            await _review(client, headers, rating=3)

        response = await client.get("/api/v1/reviews/product/prod-1", params={"page": 2, "limit": 2})

        data = response.json()
        assert len(data["reviews"]) == 1
        assert data["total"] == 3
        assert data["average_rating"] == 3

    @pytest.mark.asyncio
    async def test_product_without_reviews(self, client):
        response = await client.get("/api/v1/reviews/product/unknown")

        assert response.json()["total"] == 0
        assert response.json()["average_rating"] == 0

    @pytest.mark.asyncio
    async def test_get_single_review(self, client, user_auth):
        _, headers = user_auth
        review_id = (await _review(client, headers)).json()["id"]

        assert (await client.get(f"/api/v1/reviews/{review_id}")).status_code == 200
        missing = await client.get("/api/v1/reviews/nope")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Review not found"


class TestOwnership:
    @pytest.mark.asyncio
    async def test_author_can_update(self, client, user_auth):
        _, headers = user_auth
        review_id = (await _review(client, headers, rating=2)).json()["id"]

        response = await client.put(
            f"/api/v1/reviews/{review_id}", headers=headers, json={"rating": 4, "comment": " Better now "}
        )

        assert response.status_code == 200
        assert response.json()["rating"] == 4
        assert response.json()["comment"] == "Better now"

    @pytest.mark.asyncio
    async def test_null_rating_is_rejected(self, client, user_auth):
        _, headers = user_auth
        review_id = (await _review(client, headers, rating=3, comment="Fine")).json()["id"]

        rejected = await client.put(f"/api/v1/reviews/{review_id}", headers=headers, json={"rating": None})
        cleared = await client.put(f"/api/v1/reviews/{review_id}", headers=headers, json={"comment": None})

        assert rejected.status_code == 422
        assert cleared.status_code == 200
        assert cleared.json()["rating"] == 3
        assert cleared.json()["comment"] is None

    @pytest.mark.asyncio
    async def test_other_user_cannot_update_or_delete(self, client, user_auth, other_auth):
        _, headers = user_auth
        _, other_headers = other_auth
        review_id = (await _review(client, headers)).json()["id"]

        update = await client.put(f"/api/v1/reviews/{review_id}", headers=other_headers, json={"rating": 1})
        delete = await client.delete(f"/api/v1/reviews/{review_id}", headers=other_headers)

        assert update.status_code == 404
        assert update.json()["detail"] == "Review not found or access denied"
        assert delete.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_can_delete_any_review(self, client, user_auth, admin_auth):
        _, headers = user_auth
        _, admin_headers = admin_auth
        review_id = (await _review(client, headers)).json()["id"]

        response = await client.delete(f"/api/v1/reviews/{review_id}", headers=admin_headers)

        assert response.status_code == 204
        assert (await client.get(f"/api/v1/reviews/{review_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_user_reviews_visible_to_self_only(self, client, user_auth, other_auth):
        user, headers = user_auth
        _, other_headers = other_auth
        await _review(client, headers, product_id="prod-1")
        await _review(client, headers, product_id="prod-2")

        own = await client.get(f"/api/v1/reviews/user/{user.id}", headers=headers)
        foreign = await client.get(f"/api/v1/reviews/user/{user.id}", headers=other_headers)

        assert len(own.json()) == 2
        assert foreign.status_code == 403


class TestModeration:
    @pytest.mark.asyncio
    async def test_admin_filters_by_rating(self, client, user_auth, other_auth, admin_auth):
        _, headers = user_auth
        _, other_headers = other_auth
        _, admin_headers = admin_auth
        await _review(client, headers, rating=5)
        await _review(client, other_headers, rating=2)

        response = await client.get("/api/v1/reviews", headers=admin_headers, params={"min_rating": 4})

        data = response.json()
        assert data["total"] == 1
        assert data["reviews"][0]["rating"] == 5

    @pytest.mark.asyncio
    async def test_listing_requires_admin(self, client, user_auth):
        _, headers = user_auth

        response = await client.get("/api/v1/reviews", headers=headers)

        assert response.status_code == 403
