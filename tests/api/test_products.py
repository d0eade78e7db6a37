"""Tests for product API endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.infrastructure.blob_store import BlobStoreError, get_blob_store
from app.infrastructure.security import create_access_token
from app.main import app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def failing_store() -> AsyncMock:
    """Blob store rejecting every upload, installed on the app."""
    store = AsyncMock()
    store.upload.side_effect = BlobStoreError("Bucket not found", status_code=404)
    store.list_keys.side_effect = BlobStoreError("Bucket not found", status_code=404)
    return store


@pytest.fixture
def use_failing_store(client: TestClient, failing_store: AsyncMock) -> AsyncMock:
    """Swap the app's blob store for the failing one."""
    app.dependency_overrides[get_blob_store] = lambda: failing_store
    return failing_store


def phone_payload(category_id: str, **overrides) -> dict:
    """JSON body for a test phone."""
    payload = {"name": "Phone", "price": 200, "stock": 5, "categoryId": category_id}
    payload.update(overrides)
    return payload


# ============================================================================
# Create
# ============================================================================


class TestCreateProduct:
    """Tests for POST /api/products."""

    def test_requires_auth(self, client: TestClient, electronics_id: str) -> None:
        """Anonymous callers get 401."""
        response = client.post("/api/products", json=phone_payload(electronics_id))
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_deleted_user_token(self, client: TestClient, electronics_id: str) -> None:
        """A valid token for an account that no longer exists gets 401."""
        token = create_access_token("deleted-user", "gone@example.com")
        response = client.post(
            "/api/products",
            json=phone_payload(electronics_id),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401
        assert response.json()["message"] == "User not found"

    def test_create_json(self, client: TestClient, alice, electronics_id: str) -> None:
        """JSON body creates a product owned by the caller."""
        response = client.post(
            "/api/products",
            json=phone_payload(electronics_id, description="A phone"),
            headers=alice.headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Product created successfully"
        assert data["imageUrl"] is None

        product = data["product"]
        assert product["name"] == "Phone"
        assert product["price"] == 200.0
        assert product["stock"] == 5
        assert product["categoryId"] == electronics_id
        assert product["ownerId"] == alice.id
        assert product["category"] == {"id": electronics_id, "name": "Electronics"}
        assert product["owner"] == {"id": alice.id, "username": "alice"}
        assert "createdAt" in product

    def test_create_multipart_with_image(
        self, client: TestClient, alice, electronics_id: str
    ) -> None:
        """Form fields plus an image file upload the image."""
        response = client.post(
            "/api/products",
            data={
                "name": "Camera",
                "price": "349.99",
                "stock": "2",
                "categoryId": electronics_id,
                "imageUrl": "https://cdn.example.com/camera.jpg",
            },
            files={"image": ("camera.png", PNG_BYTES, "image/png")},
            headers=alice.headers,
        )

        assert response.status_code == 201
        data = response.json()
        product = data["product"]
        assert data["message"] == "Product created successfully with image"
        assert data["imageUrl"].startswith(
            f"http://testserver/uploads/{product['id']}/{alice.id}/"
        )
        assert product["imageUrl"] == data["imageUrl"]
        assert product["price"] == 349.99

    def test_create_multipart_without_image(
        self, client: TestClient, alice, electronics_id: str
    ) -> None:
        """Form fields alone behave like JSON."""
        response = client.post(
            "/api/products",
            data={"name": "Cable", "price": "9.5", "stock": "10", "categoryId": electronics_id},
            headers=alice.headers,
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Product created successfully"

    def test_upload_failure_still_creates(
        self, client: TestClient, use_failing_store, alice, electronics_id: str, fetch_product
    ) -> None:
        """A failed image upload is reported in the message only."""
        response = client.post(
            "/api/products",
            data={
                "name": "Camera",
                "price": "100",
                "stock": "1",
                "categoryId": electronics_id,
                "imageUrl": "https://cdn.example.com/camera.jpg",
            },
            files={"image": ("camera.png", PNG_BYTES, "image/png")},
            headers=alice.headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"].startswith(
            "Product created successfully, but image upload failed:"
        )
        assert data["imageUrl"] == "https://cdn.example.com/camera.jpg"
        stored = fetch_product(data["product"]["id"])
        assert stored.image_url == "https://cdn.example.com/camera.jpg"

    def test_unknown_category_lists_choices(
        self, client: TestClient, alice, electronics_id: str, books_id: str
    ) -> None:
        """404 names every valid category, sorted by name."""
        response = client.post(
            "/api/products",
            json=phone_payload("missing"),
            headers=alice.headers,
        )

        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "NOT_FOUND"
        assert f"Available categories: {books_id}: Books, {electronics_id}: Electronics" in data["message"]
        assert data["details"]["available_categories"] == [
            {"id": books_id, "name": "Books"},
            {"id": electronics_id, "name": "Electronics"},
        ]

    def test_unknown_category_when_none_exist(self, client: TestClient, alice) -> None:
        """404 tells the caller to create a category first."""
        response = client.post(
            "/api/products",
            json=phone_payload("missing"),
            headers=alice.headers,
        )

        assert response.status_code == 404
        assert "No categories exist yet" in response.json()["message"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"price": -1},
            {"stock": -1},
            {"name": "A"},
            {"stock": "many"},
        ],
    )
    def test_invalid_body(
        self, client: TestClient, alice, electronics_id: str, overrides: dict
    ) -> None:
        """Invalid fields are rejected with 422."""
        response = client.post(
            "/api/products",
            json=phone_payload(electronics_id, **overrides),
            headers=alice.headers,
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_missing_category_field(self, client: TestClient, alice) -> None:
        """categoryId is required."""
        response = client.post(
            "/api/products",
            json={"name": "Phone", "price": 1, "stock": 1},
            headers=alice.headers,
        )

        assert response.status_code == 422
        locs = [e["loc"] for e in response.json()["details"]["errors"]]
        assert ["body", "categoryId"] in locs

    def test_malformed_json(self, client: TestClient, alice) -> None:
        """A body that is not JSON is a validation error."""
        response = client.post(
            "/api/products",
            content=b"{not json",
            headers={**alice.headers, "Content-Type": "application/json"},
        )

        assert response.status_code == 422


# ============================================================================
# List and search
# ============================================================================


class TestListProducts:
    """Tests for GET /api/products."""

    def test_empty(self, client: TestClient, alice) -> None:
        """Empty result is still 200, with a message."""
        response = client.get("/api/products", headers=alice.headers)

        assert response.status_code == 200
        assert response.json() == {
            "products": [],
            "total": 0,
            "page": 1,
            "limit": 10,
            "totalPages": 0,
            "message": "No products found",
        }

    def test_filters(
        self, client: TestClient, alice, make_product, electronics_id: str, books_id: str
    ) -> None:
        """Category, price and search filters combine."""
        make_product(alice.id, electronics_id, "Phone", "200")
        make_product(alice.id, electronics_id, "Phone case", "20")
        make_product(alice.id, books_id, "Phone repair guide", "150")

        response = client.get(
            "/api/products",
            params={
                "categoryId": electronics_id,
                "minPrice": "100",
                "maxPrice": "300",
                "search": "phone",
            },
            headers=alice.headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert [p["name"] for p in data["products"]] == ["Phone"]
        assert data["message"] is None

    def test_pagination_is_clamped(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """Out-of-range page and limit are clamped, not rejected."""
        for i in range(3):
            make_product(alice.id, electronics_id, f"Item {i}")

        response = client.get(
            "/api/products",
            params={"page": 0, "limit": 1000},
            headers=alice.headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["page"] == 1
        assert data["limit"] == 100
        assert data["totalPages"] == 1
        assert len(data["products"]) == 3

    def test_huge_page_is_empty_not_error(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """A page far past the end returns an empty page."""
        make_product(alice.id, electronics_id, "Phone")

        response = client.get(
            "/api/products", params={"page": 10**19}, headers=alice.headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["products"] == []
        assert data["total"] == 1
        assert data["message"] == "No products found"

    def test_total_pages(self, client: TestClient, alice, make_product, electronics_id: str) -> None:
        """totalPages is ceil(total / limit)."""
        for i in range(5):
            make_product(alice.id, electronics_id, f"Item {i}")

        response = client.get(
            "/api/products", params={"limit": 2, "page": 3}, headers=alice.headers
        )

        data = response.json()
        assert data["total"] == 5
        assert data["totalPages"] == 3
        assert len(data["products"]) == 1


class TestSearchProducts:
    """Tests for GET /api/products/search."""

    def test_search(self, client: TestClient, alice, make_product, electronics_id: str) -> None:
        """Matches name or description."""
        make_product(alice.id, electronics_id, "Laptop", description="Thin and LIGHT")
        make_product(alice.id, electronics_id, "Desk lamp", description="Bright")

        response = client.get(
            "/api/products/search", params={"query": "light"}, headers=alice.headers
        )

        assert response.status_code == 200
        data = response.json()
        assert [p["name"] for p in data["products"]] == ["Laptop"]
        assert data["message"] is None

    def test_no_matches(self, client: TestClient, alice) -> None:
        """No match is 200 with a message."""
        response = client.get(
            "/api/products/search", params={"query": "nothing"}, headers=alice.headers
        )

        assert response.status_code == 200
        assert response.json() == {
            "products": [],
            "message": "No products found matching your search",
        }

    def test_query_required(self, client: TestClient, alice) -> None:
        """The query parameter is required."""
        response = client.get("/api/products/search", headers=alice.headers)
        assert response.status_code == 422


class TestProductCategories:
    """Tests for GET /api/products/categories."""

    def test_lists_categories(
        self, client: TestClient, alice, electronics_id: str, books_id: str
    ) -> None:
        """Categories available for product creation are listed."""
        response = client.get("/api/products/categories", headers=alice.headers)

        assert response.status_code == 200
        ids = {c["id"] for c in response.json()}
        assert ids == {electronics_id, books_id}


# ============================================================================
# Single product
# ============================================================================


class TestGetProduct:
    """Tests for GET /api/products/{id}."""

    def test_get(self, client: TestClient, alice, make_product, electronics_id: str) -> None:
        """Returns the product with projections."""
        product_id = make_product(alice.id, electronics_id, "Phone", "199.99")

        response = client.get(f"/api/products/{product_id}", headers=alice.headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == product_id
        assert data["price"] == 199.99
        assert data["owner"]["username"] == "alice"

    def test_not_found(self, client: TestClient, alice) -> None:
        """Unknown ID gives 404."""
        response = client.get("/api/products/missing", headers=alice.headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Product with ID missing not found"


class TestUpdateProduct:
    """Tests for PATCH /api/products/{id}."""

    def test_owner_update(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """Owner changes only the fields sent."""
        product_id = make_product(alice.id, electronics_id, "Phone", "200", stock=5)

        response = client.patch(
            f"/api/products/{product_id}",
            json={"stock": 7, "imageUrl": "https://cdn.example.com/p.jpg"},
            headers=alice.headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["stock"] == 7
        assert data["imageUrl"] == "https://cdn.example.com/p.jpg"
        assert data["name"] == "Phone"
        assert data["price"] == 200.0

    def test_non_owner_forbidden(
        self, client: TestClient, alice, bob, make_product, fetch_product, electronics_id: str
    ) -> None:
        """Another user gets 403 and the row is unchanged."""
        product_id = make_product(alice.id, electronics_id, "Phone", "200")

        response = client.patch(
            f"/api/products/{product_id}",
            json={"name": "Stolen", "price": 1},
            headers=bob.headers,
        )

        assert response.status_code == 403
        assert response.json()["message"] == "You can only update your own products"
        stored = fetch_product(product_id)
        assert stored.name == "Phone"
        assert float(stored.price) == 200.0

    def test_null_required_field(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """Explicit null for a required field is rejected."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.patch(
            f"/api/products/{product_id}", json={"price": None}, headers=alice.headers
        )

        assert response.status_code == 422

    def test_unknown_category(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """Moving to an unknown category gives 404."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.patch(
            f"/api/products/{product_id}",
            json={"categoryId": "missing"},
            headers=alice.headers,
        )

        assert response.status_code == 404


class TestDeleteProduct:
    """Tests for DELETE /api/products/{id}."""

    def test_owner_delete(
        self, client: TestClient, alice, make_product, fetch_product, electronics_id: str
    ) -> None:
        """Owner deletes the product."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.delete(f"/api/products/{product_id}", headers=alice.headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Product deleted successfully"}
        assert fetch_product(product_id) is None

    def test_storage_failure_ignored(
        self,
        client: TestClient,
        use_failing_store,
        alice,
        make_product,
        fetch_product,
        electronics_id: str,
    ) -> None:
        """Image cleanup failure does not block deletion."""
        product_id = make_product(
            alice.id, electronics_id, "Phone", image_url="https://cdn.example.com/p.jpg"
        )

        response = client.delete(f"/api/products/{product_id}", headers=alice.headers)

        assert response.status_code == 200
        assert fetch_product(product_id) is None

    def test_non_owner_forbidden(
        self, client: TestClient, alice, bob, make_product, fetch_product, electronics_id: str
    ) -> None:
        """Another user gets 403."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.delete(f"/api/products/{product_id}", headers=bob.headers)

        assert response.status_code == 403
        assert fetch_product(product_id) is not None


# ============================================================================
# Images
# ============================================================================


class TestProductImages:
    """Tests for the image endpoints."""

    def test_upload_and_delete(
        self, client: TestClient, alice, make_product, fetch_product, electronics_id: str
    ) -> None:
        """Upload sets the URL; delete clears it."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.post(
            f"/api/products/{product_id}/upload-image",
            files={"image": ("p.jpg", b"\xff\xd8\xff" + b"\x00" * 32, "image/jpeg")},
            headers=alice.headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Image uploaded successfully"
        assert data["imageUrl"].endswith(".jpg")
        assert data["product"]["imageUrl"] == data["imageUrl"]

        response = client.delete(f"/api/products/{product_id}/image", headers=alice.headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Image deleted successfully"}
        assert fetch_product(product_id).image_url is None

    def test_upload_missing_file(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """No file gives 400."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.post(
            f"/api/products/{product_id}/upload-image", headers=alice.headers
        )

        assert response.status_code == 400
        assert response.json()["message"] == "No image file provided"

    def test_upload_wrong_type(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """Non-image files give 400."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.post(
            f"/api/products/{product_id}/upload-image",
            files={"image": ("doc.pdf", b"%PDF-1.4", "application/pdf")},
            headers=alice.headers,
        )

        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid file type")

    def test_upload_storage_failure(
        self, client: TestClient, use_failing_store, alice, make_product, electronics_id: str
    ) -> None:
        """Store failures map to 502."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.post(
            f"/api/products/{product_id}/upload-image",
            files={"image": ("p.png", PNG_BYTES, "image/png")},
            headers=alice.headers,
        )

        assert response.status_code == 502
        data = response.json()
        assert data["error_code"] == "BLOB_STORE_ERROR"
        assert data["details"] == {"upstream_status": 404}

    def test_upload_non_owner(
        self, client: TestClient, alice, bob, make_product, electronics_id: str
    ) -> None:
        """Another user gets 403."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.post(
            f"/api/products/{product_id}/upload-image",
            files={"image": ("p.png", PNG_BYTES, "image/png")},
            headers=bob.headers,
        )

        assert response.status_code == 403

    def test_delete_without_image(
        self, client: TestClient, alice, make_product, electronics_id: str
    ) -> None:
        """Deleting a missing image gives 400."""
        product_id = make_product(alice.id, electronics_id, "Phone")

        response = client.delete(f"/api/products/{product_id}/image", headers=alice.headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Product has no image to delete"
