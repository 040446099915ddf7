"""Integration tests for the Code Semantic Search API."""

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration

BASE = "/api/v1/codes"


def create(client: TestClient, code: str, description: str):
    return client.post(f"{BASE}/upload", json={"code": code, "description": description})


def upload(client: TestClient, content: str, filename: str = "codes.csv"):
    return client.post(
        f"{BASE}/upload-csv",
        files={"file": (filename, content.encode("utf-8"), "text/csv")},
    )


class TestHealthAndSchema:
    """Test basic API functionality."""

    def test_health_check(self, client: TestClient):
        create(client, "A00", "Cholera")

        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["total_codes"] == 1
        assert data["vector_extension"]

    def test_openapi_schema(self, client: TestClient):
        response = client.get("/schema")
        assert response.status_code == 200
        schema = response.json()
        assert schema["info"]["title"] == "Code Semantic Search API"
        assert f"{BASE}/search" in schema["paths"]


class TestCodesCrud:
    """Test single-record endpoints."""

    def test_create_code(self, client: TestClient):
        response = create(client, "A00", "Cholera")

        assert response.status_code == 201
        data = response.json()
        assert data["id"] > 0
        assert data["code"] == "A00"
        assert data["description"] == "Cholera"
        assert data["created_at"] is not None
        assert "embedding" not in data

    def test_create_duplicate_code(self, client: TestClient):
        create(client, "A00", "Cholera")

        response = create(client, "A00", "Cholera again")
        assert response.status_code == 409
        data = response.json()
        assert data["status"] == 409
        assert data["error"] == "Conflict"
        assert "A00" in data["message"]
        assert "timestamp" in data

    @pytest.mark.parametrize(
        "payload",
        [
            {"code": "", "description": "Cholera"},
            {"code": "A00"},
            {"code": "A" * 51, "description": "Cholera"},
            {"code": "   ", "description": "Cholera"},
        ],
    )
    def test_create_validation(self, client: TestClient, payload):
        response = client.post(f"{BASE}/upload", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "Validation Failed"

    def test_create_embedding_unavailable(self, client: TestClient, embedder):
        embedder.fail_for.add("Cholera")

        response = create(client, "A00", "Cholera")
        assert response.status_code == 503
        assert response.json()["message"] == "Unable to generate embeddings. Please try again later."

        assert client.get(f"{BASE}/code/A00").status_code == 404

    def test_get_by_id_and_code(self, client: TestClient):
        created = create(client, "A00", "Cholera").json()

        by_id = client.get(f"{BASE}/{created['id']}")
        by_code = client.get(f"{BASE}/code/A00")

        assert by_id.status_code == 200
        assert by_id.json() == created
        assert by_code.json()["id"] == created["id"]

    def test_get_missing(self, client: TestClient):
        response = client.get(f"{BASE}/999")

        assert response.status_code == 404
        assert response.json()["message"] == "Code not found with id: 999"

    def test_non_numeric_id(self, client: TestClient):
        assert client.get(f"{BASE}/abc").status_code == 400

    def test_list_codes(self, client: TestClient):
        for i in range(3):
            create(client, f"L{i}", f"Listed code {i}")

        response = client.get(f"{BASE}?page=0&size=2")
        assert response.status_code == 200
        data = response.json()
        assert [item["code"] for item in data["items"]] == ["L0", "L1"]
        assert data["total_items"] == 3
        assert data["total_pages"] == 2

    def test_list_codes_invalid_size(self, client: TestClient):
        assert client.get(f"{BASE}?size=0").status_code == 400

    def test_list_codes_page_out_of_range(self, client: TestClient):
        response = client.get(f"{BASE}", params={"page": 2**62, "size": 20})

        assert response.status_code == 400
        assert response.json()["message"] == "page is out of range"

    def test_ids_beyond_integer_range(self, client: TestClient):
        huge = 2**70

        assert client.get(f"{BASE}/{huge}").status_code == 400
        assert client.delete(f"{BASE}/{huge}").status_code == 400
        response = client.put(f"{BASE}/{huge}", json={"code": "A00", "description": "Cholera"})
        assert response.status_code == 400

    def test_update_code(self, client: TestClient):
        created = create(client, "A00", "Cholera").json()

        response = client.put(
            f"{BASE}/{created['id']}",
            json={"code": "A00.9", "description": "Cholera, unspecified"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["code"] == "A00.9"
        assert data["description"] == "Cholera, unspecified"

        results = client.get(f"{BASE}/search", params={"query": "Cholera, unspecified"}).json()
        assert results[0]["code"] == "A00.9"
        assert results[0]["similarity"] == pytest.approx(1.0, abs=1e-5)

    def test_update_missing(self, client: TestClient):
        response = client.put(f"{BASE}/42", json={"code": "A00", "description": "Cholera"})
        assert response.status_code == 404

    def test_delete_code(self, client: TestClient):
        created = create(client, "A00", "Cholera").json()

        response = client.delete(f"{BASE}/{created['id']}")
        assert response.status_code == 204
        assert response.content == b""

        assert client.get(f"{BASE}/{created['id']}").status_code == 404
        assert client.delete(f"{BASE}/{created['id']}").status_code == 404


class TestSearchEndpoint:
    """Test semantic search."""

    def test_search_ranks_exact_match_first(self, client: TestClient):
        create(client, "A00", "Cholera")
        create(client, "A01", "Typhoid and paratyphoid fevers")
        create(client, "J10", "Influenza")

        response = client.get(f"{BASE}/search", params={"query": "Influenza", "limit": 2})
        assert response.status_code == 200
        results = response.json()
        assert len(results) == 2
        assert results[0]["code"] == "J10"
        assert results[0]["similarity"] >= results[1]["similarity"]
        assert set(results[0]) == {"id", "code", "description", "similarity"}

    def test_search_requires_query(self, client: TestClient):
        assert client.get(f"{BASE}/search").status_code == 400
        assert client.get(f"{BASE}/search", params={"query": " "}).status_code == 400

    def test_search_limit_bounds(self, client: TestClient):
        response = client.get(f"{BASE}/search", params={"query": "x", "limit": 51})
        assert response.status_code == 400


class TestCsvUpload:
    """Test bulk CSV ingestion."""

    def test_upload_csv(self, client: TestClient):
        content = "code,description\nA00,Cholera\nA01,\"Typhoid, paratyphoid\"\nA02,Salmonella\nBROKEN\n"

        response = upload(client, content)
        assert response.status_code == 201
        data = response.json()
        assert data["total_processed"] == 4
        assert data["successful"] == 3
        assert data["failed"] == 1
        assert data["truncated"] is False
        assert data["message"] == "CSV upload completed: 3 successful, 1 failed"

        assert client.get(f"{BASE}/code/A01").json()["description"] == "Typhoid, paratyphoid"

    def test_upload_rejects_non_csv(self, client: TestClient):
        response = upload(client, "code,description\nA00,Cholera\n", filename="codes.txt")

        assert response.status_code == 400
        assert response.json()["message"] == "File must be a CSV"

    def test_upload_empty_file(self, client: TestClient):
        response = upload(client, "")

        assert response.status_code == 400
        assert response.json()["message"] == "File is empty"

    def test_upload_without_file(self, client: TestClient):
        assert client.post(f"{BASE}/upload-csv").status_code == 400
