"""Tests for prompt API endpoints."""


class TestPromptAPI:
    def test_create_prompt(self, client):
        resp = client.post("/api/v1/prompts", json={"title": "Welcome", "prompt_text": "alpha"})
        assert resp.status_code == 201
        data = resp.json()
        assert data["title"] == "Welcome"
        assert data["status"] == "draft"
        assert data["indexed"] is True
        assert "embedding" not in data

    def test_create_invalid_status(self, client):
        resp = client.post("/api/v1/prompts", json={"title": "X", "status": "published"})
        assert resp.status_code == 422

    def test_list_prompts(self, client):
        client.post("/api/v1/prompts", json={"title": "A"})
        client.post("/api/v1/prompts", json={"title": "B"})
        resp = client.get("/api/v1/prompts")
        assert resp.status_code == 200
        assert [p["title"] for p in resp.json()] == ["A", "B"]

    def test_get_prompt(self, client):
        created = client.post("/api/v1/prompts", json={"title": "Getter"}).json()
        resp = client.get(f"/api/v1/prompts/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["title"] == "Getter"

    def test_get_not_found(self, client):
        resp = client.get("/api/v1/prompts/nonexistent")
        assert resp.status_code == 404

    def test_update_prompt(self, client):
        created = client.post("/api/v1/prompts", json={"title": "Old", "category": "sales"}).json()
        resp = client.put(f"/api/v1/prompts/{created['id']}", json={"title": "New"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "New"
        assert resp.json()["category"] == "sales"

    def test_update_not_found(self, client):
        resp = client.put("/api/v1/prompts/nonexistent", json={"title": "New"})
        assert resp.status_code == 404

    def test_duplicate_prompt(self, client):
        created = client.post("/api/v1/prompts", json={"title": "Orig", "status": "live"}).json()
        resp = client.post(f"/api/v1/prompts/{created['id']}/duplicate")
        assert resp.status_code == 201
        assert resp.json()["title"] == "COPY Orig"
        assert resp.json()["status"] == "draft"
        assert resp.json()["id"] != created["id"]

    def test_delete_prompt(self, client):
        created = client.post("/api/v1/prompts", json={"title": "X"}).json()
        resp = client.delete(f"/api/v1/prompts/{created['id']}")
        assert resp.status_code == 204
        assert client.get(f"/api/v1/prompts/{created['id']}").status_code == 404
        assert client.delete(f"/api/v1/prompts/{created['id']}").status_code == 204

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["semantic"] == "ready"

    def test_root(self, client):
        assert client.get("/").json()["service"] == "prompt-library"
