"""API client for the prompt library REST API."""

from __future__ import annotations

from typing import Any

import httpx


class LibraryClient:
    """HTTP client wrapping the prompt library API endpoints."""

    def __init__(self, base_url: str = "http://localhost:8400") -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=f"{self.base_url}/api/v1", timeout=30)

    def _handle(self, resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except Exception:
                detail = resp.text
            raise RuntimeError(f"API error ({resp.status_code}): {detail}")
        if resp.status_code == 204:
            return None
        return resp.json()

    # --- Prompts ---

    def list_prompts(self) -> list[dict]:
        return self._handle(self._client.get("/prompts"))

    def create_prompt(self, data: dict) -> dict:
        return self._handle(self._client.post("/prompts", json=data))

    def get_prompt(self, prompt_id: str) -> dict:
        return self._handle(self._client.get(f"/prompts/{prompt_id}"))

    def update_prompt(self, prompt_id: str, data: dict) -> dict:
        return self._handle(self._client.put(f"/prompts/{prompt_id}", json=data))

    def duplicate_prompt(self, prompt_id: str) -> dict:
        return self._handle(self._client.post(f"/prompts/{prompt_id}/duplicate"))

    def delete_prompt(self, prompt_id: str) -> None:
        self._handle(self._client.delete(f"/prompts/{prompt_id}"))

    # --- Versions ---

    def commit_version(self, prompt_id: str) -> dict:
        return self._handle(self._client.post(f"/prompts/{prompt_id}/versions"))

    def list_versions(self, prompt_id: str, limit: int | None = None) -> list[dict]:
        params = {"limit": limit} if limit else {}
        return self._handle(self._client.get(f"/prompts/{prompt_id}/versions", params=params))

    def restore_version(self, prompt_id: str, version_no: int) -> dict:
        return self._handle(
            self._client.post(f"/prompts/{prompt_id}/restore", json={"version_no": version_no})
        )

    # --- Search ---

    def search(self, query: str, **params: Any) -> dict:
        params = {k: v for k, v in params.items() if v is not None}
        return self._handle(self._client.get("/search", params={"q": query, **params}))

    def facets(self) -> dict:
        return self._handle(self._client.get("/facets"))

    def semantic_status(self) -> dict:
        return self._handle(self._client.get("/semantic/status"))

    def health(self) -> dict:
        return self._handle(httpx.get(f"{self.base_url}/health", timeout=30))

    # --- Templates ---

    def list_templates(self, query: str = "") -> list[dict]:
        return self._handle(self._client.get("/templates", params={"q": query}))

    def create_template(self, data: dict) -> dict:
        return self._handle(self._client.post("/templates", json=data))

    def delete_template(self, template_id: str) -> None:
        self._handle(self._client.delete(f"/templates/{template_id}"))

    # --- Collections ---

    def list_collections(self) -> list[dict]:
        return self._handle(self._client.get("/collections"))

    def save_collection(self, name: str, filters: dict) -> dict:
        return self._handle(self._client.post("/collections", json={"name": name, "filters": filters}))

    def apply_collection(self, collection_id: str, **params: Any) -> dict:
        params = {k: v for k, v in params.items() if v is not None}
        return self._handle(self._client.get(f"/collections/{collection_id}/apply", params=params))

    def delete_collection(self, collection_id: str) -> None:
        self._handle(self._client.delete(f"/collections/{collection_id}"))

    # --- Backup / vault ---

    def export_backup(self) -> dict:
        return self._handle(self._client.get("/export"))

    def import_backup(self, data: dict) -> dict:
        return self._handle(self._client.post("/import", json=data))

    def connect_vault(self, path: str) -> None:
        self._handle(self._client.post("/vault/connect", json={"path": path}))
