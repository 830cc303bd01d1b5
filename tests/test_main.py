from __future__ import annotations

from fastapi.testclient import TestClient

from whytho.config import load_config_from_env
from whytho.main import build_app


def test_health_and_webhook_routes() -> None:
    config = load_config_from_env(
        environ={
            "GITLAB_TOKEN": "t",
            "GITLAB_WEBHOOK_SECRET": "s",
            "LLM_BASE_URL": "https://llm.example.com",
            "LLM_API_KEY": "k",
            "LLM_MODEL": "m",
        }
    )

    with TestClient(build_app(config)) as client:
        assert client.get("/health").json() == {"status": "healthy"}
        response = client.post("/webhook", json={}, headers={"X-Gitlab-Token": "wrong"})
        assert response.status_code == 401
