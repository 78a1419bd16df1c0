"""Compile API 路由测试"""

import pytest
from fastapi.testclient import TestClient

from postmortem.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_compile_returns_generated_files(client, users_collection, environment):
    response = client.post(
        "/api/v1/compile",
        json={"collection": users_collection, "environment": environment},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["files"] == 1
    assert data["folders"] == 1
    assert data["base_url"] == "https://api.example.com"
    assert data["environment"] == {"token": "abc123", "userId": "42"}

    outputs = {item["path"]: item["content"] for item in data["outputs"]}
    assert list(outputs) == ["setup.js", "users/get-all.test.js"]
    assert "require('../setup.js')" in outputs["users/get-all.test.js"]


def test_compile_with_options(client, users_collection):
    response = client.post(
        "/api/v1/compile",
        json={"collection": users_collection, "options": {"flatten": True, "enhanced": True}},
    )

    assert response.status_code == 200
    outputs = {item["path"]: item["content"] for item in response.json()["outputs"]}
    assert "get-all.test.js" in outputs
    assert "expectSuccess(response);" in outputs["get-all.test.js"]


def test_compile_invalid_collection(client):
    response = client.post("/api/v1/compile", json={"collection": {"item": []}})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["errors"] == ["Collection must have an info object"]
    assert detail["message"].startswith("Invalid collection")


def test_compile_invalid_environment(client, users_collection):
    response = client.post(
        "/api/v1/compile",
        json={"collection": users_collection, "environment": {"name": "broken"}},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["errors"] == ["Environment must have a values array"]
