import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from syllabus_sync.middleware.cors import CORSMiddleware, compile_origin_pattern


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(
        CORSMiddleware,
        allowed_origins=["http://localhost:*", "https://app.example.com"],
        protected_paths=["/parse"],
    )

    @app.post("/parse")
    async def parse():
        return {"ok": True}

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return TestClient(app)


def test_preflight_from_allowed_origin(client):
    response = client.options(
        "/parse",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert "POST" in response.headers["Access-Control-Allow-Methods"]
    assert "Content-Type" in response.headers["Access-Control-Allow-Headers"]


def test_preflight_from_disallowed_origin(client):
    response = client.options(
        "/parse",
        headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden: origin not allowed"}


def test_protected_path_rejects_disallowed_origin(client):
    response = client.post("/parse", headers={"Origin": "https://evil.example"})

    assert response.status_code == 403


def test_allowed_origin_gets_cors_headers(client):
    response = client.post("/parse", headers={"Origin": "https://app.example.com"})

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "https://app.example.com"
    assert response.headers["Vary"] == "Origin"


@pytest.mark.parametrize("headers", [{}, {"Origin": "null"}])
def test_native_and_server_clients_are_allowed(client, headers):
    response = client.post("/parse", headers=headers)

    assert response.status_code == 200


def test_unprotected_path_runs_without_cors_headers(client):
    response = client.get("/healthz", headers={"Origin": "https://evil.example"})

    assert response.status_code == 200
    assert "Access-Control-Allow-Origin" not in response.headers


def test_origin_wildcards():
    pattern = compile_origin_pattern("http://localhost:*")

    assert pattern.match("http://localhost:5173")
    assert not pattern.match("http://localhost.evil.example")
    assert not pattern.match("https://localhost:5173")
