"""Tests for the migration HTTP endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from migration_manager.main import create_app
from migration_manager.repositories.base import COLLECTIONS, WORKFLOWS
from migration_manager.routers.migration import REFRESH_HEADER, _unwrap_payload, get_orchestrator
from tests.fixtures.auth import auth_headers, create_test_jwt


@pytest.fixture
def client(orchestrator):
    app = create_app()
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    # Lifespan is not entered, so no database connection is opened
    return TestClient(app)


class TestUnwrapPayload:
    def test_data_wins(self):
        assert _unwrap_payload({"data": {"a": 1}, "values": {"b": 2}}) == {"a": 1}

    def test_values_when_data_empty(self):
        assert _unwrap_payload({"data": {}, "values": {"b": 2}}) == {"b": 2}

    def test_bare_body(self):
        assert _unwrap_payload({"collections": ["x"]}) == {"collections": ["x"]}

    def test_non_dict_body(self):
        assert _unwrap_payload(None) == {}


class TestAuthorization:
    def test_missing_token_is_401(self, client):
        response = client.get("/api/migration/list")
        assert response.status_code == 401

    def test_non_admin_is_403(self, client, member_headers):
        response = client.get("/api/migration/list", headers=member_headers)
        assert response.status_code == 403

    def test_superuser_without_role_is_allowed(self, client):
        headers = auth_headers(create_test_jwt(is_superuser=True))
        assert client.get("/api/migration/list", headers=headers).status_code == 200

    def test_wrong_token_type_is_401(self, client):
        headers = auth_headers(create_test_jwt(roles=["admin"], token_type="refresh"))
        assert client.get("/api/migration/list", headers=headers).status_code == 401

    def test_cookie_token_is_accepted(self, client):
        client.cookies.set("access_token", create_test_jwt(roles=["admin"]))
        assert client.get("/api/migration/list").status_code == 200


class TestEndpoints:
    def test_export_accepts_wrapped_body(self, client, admin_headers, storage):
        storage.get_repository(COLLECTIONS).rows.append(
            {"name": "orders", "title": "Orders", "primary_key": "id", "template": "general", "options": {}}
        )
        response = client.post(
            "/api/migration/export",
            json={"data": {"collections": ["orders"]}},
            headers=admin_headers,
        )
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["collections"][0]["primaryKey"] == "id"
        assert "exportDate" in body["data"]

    def test_import_then_list(self, client, admin_headers):
        payload = {
            "collections": [{"name": "orders", "fields": [{"name": "total", "type": "float"}]}],
            "workflows": [{"key": "wf", "title": "W", "type": "action", "nodes": []}],
        }
        imported = client.post("/api/migration/import", json={"values": payload}, headers=admin_headers)
        listed = client.get("/api/migration/list", headers=admin_headers).json()["data"]

        assert imported.status_code == 200
        assert imported.json()["summary"]["totalSuccess"] == 2
        assert listed["collections"] == [{"name": "orders", "title": "orders", "fields": 1}]
        assert listed["workflows"][0]["key"] == "wf"

    def test_import_preview_writes_nothing(self, client, admin_headers, storage):
        response = client.post(
            "/api/migration/import",
            json={"collections": [{"name": "orders"}], "options": {"preview": True}},
            headers=admin_headers,
        )
        assert response.json()["preview"] is True
        assert storage.rows(COLLECTIONS) == []

    def test_validate(self, client, admin_headers):
        response = client.post(
            "/api/migration/validate",
            json={"uiSchemas": [{"rootUid": "r1"}]},
            headers=admin_headers,
        )
        validation = response.json()["validation"]
        assert validation["valid"] is False
        assert validation["errors"][0]["type"] == "uiSchema"

    def test_apply_sets_refresh_header(self, client, admin_headers, storage):
        response = client.post(
            "/api/migration/apply",
            json={"workflows": [{"key": "wf", "title": "W", "type": "action"}]},
            headers=admin_headers,
        )
        body = response.json()
        assert response.status_code == 200
        assert response.headers[REFRESH_HEADER] == "schema"
        assert body["refresh"]["schema"] is True
        assert body["results"]["workflows"]["created"] == 1
        assert storage.rows(WORKFLOWS)[0]["key"] == "wf"

    def test_empty_body_is_accepted(self, client, admin_headers):
        response = client.post("/api/migration/export", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["collections"] == []

    def test_invalid_payload_is_400(self, client, admin_headers):
        response = client.post(
            "/api/migration/export",
            json={"collections": [{"not": "a string"}]},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_unexpected_failure_is_500_with_message(self, client, admin_headers, orchestrator):
        orchestrator.list_ = AsyncMock(side_effect=RuntimeError("database unavailable"))
        response = client.get("/api/migration/list", headers=admin_headers)

        body = response.json()
        assert response.status_code == 500
        assert body["success"] is False
        assert body["message"] == "database unavailable"
        assert "RuntimeError" in body["stack"]
