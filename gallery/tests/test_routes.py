"""HTTP-level tests using Flask's test client."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gallery.db import DatabaseConnectionError, hash_string
from gallery.services.token_service import TokenCreate

EXPIRES = datetime(2030, 1, 1, tzinfo=timezone.utc)


class TestHealth:
    def test_health(self, client, no_db):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True, "db": False}

    def test_db_check_disabled(self, client, no_db):
        resp = client.get("/api/db-check")
        assert resp.status_code == 503
        assert resp.get_json()["error"] == "db_disabled"


class TestTokenRoutes:
    def test_create(self, client, fake_db, monkeypatch):
        monkeypatch.setattr(TokenCreate, "generate_token", staticmethod(lambda: "abcd-token-value"))
        fake_db.script(
            {"one": {"id": 1}},
            {"all": [{"id": 1, "type": "access", "expires_at": EXPIRES}]},
        )

        resp = client.post("/api/token", json={"type": "access", "user_id": "u-1"})

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["tokens"] == [{
            "id": 1,
            "type": "access",
            "token": "abcd-token-value",
            "expires_at": EXPIRES.isoformat(),
        }]
        assert resp.headers["Cache-Control"].startswith("no-store")

    def test_create_requires_type(self, client, fake_db):
        resp = client.post("/api/token", json={})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_bad_type(self, client, fake_db):
        resp = client.post("/api/token", json={"type": ["access", "bogus"]})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_TOKEN_TYPE"
        assert fake_db.executed == []

    def test_create_without_database(self, client, no_db):
        resp = client.post("/api/token", json={"type": "access"})
        assert resp.status_code == 503
        assert resp.get_json()["error"]["code"] == "DB_UNAVAILABLE"

    def test_create_database_failure(self, client, fake_db):
        fake_db.script(DatabaseConnectionError("down"))
        resp = client.post("/api/token", json={"type": "code"})
        assert resp.status_code == 503

    def test_create_rejects_object_user_id(self, client, fake_db):
        resp = client.post("/api/token", json={"type": "access", "user_id": {"a": 1}})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
        assert "user_id" in resp.get_json()["error"]["message"]
        assert fake_db.executed == []

    def test_create_rejects_list_scope(self, client, fake_db):
        resp = client.post("/api/token", json={"type": "access", "scope": ["read"]})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
        assert "scope" in resp.get_json()["error"]["message"]
        assert fake_db.executed == []

    def test_create_rejects_numeric_client_id(self, client, fake_db):
        resp = client.post("/api/token", json={"type": "access", "client_id": 42})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
        assert fake_db.executed == []

    def test_create_rejects_long_user_id(self, client, fake_db):
        resp = client.post("/api/token", json={"type": "access", "user_id": "u" * 256})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
        assert "255" in resp.get_json()["error"]["message"]
        assert fake_db.executed == []

    def test_create_rejects_long_client_id(self, client, fake_db):
        resp = client.post("/api/token", json={"type": "access", "client_id": "c" * 256})
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"
        assert fake_db.executed == []

    def test_create_accepts_max_length_ids(self, client, fake_db):
        fake_db.script(
            {"one": {"id": 1}},
            {"all": [{"id": 1, "type": "access", "expires_at": EXPIRES}]},
        )
        resp = client.post("/api/token", json={
            "type": "access",
            "user_id": "u" * 255,
            "client_id": "c" * 255,
            "scope": "s" * 1000,
        })
        assert resp.status_code == 201

    def test_get(self, client, fake_db):
        fake_db.script({"one": {"id": 1, "type": "access", "expires_at": EXPIRES}})
        resp = client.get("/api/token", headers={"Authorization": "Bearer abcd-token-value"})
        assert resp.status_code == 200
        assert resp.get_json()["token"]["type"] == "access"
        assert fake_db.executed[0][1] == (hash_string("abcd-token-value"),)

    def test_get_missing(self, client, fake_db):
        fake_db.script({"one": None})
        resp = client.get(
            "/api/token?type=refresh",
            headers={"Authorization": "Bearer abcd-token-value"},
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "TOKEN_NOT_FOUND"
        assert fake_db.executed[0][1] == (hash_string("abcd-token-value"), "refresh")

    def test_get_without_bearer_header(self, client, fake_db):
        resp = client.get("/api/token", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_REQUIRED"
        assert fake_db.executed == []

    def test_token_in_path_is_not_routed(self, client, fake_db):
        resp = client.get("/api/token/abcd-token-value")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "NOT_FOUND"
        assert fake_db.executed == []

    def test_revoke(self, client, fake_db):
        fake_db.script({"rowcount": 1})
        resp = client.delete("/api/token", headers={"Authorization": "Bearer abcd-token-value"})
        assert resp.status_code == 200
        assert resp.get_json() == {"revoked": True}
        assert fake_db.executed[0][1] == (hash_string("abcd-token-value"),)

    def test_revoke_without_token(self, client, fake_db):
        resp = client.delete("/api/token")
        assert resp.status_code == 401
        assert resp.get_json()["error"]["code"] == "TOKEN_REQUIRED"
        assert fake_db.executed == []


class TestExampleRoutes:
    def test_list(self, client):
        resp = client.get("/api/examples")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 3
        assert body["examples"][1]["title"] == "Basic Grid"

    def test_context(self, client):
        resp = client.get("/api/examples/grid/basic?toolkit=modern&theme=triton")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["base"] == "/examples/grid/basic/"
        assert body["theme"] == {"css": "modern/triton.css"}
        assert body["packages"][0] == {"css": "packages/charts/modern/modern/triton/charts-all.css"}

    def test_context_unknown_toolkit(self, client):
        resp = client.get("/api/examples/grid/basic?toolkit=legacy")
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "UNKNOWN_TOOLKIT"

    def test_context_missing_example(self, client):
        resp = client.get("/api/examples/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "EXAMPLE_NOT_FOUND"

    def test_page(self, client):
        resp = client.get("/examples/grid/basic")
        assert resp.status_code == 200
        html = resp.get_data(as_text=True)
        assert "<title>Basic Grid</title>" in html
        assert '<base href="/examples/grid/basic/">' in html
        assert "/ext/build/ext-modern-all-debug.js" in html
        assert "/modern/material.css" in html
        assert "/packages/charts/modern/modern/material/charts-all.css" in html
        assert '<div id="grid-holder"></div>' in html

    def test_page_trailing_slash(self, client):
        resp = client.get("/examples/app/launch/?toolkit=classic")
        assert resp.status_code == 200
        assert "/ext/build/ext-all-debug.js" in resp.get_data(as_text=True)

    def test_app_js(self, client):
        resp = client.get("/examples/grid/basic/app.js")
        assert resp.status_code == 200
        assert resp.mimetype == "application/javascript"
        code = resp.get_data(as_text=True)
        assert code.startswith("Ext.require([\n    'Ext.app.Util'\n]")
        assert "Ext.onReady(function () {" in code
        assert "Ext.create('Ext.grid.Grid', {});" in code

    def test_app_js_already_wrapped(self, client):
        code = client.get("/examples/app/launch/app.js").get_data(as_text=True)
        assert "Ext.onReady" not in code
        assert "'Ext.panel.Panel',\n    'Ext.app.Util'" in code

    def test_static_file(self, client):
        resp = client.get("/examples/grid/basic/data.json")
        assert resp.status_code == 200
        assert resp.get_json() == {"rows": []}

    def test_static_missing(self, client):
        assert client.get("/examples/grid/basic/missing.js").status_code == 404

    def test_index(self, client):
        resp = client.get("/examples/")
        assert resp.status_code == 200
        html = resp.get_data(as_text=True)
        assert 'href="/examples/grid/basic"' in html
        assert "Reactor" in html

    def test_unknown_api_route_is_json(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "NOT_FOUND"

    def test_static_file_is_cacheable(self, client):
        resp = client.get("/examples/grid/basic/data.json")
        assert resp.status_code == 200
        assert "no-store" not in resp.headers.get("Cache-Control", "")
        assert "Pragma" not in resp.headers

    def test_generated_responses_are_not_stored(self, client):
        page = client.get("/examples/grid/basic/")
        app_js = client.get("/examples/grid/basic/app.js")
        assert page.headers["Cache-Control"].startswith("no-store")
        assert app_js.headers["Cache-Control"].startswith("no-store")


class TestInternalErrors:
    @pytest.fixture
    def broken_example(self, examples_dir):
        directory = examples_dir / "broken" / "latin1"
        directory.mkdir(parents=True)
        (directory / "package.json").write_text('{"sencha": {"title": "Broken"}}', encoding="utf-8")
        # Not valid UTF-8
        (directory / "index.html").write_bytes(b"\xff\xfe<div>caf\xe9</div>")
        return directory

    def test_page_error_keeps_html_page(self, client, broken_example):
        resp = client.get("/examples/broken/latin1/")
        assert resp.status_code == 500
        assert not resp.is_json
        assert "Internal Server Error" in resp.get_data(as_text=True)

    def test_api_error_is_json(self, client, broken_example):
        resp = client.get("/api/examples/broken/latin1")
        assert resp.status_code == 500
        assert resp.get_json()["error"]["code"] == "INTERNAL_ERROR"
