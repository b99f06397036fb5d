"""
Tests for the tool invocation endpoint.
"""

import httpx

from mailbridge.database import CredentialFields, now_ms

from helpers import API_KEY, USER_ID, message, page

AUTH = {"Authorization": f"Bearer {API_KEY}"}


class TestGatekeeper:
    """API key and user_id checks."""

    def test_missing_api_key(self, client):
        response = client.post("/execute_tool", json={"user_id": USER_ID, "action": "read"})

        assert response.status_code == 401
        data = response.json()
        assert data["error"] == "Invalid API key"
        assert data["requires_login"] is True
        assert data["login_url"].endswith("/login?user_id=temp")

    def test_wrong_api_key(self, client):
        response = client.post(
            "/execute_tool",
            json={"user_id": USER_ID, "action": "read"},
            headers={"Authorization": "Bearer wrong"},
        )
        assert response.status_code == 401

    def test_missing_user_id_mints_one(self, client):
        response = client.post("/execute_tool", json={"action": "read"}, headers=AUTH)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "user_id_required"
        assert data["requires_login"] is True
        assert len(data["user_id"]) == 36
        assert data["login_url"].endswith(f"/login?user_id={data['user_id']}")

    def test_placeholder_user_id_is_rejected(self, client):
        response = client.post("/execute_tool", json={"user_id": "temp", "action": "read"}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["user_id"] != "temp"

    def test_non_uuid_user_id_is_rejected_in_strict_mode(self, client):
        response = client.post("/execute_tool", json={"user_id": "alice", "action": "read"}, headers=AUTH)
        assert response.status_code == 400

    def test_no_credential_keeps_same_user_id(self, client):
        response = client.post("/execute_tool", json={"user_id": USER_ID, "action": "read"}, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["requires_login"] is True
        assert data["user_id"] == USER_ID
        assert data["login_url"].endswith(f"/login?user_id={USER_ID}")

    def test_expiring_credential_requires_login(self, client, store):
        store.put(USER_ID, CredentialFields(access_token="tok", expiry=now_ms() + 30_000))

        response = client.post("/execute_tool", json={"user_id": USER_ID, "action": "read"}, headers=AUTH)

        assert response.json()["requires_login"] is True


class TestActions:
    """Dispatch with a valid credential."""

    def test_read_returns_user_id_used(self, client, signed_in, graph):
        graph.add("/me/messages", page([message("m1", "2024-05-01T00:00:00Z")]))

        response = client.post(
            "/execute_tool",
            json={"user_id": signed_in, "action": "read", "inputs": {"top": "5"}},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.headers["X-User-Id-Used"] == signed_in
        data = response.json()
        assert data["user_id_used"] == signed_in
        assert data["count"] == 1
        assert data["results"][0]["id"] == "m1"
        assert graph.requests[0].headers["Authorization"] == "Bearer graph-access-token"
        assert graph.requests[0].url.params["$top"] == "5"

    def test_list_folders(self, client, signed_in, graph):
        graph.add("/me/mailFolders", page([{"id": "f1", "displayName": "Inbox"}]))

        response = client.post(
            "/execute_tool", json={"user_id": signed_in, "action": "list_folders"}, headers=AUTH
        )

        assert response.json()["folders"] == [{"id": "f1", "displayName": "Inbox"}]

    def test_invalid_action(self, client, signed_in):
        response = client.post(
            "/execute_tool", json={"user_id": signed_in, "action": "delete_everything"}, headers=AUTH
        )

        assert response.status_code == 400
        assert response.json() == {"user_id_used": signed_in, "error": "Invalid action"}

    def test_missing_required_input(self, client, signed_in, graph):
        response = client.post(
            "/execute_tool",
            json={"user_id": signed_in, "action": "read_folder_id_all", "inputs": {}},
            headers=AUTH,
        )

        assert response.status_code == 400
        assert "folderId" in response.json()["error"]
        assert graph.requests == []

    def test_malformed_input(self, client, signed_in):
        response = client.post(
            "/execute_tool",
            json={"user_id": signed_in, "action": "read", "inputs": {"top": "lots"}},
            headers=AUTH,
        )

        assert response.status_code == 400
        assert "top" in response.json()["error"]

    def test_search_by_date(self, client, signed_in, graph):
        graph.add("/me/messages", page([]))

        response = client.post(
            "/execute_tool",
            json={
                "user_id": signed_in,
                "action": "search_by_date",
                "inputs": {"startIso": "2024-01-01T00:00:00Z", "endIso": "2024-01-31T23:59:59Z"},
            },
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_read_relative_reports_range(self, client, signed_in, graph):
        graph.add("/me/messages", page([]))

        response = client.post(
            "/execute_tool",
            json={
                "user_id": signed_in,
                "action": "read_relative",
                "inputs": {"intent": "on_date", "on": "2024-03-15", "tz": "UTC"},
            },
            headers=AUTH,
        )

        data = response.json()
        assert data["range"] == {
            "startIso": "2024-03-15T00:00:00+00:00",
            "endIso": "2024-03-15T23:59:59+00:00",
            "tz": "UTC",
        }

    def test_remote_error_is_passed_through(self, client, signed_in, graph):
        graph.add("/me/messages", httpx.Response(403, json={"error": {"code": "ErrorAccessDenied"}}))

        response = client.post(
            "/execute_tool", json={"user_id": signed_in, "action": "read"}, headers=AUTH
        )

        assert response.status_code == 403
        data = response.json()
        assert data["error"] == {"error": {"code": "ErrorAccessDenied"}}
        assert data["remote_status"] == 403
        assert data["user_id_used"] == signed_in

    def test_bootstrap_action(self, client, signed_in, graph):
        graph.add("/me/messages", page([message("s1", "2024-01-02T00:00:00Z", sender="a@x.com")]),
                  where={"$search": "from:Ann"})
        graph.add("/me/messages", page([message("a1", "2024-01-01T00:00:00Z", sender="a@x.com")]),
                  where={"$filter": "a@x.com"})

        response = client.post(
            "/execute_tool",
            json={"user_id": signed_in, "action": "search_sender_name_bootstrap",
                  "inputs": {"name": "Ann", "maxAqs": 10}},
            headers=AUTH,
        )

        data = response.json()
        assert data["discoveredSenders"] == ["a@x.com"]
        assert data["count"] == 1


class TestMalformedRequests:
    """Bodies that do not match the envelope still get tool-shaped answers."""

    def test_unauthenticated_malformed_body_gets_401(self, client):
        response = client.post("/execute_tool", json={"user_id": 12345})

        assert response.status_code == 401
        assert "detail" not in response.json()

    def test_non_string_user_id_mints_one(self, client):
        response = client.post(
            "/execute_tool", json={"user_id": 12345, "action": "read"}, headers=AUTH
        )

        assert response.status_code == 400
        assert response.json()["error"] == "user_id_required"

    def test_body_that_is_not_json(self, client):
        response = client.post(
            "/execute_tool",
            content=b"not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "user_id_required"

    def test_inputs_that_are_not_an_object(self, client, signed_in, graph):
        response = client.post(
            "/execute_tool",
            json={"user_id": signed_in, "action": "read", "inputs": ["x"]},
            headers=AUTH,
        )

        assert response.status_code == 400
        data = response.json()
        assert data["user_id_used"] == signed_in
        assert "valid dictionary" in data["error"]
        assert graph.requests == []

    def test_unreadable_graph_page_maps_to_502(self, client, signed_in, graph):
        graph.add("/me/messages", httpx.Response(200, text="<html>gateway</html>"))

        response = client.post(
            "/execute_tool", json={"user_id": signed_in, "action": "read"}, headers=AUTH
        )

        assert response.status_code == 502
        data = response.json()
        assert data["user_id_used"] == signed_in
        assert data["error"] == "<html>gateway</html>"
        assert data["remote_status"] == 200


class TestOpenApi:
    """Per-action request schemas."""

    def test_each_action_documents_its_inputs(self, client):
        operation = client.get("/openapi.json").json()["paths"]["/execute_tool"]["post"]

        variants = operation["requestBody"]["content"]["application/json"]["schema"]["oneOf"]
        by_action = {v["properties"]["action"]["enum"][0]: v for v in variants}
        assert len(by_action) == 14
        date_inputs = by_action["search_by_date"]["properties"]["inputs"]
        assert set(date_inputs["required"]) == {"startIso", "endIso"}
        assert "maxAqs" in by_action["search_sender_name_bootstrap"]["properties"]["inputs"]["properties"]


class TestStatus:
    """Health check."""

    def test_status(self, client, signed_in):
        response = client.get("/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["stored_credentials"] == 1
