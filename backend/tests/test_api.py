"""End-to-end tests through the FastAPI app."""
import pytest

CLIENT = {"X-Client-Id": "tab-1"}


def _register(client, email="pat@example.com", name="Pat Lee"):
    resp = client.post(
        "/auth/register",
        json={"email": email, "password": "hunter22", "display_name": name, "class_year": "2009"},
        headers=CLIENT,
    )
    assert resp.status_code == 201
    return resp.json()


def _auth_headers(token):
    return {**CLIENT, "Authorization": f"Bearer {token}"}


def _toast_titles(client):
    return [t["title"] for t in client.get("/ui/toasts", headers=CLIENT).json()]


class TestHealth:

    def test_health(self, api_client):
        resp = api_client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "demo_mode": False}


class TestAuthEndpoints:

    def test_register_mirrors_session_into_workspace(self, api_client):
        body = _register(api_client)
        assert body["token"]
        assert body["display_name"] == "Pat Lee"

        state = api_client.get("/ui/state", headers=CLIENT).json()
        assert state["state"]["authenticated"] is True
        assert state["state"]["greeting"] == "Welcome, Pat Lee"
        assert "Welcome to the Archive!" in [t["title"] for t in state["toasts"]]

    def test_me_requires_session(self, api_client):
        resp = api_client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.json()["title"] == "Sign In Required"

    def test_login_me_logout(self, api_client):
        _register(api_client)
        login = api_client.post(
            "/auth/login", json={"email": "pat@example.com", "password": "hunter22"}, headers=CLIENT
        )
        assert login.status_code == 200
        token = login.json()["token"]

        me = api_client.get("/auth/me", headers=_auth_headers(token))
        assert me.json()["classYear"] == "2009"

        assert api_client.post("/auth/logout", headers=_auth_headers(token)).status_code == 204
        assert api_client.get("/auth/me", headers=_auth_headers(token)).status_code == 401

    def test_bad_login(self, api_client):
        resp = api_client.post("/auth/login", json={"email": "x@example.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password"


class TestMemoryEndpoints:

    def test_submit_with_staged_attachments(self, api_client):
        token = _register(api_client)["token"]
        staged = api_client.post(
            "/ui/attachments",
            files={"file": ("podium.jpg", b"\xff\xd8\xff" + b"\x00" * 64, "image/jpeg")},
            headers=CLIENT,
        )
        assert staged.status_code == 201
        assert staged.json()[0]["name"] == "podium.jpg"

        resp = api_client.post(
            "/memories",
            json={"title": "States 2009", "decade": "2000s", "story": "Relay win", "memory_type": "photo"},
            headers=_auth_headers(token),
        )
        assert resp.status_code == 201
        result = resp.json()
        assert len(result["images"]) == 1

        state = api_client.get("/ui/state", headers=CLIENT).json()
        assert state["attachments"] == []
        assert state["upload_progress"] == 100.0

        memory = api_client.get(f"/memories/{result['memory_id']}").json()
        assert memory["images"] == result["images"]

        path = result["images"][0].split("/files/", 1)[1]
        download = api_client.get(f"/files/{path}")
        assert download.status_code == 200
        assert download.headers["content-type"] == "image/jpeg"

    def test_submit_requires_session(self, api_client):
        resp = api_client.post("/memories", json={"title": "t", "decade": "2000s", "story": "s"})
        assert resp.status_code == 401

    def test_missing_fields(self, api_client):
        token = _register(api_client)["token"]
        resp = api_client.post(
            "/memories", json={"title": "", "decade": "2000s", "story": ""}, headers=_auth_headers(token)
        )
        assert resp.status_code == 400
        assert resp.json()["title"] == "Missing Information"

    def test_list_react_and_comment(self, api_client):
        token = _register(api_client)["token"]
        headers = _auth_headers(token)
        created = api_client.post(
            "/memories", json={"title": "Meet", "decade": "1990s", "story": "Fast lane"}, headers=headers
        ).json()
        memory_id = created["memory_id"]

        page = api_client.get("/memories", params={"decade": "1990s"}).json()
        assert [m["id"] for m in page["memories"]] == [memory_id]
        assert page["has_more"] is False

        reaction = api_client.post(
            f"/memories/{memory_id}/reactions", json={"type": "swim"}, headers=headers
        ).json()
        assert reaction["active"] is True
        assert reaction["reactions"]["swim"] == 1

        bad = api_client.post(f"/memories/{memory_id}/reactions", json={"type": "thumbs"}, headers=headers)
        assert bad.status_code == 400

        comment = api_client.post(f"/memories/{memory_id}/comments", json={"text": "Great!"}, headers=headers)
        assert comment.status_code == 201
        comments = api_client.get(f"/memories/{memory_id}/comments").json()
        assert [c["text"] for c in comments] == ["Great!"]

        found = api_client.get("/memories/search", params={"q": "fast"}).json()
        assert [m["id"] for m in found] == [memory_id]

    def test_unknown_memory(self, api_client):
        resp = api_client.get("/memories/nope")
        assert resp.status_code == 404
        assert "detail" in resp.json()

    def test_stats(self, api_client):
        decades = api_client.get("/memories/stats/decades").json()
        assert len(decades) == 8
        community = api_client.get("/memories/stats/community").json()
        assert community["decadeCount"] == 8


class TestUIEndpoints:

    def test_view_and_decade_switching(self, api_client):
        assert api_client.put("/ui/view", json={"view": "community"}, headers=CLIENT).json()["view"] == "community"
        info = api_client.put("/ui/decade", json={"decade": "1970s"}, headers=CLIENT).json()
        assert info["decade"] == "1970s"
        assert info["tagline"] == "The Rise"

        snapshot = api_client.put(
            "/ui/contribution-type", json={"contribution_type": "story"}, headers=CLIENT
        ).json()
        assert snapshot["show_attachment_zone"] is False

        state = api_client.get("/ui/state", headers=CLIENT).json()["state"]
        assert (state["view"], state["decade"]) == ("community", "1970s")

    def test_workspaces_are_per_client(self, api_client):
        api_client.put("/ui/view", json={"view": "invite"}, headers=CLIENT)
        other = api_client.get("/ui/state", headers={"X-Client-Id": "tab-2"}).json()
        assert other["state"]["view"] == "timeline"

    def test_char_count(self, api_client):
        resp = api_client.post("/ui/char-count", json={"text": "x" * 1900})
        assert resp.json()["level"] == "warning"

    def test_modals(self, api_client):
        body = api_client.post("/ui/modals/auth-modal/open", headers=CLIENT).json()
        assert body == {"open_modals": ["auth-modal"], "scroll_locked": True}
        assert api_client.post("/ui/modals/bogus/open", headers=CLIENT).status_code == 404
        body = api_client.post("/ui/modals/auth-modal/close", headers=CLIENT).json()
        assert body["scroll_locked"] is False

    def test_rejected_attachment(self, api_client):
        resp = api_client.post(
            "/ui/attachments", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=CLIENT
        )
        assert resp.status_code == 400
        assert resp.json()["title"] == "Invalid File"
        assert api_client.delete("/ui/attachments/0", headers=CLIENT).status_code == 404

    def test_dismiss_toast(self, api_client):
        api_client.post("/invites/staged", json={"email": "bad"}, headers=CLIENT)
        toast = api_client.get("/ui/toasts", headers=CLIENT).json()[0]
        assert api_client.delete(f"/ui/toasts/{toast['id']}", headers=CLIENT).status_code == 204
        assert _toast_titles(api_client) == []


class TestInviteEndpoints:

    def test_stage_and_send(self, api_client):
        token = _register(api_client)["token"]
        for email in ("a@example.com", "b@example.com"):
            assert api_client.post("/invites/staged", json={"email": email}, headers=CLIENT).status_code == 201

        dup = api_client.post("/invites/staged", json={"email": "a@example.com"}, headers=CLIENT)
        assert dup.status_code == 409
        bad = api_client.post("/invites/staged", json={"email": "not-an-email"}, headers=CLIENT)
        assert bad.status_code == 400

        staged = api_client.delete("/invites/staged/b@example.com", headers=CLIENT).json()
        assert staged["emails"] == ["a@example.com"]

        sent = api_client.post(
            "/invites/send", json={"personal_message": "Join us"}, headers=_auth_headers(token)
        ).json()
        assert sent["sent"] == ["a@example.com"]
        assert api_client.get("/invites/staged", headers=CLIENT).json()["emails"] == []

        mine = api_client.get("/invites/mine", headers=_auth_headers(token)).json()
        assert [i["email"] for i in mine] == ["a@example.com"]

    @pytest.mark.parametrize("path", ["/invites/send", "/invites/mine"])
    def test_requires_session(self, api_client, path):
        if path.endswith("send"):
            resp = api_client.post(path, json={})
        else:
            resp = api_client.get(path)
        assert resp.status_code == 401
