"""
API endpoint tests using FastAPI's TestClient.

GitHub access is monkeypatched at the main module, so no test here
needs network access or credentials.
"""

import pytest
from fastapi.testclient import TestClient

from commit_exporter import main
from commit_exporter.config import OAUTH_STATE_COOKIE_NAME, SESSION_COOKIE_NAME
from commit_exporter.github_fetcher import GitHubFetchError
from commit_exporter.identity import GitHubOAuth, Identity
from commit_exporter.models import Repository

from conftest import make_commit


def commit_payload(commits):
    return [c.model_dump(mode="json") for c in commits]


class TestAPIEndpoints:
    """Test API endpoints (no real server needed)."""

    @pytest.fixture(autouse=True)
    def setup_client(self):
        self.client = TestClient(main.app)

    def sign_in(self, username="octocat", token="gho_123"):
        identity = Identity(user_id="1", github_username=username)
        session_id, _ = main.app.state.sessions.create(identity, token)
        self.client.cookies.set(SESSION_COOKIE_NAME, session_id)
        return session_id

    # ── Health / docs ────────────────────────────────────────────────

    def test_health_check(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_openapi_json(self):
        response = self.client.get("/openapi.json")
        assert response.status_code == 200
        paths = response.json()["paths"]
        for path in ("/repositories", "/commits", "/filter", "/export", "/export/download"):
            assert path in paths

    # ── Auth ─────────────────────────────────────────────────────────

    def test_session_signed_out(self):
        response = self.client.get("/auth/session")
        assert response.status_code == 200
        assert response.json()["signed_in"] is False

    def test_session_signed_in(self):
        self.sign_in()
        data = self.client.get("/auth/session").json()
        assert data["signed_in"] is True
        assert data["github_username"] == "octocat"

    def test_logout(self):
        session_id = self.sign_in()
        response = self.client.post("/auth/logout")
        assert response.status_code == 200
        assert main.app.state.sessions.get(session_id) is None

    def test_login_unconfigured(self, monkeypatch):
        monkeypatch.setattr(main.app.state, "oauth", GitHubOAuth(client_id="", client_secret=""))
        response = self.client.get("/auth/login", follow_redirects=False)
        assert response.status_code == 500
        assert response.json()["status"] == "error"

    def test_login_redirects_to_github(self, monkeypatch):
        monkeypatch.setattr(main.app.state, "oauth", GitHubOAuth(client_id="cid", client_secret="s"))
        response = self.client.get("/auth/login", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"].startswith("https://github.com/login/oauth/authorize")
        assert OAUTH_STATE_COOKIE_NAME in response.cookies

    def test_callback_state_mismatch(self):
        self.client.cookies.set(OAUTH_STATE_COOKIE_NAME, "expected")
        response = self.client.get(
            "/auth/callback", params={"code": "abc", "state": "forged"}, follow_redirects=False
        )
        assert response.status_code == 400
        assert "state mismatch" in response.json()["message"]

    def test_callback_declined_by_user(self):
        response = self.client.get(
            "/auth/callback",
            params={
                "error": "access_denied",
                "error_description": "The user has denied your application access.",
                "state": "s1",
            },
            follow_redirects=False,
        )
        assert response.status_code == 401
        data = response.json()
        assert data["status"] == "error"
        assert data["message"] == "The user has denied your application access."

    def test_callback_without_code(self):
        response = self.client.get("/auth/callback", follow_redirects=False)
        assert response.status_code == 401
        assert "cancelled" in response.json()["message"]

    def test_callback_creates_session(self, monkeypatch):
        class FakeOAuth:
            async def sign_in(self, code):
                return Identity(user_id="9", github_username="hubot"), "gho_abc"

        monkeypatch.setattr(main.app.state, "oauth", FakeOAuth())
        self.client.cookies.set(OAUTH_STATE_COOKIE_NAME, "s1")
        response = self.client.get(
            "/auth/callback", params={"code": "abc", "state": "s1"}, follow_redirects=False
        )
        assert response.status_code == 302
        session_id = response.cookies[SESSION_COOKIE_NAME]
        session = main.app.state.sessions.get(session_id)
        assert session.get_current_identity().github_username == "hubot"
        assert session.access_token == "gho_abc"

    # ── Repositories ─────────────────────────────────────────────────

    def test_repositories_requires_username(self):
        response = self.client.post("/repositories", json={})
        assert response.status_code == 400
        data = response.json()
        assert data["status"] == "error"
        assert "username required" in data["message"].lower()

    def test_repositories_blank_username(self):
        response = self.client.post("/repositories", json={"username": "   "})
        assert response.status_code == 400

    def test_repositories(self, monkeypatch):
        calls = []

        async def fake_fetch(username, token=None):
            calls.append((username, token))
            return [Repository(name="hello", language="Python")]

        monkeypatch.setattr(main, "fetch_repositories", fake_fetch)
        response = self.client.post("/repositories", json={"username": "octocat"})
        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "octocat"
        assert data["repositories"][0]["name"] == "hello"
        assert calls == [("octocat", None)]

    def test_repositories_uses_signed_in_username(self, monkeypatch):
        calls = []

        async def fake_fetch(username, token=None):
            calls.append((username, token))
            return []

        monkeypatch.setattr(main, "fetch_repositories", fake_fetch)
        self.sign_in(username="hubot", token="gho_xyz")
        response = self.client.post("/repositories", json={})
        assert response.status_code == 200
        assert calls == [("hubot", "gho_xyz")]

    def test_repositories_github_error(self, monkeypatch):
        async def fake_fetch(username, token=None):
            raise GitHubFetchError("Not found on GitHub.", status_code=404)

        monkeypatch.setattr(main, "fetch_repositories", fake_fetch)
        response = self.client.post("/repositories", json={"username": "nobody"})
        assert response.status_code == 404
        assert response.json() == {"status": "error", "message": "Not found on GitHub."}

    # ── Commits ──────────────────────────────────────────────────────

    def test_commits(self, monkeypatch):
        seen = {}

        async def fake_fetch(owner, repo, date_range, token=None):
            seen.update(owner=owner, repo=repo, date_range=date_range)
            return [make_commit(repository=repo), make_commit(sha="f" * 40, repository=repo)]

        monkeypatch.setattr(main, "fetch_commits", fake_fetch)
        response = self.client.post("/commits", json={
            "username": "octocat",
            "repository": "hello",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-31T00:00:00Z",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["commits"][1]["sha"] == "f" * 40
        assert seen["owner"] == "octocat"
        assert seen["date_range"].date_to.day == 31

    def test_commits_use_session_token(self, monkeypatch):
        calls = []

        async def fake_fetch(owner, repo, date_range, token=None):
            calls.append(token)
            return []

        monkeypatch.setattr(main, "fetch_commits", fake_fetch)
        session_id = self.sign_in(token="gho_xyz")
        body = {
            "repository": "hello",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-31T00:00:00Z",
        }
        assert self.client.post("/commits", json=body).status_code == 200
        main.app.state.sessions.end(session_id)
        assert self.client.post("/commits", json={**body, "username": "octocat"}).status_code == 200
        assert calls == ["gho_xyz", None]

    def test_commits_missing_repository(self):
        response = self.client.post("/commits", json={
            "username": "octocat",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-31T00:00:00Z",
        })
        assert response.status_code == 422
        data = response.json()
        assert data["status"] == "error"
        assert "Validation error" in data["message"]

    def test_commits_reversed_range(self):
        response = self.client.post("/commits", json={
            "username": "octocat",
            "repository": "hello",
            "date_from": "2024-02-01T00:00:00Z",
            "date_to": "2024-01-01T00:00:00Z",
        })
        assert response.status_code == 422

    def test_commits_fetch_failure(self, monkeypatch):
        async def fake_fetch(owner, repo, date_range, token=None):
            raise GitHubFetchError("GitHub API returned status 500.", status_code=500)

        monkeypatch.setattr(main, "fetch_commits", fake_fetch)
        response = self.client.post("/commits", json={
            "username": "octocat",
            "repository": "hello",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-31T00:00:00Z",
        })
        assert response.status_code == 500
        assert response.json()["status"] == "error"

    # ── Filter / export ──────────────────────────────────────────────

    def test_filter(self, mixed_commits):
        response = self.client.post("/filter", json={
            "commits": commit_payload(mixed_commits),
            "selected_repos": ["alpha"],
            "detail_level": 4,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [c["message"] for c in data["commits"]] == ["First", "Third"]
        assert data["tokens_per_commit"] == 150
        assert data["token_estimate"] == 300
        assert data["token_band"] == "green"
        assert data["detail_description"].startswith("Detailed")

    def test_filter_out_of_range_level(self, mixed_commits):
        response = self.client.post("/filter", json={
            "commits": commit_payload(mixed_commits),
            "detail_level": 99,
        })
        data = response.json()
        assert data["detail_level"] == 3
        assert data["token_estimate"] == 500

    def test_export(self, mixed_commits):
        response = self.client.post("/export", json={
            "commits": commit_payload(mixed_commits),
            "selected_repos": ["beta"],
            "detail_level": 2,
            "username": "octocat",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-03T00:00:00Z",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["commit_count"] == 2
        assert data["token_estimate"] == 100
        assert data["filename"] == "github-commits-octocat-beta-2024-01-01-optimized.md"
        assert "**Total Commits:** 2 (filtered from 5)" in data["content"]
        assert "- **Time span:** 2 days" in data["content"]

    def test_export_requires_username(self, mixed_commits):
        response = self.client.post("/export", json={
            "commits": commit_payload(mixed_commits),
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-03T00:00:00Z",
        })
        assert response.status_code == 422

    def test_export_download(self, mixed_commits):
        response = self.client.post("/export/download", json={
            "commits": commit_payload(mixed_commits),
            "username": "octocat",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-01T00:00:00Z",
        })
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert (
            'filename="github-commits-octocat-2024-01-01-optimized.md"'
            in response.headers["content-disposition"]
        )
        assert response.text.startswith("# GitHub Commit Analysis")
        assert "- **Average commits/day:** 5.00" in response.text

    def test_export_download_non_ascii_username(self, mixed_commits):
        response = self.client.post("/export/download", json={
            "commits": commit_payload(mixed_commits),
            "username": "名前",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-01T00:00:00Z",
        })
        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert 'filename="github-commits-__-2024-01-01-optimized.md"' in disposition
        assert (
            "filename*=UTF-8''github-commits-%E5%90%8D%E5%89%8D-2024-01-01-optimized.md"
            in disposition
        )

    def test_export_download_quote_in_repository(self, mixed_commits):
        response = self.client.post("/export/download", json={
            "commits": commit_payload(mixed_commits),
            "selected_repos": ['a"b'],
            "username": "octocat",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-01T00:00:00Z",
        })
        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert 'filename="github-commits-octocat-a_b-2024-01-01-optimized.md"' in disposition
        assert "a%22b" in disposition

    def test_export_history_style(self, mixed_commits):
        response = self.client.post("/export", json={
            "commits": commit_payload(mixed_commits),
            "selected_repos": ["alpha"],
            "detail_level": 1,
            "style": "history",
            "username": "octocat",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-31T00:00:00Z",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["commit_count"] == 2
        assert data["token_estimate"] == 400
        assert data["filename"] == "octocat-alpha-commits-2024-01-01-to-2024-01-31.md"
        assert data["content"].startswith("# GitHub Commit History Analysis")
        assert "- **Authors:** 1 unique author(s)" in data["content"]

    def test_export_unknown_style(self, mixed_commits):
        response = self.client.post("/export", json={
            "commits": commit_payload(mixed_commits),
            "style": "fancy",
            "username": "octocat",
            "date_from": "2024-01-01T00:00:00Z",
            "date_to": "2024-01-31T00:00:00Z",
        })
        assert response.status_code == 422
        assert response.json()["status"] == "error"

    def test_cors_headers(self):
        """Verify CORS headers are present."""
        response = self.client.options(
            "/export",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert "access-control-allow-origin" in response.headers
