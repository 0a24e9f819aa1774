"""
Application configuration loaded from environment variables.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ── GitHub API ────────────────────────────────────────────────────────
GITHUB_TOKEN: str | None = os.environ.get("GITHUB_TOKEN")  # Fallback when nobody is signed in
GITHUB_API_BASE: str = os.environ.get("GITHUB_API_BASE", "https://api.github.com")
GITHUB_REQUEST_TIMEOUT: int = 30  # Seconds per GitHub API request

# ── Extraction ───────────────────────────────────────────────────────
COMMITS_PAGE_SIZE: int = 100  # GitHub's maximum per_page
REPOS_PAGE_SIZE: int = 100

# Hard stop for the pagination loop: 50 pages = 5,000 commits.
MAX_COMMIT_PAGES: int = int(os.environ.get("MAX_COMMIT_PAGES", "50"))

# ── Export ───────────────────────────────────────────────────────────
DEFAULT_DETAIL_LEVEL: int = 3

# ── GitHub OAuth ─────────────────────────────────────────────────────
GITHUB_CLIENT_ID: str = os.environ.get("GITHUB_CLIENT_ID", "")
GITHUB_CLIENT_SECRET: str = os.environ.get("GITHUB_CLIENT_SECRET", "")
GITHUB_OAUTH_AUTHORIZE_URL: str = "https://github.com/login/oauth/authorize"
GITHUB_OAUTH_TOKEN_URL: str = "https://github.com/login/oauth/access_token"
OAUTH_SCOPES: str = "read:user user:email repo"
OAUTH_REDIRECT_URI: str = os.environ.get(
    "OAUTH_REDIRECT_URI", "http://localhost:8000/auth/callback"
)

SESSION_COOKIE_NAME: str = "commit_exporter_session"
OAUTH_STATE_COOKIE_NAME: str = "commit_exporter_oauth_state"
