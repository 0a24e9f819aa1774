"""
GitHub API interaction — list a user's repositories and page through commits.

Uses the GitHub REST API (v3) with optional token authentication.
All functions are async and use httpx for HTTP requests. Requests are
issued one at a time; a commit extraction either returns every page or
raises, never a partial list.
"""

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from commit_exporter.config import (
    COMMITS_PAGE_SIZE,
    GITHUB_API_BASE,
    GITHUB_REQUEST_TIMEOUT,
    GITHUB_TOKEN,
    MAX_COMMIT_PAGES,
    REPOS_PAGE_SIZE,
)
from commit_exporter.models import Commit, CommitStats, DateRange, Repository

logger = logging.getLogger(__name__)


class GitHubFetchError(Exception):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# ── HTTP Client Helpers ───────────────────────────────────────────────


def _build_headers(token: str | None = None) -> dict[str, str]:
    """Build request headers, including auth token if available."""
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": "github-commit-exporter/1.0",
    }
    token = token or GITHUB_TOKEN
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


async def _github_get(
    client: httpx.AsyncClient,
    endpoint: str,
    params: dict | None = None,
    token: str | None = None,
):
    """
    Perform a GET request against the GitHub API and return the decoded JSON.

    Raises GitHubFetchError with appropriate status codes on failure.
    """
    url = f"{GITHUB_API_BASE}{endpoint}"
    try:
        response = await client.get(
            url,
            params=params,
            headers=_build_headers(token),
            timeout=GITHUB_REQUEST_TIMEOUT,
        )
    except httpx.TimeoutException:
        raise GitHubFetchError(
            "GitHub API request timed out. Please try again.",
            status_code=504,
        )
    except httpx.RequestError as exc:
        raise GitHubFetchError(
            f"Network error while contacting GitHub: {exc}",
            status_code=502,
        )

    if response.status_code == 404:
        raise GitHubFetchError(
            "Not found on GitHub. Please check the username and repository.",
            status_code=404,
        )
    if response.status_code == 403:
        raise GitHubFetchError(
            "GitHub API rate limit exceeded. "
            "Sign in with GitHub or set GITHUB_TOKEN for higher limits.",
            status_code=429,
        )
    if response.status_code != 200:
        raise GitHubFetchError(
            f"GitHub API returned status {response.status_code}.",
            status_code=response.status_code,
        )

    return response.json()


def _isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ── Parsing ───────────────────────────────────────────────────────────


def parse_repository(item: dict) -> Repository:
    return Repository(
        name=item["name"],
        description=item.get("description"),
        language=item.get("language"),
    )


def parse_commit(item: dict, repository: str) -> Commit:
    """
    Map a raw GitHub commit object onto a Commit tagged with ``repository``.

    The list endpoint never includes stats or files; the single-commit
    endpoint does. Both shapes are accepted.
    """
    info = item.get("commit") or {}
    author = info.get("author") or {}

    stats = None
    raw_stats = item.get("stats")
    if raw_stats:
        stats = CommitStats(
            additions=raw_stats.get("additions") or 0,
            deletions=raw_stats.get("deletions") or 0,
        )

    files = item.get("files")
    sha = item["sha"]

    authored_at = author.get("date") or (info.get("committer") or {}).get("date")
    if not authored_at:
        logger.warning("Commit %s has no author or committer date; using the epoch", sha[:8])
        authored_at = datetime.fromtimestamp(0, timezone.utc)

    return Commit(
        sha=sha,
        author_name=author.get("name") or "Unknown",
        author_email=author.get("email") or "",
        authored_at=authored_at,
        message=info.get("message") or "",
        repository=repository,
        url=item.get("html_url") or "",
        stats=stats,
        files_changed=len(files) if files is not None else None,
    )


# ── Public API ────────────────────────────────────────────────────────


async def list_repositories(
    client: httpx.AsyncClient, username: str, token: str | None = None
) -> list[Repository]:
    """
    List a user's repositories, most recently updated first.

    A single request: users with more than 100 repositories only see
    the 100 most recently updated ones.
    """
    data = await _github_get(
        client,
        f"/users/{username}/repos",
        params={"sort": "updated", "per_page": REPOS_PAGE_SIZE},
        token=token,
    )
    return [parse_repository(item) for item in data]


async def fetch_all_commits(
    client: httpx.AsyncClient,
    owner: str,
    repo: str,
    date_range: DateRange,
    token: str | None = None,
    page_size: int = COMMITS_PAGE_SIZE,
    max_pages: int = MAX_COMMIT_PAGES,
    cancel: asyncio.Event | None = None,
) -> list[Commit]:
    """
    Fetch every commit of ``owner/repo`` authored within ``date_range``.

    Pages are requested sequentially until a page comes back empty or
    shorter than ``page_size``. Each commit is tagged with ``repo``.

    Raises:
        GitHubFetchError: On any failed request, when more than
            ``max_pages`` pages would be needed, or when ``cancel`` is set.
            Commits gathered so far are discarded.
    """
    params = {
        "since": _isoformat(date_range.date_from),
        "until": _isoformat(date_range.date_to),
        "per_page": page_size,
    }

    commits: list[Commit] = []
    page = 1

    while True:
        if cancel is not None and cancel.is_set():
            raise GitHubFetchError("Commit extraction was cancelled.", status_code=499)

        items = await _github_get(
            client,
            f"/repos/{owner}/{repo}/commits",
            params={**params, "page": page},
            token=token,
        )
        logger.info("Fetched page %d of %s/%s: %d commits", page, owner, repo, len(items))

        if not items:
            break
        # Page max_pages + 1 is only fetched to confirm the previous page was the last
        if page > max_pages:
            raise GitHubFetchError(
                f"More than {max_pages * page_size} commits in this range. "
                "Please choose a shorter date range.",
                status_code=422,
            )

        commits.extend(parse_commit(item, repo) for item in items)

        if len(items) < page_size:
            break
        page += 1

    return commits


async def fetch_repositories(username: str, token: str | None = None) -> list[Repository]:
    """High-level convenience function: list repositories with a fresh client."""
    async with httpx.AsyncClient() as client:
        return await list_repositories(client, username, token)


async def fetch_commits(
    owner: str,
    repo: str,
    date_range: DateRange,
    token: str | None = None,
) -> list[Commit]:
    """High-level convenience function: fetch all commits with a fresh client."""
    async with httpx.AsyncClient() as client:
        return await fetch_all_commits(client, owner, repo, date_range, token=token)
