from datetime import datetime, timezone

import pytest

from commit_exporter.models import Commit, CommitStats, DateRange


def make_commit(
    sha: str = "abcdef1234567890abcdef1234567890abcdef12",
    author: str = "Alice",
    email: str = "alice@example.com",
    date: str = "2024-01-15T10:30:45Z",
    message: str = "Fix login bug\n\nToken refresh was skipped on expiry.",
    repository: str = "alpha",
    stats: CommitStats | None = None,
    files_changed: int | None = None,
) -> Commit:
    return Commit(
        sha=sha,
        author_name=author,
        author_email=email,
        authored_at=date,
        message=message,
        repository=repository,
        url=f"https://github.com/octocat/{repository}/commit/{sha}",
        stats=stats,
        files_changed=files_changed,
    )


def make_range(date_from: str, date_to: str) -> DateRange:
    return DateRange(
        date_from=datetime.fromisoformat(date_from).replace(tzinfo=timezone.utc),
        date_to=datetime.fromisoformat(date_to).replace(tzinfo=timezone.utc),
    )


@pytest.fixture
def commit() -> Commit:
    return make_commit(stats=CommitStats(additions=10, deletions=2), files_changed=3)


@pytest.fixture
def mixed_commits() -> list[Commit]:
    return [
        make_commit(sha="a" * 40, repository="alpha", message="First"),
        make_commit(sha="b" * 40, repository="beta", message="Second"),
        make_commit(sha="c" * 40, repository="alpha", message="Third"),
        make_commit(sha="d" * 40, repository="gamma", message="Fourth"),
        make_commit(sha="e" * 40, repository="beta", message="Fifth"),
    ]
