"""
Repository selection over an extracted commit list.
"""

from typing import NamedTuple

from commit_exporter.formatter import estimate_tokens
from commit_exporter.models import Commit


class FilterResult(NamedTuple):
    commits: list[Commit]
    token_estimate: int


def filter_commits(
    commits: list[Commit],
    selected_repos: list[str] | set[str],
    detail_level: int,
) -> FilterResult:
    """
    Keep commits whose repository is in ``selected_repos``.

    An empty selection keeps every commit. Input order is preserved.
    The token estimate is ``len(filtered) * tokens_per_commit(detail_level)``.
    """
    if selected_repos:
        wanted = set(selected_repos)
        kept = [c for c in commits if c.repository in wanted]
    else:
        kept = list(commits)

    return FilterResult(kept, estimate_tokens(len(kept), detail_level))


def token_band(tokens: int) -> str:
    """Colour hint the UI shows beside the token estimate."""
    if tokens < 1_000:
        return "green"
    if tokens < 5_000:
        return "yellow"
    if tokens < 10_000:
        return "orange"
    return "red"
