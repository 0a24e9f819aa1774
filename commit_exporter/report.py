"""
Export document assembly for LLM consumption.

The optimized document has three sections:
  1. Metadata header (user, repositories, range, counts, detail level)
  2. Commit blocks, in the order given, rendered by the formatter
  3. Summary statistics (per-repository counts, top authors, time span)

Commits are never re-sorted here; callers decide the order.

The history document is the plain full-detail layout: every commit with
its full SHA, message and URL, plus a breakdown of all authors.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from commit_exporter.formatter import detail_level_name, format_commit, resolve_detail_level
from commit_exporter.models import Commit, DateRange, ExportDocument

TOP_AUTHORS_LIMIT = 5
SECONDS_PER_DAY = 60 * 60 * 24


@dataclass
class ReportContext:
    """Everything the header and summary need besides the commits."""

    username: str
    selected_repos: list[str]
    date_range: DateRange
    token_estimate: int
    total_commits: int | None = None  # size of the unfiltered list
    generated_at: datetime | None = None


# ── Statistics ────────────────────────────────────────────────────────


def time_span_days(date_range: DateRange) -> int:
    """Whole days covered by the range, rounded up, never less than 1."""
    seconds = (date_range.date_to - date_range.date_from).total_seconds()
    return max(1, math.ceil(seconds / SECONDS_PER_DAY))


def commits_per_day(commit_count: int, date_range: DateRange) -> float:
    return commit_count / time_span_days(date_range)


def repository_breakdown(commits: list[Commit]) -> dict[str, int]:
    """Commit count per repository, in first-seen order."""
    counts: dict[str, int] = {}
    for commit in commits:
        repo = commit.repository or "Unknown"
        counts[repo] = counts.get(repo, 0) + 1
    return counts


def author_breakdown(commits: list[Commit]) -> dict[str, int]:
    """Commit count per author name, in first-seen order."""
    counts: dict[str, int] = {}
    for commit in commits:
        counts[commit.author_name] = counts.get(commit.author_name, 0) + 1
    return counts


def top_authors(commits: list[Commit], limit: int = TOP_AUTHORS_LIMIT) -> list[tuple[str, int]]:
    """
    Most active authors, highest count first.

    Ties keep the order in which the authors first appear in ``commits``.
    """
    counts = author_breakdown(commits)

    # sorted() is stable, so equal counts stay in encounter order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit]


# ── Sections ──────────────────────────────────────────────────────────


def _repositories_label(selected_repos: list[str]) -> str:
    return ", ".join(selected_repos) if selected_repos else "All repositories"


def _build_header(commits: list[Commit], detail_level: int, ctx: ReportContext) -> str:
    dr = ctx.date_range
    total = ctx.total_commits if ctx.total_commits is not None else len(commits)
    generated = ctx.generated_at or datetime.now(timezone.utc)

    lines = [
        "# GitHub Commit Analysis - Optimized for LLM",
        "",
        f"**User:** {ctx.username}",
        f"**Repositories:** {_repositories_label(ctx.selected_repos)}",
        f"**Date Range:** {dr.date_from:%Y-%m-%d} to {dr.date_to:%Y-%m-%d}",
        f"**Total Commits:** {len(commits)} (filtered from {total})",
        f"**Detail Level:** {detail_level_name(detail_level)}",
        f"**Estimated Tokens:** {ctx.token_estimate:,}",
        f"**Generated:** {generated:%Y-%m-%d %H:%M:%S}",
        "",
        "---",
        "",
        "## Commit Data",
        "",
        "",
    ]
    return "\n".join(lines)


def _build_summary(commits: list[Commit], detail_level: int, ctx: ReportContext) -> str:
    level = resolve_detail_level(detail_level)
    days = time_span_days(ctx.date_range)
    repo_count = len(ctx.selected_repos) if ctx.selected_repos else "All"

    lines = [
        "",
        "## Summary",
        "",
        f"- **Commits analyzed:** {len(commits)}",
        f"- **Repositories:** {repo_count}",
        f"- **Time span:** {days} days",
        f"- **Average commits/day:** {commits_per_day(len(commits), ctx.date_range):.2f}",
        "",
        "### Repository Breakdown",
    ]
    breakdown = repository_breakdown(commits)
    if breakdown:
        lines += [f"- **{repo}:** {count} commits" for repo, count in breakdown.items()]
    else:
        lines.append("- No commits")

    lines += ["", "### Author Analysis"]
    authors = top_authors(commits)
    if authors:
        lines += [f"- **{author}:** {count} commits" for author, count in authors]
    else:
        lines.append("- No commits")

    lines += [
        "",
        "---",
        "",
        f"*This data is optimized for LLM analysis with {level}/5 detail level. "
        "Ask questions about patterns, productivity, code changes, or development insights.*",
    ]
    return "\n".join(lines)


# ── Public API ────────────────────────────────────────────────────────


def build_report(commits: list[Commit], detail_level: int, ctx: ReportContext) -> str:
    """
    Build the full Markdown export for ``commits``.

    Args:
        commits: The already-filtered commits, rendered in the given order.
        detail_level: Detail level 1-5 (others render as 3).
        ctx: Header / summary context.
    """
    blocks = "\n".join(
        format_commit(commit, index, detail_level)
        for index, commit in enumerate(commits, start=1)
    )
    return (
        _build_header(commits, detail_level, ctx)
        + blocks
        + _build_summary(commits, detail_level, ctx)
    )


def export_filename(username: str, selected_repos: list[str], date_from: datetime) -> str:
    """Download name, e.g. ``github-commits-octocat-hello-2024-01-01-optimized.md``."""
    repo_suffix = f"-{'-'.join(selected_repos)}" if selected_repos else ""
    return f"github-commits-{username}{repo_suffix}-{date_from:%Y-%m-%d}-optimized.md"


def generate_export(commits: list[Commit], detail_level: int, ctx: ReportContext) -> ExportDocument:
    """Render the document and bundle it with its filename and token estimate."""
    content = build_report(commits, detail_level, ctx)
    return ExportDocument(
        content=content,
        token_estimate=ctx.token_estimate,
        filename=export_filename(ctx.username, ctx.selected_repos, ctx.date_range.date_from),
        commit_count=len(commits),
    )


# ── History Export ────────────────────────────────────────────────────


def _repository_label(username: str, commits: list[Commit], selected_repos: list[str]) -> str:
    repos = selected_repos or list(repository_breakdown(commits))
    if not repos:
        return f"{username}/(none)"
    return ", ".join(f"{username}/{repo}" for repo in repos)


def _format_history_commit(commit: Commit, index: int) -> str:
    lines = [
        f"### Commit {index}",
        "",
        f"**SHA:** {commit.sha}",
        f"**Date:** {commit.authored_at:%Y-%m-%d %H:%M:%S}",
        f"**Author:** {commit.author_name} <{commit.author_email}>",
        f"**Message:** {commit.title}",
    ]
    if commit.body:
        lines.append(f"**Description:**\n{commit.body}")
    lines += [f"**URL:** {commit.url}", "", "---", ""]
    return "\n".join(lines)


def build_history_report(commits: list[Commit], ctx: ReportContext) -> str:
    """
    Build the full-detail history document.

    Unlike ``build_report`` there is no detail level: each commit is shown
    in full and the author breakdown lists every author.
    """
    dr = ctx.date_range
    generated = ctx.generated_at or datetime.now(timezone.utc)
    repository = _repository_label(ctx.username, commits, ctx.selected_repos)
    date_span = f"{dr.date_from:%Y-%m-%d} to {dr.date_to:%Y-%m-%d}"
    authors = author_breakdown(commits)

    header = "\n".join([
        "# GitHub Commit History Analysis",
        "",
        f"**Repository:** {repository}",
        f"**Date Range:** {date_span}",
        f"**Total Commits:** {len(commits)}",
        f"**Generated:** {generated:%Y-%m-%d %H:%M:%S}",
        "",
        "---",
        "",
        "## Commit Details",
        "",
        "",
    ])
    blocks = "\n".join(
        _format_history_commit(commit, index)
        for index, commit in enumerate(commits, start=1)
    )

    summary = [
        "",
        "## Summary Statistics",
        "",
        f"- **Total commits:** {len(commits)}",
        f"- **Date range:** {date_span}",
        f"- **Repository:** {repository}",
        f"- **Authors:** {len(authors)} unique author(s)",
        f"- **Average commits per day:** {commits_per_day(len(commits), dr):.2f}",
        "",
        "## Author Breakdown",
        "",
    ]
    if authors:
        summary += [f"- **{author}:** {count} commits" for author, count in authors.items()]
    else:
        summary.append("- No commits")
    summary += [
        "",
        "---",
        "",
        "*This data is formatted for LLM analysis. You can ask questions about commit "
        "patterns, development velocity, code changes, author contributions, and more.*",
    ]
    return header + blocks + "\n".join(summary)


def history_filename(
    username: str, selected_repos: list[str], date_range: DateRange
) -> str:
    """Download name, e.g. ``octocat-hello-commits-2024-01-01-to-2024-01-31.md``."""
    repos = "-".join(selected_repos) if selected_repos else "all"
    return (
        f"{username}-{repos}-commits-"
        f"{date_range.date_from:%Y-%m-%d}-to-{date_range.date_to:%Y-%m-%d}.md"
    )


def generate_history_export(commits: list[Commit], ctx: ReportContext) -> ExportDocument:
    content = build_history_report(commits, ctx)
    return ExportDocument(
        content=content,
        token_estimate=ctx.token_estimate,
        filename=history_filename(ctx.username, ctx.selected_repos, ctx.date_range),
        commit_count=len(commits),
    )
