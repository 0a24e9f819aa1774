"""
Per-commit rendering at a chosen detail level.

Detail levels run from 1 (minimal) to 5 (maximum). Each level renders
everything the level below it does, plus more:

  1  short SHA + title
  2  + author name + day
  3  + minute timestamp + message body
  4  + author email + repository + URL (timestamp to the second)
  5  + full SHA + additions/deletions + changed file count

Any other value renders as level 3.

Token costs are fixed per-commit constants, not measured from the text.
"""

from commit_exporter.models import Commit

FALLBACK_LEVEL = 3
MAX_DETAIL_LEVEL = 5

TOKENS_PER_COMMIT: dict[int, int] = {
    1: 25,
    2: 50,
    3: 100,
    4: 150,
    5: 200,
}

DETAIL_LEVEL_NAMES: dict[int, str] = {
    1: "Minimal",
    2: "Basic",
    3: "Standard",
    4: "Detailed",
    5: "Maximum",
}

DETAIL_LEVEL_DESCRIPTIONS: dict[int, str] = {
    1: "Minimal: SHA + Title only",
    2: "Basic: Core info + Author + Date",
    3: "Standard: Above + Timestamp + Description",
    4: "Detailed: Above + Email + Repository + URL",
    5: "Maximum: Full SHA + Stats + Files changed",
}


def resolve_detail_level(level: int) -> int:
    """Clamp unknown levels to the standard level."""
    return level if level in TOKENS_PER_COMMIT else FALLBACK_LEVEL


def detail_level_name(level: int) -> str:
    return DETAIL_LEVEL_NAMES[resolve_detail_level(level)]


def detail_level_description(level: int) -> str:
    return DETAIL_LEVEL_DESCRIPTIONS[resolve_detail_level(level)]


def tokens_per_commit(level: int) -> int:
    return TOKENS_PER_COMMIT[resolve_detail_level(level)]


def estimate_tokens(commit_count: int, level: int) -> int:
    """Approximate token cost of ``commit_count`` commits at ``level``."""
    return commit_count * tokens_per_commit(level)


# ── Rendering ─────────────────────────────────────────────────────────


def _format_stats(commit: Commit) -> str:
    if commit.stats is None:
        return "N/A"
    return f"+{commit.stats.additions} -{commit.stats.deletions}"


def _format_minimal(commit: Commit, index: int) -> str:
    return f"{index}. {commit.short_sha} - {commit.title}\n"


def _format_basic(commit: Commit, index: int) -> str:
    day = commit.authored_at.strftime("%Y-%m-%d")
    return (
        f"{index}. **{commit.title}**\n"
        f"   SHA: {commit.short_sha} | Author: {commit.author_name} | {day}\n"
    )


def _format_standard(commit: Commit, index: int) -> str:
    lines = [
        f"### {index}. {commit.title}",
        f"**SHA:** {commit.short_sha}",
        f"**Date:** {commit.authored_at.strftime('%Y-%m-%d %H:%M')}",
        f"**Author:** {commit.author_name}",
    ]
    if commit.body:
        lines.append(f"**Details:** {commit.body}")
    lines += ["", "---", ""]
    return "\n".join(lines)


def _format_detailed(commit: Commit, index: int) -> str:
    lines = [
        f"### {index}. {commit.title}",
        f"**SHA:** {commit.short_sha}",
        f"**Date:** {commit.authored_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Author:** {commit.author_name} <{commit.author_email}>",
        f"**Repository:** {commit.repository or 'Unknown'}",
    ]
    if commit.body:
        lines.append(f"**Description:** {commit.body}")
    lines += [f"**URL:** {commit.url}", "", "---", ""]
    return "\n".join(lines)


def _format_maximum(commit: Commit, index: int) -> str:
    files = "N/A" if commit.files_changed is None else str(commit.files_changed)
    lines = [
        f"### {index}. {commit.title}",
        f"**SHA:** {commit.sha}",
        f"**Date:** {commit.authored_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Author:** {commit.author_name} <{commit.author_email}>",
        f"**Repository:** {commit.repository or 'Unknown'}",
    ]
    if commit.body:
        lines.append(f"**Description:**\n{commit.body}")
    lines += [
        f"**Stats:** {_format_stats(commit)}",
        f"**Files changed:** {files}",
        f"**URL:** {commit.url}",
        "",
        "---",
        "",
    ]
    return "\n".join(lines)


_RENDERERS = {
    1: _format_minimal,
    2: _format_basic,
    3: _format_standard,
    4: _format_detailed,
    5: _format_maximum,
}


def format_commit(commit: Commit, index: int, level: int) -> str:
    """
    Render one commit as a Markdown block.

    Args:
        commit: The commit to render.
        index: 1-based position shown in the block heading.
        level: Detail level 1-5; anything else renders as level 3.
    """
    return _RENDERERS[resolve_detail_level(level)](commit, index)
