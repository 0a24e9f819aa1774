"""
Pydantic models for commit data and API request / response schemas.

Commits and repositories are explicit records: fields GitHub may omit
(stats, changed files, descriptions) are Optional and every consumer
has to handle them being absent.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from commit_exporter.config import DEFAULT_DETAIL_LEVEL


# ── Domain Records ────────────────────────────────────────────────────

class CommitStats(BaseModel):
    """Line counts for a commit."""

    model_config = ConfigDict(frozen=True)

    additions: int = Field(0, description="Number of lines added")
    deletions: int = Field(0, description="Number of lines deleted")


class Commit(BaseModel):
    """A single commit, tagged with the repository it was fetched from."""

    model_config = ConfigDict(frozen=True)

    sha: str = Field(..., description="Full commit SHA")
    author_name: str = Field(..., description="Author name")
    author_email: str = Field("", description="Author email")
    authored_at: datetime = Field(..., description="Authored timestamp")
    message: str = Field("", description="Full commit message")
    repository: str = Field(..., description="Name of the repository the commit came from")
    url: str = Field("", description="Canonical GitHub URL of the commit")
    stats: CommitStats | None = Field(None, description="Additions / deletions, when known")
    files_changed: int | None = Field(None, description="Changed file count, when known")

    @property
    def short_sha(self) -> str:
        return self.sha[:8]

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]

    @property
    def body(self) -> str:
        parts = self.message.split("\n", 1)
        return parts[1].strip() if len(parts) > 1 else ""


class Repository(BaseModel):
    """Repository entry from the user's repository listing."""

    name: str = Field(..., description="Repository name")
    description: str | None = Field(None, description="Repository description")
    language: str | None = Field(None, description="Primary language detected by GitHub")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DateRange(BaseModel):
    """Inclusive [date_from, date_to] window."""

    date_from: datetime = Field(..., description="Start of the range (inclusive)")
    date_to: datetime = Field(..., description="End of the range (inclusive)")

    @field_validator("date_from", "date_to")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class ExportDocument(BaseModel):
    """A generated export and its estimated token cost."""

    content: str = Field(..., description="Markdown document ready to paste into an LLM")
    token_estimate: int = Field(..., description="Approximate token count")
    filename: str = Field(..., description="Suggested download filename")
    commit_count: int = Field(..., description="Number of commits in the document")


# ── Requests ──────────────────────────────────────────────────────────

class RepositoriesRequest(BaseModel):
    """POST /repositories request body."""

    username: str | None = Field(
        None,
        description="GitHub username; defaults to the signed-in account",
        examples=["octocat"],
    )


class CommitsRequest(BaseModel):
    """POST /commits request body."""

    username: str | None = Field(
        None,
        description="Repository owner; defaults to the signed-in account",
        examples=["octocat"],
    )
    repository: str = Field(..., min_length=1, description="Repository name")
    date_from: datetime = Field(..., description="Start of the range (inclusive)")
    date_to: datetime = Field(..., description="End of the range (inclusive)")

    @model_validator(mode="after")
    def check_order(self) -> "CommitsRequest":
        if _as_utc(self.date_from) > _as_utc(self.date_to):
            raise ValueError("date_from must not be after date_to")
        return self

    def date_range(self) -> DateRange:
        return DateRange(date_from=self.date_from, date_to=self.date_to)


class FilterRequest(BaseModel):
    """POST /filter request body."""

    commits: list[Commit] = Field(default_factory=list)
    selected_repos: list[str] = Field(
        default_factory=list,
        description="Repository names to keep; empty keeps everything",
    )
    detail_level: int = Field(DEFAULT_DETAIL_LEVEL, description="Detail level 1-5")


class ExportRequest(FilterRequest):
    """POST /export and /export/download request body."""

    username: str = Field(..., min_length=1)
    date_from: datetime
    date_to: datetime
    style: Literal["optimized", "history"] = Field(
        "optimized",
        description="optimized: detail-level layout; history: every commit in full",
    )

    @model_validator(mode="after")
    def check_order(self) -> "ExportRequest":
        if _as_utc(self.date_from) > _as_utc(self.date_to):
            raise ValueError("date_from must not be after date_to")
        return self

    def date_range(self) -> DateRange:
        return DateRange(date_from=self.date_from, date_to=self.date_to)


# ── Responses ─────────────────────────────────────────────────────────

class RepositoriesResponse(BaseModel):
    username: str
    repositories: list[Repository]


class CommitsResponse(BaseModel):
    username: str
    repository: str
    count: int
    commits: list[Commit]


class FilterResponse(BaseModel):
    commits: list[Commit]
    count: int
    detail_level: int
    detail_description: str
    tokens_per_commit: int
    token_estimate: int
    token_band: str = Field(..., description="green / yellow / orange / red size hint")


class IdentityResponse(BaseModel):
    signed_in: bool
    user_id: str | None = None
    github_username: str | None = None
    avatar_url: str | None = None


# ── Error ─────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Uniform error response — frontend can always check status == 'error'."""

    status: str = Field(default="error", description="Always 'error' for error responses")
    message: str = Field(..., description="Human-readable error description")
