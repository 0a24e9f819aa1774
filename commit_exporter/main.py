"""
FastAPI application — GitHub Commit Exporter API.

Endpoints:
  GET  /health             → health check
  GET  /auth/login         → redirect to GitHub sign-in
  GET  /auth/callback      → finish GitHub sign-in, start a session
  GET  /auth/session       → current signed-in identity
  POST /auth/logout        → end the session
  POST /repositories       → list a user's repositories
  POST /commits            → extract all commits of a repository in a date range
  POST /filter             → narrow commits by repository, estimate tokens
  POST /export             → generate the LLM-ready Markdown document
  POST /export/download    → same document as a .md attachment

The server keeps no commit data between requests: the browser holds the
extracted commits and posts them back to /filter and /export.
"""

import logging
import re
import secrets
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import Cookie, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response

from commit_exporter.commit_filter import filter_commits, token_band
from commit_exporter.config import OAUTH_STATE_COOKIE_NAME, SESSION_COOKIE_NAME
from commit_exporter.formatter import (
    MAX_DETAIL_LEVEL,
    detail_level_description,
    estimate_tokens,
    resolve_detail_level,
    tokens_per_commit,
)
from commit_exporter.github_fetcher import (
    GitHubFetchError,
    fetch_commits,
    fetch_repositories,
)
from commit_exporter.identity import (
    ANONYMOUS,
    AuthError,
    GitHubOAuth,
    IdentityProvider,
    SessionStore,
)
from commit_exporter.models import (
    CommitsRequest,
    CommitsResponse,
    ErrorResponse,
    ExportDocument,
    ExportRequest,
    FilterRequest,
    FilterResponse,
    IdentityResponse,
    RepositoriesRequest,
    RepositoriesResponse,
)
from commit_exporter.report import ReportContext, generate_export, generate_history_export


# ── Logging ───────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("commit_exporter")


# ── Lifespan ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    logger.info("🚀 GitHub Commit Exporter API starting up")
    yield
    logger.info("👋 Shutting down")


# ── App Instance ──────────────────────────────────────────────────────

app = FastAPI(
    title="GitHub Commit Exporter",
    description=(
        "Extract commit history for a GitHub repository and date range, "
        "filter it, and export it as a Markdown document sized for an LLM."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.state.sessions = SessionStore()
app.state.oauth = GitHubOAuth()

# CORS — allow all origins by default for easy frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error Handlers ────────────────────────────────────────────────────


@app.exception_handler(GitHubFetchError)
async def github_error_handler(request: Request, exc: GitHubFetchError):
    """Handle GitHub API errors with consistent error shape."""
    logger.warning("GitHub error: %s (status=%d)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    """Handle sign-in errors with consistent error shape."""
    logger.warning("Auth error: %s (status=%d)", exc.message, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with consistent error shape."""
    messages = "; ".join(
        f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}"
        for e in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(message=f"Validation error: {messages}").model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    """Wrap FastAPI HTTPExceptions in our consistent error shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail)).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    """Catch-all for unexpected errors."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            message="An unexpected error occurred. Please try again."
        ).model_dump(),
    )


# ── Dependencies ──────────────────────────────────────────────────────


def get_identity_provider(
    request: Request,
    session_id: str | None = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> IdentityProvider:
    """The caller's session, or the anonymous provider when signed out."""
    session = request.app.state.sessions.get(session_id)
    return session if session is not None else ANONYMOUS


def _resolve_username(username: str | None, provider: IdentityProvider) -> str:
    """Explicit username first, then the signed-in account's username."""
    if username and username.strip():
        return username.strip()

    identity = provider.get_current_identity()
    if identity is not None and identity.github_username:
        return identity.github_username

    raise GitHubFetchError(
        "GitHub username required. Please enter a GitHub username.",
        status_code=400,
    )


# ── Endpoints ─────────────────────────────────────────────────────────


@app.get("/health")
async def health_check():
    """Simple health check for frontend connectivity testing."""
    return {"status": "ok"}


@app.get("/auth/login")
async def auth_login(request: Request):
    """Redirect the browser to GitHub's consent page."""
    state = secrets.token_urlsafe(16)
    url = request.app.state.oauth.authorize_url(state)
    response = RedirectResponse(url, status_code=302)
    response.set_cookie(OAUTH_STATE_COOKIE_NAME, state, max_age=600, httponly=True, samesite="lax")
    return response


@app.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    expected_state: str | None = Cookie(None, alias=OAUTH_STATE_COOKIE_NAME),
):
    """Finish GitHub sign-in and attach a session cookie."""
    if error or not code:
        # GitHub redirects back with ?error=access_denied when the user declines
        raise AuthError(error_description or "GitHub sign-in was cancelled.")
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        raise AuthError("Sign-in state mismatch. Please try signing in again.", status_code=400)

    identity, token = await request.app.state.oauth.sign_in(code)
    session_id, session = request.app.state.sessions.create(identity, token)

    def log_sign_out(current):
        if current is None:
            logger.info("Session for %s signed out", identity.github_username)

    session.subscribe(log_sign_out)

    response = RedirectResponse("/", status_code=302)
    response.set_cookie(SESSION_COOKIE_NAME, session_id, httponly=True, samesite="lax")
    response.delete_cookie(OAUTH_STATE_COOKIE_NAME)
    return response


@app.get("/auth/session", response_model=IdentityResponse)
async def auth_session(provider: IdentityProvider = Depends(get_identity_provider)):
    """Report who is signed in, if anyone."""
    identity = provider.get_current_identity()
    if identity is None:
        return IdentityResponse(signed_in=False)
    return IdentityResponse(signed_in=True, **identity.model_dump())


@app.post("/auth/logout")
async def auth_logout(
    request: Request,
    session_id: str | None = Cookie(None, alias=SESSION_COOKIE_NAME),
):
    """End the current session."""
    request.app.state.sessions.end(session_id)
    response = JSONResponse({"status": "ok"})
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


@app.post(
    "/repositories",
    response_model=RepositoriesResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Username missing"},
        404: {"model": ErrorResponse, "description": "User not found"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
)
async def list_user_repositories(
    body: RepositoriesRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """List the user's repositories, most recently updated first."""
    username = _resolve_username(body.username, provider)
    repositories = await fetch_repositories(username, token=provider.access_token)
    logger.info("Found %d repositories for %s", len(repositories), username)
    return RepositoriesResponse(username=username, repositories=repositories)


@app.post(
    "/commits",
    response_model=CommitsResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Username missing"},
        404: {"model": ErrorResponse, "description": "Repository not found"},
        422: {"model": ErrorResponse, "description": "Invalid request or range too large"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        502: {"model": ErrorResponse, "description": "GitHub unreachable"},
        504: {"model": ErrorResponse, "description": "Timeout"},
    },
)
async def extract_commits(
    body: CommitsRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Extract every commit of a repository within a date range.

    Pipeline:
      1. Resolve the owner (explicit username or the signed-in account)
      2. Page through the GitHub commits endpoint until the last page
      3. Return the commits tagged with their repository
    """
    username = _resolve_username(body.username, provider)
    date_range = body.date_range()
    logger.info(
        "Extracting commits for %s/%s from %s to %s",
        username,
        body.repository,
        date_range.date_from.date(),
        date_range.date_to.date(),
    )

    commits = await fetch_commits(
        username, body.repository, date_range, token=provider.access_token
    )
    logger.info("Extracted %d commits", len(commits))

    return CommitsResponse(
        username=username,
        repository=body.repository,
        count=len(commits),
        commits=commits,
    )


@app.post("/filter", response_model=FilterResponse)
async def filter_extracted_commits(body: FilterRequest):
    """Narrow commits to the selected repositories and estimate the token cost."""
    result = filter_commits(body.commits, body.selected_repos, body.detail_level)
    level = resolve_detail_level(body.detail_level)
    return FilterResponse(
        commits=result.commits,
        count=len(result.commits),
        detail_level=level,
        detail_description=detail_level_description(level),
        tokens_per_commit=tokens_per_commit(level),
        token_estimate=result.token_estimate,
        token_band=token_band(result.token_estimate),
    )


def _content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and the UTF-8 name (RFC 6266)."""
    fallback = re.sub(r"[^\w.-]", "_", filename, flags=re.ASCII)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _build_export(body: ExportRequest) -> ExportDocument:
    result = filter_commits(body.commits, body.selected_repos, body.detail_level)
    ctx = ReportContext(
        username=body.username,
        selected_repos=body.selected_repos,
        date_range=body.date_range(),
        token_estimate=result.token_estimate,
        total_commits=len(body.commits),
    )
    if body.style == "history":
        # Every commit is written in full, so it costs as much as the top level
        ctx.token_estimate = estimate_tokens(len(result.commits), MAX_DETAIL_LEVEL)
        document = generate_history_export(result.commits, ctx)
    else:
        document = generate_export(result.commits, body.detail_level, ctx)
    logger.info(
        "Generated export: %d commits, ~%d tokens, %d chars",
        document.commit_count,
        document.token_estimate,
        len(document.content),
    )
    return document


@app.post("/export", response_model=ExportDocument)
async def export_commits(body: ExportRequest):
    """Generate the Markdown export for the current filter selection."""
    return _build_export(body)


@app.post("/export/download")
async def download_export(body: ExportRequest):
    """Generate the Markdown export and return it as a file download."""
    document = _build_export(body)
    return Response(
        content=document.content,
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": _content_disposition(document.filename)},
    )
