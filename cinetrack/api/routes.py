"""
API routes for CineTrack.

Public catalog browsing and visitor requests, administrator catalog
management and request panel, and Server-Sent Event streams that push a
fresh rendering of a collection whenever it changes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from ..auth import Session, SessionManager
from ..catalog import CatalogEntry, CatalogFeed, CatalogService
from ..context import AppContext
from ..errors import AuthenticationError, NotFoundError
from ..live import LiveView, latest_only
from ..requests import (
    AggregationResult,
    RequestActionExecutor,
    RequestFeed,
    RequestGroup,
    aggregate_requests,
)

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


# --- Request/Response Models ---


class SessionResponse(BaseModel):
    """Issued session token."""

    token: str
    subject: str
    role: str
    expires_at: str


class LoginRequest(BaseModel):
    """Administrator credentials."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class CatalogEntryRequest(BaseModel):
    """Request to add a catalog entry."""

    title: str = Field(..., description="Display title")
    poster_url: str = Field(..., description="Poster image URL")


class CatalogEntryUpdateRequest(BaseModel):
    """Request to edit a catalog entry."""

    title: str | None = Field(None, description="New title")
    poster_url: str | None = Field(None, description="New poster image URL")


class CatalogEntryResponse(BaseModel):
    """Catalog entry."""

    id: str
    title: str
    poster_url: str


class RequestSubmittedResponse(BaseModel):
    """Result of a visitor request."""

    id: str
    movie_title: str
    message: str


class RequestGroupResponse(BaseModel):
    """Aggregated requests for one title."""

    movie_title: str
    member_ids: list[str]
    requester_ids: list[str | None]
    request_count: int
    latest_requested_at: str
    all_actioned: bool


class RequestPanelResponse(BaseModel):
    """Ordered request groups."""

    groups: list[RequestGroupResponse]
    issue_count: int


class GroupActionRequest(BaseModel):
    """Identifies a request group by its exact title."""

    movie_title: str = Field(..., min_length=1)


class ToggleGroupResponse(BaseModel):
    """Result of toggling a request group."""

    movie_title: str
    all_actioned: bool
    request_count: int


class DeleteGroupResponse(BaseModel):
    """Result of deleting a request group."""

    movie_title: str
    deleted: int


# --- Dependencies ---


bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_executor(request: Request) -> RequestActionExecutor:
    return request.app.state.executor


def require_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: SessionManager = Depends(get_sessions),
) -> Session:
    """Any signed-in session, visitor or administrator."""
    if credentials is None:
        raise AuthenticationError("Not authenticated. Please sign in.")
    return sessions.decode_jwt(credentials.credentials)


def require_admin(session: Session = Depends(require_session)) -> Session:
    return session.require_admin()


# --- Rendering ---


def _session_response(token: str, session: Session) -> SessionResponse:
    return SessionResponse(
        token=token,
        subject=session.subject,
        role=session.role,
        expires_at=session.expires_at.isoformat(),
    )


def render_entry(entry: CatalogEntry) -> dict[str, Any]:
    return entry.to_dict()


def render_group(group: RequestGroup) -> dict[str, Any]:
    return group.to_dict()


def render_panel(result: AggregationResult) -> dict[str, Any]:
    return {
        "groups": [render_group(group) for group in result.groups],
        "issue_count": len(result.issues),
    }


def render_catalog(entries: list[CatalogEntry]) -> dict[str, Any]:
    return {"entries": [render_entry(entry) for entry in entries]}


def sse_event(event: str, data: Any) -> str:
    """Format one Server-Sent Event."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def stream_view(
    view: LiveView[T],
    event: str,
    render: Callable[[T], Any],
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """Run a live view for the lifetime of one SSE connection.

    The view is started here and stopped when the client goes away, which
    cancels its store subscription.
    """
    queue: asyncio.Queue[T] = asyncio.Queue(maxsize=1)
    remove = view.add_listener(latest_only(queue))
    try:
        await view.start()
        while True:
            try:
                value = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield sse_event(event, render(value))
    finally:
        remove()
        view.stop()
        logger.debug("Live stream closed", extra={"collection": view.collection})


def _event_stream(body: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        body,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def resolve_group(context: AppContext, movie_title: str) -> RequestGroup:
    """Current group for a title, from a fresh snapshot."""
    documents = await context.store.query_once(context.requests_path)
    group = aggregate_requests(documents).find(movie_title)
    if group is None:
        raise NotFoundError(
            f"No requests for '{movie_title}'", "request_group", movie_title
        )
    return group


# --- Health ---


@router.get("/health", tags=["Health"])
async def health(context: AppContext = Depends(get_context)):
    return {
        "status": "healthy",
        "service": "cinetrack",
        "app_id": context.app_id,
        "store_connected": context.store.is_connected,
    }


# --- Auth Routes ---


@router.post("/auth/visitor", response_model=SessionResponse, tags=["Auth"])
async def start_visitor_session(sessions: SessionManager = Depends(get_sessions)):
    """Anonymous visitor sign-in."""
    token, session = sessions.start_visitor_session()
    return _session_response(token, session)


@router.post("/auth/login", response_model=SessionResponse, tags=["Auth"])
async def login(body: LoginRequest, sessions: SessionManager = Depends(get_sessions)):
    """Administrator sign-in."""
    token, session = sessions.login_admin(body.username, body.password)
    return _session_response(token, session)


# --- Catalog Routes ---


@router.get("/catalog", response_model=list[CatalogEntryResponse], tags=["Catalog"])
async def list_catalog(
    search: str | None = Query(None, description="Case-insensitive title filter"),
    catalog: CatalogService = Depends(get_catalog),
):
    """List catalog entries."""
    return [render_entry(entry) for entry in await catalog.list_entries(search)]


@router.get("/catalog/stream", tags=["Catalog"])
async def stream_catalog(request: Request, context: AppContext = Depends(get_context)):
    """Live catalog as Server-Sent Events (event: catalog)."""
    keepalive = request.app.state.settings.stream_keepalive_seconds
    return _event_stream(
        stream_view(CatalogFeed(context), "catalog", render_catalog, keepalive),
    )


@router.post(
    "/catalog",
    response_model=CatalogEntryResponse,
    status_code=201,
    tags=["Catalog"],
)
async def add_catalog_entry(
    body: CatalogEntryRequest,
    _: Session = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog),
):
    """Add a title to the catalog."""
    entry = await catalog.add_entry(body.title, body.poster_url)
    return render_entry(entry)


@router.patch("/catalog/{entry_id}", response_model=CatalogEntryResponse, tags=["Catalog"])
async def edit_catalog_entry(
    entry_id: str,
    body: CatalogEntryUpdateRequest,
    _: Session = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog),
):
    """Edit a catalog entry's title and/or poster."""
    entry = await catalog.edit_entry(entry_id, title=body.title, poster_url=body.poster_url)
    return render_entry(entry)


@router.delete("/catalog/{entry_id}", status_code=204, tags=["Catalog"])
async def delete_catalog_entry(
    entry_id: str,
    _: Session = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog),
):
    """Remove a title from the catalog."""
    await catalog.delete_entry(entry_id)


@router.post(
    "/catalog/{entry_id}/request",
    response_model=RequestSubmittedResponse,
    status_code=201,
    tags=["Requests"],
)
async def request_title(
    entry_id: str,
    session: Session = Depends(require_session),
    catalog: CatalogService = Depends(get_catalog),
    executor: RequestActionExecutor = Depends(get_executor),
):
    """Ask for a catalog title to be added to the watch list."""
    entry = await catalog.get_entry(entry_id)
    request_id = await executor.submit_request(entry.title, requested_by=session.subject)
    return RequestSubmittedResponse(
        id=request_id,
        movie_title=entry.title,
        message=f"'{entry.title}' requested!",
    )


# --- Request Panel Routes ---


@router.get("/requests", response_model=RequestPanelResponse, tags=["Requests"])
async def list_request_groups(
    _: Session = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    """Visitor requests grouped by title, un-actioned and most recent first."""
    documents = await context.store.query_once(context.requests_path)
    return render_panel(aggregate_requests(documents))


@router.get("/requests/stream", tags=["Requests"])
async def stream_request_groups(
    request: Request,
    _: Session = Depends(require_admin),
    context: AppContext = Depends(get_context),
):
    """Live request panel as Server-Sent Events (event: requests)."""
    keepalive = request.app.state.settings.stream_keepalive_seconds
    return _event_stream(
        stream_view(RequestFeed(context), "requests", render_panel, keepalive),
    )


@router.post("/requests/groups/toggle", response_model=ToggleGroupResponse, tags=["Requests"])
async def toggle_request_group(
    body: GroupActionRequest,
    _: Session = Depends(require_admin),
    context: AppContext = Depends(get_context),
    executor: RequestActionExecutor = Depends(get_executor),
):
    """Mark every request for a title done, or undo it."""
    group = await resolve_group(context, body.movie_title)
    new_state = await executor.toggle_actioned(group)
    return ToggleGroupResponse(
        movie_title=group.movie_title,
        all_actioned=new_state,
        request_count=group.request_count,
    )


@router.delete("/requests/groups", response_model=DeleteGroupResponse, tags=["Requests"])
async def delete_request_group(
    movie_title: str = Query(..., min_length=1),
    _: Session = Depends(require_admin),
    context: AppContext = Depends(get_context),
    executor: RequestActionExecutor = Depends(get_executor),
):
    """Delete every request for a title."""
    group = await resolve_group(context, movie_title)
    deleted = await executor.delete_group(group)
    return DeleteGroupResponse(movie_title=group.movie_title, deleted=deleted)
