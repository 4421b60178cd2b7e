"""
Themes, market comments and the trade journal.
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...storage import content as content_store
from ..deps import camelize, get_user_id, parse_iso
from ..errors import BadRequest, Forbidden, NotFound
from ..schemas import (
    CreateComment,
    CreateJournalEntry,
    CreateTheme,
    UpdateComment,
    UpdateJournalEntry,
    UpdateTheme,
)

router = APIRouter(tags=["content"])


def utc_iso(dt: datetime) -> str:
    """Fixed-width UTC ISO string, so stored timestamps compare as text."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


# === Themes ===

@router.get("/api/themes")
def list_themes(
    include_public: bool = Query(default=False, alias="includePublic"),
    user_id: str = Depends(get_user_id)
):
    return {"themes": camelize(content_store.list_themes(user_id, include_public))}


@router.post("/api/themes", status_code=201)
def create_theme(body: CreateTheme, user_id: str = Depends(get_user_id)):
    theme = content_store.create_theme(user_id, body.name, body.config, body.is_public)
    return {"theme": camelize(theme)}


@router.get("/api/themes/{theme_id}")
def get_theme(theme_id: str, user_id: str = Depends(get_user_id)):
    theme = content_store.get_theme(theme_id, user_id, allow_public=True)
    if theme is None:
        raise NotFound("Theme not found")
    return {"theme": camelize(theme)}


@router.put("/api/themes/{theme_id}")
def update_theme(theme_id: str, body: UpdateTheme, user_id: str = Depends(get_user_id)):
    theme = content_store.update_theme(theme_id, user_id, **body.provided())
    if theme is None:
        raise NotFound("Theme not found")
    return {"theme": camelize(theme)}


@router.delete("/api/themes/{theme_id}")
def delete_theme(theme_id: str, user_id: str = Depends(get_user_id)):
    if not content_store.delete_theme(theme_id, user_id):
        raise NotFound("Theme not found")
    return {"success": True}


# === Comments ===

def _serialize_comment(row: dict) -> dict:
    comment = {key: row[key] for key in ("id", "user_id", "market_id", "content", "created_at", "updated_at")}
    comment["user"] = {
        "id": row["user_id"],
        "email": row.get("email"),
        "wallet_address": row.get("wallet_address"),
    }
    return camelize(comment)


def _own_comment(comment_id: str, user_id: str) -> dict:
    comment = content_store.get_comment(comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    if comment["user_id"] != user_id:
        raise Forbidden("Forbidden")
    return comment


@router.get("/api/comments")
def list_comments(
    market_id: Optional[str] = Query(default=None, alias="marketId"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0)
):
    if not market_id:
        raise BadRequest("marketId is required")
    rows = content_store.list_comments(market_id, limit, offset)
    return {"comments": [_serialize_comment(row) for row in rows]}


@router.post("/api/comments", status_code=201)
def create_comment(body: CreateComment, user_id: str = Depends(get_user_id)):
    comment = content_store.create_comment(user_id, body.market_id, body.content)
    return {"comment": _serialize_comment(comment)}


@router.put("/api/comments/{comment_id}")
def update_comment(comment_id: str, body: UpdateComment, user_id: str = Depends(get_user_id)):
    _own_comment(comment_id, user_id)
    comment = content_store.update_comment(comment_id, body.content)
    return {"comment": _serialize_comment(comment)}


@router.delete("/api/comments/{comment_id}")
def delete_comment(comment_id: str, user_id: str = Depends(get_user_id)):
    _own_comment(comment_id, user_id)
    content_store.delete_comment(comment_id)
    return {"success": True}


# === Journal ===

def _journal_fields(body) -> dict:
    fields = body.provided()
    if fields.get("timestamp") is not None:
        fields["timestamp"] = utc_iso(fields["timestamp"])
    return fields


@router.get("/api/journal")
def list_journal_entries(
    market_id: Optional[str] = Query(default=None, alias="marketId"),
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_user_id)
):
    try:
        start = parse_iso(start_date)
        end = parse_iso(end_date)
    except ValueError:
        raise BadRequest("Invalid date range", details="startDate and endDate must be ISO 8601")

    entries, total = content_store.list_journal_entries(
        user_id,
        market_id=market_id,
        start=utc_iso(start) if start else None,
        end=utc_iso(end) if end else None,
        limit=limit,
        offset=offset,
    )
    return {"entries": camelize(entries), "total": total, "limit": limit, "offset": offset}


@router.post("/api/journal", status_code=201)
def create_journal_entry(body: CreateJournalEntry, user_id: str = Depends(get_user_id)):
    fields = _journal_fields(body)
    entry = content_store.create_journal_entry(
        user_id,
        timestamp=fields["timestamp"],
        note=body.note,
        market_id=body.market_id,
        attachments=body.attachments,
        post_mortem=body.post_mortem,
    )
    return {"entry": camelize(entry)}


@router.get("/api/journal/{entry_id}")
def get_journal_entry(entry_id: str, user_id: str = Depends(get_user_id)):
    entry = content_store.get_journal_entry(entry_id, user_id)
    if entry is None:
        raise NotFound("Entry not found")
    return {"entry": camelize(entry)}


@router.put("/api/journal/{entry_id}")
def update_journal_entry(
    entry_id: str,
    body: UpdateJournalEntry,
    user_id: str = Depends(get_user_id)
):
    entry = content_store.update_journal_entry(entry_id, user_id, **_journal_fields(body))
    if entry is None:
        raise NotFound("Entry not found")
    return {"entry": camelize(entry)}


@router.delete("/api/journal/{entry_id}")
def delete_journal_entry(entry_id: str, user_id: str = Depends(get_user_id)):
    if not content_store.delete_journal_entry(entry_id, user_id):
        raise NotFound("Entry not found")
    return {"success": True}
