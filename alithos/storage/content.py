"""
User-authored content: themes, market comments and trade journal entries.
"""
from contextlib import closing
from typing import Any, Optional

from .db import dump_json, get_connection, new_id, now_iso, row_to_dict


def _update(table: str, row_id: str, values: dict) -> None:
    if not values:
        return
    assignments = ", ".join(f"{column} = ?" for column in values)
    with closing(get_connection()) as conn, conn:
        conn.execute(
            f"UPDATE {table} SET {assignments}, updated_at = ? WHERE id = ?",
            list(values.values()) + [now_iso(), row_id]
        )


def _delete(table: str, row_id: str) -> None:
    with closing(get_connection()) as conn, conn:
        conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))


# === Themes ===

def _theme(row) -> Optional[dict]:
    return row_to_dict(row, json_fields=("config",), bool_fields=("is_public",))


def list_themes(user_id: str, include_public: bool = False) -> list[dict]:
    """A user's themes, plus other users' public themes when asked."""
    query = "SELECT * FROM themes WHERE user_id = ?"
    if include_public:
        query += " OR is_public = 1"
    with closing(get_connection()) as conn:
        rows = conn.execute(query + " ORDER BY created_at DESC, rowid DESC", (user_id,)).fetchall()
    return [_theme(row) for row in rows]


def get_theme(theme_id: str, user_id: str, allow_public: bool = False) -> Optional[dict]:
    query = "SELECT * FROM themes WHERE id = ? AND (user_id = ?"
    query += " OR is_public = 1)" if allow_public else ")"
    with closing(get_connection()) as conn:
        row = conn.execute(query, (theme_id, user_id)).fetchone()
    return _theme(row)


def create_theme(user_id: str, name: str, config: Any, is_public: bool = False) -> dict:
    theme_id = new_id()
    now = now_iso()
    with closing(get_connection()) as conn, conn:
        conn.execute("""
            INSERT INTO themes (id, user_id, name, config, is_public, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (theme_id, user_id, name, dump_json(config), int(is_public), now, now))
    return get_theme(theme_id, user_id)


def update_theme(theme_id: str, user_id: str, **fields) -> Optional[dict]:
    if get_theme(theme_id, user_id) is None:
        return None
    values = {}
    if "name" in fields:
        values["name"] = fields["name"]
    if "config" in fields:
        values["config"] = dump_json(fields["config"])
    if "is_public" in fields:
        values["is_public"] = int(fields["is_public"])
    _update("themes", theme_id, values)
    return get_theme(theme_id, user_id)


def delete_theme(theme_id: str, user_id: str) -> bool:
    if get_theme(theme_id, user_id) is None:
        return False
    _delete("themes", theme_id)
    return True


# === Comments ===

def list_comments(market_id: str, limit: int = 100, offset: int = 0) -> list[dict]:
    """Comments on a market, newest first."""
    with closing(get_connection()) as conn:
        rows = conn.execute("""
            SELECT c.*, u.email, u.wallet_address
            FROM comments c
            LEFT JOIN users u ON u.id = c.user_id
            WHERE c.market_id = ?
            ORDER BY c.created_at DESC, c.rowid DESC
            LIMIT ? OFFSET ?
        """, (market_id, limit, offset)).fetchall()
    return [dict(row) for row in rows]


def get_comment(comment_id: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute("SELECT * FROM comments WHERE id = ?", (comment_id,)).fetchone()
    return row_to_dict(row)


def create_comment(user_id: str, market_id: str, content: str) -> dict:
    comment_id = new_id()
    now = now_iso()
    with closing(get_connection()) as conn, conn:
        conn.execute("""
            INSERT INTO comments (id, user_id, market_id, content, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (comment_id, user_id, market_id, content, now, now))
    return get_comment(comment_id)


def update_comment(comment_id: str, content: str) -> Optional[dict]:
    _update("comments", comment_id, {"content": content})
    return get_comment(comment_id)


def delete_comment(comment_id: str) -> None:
    _delete("comments", comment_id)


# === Journal ===

JOURNAL_JSON = ("attachments", "post_mortem")


def _entry(row) -> Optional[dict]:
    return row_to_dict(row, json_fields=JOURNAL_JSON)


def list_journal_entries(
    user_id: str,
    market_id: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    limit: int = 50,
    offset: int = 0
) -> tuple[list[dict], int]:
    """
    A user's journal entries, most recent timestamp first.

    Args:
        start / end: Inclusive ISO timestamp bounds

    Returns:
        (page of entries, total matching)
    """
    where = "user_id = ?"
    params: list = [user_id]
    if market_id:
        where += " AND market_id = ?"
        params.append(market_id)
    if start:
        where += " AND timestamp >= ?"
        params.append(start)
    if end:
        where += " AND timestamp <= ?"
        params.append(end)

    with closing(get_connection()) as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"SELECT * FROM journal_entries WHERE {where} ORDER BY timestamp DESC LIMIT ? OFFSET ?",
            params + [limit, offset]
        )
        rows = cursor.fetchall()
        cursor.execute(f"SELECT COUNT(*) FROM journal_entries WHERE {where}", params)
        total = cursor.fetchone()[0]
    return [_entry(row) for row in rows], total


def get_journal_entry(entry_id: str, user_id: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute(
            "SELECT * FROM journal_entries WHERE id = ? AND user_id = ?", (entry_id, user_id)
        ).fetchone()
    return _entry(row)


def create_journal_entry(
    user_id: str,
    timestamp: str,
    note: str,
    market_id: Optional[str] = None,
    attachments: Any = None,
    post_mortem: Any = None
) -> dict:
    entry_id = new_id()
    now = now_iso()
    with closing(get_connection()) as conn, conn:
        conn.execute("""
            INSERT INTO journal_entries (id, user_id, market_id, timestamp, note, attachments,
                                         post_mortem, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry_id, user_id, market_id, timestamp, note,
            dump_json(attachments), dump_json(post_mortem), now, now
        ))
    return get_journal_entry(entry_id, user_id)


def update_journal_entry(entry_id: str, user_id: str, **fields) -> Optional[dict]:
    if get_journal_entry(entry_id, user_id) is None:
        return None
    values = {}
    for key in ("market_id", "timestamp", "note"):
        if key in fields:
            values[key] = fields[key]
    for key in JOURNAL_JSON:
        if key in fields:
            values[key] = dump_json(fields[key])
    _update("journal_entries", entry_id, values)
    return get_journal_entry(entry_id, user_id)


def delete_journal_entry(entry_id: str, user_id: str) -> bool:
    if get_journal_entry(entry_id, user_id) is None:
        return False
    _delete("journal_entries", entry_id)
    return True
