"""
Users and their notification preferences.
"""
from contextlib import closing
from typing import Any, Optional

from .db import dump_json, get_connection, now_iso, row_to_dict


def get_user(user_id: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return row_to_dict(row, json_fields=("preferences",))


def get_or_create_user(user_id: str, privy_id: Optional[str] = None) -> dict:
    """Return the user row for an identity, creating it on first sight."""
    user = get_user(user_id)
    if user:
        return user

    now = now_iso()
    with closing(get_connection()) as conn, conn:
        conn.execute(
            "INSERT OR IGNORE INTO users (id, privy_id, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (user_id, privy_id, now, now)
        )
    return get_user(user_id)


def update_user(
    user_id: str,
    email: Optional[str] = None,
    wallet_address: Optional[str] = None
) -> dict:
    """Update contact fields; None leaves a field unchanged."""
    get_or_create_user(user_id)

    with closing(get_connection()) as conn, conn:
        conn.execute("""
            UPDATE users
            SET email = COALESCE(?, email),
                wallet_address = COALESCE(?, wallet_address),
                updated_at = ?
            WHERE id = ?
        """, (email, wallet_address, now_iso(), user_id))
    return get_user(user_id)


def get_preferences(user_id: str) -> Any:
    """Raw stored preferences blob, or None when never set."""
    user = get_user(user_id)
    return user.get("preferences") if user else None


def set_preferences(user_id: str, preferences: dict) -> Any:
    get_or_create_user(user_id)

    with closing(get_connection()) as conn, conn:
        conn.execute(
            "UPDATE users SET preferences = ?, updated_at = ? WHERE id = ?",
            (dump_json(preferences), now_iso(), user_id)
        )
    return get_preferences(user_id)
