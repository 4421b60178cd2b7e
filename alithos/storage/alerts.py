"""
Persisted alerts.
"""
from contextlib import closing
from typing import Optional

from .db import dump_json, get_connection, new_id, now_iso, row_to_dict

JSON_FIELDS = ("conditions", "actions")
BOOL_FIELDS = ("is_active",)

# Column name for each updatable field
UPDATABLE = {
    "name": "name",
    "market_id": "market_id",
    "conditions": "conditions",
    "actions": "actions",
    "is_active": "is_active",
    "cooldown_period_minutes": "cooldown_period_minutes",
}


def _row(row) -> Optional[dict]:
    return row_to_dict(row, JSON_FIELDS, BOOL_FIELDS)


def create_alert(
    user_id: str,
    name: str,
    conditions: list[dict],
    actions: list[dict],
    market_id: Optional[str] = None,
    is_active: bool = True,
    cooldown_period_minutes: int = 5
) -> dict:
    alert_id = new_id()
    now = now_iso()

    with closing(get_connection()) as conn, conn:
        conn.execute("""
            INSERT INTO alerts (id, user_id, market_id, name, conditions, actions, is_active,
                                cooldown_period_minutes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            alert_id, user_id, market_id, name, dump_json(conditions), dump_json(actions),
            int(is_active), cooldown_period_minutes, now, now
        ))

    return get_alert(alert_id, user_id)


def get_alert(alert_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    """Get an alert; with user_id, only if that user owns it."""
    with closing(get_connection()) as conn:
        cursor = conn.cursor()
        if user_id is None:
            cursor.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,))
        else:
            cursor.execute("SELECT * FROM alerts WHERE id = ? AND user_id = ?", (alert_id, user_id))
        return _row(cursor.fetchone())


def list_alerts(user_id: str, active: Optional[bool] = None) -> list[dict]:
    """List a user's alerts, active first, newest first."""
    query = "SELECT * FROM alerts WHERE user_id = ?"
    params: list = [user_id]
    if active is not None:
        query += " AND is_active = ?"
        params.append(int(active))
    query += " ORDER BY is_active DESC, created_at DESC, rowid DESC"

    with closing(get_connection()) as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row(row) for row in rows]


def list_active_alerts() -> list[dict]:
    """All active alerts across users, for the background alert loop."""
    with closing(get_connection()) as conn:
        rows = conn.execute("SELECT * FROM alerts WHERE is_active = 1").fetchall()
    return [_row(row) for row in rows]


def update_alert(alert_id: str, user_id: str, **fields) -> Optional[dict]:
    """Update the given fields; returns None if the alert is not the user's."""
    if get_alert(alert_id, user_id) is None:
        return None

    assignments = []
    params = []
    for key, value in fields.items():
        column = UPDATABLE.get(key)
        if column is None:
            raise ValueError(f"Unknown alert field: {key}")
        if key in JSON_FIELDS:
            value = dump_json(value)
        elif key in BOOL_FIELDS:
            value = int(value)
        assignments.append(f"{column} = ?")
        params.append(value)

    if assignments:
        assignments.append("updated_at = ?")
        params.extend([now_iso(), alert_id])
        with closing(get_connection()) as conn, conn:
            conn.execute(f"UPDATE alerts SET {', '.join(assignments)} WHERE id = ?", params)

    return get_alert(alert_id, user_id)


def delete_alert(alert_id: str, user_id: str) -> bool:
    with closing(get_connection()) as conn, conn:
        cursor = conn.execute("DELETE FROM alerts WHERE id = ? AND user_id = ?", (alert_id, user_id))
        return cursor.rowcount > 0


def record_trigger(alert_id: str, triggered_at: Optional[str] = None) -> Optional[str]:
    """Set last_triggered (now by default). Returns the stored timestamp."""
    triggered_at = triggered_at or now_iso()
    with closing(get_connection()) as conn, conn:
        cursor = conn.execute(
            "UPDATE alerts SET last_triggered = ?, updated_at = ? WHERE id = ?",
            (triggered_at, now_iso(), alert_id)
        )
        updated = cursor.rowcount > 0
    return triggered_at if updated else None


def get_trigger_history(
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    alert_id: Optional[str] = None
) -> tuple[list[dict], int]:
    """
    Alerts that have fired, most recent trigger first.

    Returns:
        (page of alerts, total count)
    """
    where = "user_id = ? AND last_triggered IS NOT NULL"
    params: list = [user_id]
    if alert_id:
        where += " AND id = ?"
        params.append(alert_id)

    with closing(get_connection()) as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"SELECT * FROM alerts WHERE {where} ORDER BY last_triggered DESC LIMIT ? OFFSET ?",
            params + [limit, offset]
        )
        rows = cursor.fetchall()
        cursor.execute(f"SELECT COUNT(*) FROM alerts WHERE {where}", params)
        total = cursor.fetchone()[0]

    return [_row(row) for row in rows], total
