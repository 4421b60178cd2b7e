"""
Workspaces and their saved card layouts.
"""
import secrets
from contextlib import closing
from typing import Any, Optional

from .db import dump_json, get_connection, new_id, now_iso, row_to_dict

WORKSPACE_TYPES = ("SCALPING", "EVENT_DAY", "ARB_DESK", "RESEARCH", "CUSTOM")

WORKSPACE_BOOLS = ("is_default", "locked")
LAYOUT_BOOLS = ("is_default", "is_shared")


class WorkspaceLockedError(Exception):
    """Raised when changing a locked workspace other than unlocking it."""


def _workspace(row) -> Optional[dict]:
    return row_to_dict(row, bool_fields=WORKSPACE_BOOLS)


def _layout(row) -> Optional[dict]:
    return row_to_dict(row, json_fields=("config",), bool_fields=LAYOUT_BOOLS)


# === Workspaces ===

def list_workspaces(user_id: str) -> list[dict]:
    """A user's workspaces, newest first, each with its layouts."""
    with closing(get_connection()) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT * FROM workspaces WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,)
        )
        workspaces = [_workspace(row) for row in cursor.fetchall()]

        for workspace in workspaces:
            cursor.execute(
                "SELECT * FROM layouts WHERE workspace_id = ? ORDER BY created_at DESC, rowid DESC",
                (workspace["id"],)
            )
            workspace["layouts"] = [_layout(row) for row in cursor.fetchall()]

    return workspaces


def get_workspace(workspace_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    with closing(get_connection()) as conn:
        cursor = conn.cursor()
        if user_id is None:
            cursor.execute("SELECT * FROM workspaces WHERE id = ?", (workspace_id,))
        else:
            cursor.execute(
                "SELECT * FROM workspaces WHERE id = ? AND user_id = ?", (workspace_id, user_id)
            )
        return _workspace(cursor.fetchone())


def _clear_default_workspace(cursor, user_id: str, keep_id: str) -> None:
    cursor.execute(
        "UPDATE workspaces SET is_default = 0 WHERE user_id = ? AND id != ?", (user_id, keep_id)
    )


def create_workspace(
    user_id: str,
    name: str,
    type: str = "CUSTOM",
    is_default: bool = False,
    locked: bool = False,
    template_config: Any = None
) -> dict:
    """
    Create a workspace. When a template config is given, it becomes the
    workspace's default layout.
    """
    workspace_id = new_id()
    now = now_iso()

    with closing(get_connection()) as conn, conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO workspaces (id, user_id, name, type, is_default, locked, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (workspace_id, user_id, name, type, int(is_default), int(locked), now, now))

        if is_default:
            _clear_default_workspace(cursor, user_id, workspace_id)

        if template_config is not None:
            cursor.execute("""
                INSERT INTO layouts (id, workspace_id, user_id, name, config, is_default, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 1, ?, ?)
            """, (new_id(), workspace_id, user_id, "Default Layout", dump_json(template_config), now, now))

    return get_workspace(workspace_id)


def update_workspace(workspace_id: str, user_id: str, **fields) -> Optional[dict]:
    """
    Update name, type, is_default or locked.

    Raises:
        WorkspaceLockedError: the workspace is locked and the change is not an unlock
    """
    existing = get_workspace(workspace_id, user_id)
    if existing is None:
        return None

    if existing["locked"] and fields != {"locked": False}:
        raise WorkspaceLockedError("Workspace is locked")

    assignments = []
    params = []
    for key in ("name", "type", "is_default", "locked"):
        if key in fields:
            value = fields[key]
            assignments.append(f"{key} = ?")
            params.append(int(value) if key in WORKSPACE_BOOLS else value)

    if assignments:
        with closing(get_connection()) as conn, conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE workspaces SET {', '.join(assignments)}, updated_at = ? WHERE id = ?",
                params + [now_iso(), workspace_id]
            )
            if fields.get("is_default"):
                _clear_default_workspace(cursor, user_id, workspace_id)

    return get_workspace(workspace_id)


def delete_workspace(workspace_id: str, user_id: str) -> bool:
    """Delete a workspace; its layouts and team go with it."""
    with closing(get_connection()) as conn, conn:
        cursor = conn.execute(
            "DELETE FROM workspaces WHERE id = ? AND user_id = ?", (workspace_id, user_id)
        )
        return cursor.rowcount > 0


# === Layouts ===

def _share_token(is_shared: bool, current: Optional[str] = None) -> Optional[str]:
    if not is_shared:
        return None
    return current or secrets.token_urlsafe(16)


def list_layouts(workspace_id: str) -> list[dict]:
    """Layouts of a workspace, default first."""
    with closing(get_connection()) as conn:
        rows = conn.execute(
            "SELECT * FROM layouts WHERE workspace_id = ? ORDER BY is_default DESC, created_at DESC, rowid DESC",
            (workspace_id,)
        ).fetchall()
    return [_layout(row) for row in rows]


def get_layout(layout_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    """Get a layout; with user_id, only if it sits in one of the user's workspaces."""
    with closing(get_connection()) as conn:
        cursor = conn.cursor()
        if user_id is None:
            cursor.execute("SELECT * FROM layouts WHERE id = ?", (layout_id,))
        else:
            cursor.execute("""
                SELECT l.* FROM layouts l
                JOIN workspaces w ON w.id = l.workspace_id
                WHERE l.id = ? AND w.user_id = ?
            """, (layout_id, user_id))
        return _layout(cursor.fetchone())


def get_shared_layout(share_token: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute(
            "SELECT * FROM layouts WHERE share_token = ? AND is_shared = 1", (share_token,)
        ).fetchone()
    return _layout(row)


def _clear_default_layout(cursor, workspace_id: str, keep_id: str) -> None:
    cursor.execute(
        "UPDATE layouts SET is_default = 0 WHERE workspace_id = ? AND id != ?",
        (workspace_id, keep_id)
    )


def create_layout(
    workspace_id: str,
    user_id: str,
    name: str,
    config: Any,
    is_default: bool = False,
    is_shared: bool = False
) -> dict:
    layout_id = new_id()
    now = now_iso()

    with closing(get_connection()) as conn, conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO layouts (id, workspace_id, user_id, name, config, is_default, is_shared,
                                 share_token, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            layout_id, workspace_id, user_id, name, dump_json(config), int(is_default),
            int(is_shared), _share_token(is_shared), now, now
        ))
        if is_default:
            _clear_default_layout(cursor, workspace_id, layout_id)

    return get_layout(layout_id)


def update_layout(layout_id: str, user_id: str, **fields) -> Optional[dict]:
    """Update name, config, is_default or is_shared."""
    existing = get_layout(layout_id, user_id)
    if existing is None:
        return None

    assignments = []
    params = []
    if "name" in fields:
        assignments.append("name = ?")
        params.append(fields["name"])
    if "config" in fields:
        assignments.append("config = ?")
        params.append(dump_json(fields["config"]))
    if "is_default" in fields:
        assignments.append("is_default = ?")
        params.append(int(fields["is_default"]))
    if "is_shared" in fields:
        assignments.extend(["is_shared = ?", "share_token = ?"])
        params.extend([
            int(fields["is_shared"]),
            _share_token(fields["is_shared"], existing.get("share_token")),
        ])

    if assignments:
        with closing(get_connection()) as conn, conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE layouts SET {', '.join(assignments)}, updated_at = ? WHERE id = ?",
                params + [now_iso(), layout_id]
            )
            if fields.get("is_default"):
                _clear_default_layout(cursor, existing["workspace_id"], layout_id)

    return get_layout(layout_id)


def delete_layout(layout_id: str, user_id: str) -> bool:
    if get_layout(layout_id, user_id) is None:
        return False
    with closing(get_connection()) as conn, conn:
        conn.execute("DELETE FROM layouts WHERE id = ?", (layout_id,))
    return True
