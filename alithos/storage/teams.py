"""
Teams sharing a workspace, and their members.

A team always has exactly one OWNER: the creator. Ownership moves only
through transfer_ownership, which demotes the old owner in the same
transaction.
"""
from contextlib import closing
from typing import Optional

from .db import get_connection, new_id, now_iso, row_to_dict

ROLES = ("OWNER", "ADMIN", "MEMBER", "VIEWER")
MANAGER_ROLES = ("OWNER", "ADMIN")
ASSIGNABLE_ROLES = ("ADMIN", "MEMBER", "VIEWER")


class OwnerRoleError(ValueError):
    """Raised when a change would leave a team with no OWNER or with two."""


def _member(row) -> dict:
    data = dict(row)
    member = {
        "id": data["id"],
        "team_id": data["team_id"],
        "user_id": data["user_id"],
        "role": data["role"],
        "created_at": data["created_at"],
        "updated_at": data["updated_at"],
        "user": {
            "id": data["user_id"],
            "email": data.get("email"),
            "wallet_address": data.get("wallet_address"),
        },
    }
    return member


def list_members(team_id: str) -> list[dict]:
    """Members of a team with their user details, oldest first."""
    with closing(get_connection()) as conn:
        rows = conn.execute("""
            SELECT m.*, u.email, u.wallet_address
            FROM team_members m
            LEFT JOIN users u ON u.id = m.user_id
            WHERE m.team_id = ?
            ORDER BY m.created_at ASC, m.rowid ASC
        """, (team_id,)).fetchall()
    return [_member(row) for row in rows]


def get_member(team_id: str, user_id: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute("""
            SELECT m.*, u.email, u.wallet_address
            FROM team_members m
            LEFT JOIN users u ON u.id = m.user_id
            WHERE m.team_id = ? AND m.user_id = ?
        """, (team_id, user_id)).fetchone()
    return _member(row) if row else None


def get_role(team_id: str, user_id: str) -> Optional[str]:
    member = get_member(team_id, user_id)
    return member["role"] if member else None


def _with_members(team: Optional[dict]) -> Optional[dict]:
    if team is not None:
        team["members"] = list_members(team["id"])
    return team


def get_team(team_id: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
    return _with_members(row_to_dict(row))


def get_team_by_workspace(workspace_id: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute("SELECT * FROM teams WHERE workspace_id = ?", (workspace_id,)).fetchone()
    return row_to_dict(row)


def list_teams_for_user(user_id: str) -> list[dict]:
    """Teams the user belongs to, newest first."""
    with closing(get_connection()) as conn:
        rows = conn.execute("""
            SELECT t.* FROM teams t
            JOIN team_members m ON m.team_id = t.id
            WHERE m.user_id = ?
            ORDER BY t.created_at DESC, t.rowid DESC
        """, (user_id,)).fetchall()
    return [_with_members(row_to_dict(row)) for row in rows]


def create_team(workspace_id: str, name: str, owner_id: str) -> dict:
    """Create a team for a workspace with the creator as OWNER."""
    team_id = new_id()
    now = now_iso()

    with closing(get_connection()) as conn, conn:
        conn.execute(
            "INSERT INTO teams (id, workspace_id, name, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (team_id, workspace_id, name, now, now)
        )
        conn.execute("""
            INSERT INTO team_members (id, team_id, user_id, role, created_at, updated_at)
            VALUES (?, ?, ?, 'OWNER', ?, ?)
        """, (new_id(), team_id, owner_id, now, now))

    return get_team(team_id)


def update_team(team_id: str, name: str) -> Optional[dict]:
    with closing(get_connection()) as conn, conn:
        conn.execute(
            "UPDATE teams SET name = ?, updated_at = ? WHERE id = ?", (name, now_iso(), team_id)
        )
    return get_team(team_id)


def delete_team(team_id: str) -> bool:
    with closing(get_connection()) as conn, conn:
        cursor = conn.execute("DELETE FROM teams WHERE id = ?", (team_id,))
        return cursor.rowcount > 0


def add_member(team_id: str, user_id: str, role: str = "MEMBER") -> dict:
    """
    Add a member with a non-owner role.

    Raises:
        OwnerRoleError: role is OWNER
    """
    if role not in ASSIGNABLE_ROLES:
        raise OwnerRoleError("A team has exactly one owner")

    now = now_iso()
    with closing(get_connection()) as conn, conn:
        conn.execute("""
            INSERT INTO team_members (id, team_id, user_id, role, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (new_id(), team_id, user_id, role, now, now))
    return get_member(team_id, user_id)


def update_member_role(team_id: str, user_id: str, role: str) -> Optional[dict]:
    """
    Change a non-owner member's role; None if the user is not a member.

    Raises:
        OwnerRoleError: the member is the OWNER, or role is OWNER
    """
    if role not in ASSIGNABLE_ROLES:
        raise OwnerRoleError("Use an ownership transfer to assign OWNER")

    with closing(get_connection()) as conn, conn:
        row = conn.execute(
            "SELECT role FROM team_members WHERE team_id = ? AND user_id = ?", (team_id, user_id)
        ).fetchone()
        if row is None:
            return None
        if row["role"] == "OWNER":
            raise OwnerRoleError("Cannot change the owner's role")
        conn.execute(
            "UPDATE team_members SET role = ?, updated_at = ? WHERE team_id = ? AND user_id = ?",
            (role, now_iso(), team_id, user_id)
        )
    return get_member(team_id, user_id)


def transfer_ownership(team_id: str, new_owner_id: str) -> Optional[dict]:
    """
    Make an existing member the OWNER, demoting the current owner to ADMIN.

    Returns:
        The new owner's membership, or None if the user is not a member
    """
    now = now_iso()
    with closing(get_connection()) as conn, conn:
        row = conn.execute(
            "SELECT role FROM team_members WHERE team_id = ? AND user_id = ?", (team_id, new_owner_id)
        ).fetchone()
        if row is None:
            return None
        if row["role"] != "OWNER":
            conn.execute(
                "UPDATE team_members SET role = 'ADMIN', updated_at = ? WHERE team_id = ? AND role = 'OWNER'",
                (now, team_id)
            )
            conn.execute(
                "UPDATE team_members SET role = 'OWNER', updated_at = ? WHERE team_id = ? AND user_id = ?",
                (now, team_id, new_owner_id)
            )
    return get_member(team_id, new_owner_id)


def remove_member(team_id: str, user_id: str) -> bool:
    with closing(get_connection()) as conn, conn:
        cursor = conn.execute(
            "DELETE FROM team_members WHERE team_id = ? AND user_id = ?", (team_id, user_id)
        )
        return cursor.rowcount > 0
