"""
Teams sharing a workspace. The caller's role in the team decides what
they may change.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...storage import teams as team_store
from ...storage import workspaces as workspace_store
from ...utils.logger import get_logger
from ..deps import camelize, get_user_id
from ..errors import BadRequest, Forbidden, NotFound
from ..schemas import AddMember, CreateTeam, UpdateMember, UpdateTeam

logger = get_logger("api.teams")

router = APIRouter(prefix="/api/teams", tags=["teams"])


def _team_for_member(team_id: str, user_id: str) -> tuple[dict, str]:
    """The team and the caller's role; 404 when the caller is not a member."""
    team = team_store.get_team(team_id)
    role = team_store.get_role(team_id, user_id) if team else None
    if team is None or role is None:
        raise NotFound("Team not found")
    return team, role


def _require_manager(role: str) -> None:
    if role not in team_store.MANAGER_ROLES:
        raise Forbidden("Forbidden")


@router.get("")
def list_teams(user_id: str = Depends(get_user_id)):
    return {"teams": camelize(team_store.list_teams_for_user(user_id))}


@router.post("", status_code=201)
def create_team(body: CreateTeam, user_id: str = Depends(get_user_id)):
    if workspace_store.get_workspace(body.workspace_id, user_id) is None:
        raise NotFound("Workspace not found")
    if team_store.get_team_by_workspace(body.workspace_id) is not None:
        raise BadRequest("Team already exists for this workspace")

    team = team_store.create_team(body.workspace_id, body.name, user_id)
    logger.info("Team created", extra={"team_id": team["id"], "workspace_id": body.workspace_id})
    return {"team": camelize(team)}


@router.get("/{team_id}")
def get_team(team_id: str, user_id: str = Depends(get_user_id)):
    team, _ = _team_for_member(team_id, user_id)
    return {"team": camelize(team)}


@router.put("/{team_id}")
def update_team(team_id: str, body: UpdateTeam, user_id: str = Depends(get_user_id)):
    _, role = _team_for_member(team_id, user_id)
    _require_manager(role)
    return {"team": camelize(team_store.update_team(team_id, body.name))}


@router.delete("/{team_id}")
def delete_team(team_id: str, user_id: str = Depends(get_user_id)):
    _, role = _team_for_member(team_id, user_id)
    if role != "OWNER":
        raise Forbidden("Forbidden")
    team_store.delete_team(team_id)
    return {"success": True}


@router.get("/{team_id}/members")
def list_members(team_id: str, user_id: str = Depends(get_user_id)):
    _team_for_member(team_id, user_id)
    return {"members": camelize(team_store.list_members(team_id))}


@router.post("/{team_id}/members", status_code=201)
def add_member(team_id: str, body: AddMember, user_id: str = Depends(get_user_id)):
    _, role = _team_for_member(team_id, user_id)
    _require_manager(role)

    if body.role == "OWNER" and role != "OWNER":
        raise Forbidden("Only owner can assign OWNER role")
    if team_store.get_member(team_id, body.user_id) is not None:
        raise BadRequest("Member already exists")

    try:
        member = team_store.add_member(team_id, body.user_id, body.role)
    except team_store.OwnerRoleError as e:
        raise BadRequest(str(e))
    return {"member": camelize(member)}


@router.patch("/{team_id}/members")
def update_member(team_id: str, body: UpdateMember, user_id: str = Depends(get_user_id)):
    """
    Change a member's role. The OWNER assigning OWNER to another member
    transfers ownership; the previous owner becomes an ADMIN.
    """
    _, role = _team_for_member(team_id, user_id)
    _require_manager(role)

    if body.role == "OWNER":
        if role != "OWNER":
            raise Forbidden("Only owner can assign OWNER role")
        member = team_store.transfer_ownership(team_id, body.user_id)
        if member is not None:
            logger.info("Team ownership transferred", extra={"team_id": team_id, "owner_id": body.user_id})
    else:
        try:
            member = team_store.update_member_role(team_id, body.user_id, body.role)
        except team_store.OwnerRoleError as e:
            raise BadRequest(str(e))

    if member is None:
        raise NotFound("Member not found")
    return {"member": camelize(member)}


@router.delete("/{team_id}/members")
def remove_member(
    team_id: str,
    member_id: Optional[str] = Query(default=None, alias="memberUserId"),
    target: Optional[str] = Query(default=None, alias="userId"),
    user_id: str = Depends(get_user_id)
):
    """
    Remove a member. The target is `userId` when the caller identifies
    through the X-User-Id header, or `memberUserId`.
    """
    target_id = member_id or target
    if not target_id:
        raise BadRequest("userId is required")

    _, role = _team_for_member(team_id, user_id)
    if role not in team_store.MANAGER_ROLES and target_id != user_id:
        raise Forbidden("Forbidden")

    member = team_store.get_member(team_id, target_id)
    if member is None:
        raise NotFound("Member not found")
    if member["role"] == "OWNER":
        raise BadRequest("Cannot remove owner")

    team_store.remove_member(team_id, target_id)
    return {"success": True}
