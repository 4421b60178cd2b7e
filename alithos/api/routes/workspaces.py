"""
Workspaces and the layouts saved within them.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...storage import templates as template_store
from ...storage import workspaces as workspace_store
from ...storage.workspaces import WorkspaceLockedError
from ...utils.logger import get_logger
from ..deps import camelize, get_optional_user_id, get_user_id
from ..errors import Forbidden, NotFound, Unauthorized
from ..schemas import CreateLayout, CreateWorkspace, UpdateLayout, UpdateWorkspace

logger = get_logger("api.workspaces")

router = APIRouter(tags=["workspaces"])


def _require_workspace(workspace_id: str, user_id: str) -> dict:
    workspace = workspace_store.get_workspace(workspace_id, user_id)
    if workspace is None:
        raise NotFound("Workspace not found")
    return workspace


# === Workspaces ===

@router.get("/api/workspaces")
def list_workspaces(user_id: str = Depends(get_user_id)):
    return {"workspaces": camelize(workspace_store.list_workspaces(user_id))}


@router.post("/api/workspaces", status_code=201)
def create_workspace(
    body: CreateWorkspace,
    caller: Optional[str] = Depends(get_optional_user_id)
):
    user_id = caller or body.user_id
    if not user_id:
        raise Unauthorized("Unauthorized", details="Missing X-User-Id header or userId field")

    template_config = None
    if body.template_id:
        template = template_store.get_template(body.template_id)
        if template is None:
            raise NotFound("Template not found")
        template_config = template["config"]

    workspace = workspace_store.create_workspace(
        user_id=user_id,
        name=body.name,
        type=body.type,
        is_default=body.is_default,
        locked=body.locked,
        template_config=template_config,
    )
    workspace["layouts"] = workspace_store.list_layouts(workspace["id"])
    logger.info("Workspace created", extra={"workspace_id": workspace["id"], "user_id": user_id})
    return {"workspace": camelize(workspace)}


@router.get("/api/workspaces/{workspace_id}")
def get_workspace(workspace_id: str, user_id: str = Depends(get_user_id)):
    workspace = _require_workspace(workspace_id, user_id)
    workspace["layouts"] = workspace_store.list_layouts(workspace_id)
    return {"workspace": camelize(workspace)}


@router.put("/api/workspaces/{workspace_id}")
def update_workspace(
    workspace_id: str,
    body: UpdateWorkspace,
    user_id: str = Depends(get_user_id)
):
    try:
        workspace = workspace_store.update_workspace(workspace_id, user_id, **body.provided())
    except WorkspaceLockedError:
        raise Forbidden("Workspace is locked", details="Unlock the workspace before editing it")
    if workspace is None:
        raise NotFound("Workspace not found")
    return {"workspace": camelize(workspace)}


@router.delete("/api/workspaces/{workspace_id}")
def delete_workspace(workspace_id: str, user_id: str = Depends(get_user_id)):
    if not workspace_store.delete_workspace(workspace_id, user_id):
        raise NotFound("Workspace not found")
    return {"success": True}


# === Layouts ===

@router.get("/api/layouts")
def list_layouts(
    workspace_id: str = Query(alias="workspaceId"),
    user_id: str = Depends(get_user_id)
):
    _require_workspace(workspace_id, user_id)
    return {"layouts": camelize(workspace_store.list_layouts(workspace_id))}


@router.post("/api/layouts", status_code=201)
def create_layout(body: CreateLayout, user_id: str = Depends(get_user_id)):
    _require_workspace(body.workspace_id, user_id)
    layout = workspace_store.create_layout(
        workspace_id=body.workspace_id,
        user_id=user_id,
        name=body.name,
        config=body.config,
        is_default=body.is_default,
        is_shared=body.is_shared,
    )
    return {"layout": camelize(layout)}


@router.get("/api/layouts/shared/{share_token}")
def get_shared_layout(share_token: str):
    layout = workspace_store.get_shared_layout(share_token)
    if layout is None:
        raise NotFound("Layout not found")
    return {"layout": camelize(layout)}


@router.get("/api/layouts/{layout_id}")
def get_layout(layout_id: str, user_id: str = Depends(get_user_id)):
    layout = workspace_store.get_layout(layout_id, user_id)
    if layout is None:
        raise NotFound("Layout not found")
    return {"layout": camelize(layout)}


@router.put("/api/layouts/{layout_id}")
def update_layout(
    layout_id: str,
    body: UpdateLayout,
    user_id: str = Depends(get_user_id)
):
    layout = workspace_store.update_layout(layout_id, user_id, **body.provided())
    if layout is None:
        raise NotFound("Layout not found")
    return {"layout": camelize(layout)}


@router.delete("/api/layouts/{layout_id}")
def delete_layout(layout_id: str, user_id: str = Depends(get_user_id)):
    if not workspace_store.delete_layout(layout_id, user_id):
        raise NotFound("Layout not found")
    return {"success": True}
