"""
Workspace layout templates.
"""
from typing import Optional

from fastapi import APIRouter, Query

from ...storage import templates as template_store
from ...utils.logger import get_logger
from ..deps import camelize
from ..errors import BadRequest
from ..schemas import CreateTemplate

logger = get_logger("api.templates")

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("")
def list_templates(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    include_public: Optional[bool] = Query(default=None, alias="includePublic")
):
    if not user_id and include_public is None:
        raise BadRequest("Missing userId or includePublic")
    templates = template_store.list_templates(user_id, bool(include_public))
    return {"templates": camelize(templates)}


@router.post("", status_code=201)
def create_template(body: CreateTemplate):
    if not body.user_id or not body.name or body.config is None:
        raise BadRequest("Missing required fields")

    template = template_store.create_template(
        user_id=body.user_id,
        name=body.name,
        config=body.config,
        description=body.description,
        is_public=body.is_public,
    )
    return {"template": camelize(template)}


@router.post("/seed")
def seed_templates():
    results = template_store.seed_default_templates()
    logger.info(
        "Seeded default templates",
        extra={"created": len(results["created"]), "updated": len(results["updated"])}
    )
    return {
        "success": True,
        "message": "Default templates seeded successfully",
        "results": {"created": results["created"], "updated": results["updated"]},
        "totalDefaultTemplates": len(template_store.DEFAULT_TEMPLATES),
        "templates": camelize(results["templates"]),
    }
