"""
Alert CRUD, trigger history and dry-run evaluation.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...alerts.templates import ALERT_TEMPLATES, get_template_by_id, template_to_alert
from ...storage import alerts as alert_store
from ...utils.logger import get_logger
from ..deps import Services, alert_from_row, get_services, get_user_id
from ..errors import NotFound
from ..schemas import CreateAlert, UpdateAlert

logger = get_logger("api.alerts")

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


def serialize_alert(row: dict) -> dict:
    return alert_from_row(row).to_dict()


def _require_alert(alert_id: str, user_id: str) -> dict:
    row = alert_store.get_alert(alert_id, user_id)
    if row is None:
        raise NotFound("Alert not found")
    return row


def _sync(services: Services, row: Optional[dict], alert_id: str) -> None:
    """Mirror a stored alert into the running alert system."""
    if row is None or not row["is_active"]:
        services.alert_system.remove_alert(alert_id)
    else:
        services.alert_system.add_alert(alert_from_row(row))


@router.get("")
def list_alerts(
    active: Optional[bool] = Query(default=None),
    user_id: str = Depends(get_user_id)
):
    rows = alert_store.list_alerts(user_id, active)
    return {"alerts": [serialize_alert(row) for row in rows]}


@router.post("", status_code=201)
def create_alert(
    body: CreateAlert,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services)
):
    row = alert_store.create_alert(
        user_id=user_id,
        name=body.name,
        market_id=body.market_id,
        conditions=[c.model_dump() for c in body.conditions],
        actions=[a.to_dict() for a in body.actions],
        is_active=body.is_active,
        cooldown_period_minutes=body.cooldown_period_minutes,
    )
    _sync(services, row, row["id"])
    logger.info("Alert created", extra={"alert_id": row["id"], "user_id": user_id})
    return {"alert": serialize_alert(row)}


@router.get("/templates")
async def list_alert_templates(category: Optional[str] = None):
    templates = ALERT_TEMPLATES if category is None else [
        t for t in ALERT_TEMPLATES if t.category == category
    ]
    return {"templates": [t.to_dict() for t in templates]}


@router.post("/templates/{template_id}", status_code=201)
def create_alert_from_template(
    template_id: str,
    market_id: Optional[str] = Query(default=None, alias="marketId"),
    name: Optional[str] = None,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services)
):
    template = get_template_by_id(template_id)
    if template is None:
        raise NotFound("Template not found")
    body = CreateAlert.model_validate(template_to_alert(template, market_id, name))
    return create_alert(body, user_id, services)


@router.get("/history")
def alert_history(
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    alert_id: Optional[str] = Query(default=None, alias="alertId"),
    user_id: str = Depends(get_user_id)
):
    rows, total = alert_store.get_trigger_history(user_id, limit, offset, alert_id)
    history = [
        {
            "id": f"{row['id']}-{row['last_triggered']}",
            "alertId": row["id"],
            "alertName": row["name"],
            "triggeredAt": row["last_triggered"],
            "createdAt": row["created_at"],
        }
        for row in rows
    ]
    return {"history": history, "total": total, "limit": limit, "offset": offset}


@router.get("/{alert_id}")
def get_alert(alert_id: str, user_id: str = Depends(get_user_id)):
    return {"alert": serialize_alert(_require_alert(alert_id, user_id))}


@router.put("/{alert_id}")
def update_alert(
    alert_id: str,
    body: UpdateAlert,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services)
):
    _require_alert(alert_id, user_id)

    fields = body.provided()
    if "conditions" in fields:
        fields["conditions"] = [c.model_dump() for c in body.conditions]
    if "actions" in fields:
        fields["actions"] = [a.to_dict() for a in body.actions]

    row = alert_store.update_alert(alert_id, user_id, **fields)
    _sync(services, row, alert_id)
    return {"alert": serialize_alert(row)}


@router.delete("/{alert_id}")
def delete_alert(
    alert_id: str,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services)
):
    if not alert_store.delete_alert(alert_id, user_id):
        raise NotFound("Alert not found")
    services.alert_system.remove_alert(alert_id)
    return {"success": True}


@router.patch("/{alert_id}/trigger")
def trigger_alert(
    alert_id: str,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services)
):
    _require_alert(alert_id, user_id)
    triggered_at = alert_store.record_trigger(alert_id)
    _sync(services, alert_store.get_alert(alert_id), alert_id)
    return {"success": True, "lastTriggered": triggered_at}


@router.post("/{alert_id}/test")
async def test_alert(
    alert_id: str,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services)
):
    alert = alert_from_row(_require_alert(alert_id, user_id))
    return await services.alert_system.test_alert(alert)
