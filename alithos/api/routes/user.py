"""
The caller's user record and notification preferences.
"""
from fastapi import APIRouter, Depends

from ...alerts.models import NotificationPreferences
from ...storage import users as user_store
from ..deps import camelize, get_user_id
from ..schemas import NotificationPreferencesBody, UpdateUser

router = APIRouter(prefix="/api/user", tags=["user"])


def serialize_user(user: dict) -> dict:
    data = {key: value for key, value in user.items() if key != "preferences"}
    data["preferences"] = NotificationPreferences.parse(user.get("preferences")).to_dict()
    return camelize(data)


@router.get("")
def get_user(user_id: str = Depends(get_user_id)):
    return {"user": serialize_user(user_store.get_or_create_user(user_id))}


@router.put("")
def update_user(body: UpdateUser, user_id: str = Depends(get_user_id)):
    user = user_store.update_user(user_id, email=body.email, wallet_address=body.wallet_address)
    return {"user": serialize_user(user)}


@router.get("/preferences")
def get_preferences(user_id: str = Depends(get_user_id)):
    raw = user_store.get_preferences(user_id)
    return {"preferences": NotificationPreferences.parse(raw).to_dict()}


@router.put("/preferences")
def update_preferences(body: NotificationPreferencesBody, user_id: str = Depends(get_user_id)):
    stored = user_store.set_preferences(user_id, body.to_preferences().to_dict())
    return {
        "preferences": NotificationPreferences.parse(stored).to_dict(),
        "message": "Notification preferences updated successfully",
    }
