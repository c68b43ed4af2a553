"""Notification inbox for the calling user."""

import logging

from fastapi import APIRouter, Depends, Query
from pymongo import DESCENDING
from pymongo.database import Database

from auth import get_current_user_id
from database import as_utc, find_by_id, get_db, utcnow
from errors import NotFound, workflow_boundary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def serialize_notification(doc: dict) -> dict:
    return {
        "_id": str(doc["_id"]),
        "sender": doc.get("sender"),
        "type": doc.get("type"),
        "title": doc.get("title"),
        "message": doc.get("message"),
        "data": doc.get("data", {}),
        "read": doc.get("read", False),
        "createdAt": as_utc(doc.get("created_at")),
    }


def list_notifications(db: Database, user_id: str, unread_only: bool = False, limit: int = 50) -> dict:
    query = {"recipient": user_id}
    if unread_only:
        query["read"] = False
    docs = db.notification.find(query).sort("created_at", DESCENDING).limit(limit)
    return {
        "notifications": [serialize_notification(d) for d in docs],
        "unreadCount": db.notification.count_documents({"recipient": user_id, "read": False}),
    }


def mark_notification_read(db: Database, user_id: str, notification_id: str) -> None:
    notification = find_by_id(db, "notification", notification_id)
    if not notification or notification.get("recipient") != user_id:
        raise NotFound("Notification not found")
    db.notification.update_one(
        {"_id": notification["_id"]},
        {"$set": {"read": True, "updated_at": utcnow()}},
    )


@router.get("")
def my_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    with workflow_boundary("fetching notifications"):
        result = list_notifications(db, user_id, unread_only=unread_only, limit=limit)
    return {"success": True, **result}


@router.put("/{notification_id}/read")
def read_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    with workflow_boundary("updating notification"):
        mark_notification_read(db, user_id, notification_id)
    return {"success": True, "message": "Notification marked as read"}
