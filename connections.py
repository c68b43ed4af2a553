"""
Connection workflow: request, accept and list connections between users.

Accepting a request writes both users' connection lists and two notifications
as separate, non-transactional updates. A failure part way through leaves the
earlier writes in place (for example an asymmetric connection pair); nothing
is rolled back.
"""

import logging
import math

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from pymongo.database import Database

from auth import get_current_user_id
from database import create_document, find_by_id, get_db, to_object_id, utcnow
from errors import Conflict, InvalidRequest, NotFound, workflow_boundary
from schemas import Notification as NotificationSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/connections", tags=["connections"])


def connection_profile(user: dict) -> dict:
    return {
        "_id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "profilePhoto": user.get("profile_photo", ""),
        "trustScore": user.get("trust_score", 50),
        "location": user.get("location", ""),
        "skills": user.get("skills", []),
        "isActive": user.get("is_active", True),
    }


def send_connection_request(db: Database, sender_id: str, recipient_id: str) -> str:
    """Create a connection_request notification for the recipient and return its id."""
    if sender_id == recipient_id:
        raise InvalidRequest("Cannot send connection request to yourself")

    recipient = find_by_id(db, "user", recipient_id)
    if not recipient:
        raise NotFound("User not found")

    sender = find_by_id(db, "user", sender_id)
    if not sender:
        raise NotFound("User not found")
    if recipient_id in sender.get("connections", []):
        raise Conflict("Already connected with this user")

    notification = NotificationSchema(
        recipient=recipient_id,
        sender=sender_id,
        type="connection_request",
        title="New Connection Request",
        message=f"{sender['name']} wants to connect with you",
        data={
            "senderId": sender_id,
            "senderName": sender["name"],
            "senderProfilePhoto": sender.get("profile_photo", ""),
        },
    )
    notification_id = create_document(db, "notification", notification)
    logger.info("Connection request %s sent from %s to %s", notification_id, sender_id, recipient_id)
    return notification_id


def accept_connection_request(db: Database, actor_id: str, notification_id: str) -> str:
    """Connect the actor with the request's sender and notify the sender."""
    notification = find_by_id(db, "notification", notification_id)
    if not notification or notification.get("recipient") != actor_id:
        raise NotFound("Notification not found")
    if notification.get("type") != "connection_request":
        raise InvalidRequest("Invalid notification type")

    sender_id = notification["sender"]
    now = utcnow()

    # Two independent writes; a crash between them leaves the graph asymmetric.
    db.user.update_one(
        {"_id": to_object_id(actor_id)},
        {"$addToSet": {"connections": sender_id}, "$set": {"updated_at": now}},
    )
    db.user.update_one(
        {"_id": to_object_id(sender_id)},
        {"$addToSet": {"connections": actor_id}, "$set": {"updated_at": now}},
    )

    db.notification.update_one(
        {"_id": notification["_id"]},
        {"$set": {"read": True, "updated_at": now}},
    )

    actor = find_by_id(db, "user", actor_id)
    if not actor:
        raise NotFound("User not found")
    accepted = NotificationSchema(
        recipient=sender_id,
        sender=actor_id,
        type="connection_accepted",
        title="Connection Request Accepted",
        message=f"{actor['name']} accepted your connection request",
        data={
            "userId": actor_id,
            "userName": actor["name"],
            "userProfilePhoto": actor.get("profile_photo", ""),
        },
    )
    accepted_id = create_document(db, "notification", accepted)
    logger.info("Connection request %s accepted by %s", notification_id, actor_id)
    return accepted_id


def get_user_connections(db: Database, user_id: str, page: int = 1, limit: int = 10) -> dict:
    user = find_by_id(db, "user", user_id)
    if not user:
        raise NotFound("User not found")

    connection_ids = user.get("connections", [])
    total = len(connection_ids)
    skip = (page - 1) * limit
    page_ids = connection_ids[skip:skip + limit]

    object_ids = [oid for oid in (to_object_id(i) for i in page_ids) if oid is not None]
    found = {str(d["_id"]): d for d in db.user.find({"_id": {"$in": object_ids}})} if object_ids else {}
    # Keep connection-list order; ids of deleted accounts are skipped.
    connections = [connection_profile(found[i]) for i in page_ids if i in found]

    return {
        "connections": connections,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
    }


class SendRequestBody(BaseModel):
    recipientId: str


class AcceptRequestBody(BaseModel):
    notificationId: str


@router.post("/send-request")
def send_request(
    body: SendRequestBody,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    with workflow_boundary("sending connection request"):
        send_connection_request(db, user_id, body.recipientId)
    return {"success": True, "message": "Connection request sent successfully"}


@router.post("/accept-request")
def accept_request(
    body: AcceptRequestBody,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    with workflow_boundary("accepting connection request"):
        accept_connection_request(db, user_id, body.notificationId)
    return {"success": True, "message": "Connection request accepted"}


@router.get("/my-connections")
def my_connections(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    with workflow_boundary("fetching connections"):
        result = get_user_connections(db, user_id, page=page, limit=limit)
    return {"success": True, **result}
