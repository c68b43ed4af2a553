"""
Dashboard aggregation: summary counters and the recent-activity feed.

Read-only. Everything is recomputed per request from the match, message,
conversation and user collections.
"""

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pymongo import DESCENDING
from pymongo.database import Database

from auth import get_current_user_id
from database import as_utc, find_by_id, get_db, to_object_id, utcnow
from errors import NotFound, workflow_boundary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

DEFAULT_TRUST_SCORE = 50
DEFAULT_ACTIVITY_LIMIT = 4
PER_SOURCE_LIMIT = 2

TrustScoreChangeProvider = Callable[[dict], int]


def random_trust_score_change(user: dict) -> int:
    # Placeholder until trust score history is tracked.
    return random.randrange(-5, 15)


def get_trust_score_change_provider() -> TrustScoreChangeProvider:
    return random_trust_score_change


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _involving(user_id: str) -> dict:
    return {"$or": [{"requester": user_id}, {"recipient": user_id}]}


def _user_names(db: Database, user_ids) -> Dict[str, str]:
    object_ids = [oid for oid in (to_object_id(i) for i in set(user_ids)) if oid is not None]
    if not object_ids:
        return {}
    return {str(u["_id"]): u.get("name", "") for u in db.user.find({"_id": {"$in": object_ids}}, {"name": 1})}


def count_unread_messages(db: Database, user_id: str):
    """Return (unread message count, distinct senders) across the user's conversations."""
    unread = 0
    senders = set()
    for conversation in db.conversation.find({"participants": user_id}):
        query = {
            "conversation": str(conversation["_id"]),
            "sender": {"$ne": user_id},
            "read": False,
        }
        count = db.message.count_documents(query)
        if count:
            unread += count
            senders.update(db.message.distinct("sender", query))
    return unread, senders


def get_dashboard_stats(
    db: Database,
    user_id: str,
    trust_score_change: TrustScoreChangeProvider = random_trust_score_change,
    now: Optional[datetime] = None,
) -> dict:
    user = find_by_id(db, "user", user_id)
    if not user:
        raise NotFound("User not found")
    now = now or utcnow()

    involving = _involving(user_id)
    active_exchanges = db.match.count_documents({**involving, "status": "accepted"})
    pending_confirmations = db.match.count_documents({"recipient": user_id, "status": "pending"})
    completed_exchanges = db.match.count_documents({**involving, "status": "completed"})
    monthly_completions = db.match.count_documents(
        {**involving, "status": "completed", "updated_at": {"$gte": month_start(now)}}
    )

    unread_messages, senders = count_unread_messages(db, user_id)

    trust_score = user.get("trust_score")
    return {
        "trustScore": DEFAULT_TRUST_SCORE if trust_score is None else trust_score,
        "trustScoreChange": trust_score_change(user),
        "activeExchanges": active_exchanges,
        "pendingConfirmations": pending_confirmations,
        "completedExchanges": completed_exchanges,
        "monthlyCompletions": monthly_completions,
        "unreadMessages": unread_messages,
        "messageSenders": len(senders),
    }


def _completed_trade_events(db: Database, user_id: str) -> List[dict]:
    trades = list(
        db.match.find({**_involving(user_id), "status": "completed"})
        .sort("updated_at", DESCENDING)
        .limit(PER_SOURCE_LIMIT)
    )
    counterparts = [t["recipient"] if t["requester"] == user_id else t["requester"] for t in trades]
    names = _user_names(db, counterparts)
    events = []
    for trade, other_id in zip(trades, counterparts):
        other_name = names.get(other_id, "Unknown user")
        events.append({
            "_id": str(trade["_id"]),
            "type": "trade_completed",
            "title": f"Skills Exchange Completed with {other_name}",
            "description": "You successfully exchanged skills",
            "timestamp": as_utc(trade["updated_at"]),
            "relatedUser": other_name,
        })
    return events


def _message_events(db: Database, user_id: str) -> List[dict]:
    conversation_ids = [str(c["_id"]) for c in db.conversation.find({"participants": user_id}, {"_id": 1})]
    if not conversation_ids:
        return []
    messages = list(
        db.message.find({"conversation": {"$in": conversation_ids}, "sender": {"$ne": user_id}})
        .sort("created_at", DESCENDING)
        .limit(PER_SOURCE_LIMIT)
    )
    names = _user_names(db, [m["sender"] for m in messages])
    events = []
    for message in messages:
        sender_name = names.get(message["sender"], "Unknown user")
        events.append({
            "_id": str(message["_id"]),
            "type": "trade_message",
            "title": f"New message from {sender_name}",
            "description": "Regarding your skills exchange",
            "timestamp": as_utc(message["created_at"]),
            "relatedUser": sender_name,
        })
    return events


def _trade_request_events(db: Database, user_id: str) -> List[dict]:
    requests = list(
        db.match.find({"recipient": user_id, "status": "pending"})
        .sort("created_at", DESCENDING)
        .limit(PER_SOURCE_LIMIT)
    )
    names = _user_names(db, [r["requester"] for r in requests])
    events = []
    for request in requests:
        requester_name = names.get(request["requester"], "Unknown user")
        events.append({
            "_id": str(request["_id"]),
            "type": "trade_request",
            "title": f"New Skills Exchange Request from {requester_name}",
            "description": "Wants to exchange skills with you",
            "timestamp": as_utc(request["created_at"]),
            "relatedUser": requester_name,
        })
    return events


def get_recent_activities(
    db: Database,
    user_id: str,
    limit: int = DEFAULT_ACTIVITY_LIMIT,
    now: Optional[datetime] = None,
) -> List[dict]:
    """
    Merge the newest trades, messages and trade requests into one feed.

    Each source contributes at most two events. When fewer than ``limit``
    events were found, a synthetic trust_increased event dated two days ago
    is appended. The feed is sorted newest first (stable, so ties keep
    source order) and truncated to ``limit``.
    """
    now = now or utcnow()
    activities = []
    activities.extend(_completed_trade_events(db, user_id))
    activities.extend(_message_events(db, user_id))
    activities.extend(_trade_request_events(db, user_id))

    if len(activities) < limit:
        activities.append({
            "_id": f"trust_score_{int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)}",
            "type": "trust_increased",
            "title": "Trust Score Increased",
            "description": "You gained points after completing a skills exchange",
            "timestamp": as_utc(now - timedelta(days=2)),
        })

    activities.sort(key=lambda a: a["timestamp"], reverse=True)
    return activities[:limit]


@router.get("/stats")
def dashboard_stats(
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    trust_score_change: TrustScoreChangeProvider = Depends(get_trust_score_change_provider),
):
    with workflow_boundary("fetching dashboard stats"):
        data = get_dashboard_stats(db, user_id, trust_score_change=trust_score_change)
    return {"success": True, "data": data}


@router.get("/activities")
def recent_activities(
    limit: int = Query(DEFAULT_ACTIVITY_LIMIT, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    with workflow_boundary("fetching recent activities"):
        data = get_recent_activities(db, user_id, limit=limit)
    return {"success": True, "data": data}
