"""Tests for dashboard statistics and the recent-activity feed."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from dashboard import (
    get_dashboard_stats,
    get_recent_activities,
    get_trust_score_change_provider,
    month_start,
    random_trust_score_change,
)
from errors import NotFound
from main import app
from schemas import Conversation, Match, Message
from tests.conftest import auth_headers

NOW = datetime(2026, 10, 17, 12, 0, 0)


def fixed_change(user):
    return 3


def add_match(db, requester, recipient, status, created_at=NOW, updated_at=None):
    doc = Match(requester=requester, recipient=recipient, status=status).model_dump()
    doc.update(created_at=created_at, updated_at=updated_at or created_at)
    return str(db.match.insert_one(doc).inserted_id)


def add_conversation(db, *participants):
    doc = Conversation(participants=list(participants)).model_dump()
    doc["created_at"] = NOW
    return str(db.conversation.insert_one(doc).inserted_id)


def add_message(db, conversation, sender, read=False, created_at=NOW):
    doc = Message(conversation=conversation, sender=sender, content="hi", read=read).model_dump()
    doc.update(created_at=created_at, updated_at=created_at)
    return str(db.message.insert_one(doc).inserted_id)


class TestDashboardStats:

    def test_unknown_user(self, db):
        with pytest.raises(NotFound):
            get_dashboard_stats(db, str(ObjectId()), trust_score_change=fixed_change, now=NOW)

    def test_empty_dashboard(self, db, make_user):
        me = make_user("Me", trust_score=72)
        stats = get_dashboard_stats(db, me, trust_score_change=fixed_change, now=NOW)
        assert stats == {
            "trustScore": 72,
            "trustScoreChange": 3,
            "activeExchanges": 0,
            "pendingConfirmations": 0,
            "completedExchanges": 0,
            "monthlyCompletions": 0,
            "unreadMessages": 0,
            "messageSenders": 0,
        }

    def test_missing_trust_score_defaults_to_50(self, db):
        me = str(db.user.insert_one({"name": "Me", "email": "me@example.com"}).inserted_id)
        stats = get_dashboard_stats(db, me, trust_score_change=fixed_change, now=NOW)
        assert stats["trustScore"] == 50

    def test_match_counts_by_status(self, db, make_user):
        me = make_user("Me")
        other = make_user("Other")
        add_match(db, me, other, "accepted")
        add_match(db, other, me, "accepted")
        add_match(db, other, me, "pending")
        add_match(db, me, other, "pending")  # I am the requester: not a pending confirmation
        add_match(db, me, other, "completed", updated_at=NOW - timedelta(days=3))
        add_match(db, other, me, "completed", updated_at=datetime(2026, 9, 30, 23, 59))
        add_match(db, me, other, "rejected")

        stats = get_dashboard_stats(db, me, trust_score_change=fixed_change, now=NOW)

        assert stats["activeExchanges"] == 2
        assert stats["pendingConfirmations"] == 1
        assert stats["completedExchanges"] == 2
        assert stats["monthlyCompletions"] == 1

    def test_counts_partition_all_matches(self, db, make_user):
        """Active + completed + other statuses add up to every match involving the user."""
        me = make_user("Me")
        other = make_user("Other")
        statuses = ["accepted", "completed", "pending", "rejected", "cancelled", "accepted", "completed"]
        for i, status in enumerate(statuses):
            if i % 2:
                add_match(db, me, other, status)
            else:
                add_match(db, other, me, status)
        add_match(db, other, make_user("Stranger"), "accepted")

        stats = get_dashboard_stats(db, me, trust_score_change=fixed_change, now=NOW)

        others = db.match.count_documents({
            "$or": [{"requester": me}, {"recipient": me}],
            "status": {"$nin": ["accepted", "completed"]},
        })
        assert stats["activeExchanges"] + stats["completedExchanges"] + others == len(statuses)

    def test_unread_messages_and_senders(self, db, make_user):
        """Two unread from X in one conversation and one from Y in another: 3 unread, 2 senders."""
        me = make_user("Me")
        x = make_user("X")
        y = make_user("Y")
        first = add_conversation(db, me, x)
        second = add_conversation(db, me, y)
        add_message(db, first, x)
        add_message(db, first, x)
        add_message(db, first, x, read=True)
        add_message(db, first, me)
        add_message(db, second, y)
        unrelated = add_conversation(db, x, y)
        add_message(db, unrelated, x)

        stats = get_dashboard_stats(db, me, trust_score_change=fixed_change, now=NOW)

        assert stats["unreadMessages"] == 3
        assert stats["messageSenders"] == 2

    def test_same_sender_across_conversations_counted_once(self, db, make_user):
        me = make_user("Me")
        x = make_user("X")
        add_message(db, add_conversation(db, me, x), x)
        add_message(db, add_conversation(db, me, x), x)
        stats = get_dashboard_stats(db, me, trust_score_change=fixed_change, now=NOW)
        assert stats["unreadMessages"] == 2
        assert stats["messageSenders"] == 1

    def test_default_trust_score_change_range(self):
        for _ in range(200):
            assert -5 <= random_trust_score_change({}) < 15

    def test_month_start(self):
        assert month_start(NOW) == datetime(2026, 10, 1)


class TestRecentActivities:

    def test_only_synthetic_event_when_nothing_happened(self, db, make_user):
        me = make_user("Me")
        activities = get_recent_activities(db, me, now=NOW)
        assert len(activities) == 1
        event = activities[0]
        assert event["type"] == "trust_increased"
        assert event["timestamp"] == (NOW - timedelta(days=2)).replace(tzinfo=timezone.utc)
        assert event["_id"].startswith("trust_score_")

    def test_merges_sources_newest_first(self, db, make_user):
        me = make_user("Me")
        bob = make_user("Bob")
        carol = make_user("Carol")
        add_match(db, me, bob, "completed", updated_at=NOW - timedelta(hours=5))
        conversation = add_conversation(db, me, carol)
        add_message(db, conversation, carol, created_at=NOW - timedelta(hours=1))
        add_match(db, carol, me, "pending", created_at=NOW - timedelta(hours=3))

        activities = get_recent_activities(db, me, now=NOW)

        assert [a["type"] for a in activities] == [
            "trade_message", "trade_request", "trade_completed", "trust_increased",
        ]
        assert activities[0]["title"] == "New message from Carol"
        assert activities[1]["title"] == "New Skills Exchange Request from Carol"
        assert activities[2]["title"] == "Skills Exchange Completed with Bob"
        assert activities[2]["relatedUser"] == "Bob"

    def test_each_source_capped_at_two(self, db, make_user):
        me = make_user("Me")
        bob = make_user("Bob")
        for hours in range(1, 5):
            add_match(db, bob, me, "completed", updated_at=NOW - timedelta(hours=hours))
        activities = get_recent_activities(db, me, limit=10, now=NOW)
        assert [a["type"] for a in activities].count("trade_completed") == 2

    def test_never_exceeds_limit_and_sorted(self, db, make_user):
        me = make_user("Me")
        bob = make_user("Bob")
        conversation = add_conversation(db, me, bob)
        for hours in range(1, 4):
            add_match(db, bob, me, "completed", updated_at=NOW - timedelta(hours=hours))
            add_match(db, bob, me, "pending", created_at=NOW - timedelta(hours=hours * 2))
            add_message(db, conversation, bob, created_at=NOW - timedelta(minutes=hours * 7))

        activities = get_recent_activities(db, me, limit=4, now=NOW)

        assert len(activities) == 4
        timestamps = [a["timestamp"] for a in activities]
        assert timestamps == sorted(timestamps, reverse=True)
        assert all(a["type"] != "trust_increased" for a in activities)

    def test_ignores_own_messages_and_foreign_conversations(self, db, make_user):
        me = make_user("Me")
        bob = make_user("Bob")
        carol = make_user("Carol")
        mine = add_conversation(db, me, bob)
        add_message(db, mine, me, created_at=NOW - timedelta(minutes=1))
        foreign = add_conversation(db, bob, carol)
        add_message(db, foreign, carol, created_at=NOW - timedelta(minutes=2))

        activities = get_recent_activities(db, me, now=NOW)

        assert [a["type"] for a in activities] == ["trust_increased"]

    def test_ties_keep_source_order(self, db, make_user):
        me = make_user("Me")
        bob = make_user("Bob")
        add_match(db, me, bob, "completed", updated_at=NOW)
        add_message(db, add_conversation(db, me, bob), bob, created_at=NOW)
        add_match(db, bob, me, "pending", created_at=NOW)

        activities = get_recent_activities(db, me, limit=3, now=NOW)

        assert [a["type"] for a in activities] == ["trade_completed", "trade_message", "trade_request"]


class TestDashboardRoutes:

    def test_stats_uses_injected_provider(self, client, make_user):
        me = make_user("Me")
        app.dependency_overrides[get_trust_score_change_provider] = lambda: fixed_change
        response = client.get("/api/dashboard/stats", headers=auth_headers(me))
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["trustScoreChange"] == 3
        assert body["data"]["trustScore"] == 50

    def test_stats_for_deleted_user_is_404(self, client):
        response = client.get("/api/dashboard/stats", headers=auth_headers(str(ObjectId())))
        assert response.status_code == 404
        assert response.json() == {"message": "User not found"}

    def test_activities_limit_query(self, client, db, make_user):
        me = make_user("Me")
        bob = make_user("Bob")
        add_match(db, bob, me, "pending", created_at=datetime.now() - timedelta(hours=1))
        response = client.get("/api/dashboard/activities?limit=1", headers=auth_headers(me))
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["type"] == "trade_request"
        assert set(data[0]) == {"_id", "type", "title", "description", "timestamp", "relatedUser"}

    def test_activity_timestamps_carry_utc_offset(self, client, db, make_user):
        me = make_user("Me")
        bob = make_user("Bob")
        add_match(db, bob, me, "pending", created_at=datetime(2026, 10, 16, 9, 30))
        response = client.get("/api/dashboard/activities", headers=auth_headers(me))
        assert response.status_code == 200
        timestamps = [a["timestamp"] for a in response.json()["data"]]
        assert "2026-10-16T09:30:00+00:00" in timestamps
        assert all(t.endswith("+00:00") for t in timestamps)

    def test_activities_requires_authentication(self, client):
        response = client.get("/api/dashboard/activities")
        assert response.status_code == 401
