"""
Admin announcements: scheduled job lifecycle, revert on failure and manual send
"""
import logging
from datetime import timedelta

import pytest
from fastapi import HTTPException

from silni.application.announcement import announcement as announcement_module
from silni.application.announcement.announcement import send_announcement_now, send_scheduled_announcements
from silni.domain.announcement.models import AdminAnnouncement
from silni.infra.firebase.fcm import PushAuthError, PushGateway

from conftest import FakeSender, FakeTokenProvider, riyadh, stored

NOW = riyadh(2026, 10, 15, 10, 15)


@pytest.fixture
def add_announcement(db):
    def _add(announcement_id="a1", **fields):
        fields.setdefault("title", "رمضان كريم")
        fields.setdefault("body", "لا تنس صلة أرحامك")
        fields.setdefault("target_users", "all")
        fields.setdefault("status", "scheduled")
        fields.setdefault("scheduled_for", stored(NOW - timedelta(minutes=5)))
        db.add(AdminAnnouncement(id=announcement_id, **fields))
        db.commit()
    return _add


def reload(db, announcement_id):
    db.expire_all()
    return db.get(AdminAnnouncement, announcement_id)


class TestScheduledAnnouncements:
    def test_due_announcement_is_sent_and_counted(self, db, gateway, sender, make_user, add_announcement):
        make_user("u1", tokens=[("t1", "android"), ("t2", "ios")])
        make_user("u2", tokens=[("t3", "android")])
        make_user("u3")
        add_announcement(notification_data={"route": "/home"})

        result = send_scheduled_announcements(db, gateway, NOW)

        assert (result["announcementsSent"], result["sent"], result["failed"]) == (1, 3, 0)
        announcement = reload(db, "a1")
        assert announcement.status == "sent"
        assert announcement.sent_at == stored(NOW)
        assert (announcement.total_recipients, announcement.successful_sends, announcement.failed_sends) == (3, 3, 0)

        message = sender.messages[0][0]
        assert message["data"] == {"route": "/home", "announcement_id": "a1", "type": "announcement"}

    def test_future_and_draft_announcements_are_left_alone(self, db, gateway, sender, make_user, add_announcement):
        make_user("u1", tokens=[("t1", "android")])
        add_announcement("later", scheduled_for=stored(NOW + timedelta(hours=1)))
        add_announcement("draft", status="draft")

        result = send_scheduled_announcements(db, gateway, NOW)

        assert result["processed"] == 0
        assert sender.messages == []
        assert reload(db, "later").status == "scheduled"

    def test_custom_target_sends_only_to_listed_users(self, db, gateway, sender, make_user, add_announcement):
        make_user("a", tokens=[("ta", "android")])
        make_user("b", tokens=[("tb", "android")])
        make_user("c", tokens=[("tc", "android")])
        add_announcement(target_users="custom", custom_user_ids=["a", "b"])

        send_scheduled_announcements(db, gateway, NOW)

        assert sorted(sender.tokens) == ["ta", "tb"]
        assert reload(db, "a1").total_recipients == 2

    def test_empty_recipient_set_is_sent_with_zero(self, db, gateway, sender, add_announcement):
        add_announcement(target_users="premium")

        result = send_scheduled_announcements(db, gateway, NOW)

        assert result["announcementsSent"] == 1
        announcement = reload(db, "a1")
        assert announcement.status == "sent"
        assert announcement.total_recipients == 0
        assert sender.messages == []

    def test_failure_mid_dispatch_reverts_to_draft(self, db, gateway, make_user, add_announcement, monkeypatch):
        make_user("u1", tokens=[("t1", "android")])
        add_announcement()
        add_announcement("a2", scheduled_for=stored(NOW - timedelta(minutes=1)))

        calls = []

        def flaky_resolve(db, rule, custom_ids=None, now=None):
            calls.append(rule)
            if len(calls) == 1:
                raise RuntimeError("directory unavailable")
            return {"u1"}

        monkeypatch.setattr(announcement_module, "resolve_recipients", flaky_resolve)

        result = send_scheduled_announcements(db, gateway, NOW)

        assert (result["reverted"], result["announcementsSent"]) == (1, 1)
        assert reload(db, "a1").status == "draft"
        assert reload(db, "a2").status == "sent"

    def test_credential_failure_leaves_announcements_scheduled(self, db, make_user, add_announcement):
        make_user("u1", tokens=[("t1", "android")])
        add_announcement()
        gateway = PushGateway(FakeSender(), FakeTokenProvider(error=PushAuthError("bad key")))

        with pytest.raises(PushAuthError):
            send_scheduled_announcements(db, gateway, NOW)

        assert reload(db, "a1").status == "scheduled"

    def test_announcement_claimed_elsewhere_is_skipped(self, db, gateway, sender, make_user, add_announcement, monkeypatch):
        make_user("u1", tokens=[("t1", "android")])
        add_announcement()
        monkeypatch.setattr(announcement_module, "claim_announcement", lambda db, announcement_id, from_statuses: False)

        result = send_scheduled_announcements(db, gateway, NOW)

        assert (result["skipped"], result["announcementsSent"]) == (1, 0)
        assert sender.messages == []


    def test_lost_completion_is_logged(self, db, gateway, make_user, add_announcement, monkeypatch, caplog):
        make_user("u1", tokens=[("t1", "android")])
        add_announcement()
        monkeypatch.setattr(announcement_module, "complete_announcement", lambda *args: False)

        with caplog.at_level(logging.WARNING, logger=announcement_module.__name__):
            send_scheduled_announcements(db, gateway, NOW)

        assert "final counts not written" in caplog.text


class TestSendAnnouncementNow:
    def test_draft_is_sent_immediately(self, db, gateway, make_user, add_announcement):
        make_user("u1", tokens=[("t1", "android")])
        add_announcement(status="draft", scheduled_for=None)

        result = send_announcement_now(db, gateway, "a1", NOW)

        assert (result["totalRecipients"], result["sent"], result["failed"]) == (1, 1, 0)
        assert reload(db, "a1").status == "sent"

    def test_failed_announcement_can_be_resent(self, db, gateway, make_user, add_announcement):
        make_user("u1", tokens=[("t1", "android")])
        add_announcement(status="failed")

        result = send_announcement_now(db, gateway, "a1", NOW)

        assert result["sent"] == 1
        assert reload(db, "a1").status == "sent"

    def test_unknown_announcement_is_404(self, db, gateway):
        with pytest.raises(HTTPException) as exc:
            send_announcement_now(db, gateway, "missing", NOW)
        assert exc.value.status_code == 404

    def test_already_sent_is_rejected(self, db, gateway, add_announcement):
        add_announcement(status="sent")
        with pytest.raises(HTTPException) as exc:
            send_announcement_now(db, gateway, "a1", NOW)
        assert exc.value.status_code == 400
