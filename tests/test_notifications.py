"""In-app notifications and the email side-channel."""

from unittest import mock
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from mandal.core import email
from mandal.models import Notification, NotificationCategory
from mandal.services.notification import list_notifications, mark_read, notify, notify_admins


class TestNotify:

    def test_one_row_per_recipient(self, db, member, admin):
        created = notify(db, [member.id, admin.id], "Hello", "World", NotificationCategory.SYSTEM)
        assert len(created) == 2
        assert db.query(Notification).count() == 2

    def test_failure_is_swallowed(self, db, member):
        with mock.patch.object(db, "commit", side_effect=SQLAlchemyError("db down")):
            created = notify(db, [member.id], "Hello", "World", NotificationCategory.SYSTEM)
        assert created == []
        assert db.query(Notification).count() == 0

    def test_admin_fan_out_skips_inactive_admins(self, db, admin, second_admin):
        second_admin.is_active = False
        db.commit()

        emails = notify_admins(db, "New loan", "Someone asked", NotificationCategory.LOAN, uuid4())

        assert emails == [admin.email]
        assert [n.user_id for n in db.query(Notification)] == [admin.id]

    def test_no_admins_is_not_an_error(self, db, member):
        assert notify_admins(db, "New loan", "Someone asked", NotificationCategory.LOAN) == []


class TestReadState:

    def test_list_and_unread_count(self, db, member):
        notify(db, [member.id], "One", "1", NotificationCategory.SYSTEM)
        notify(db, [member.id], "Two", "2", NotificationCategory.SYSTEM)

        notifications, unread = list_notifications(db, member.id)
        assert len(notifications) == 2
        assert unread == 2

    def test_mark_one_then_all(self, db, member, admin):
        first, = notify(db, [member.id], "One", "1", NotificationCategory.SYSTEM)
        notify(db, [member.id], "Two", "2", NotificationCategory.SYSTEM)
        notify(db, [admin.id], "Other", "3", NotificationCategory.SYSTEM)

        assert mark_read(db, member.id, first.id) == 1
        assert list_notifications(db, member.id)[1] == 1

        assert mark_read(db, member.id) == 2
        assert list_notifications(db, member.id)[1] == 0
        assert list_notifications(db, admin.id)[1] == 1

    def test_cannot_mark_someone_elses(self, db, member, admin):
        theirs, = notify(db, [admin.id], "Other", "3", NotificationCategory.SYSTEM)
        assert mark_read(db, member.id, theirs.id) == 0


class TestEmail:

    def test_skipped_without_smtp(self):
        assert email.send_loan_status_email("a@b.test", "Asha", "approved") is False

    def test_smtp_errors_are_logged_not_raised(self, monkeypatch):
        monkeypatch.setattr(email, "_smtp_configured", lambda: True)
        with mock.patch("mandal.core.email.smtplib.SMTP", side_effect=OSError("connection refused")):
            assert email.send_contribution_status_email("a@b.test", "Asha", "done", "2024-01") is False

    def test_sends_through_smtp(self, monkeypatch):
        monkeypatch.setattr(email, "_smtp_configured", lambda: True)
        monkeypatch.setattr(email.settings, "FROM_EMAIL", "fund@mandal.test")
        with mock.patch("mandal.core.email.smtplib.SMTP") as smtp:
            assert email.send_admin_alert(["x@b.test", "y@b.test"], "New loan", "Asha asked") == 2
        server = smtp.return_value.__enter__.return_value
        assert server.sendmail.call_count == 2
