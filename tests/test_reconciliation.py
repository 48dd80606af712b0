"""
Unit tests for the reconciliation sweep and its scheduled worker task.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from app import models, reconciliation, worker
from app.reconciliation import sweep


def at(*args):
    return lambda: datetime(*args)


def reload(db_session, booking_id):
    db_session.expire_all()
    return db_session.get(models.Booking, booking_id)


class TestSweep:
    """Tests for the sweep over persisted bookings."""

    def test_completes_elapsed_booking(self, db_session, past_booking):
        created = past_booking.updated_at

        assert sweep(db_session, at(2025, 1, 10, 10, 0, 1)) == 1

        booking = reload(db_session, past_booking.id)
        assert booking.status == "completed"
        assert booking.updated_at == datetime(2025, 1, 10, 10, 0, 1)
        assert booking.updated_at != created

    def test_leaves_booking_before_end(self, db_session, past_booking):
        assert sweep(db_session, at(2025, 1, 10, 9, 59, 59)) == 0
        assert reload(db_session, past_booking.id).status == "upcoming"

    def test_end_at_is_not_recomputed(self, db_session, past_booking):
        sweep(db_session, at(2025, 1, 10, 12, 0))
        assert reload(db_session, past_booking.id).end_at == datetime(2025, 1, 10, 10, 0)

    @pytest.mark.parametrize("status", ["cancelled", "completed"])
    def test_terminal_bookings_untouched(self, db_session, make_booking, status):
        booking = make_booking(status=status)
        before = booking.updated_at

        assert sweep(db_session, at(2030, 1, 1)) == 0

        booking = reload(db_session, booking.id)
        assert booking.status == status
        assert booking.updated_at == before

    def test_unparseable_slot_never_completes(self, db_session, make_booking):
        booking = make_booking(date="2001-01-01", time_slot="all day")
        assert booking.end_at is None

        assert sweep(db_session, at(2030, 1, 1)) == 0
        assert reload(db_session, booking.id).status == "upcoming"

    def test_second_run_is_noop(self, db_session, make_booking):
        make_booking(time_slot="09:00 - 10:00")
        make_booking(time_slot="10:00 - 11:00")
        now = at(2025, 1, 10, 12, 0)

        assert sweep(db_session, now) == 2
        assert sweep(db_session, now) == 0

    def test_only_elapsed_bookings_selected(self, db_session, make_booking):
        done = make_booking(time_slot="09:00 - 10:00")
        later = make_booking(time_slot="14:00 - 15:00")

        assert sweep(db_session, at(2025, 1, 10, 12, 0)) == 1
        assert reload(db_session, done.id).status == "completed"
        assert reload(db_session, later.id).status == "upcoming"

    def test_failed_item_does_not_abort_sweep(self, db_session, make_booking, monkeypatch):
        broken = make_booking(time_slot="09:00 - 10:00")
        fine = make_booking(time_slot="10:00 - 11:00")
        real_complete = reconciliation.complete_booking

        def flaky_complete(db, booking_id, now):
            if booking_id == broken.id:
                raise OperationalError("UPDATE bookings", {}, Exception("database is locked"))
            return real_complete(db, booking_id, now)

        monkeypatch.setattr(reconciliation, "complete_booking", flaky_complete)

        assert sweep(db_session, at(2025, 1, 10, 12, 0)) == 1
        assert reload(db_session, broken.id).status == "upcoming"
        assert reload(db_session, fine.id).status == "completed"

        # the failed item is retried by the next run
        monkeypatch.setattr(reconciliation, "complete_booking", real_complete)
        assert sweep(db_session, at(2025, 1, 10, 12, 0)) == 1
        assert reload(db_session, broken.id).status == "completed"

    def test_concurrent_cancel_wins_over_sweep(self, db_session, past_booking):
        now = datetime(2025, 1, 10, 12, 0)
        # another writer cancels between candidate selection and the write
        db_session.query(models.Booking).filter(models.Booking.id == past_booking.id).update(
            {"status": "cancelled"}
        )
        db_session.commit()

        assert reconciliation.complete_booking(db_session, past_booking.id, now) is False
        assert reload(db_session, past_booking.id).status == "cancelled"


class TestWorker:
    """Tests for the scheduled Celery task."""

    def test_beat_schedule_registered(self):
        entry = worker.celery_app.conf.beat_schedule["reconcile-bookings"]
        assert entry["task"] == "app.worker.reconcile_bookings"
        assert entry["schedule"] == timedelta(minutes=worker.settings.RECONCILE_INTERVAL_MINUTES)

    def test_task_runs_sweep(self, db_session, past_booking, monkeypatch):
        monkeypatch.setattr(worker, "SessionLocal", sessionmaker(bind=db_session.get_bind()))

        assert worker.reconcile_bookings() == 1
        assert reload(db_session, past_booking.id).status == "completed"
