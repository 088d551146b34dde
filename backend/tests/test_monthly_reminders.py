# backend/tests/test_monthly_reminders.py
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select

from app.domain.notifications import NotificationKind
from app.models import ManagerAssignment, Notification, SchedulerRun
from app.services import floor_actions, properties
from app.services.reminders import JOB_KEY, cycle_key, next_run_after, send_monthly_reminders

DHAKA = ZoneInfo("Asia/Dhaka")


def _reminders(db) -> list[Notification]:
    db.expire_all()
    return list(
        db.scalars(
            select(Notification).where(Notification.kind == NotificationKind.REMINDER).order_by(Notification.floor_id)
        ).all()
    )


def _occupy(db, w, floor_id, phone):
    floor_actions.assign_tenant(db, caller_id=w.manager, property_id=w.property_id, floor_id=floor_id, tenant_phone=phone)


# -------------------- next_run_after --------------------

def test_next_run_same_month_when_before_the_day():
    now = datetime(2026, 3, 2, 12, 0, tzinfo=DHAKA)
    assert next_run_after(now, day=5, hour=9, tz="Asia/Dhaka") == datetime(2026, 3, 5, 9, 0, tzinfo=DHAKA)


def test_next_run_is_strictly_after_now():
    exactly = datetime(2026, 3, 5, 9, 0, tzinfo=DHAKA)
    assert next_run_after(exactly, day=5, hour=9, tz="Asia/Dhaka") == datetime(2026, 4, 5, 9, 0, tzinfo=DHAKA)


def test_next_run_rolls_over_the_year():
    now = datetime(2026, 12, 20, tzinfo=DHAKA)
    assert next_run_after(now, day=5, hour=9, tz="Asia/Dhaka") == datetime(2027, 1, 5, 9, 0, tzinfo=DHAKA)


def test_naive_now_is_read_as_utc():
    # 2026-03-05 02:30 UTC is 08:30 in Dhaka, half an hour before the run
    nxt = next_run_after(datetime(2026, 3, 5, 2, 30), day=5, hour=9, tz="Asia/Dhaka")
    assert nxt == datetime(2026, 3, 5, 9, 0, tzinfo=DHAKA)
    assert nxt.astimezone(timezone.utc) == datetime(2026, 3, 5, 3, 0, tzinfo=timezone.utc)


def test_day_past_28_is_rejected():
    with pytest.raises(ValueError):
        next_run_after(datetime(2026, 1, 1, tzinfo=DHAKA), day=31, hour=9, tz="Asia/Dhaka")


def test_cycle_key_uses_local_month():
    # still February in UTC, already March in Dhaka
    assert cycle_key(datetime(2026, 2, 28, 20, 0, tzinfo=timezone.utc), tz="Asia/Dhaka") == "2026-03"


# -------------------- send_monthly_reminders --------------------

def test_one_reminder_per_occupied_floor(db, world):
    _occupy(db, world, world.floor_id, world.tenant_phone)
    floor_actions.record_payment(
        db,
        caller_id=world.manager,
        property_id=world.property_id,
        floor_id=world.floor_id,
        due_rent=12000,
        due_electricity_bill=750,
        received_money=0,
    )

    out = send_monthly_reminders(db, now=datetime(2026, 3, 5, 9, 0, tzinfo=DHAKA), tz="Asia/Dhaka")

    assert out.skipped is False
    assert out.cycle_key == "2026-03"
    assert (out.created, out.failed) == (1, 0)

    rows = _reminders(db)
    assert len(rows) == 1
    r = rows[0]
    assert r.status is None
    assert r.sender_id == world.manager
    assert r.receiver_id == world.tenant
    assert r.floor_id == world.floor_id
    assert r.message == (
        "Monthly rent reminder for Green Villa - Floor 1:\n"
        "Due Rent: 12000.00\n"
        "Due Electricity: 750.00"
    )


def test_floor_without_payments_gets_zero_dues(db, world):
    _occupy(db, world, world.floor2_id, world.outsider_phone)
    send_monthly_reminders(db, now=datetime(2026, 3, 5, 9, 0, tzinfo=DHAKA), tz="Asia/Dhaka")

    (r,) = _reminders(db)
    assert r.floor_id == world.floor2_id
    assert "Due Rent: 0.00" in r.message


def test_second_run_in_same_cycle_is_skipped(db, world):
    _occupy(db, world, world.floor_id, world.tenant_phone)
    now = datetime(2026, 3, 5, 9, 0, tzinfo=DHAKA)

    first = send_monthly_reminders(db, now=now, tz="Asia/Dhaka")
    second = send_monthly_reminders(db, now=now.replace(hour=21), tz="Asia/Dhaka")

    assert first.skipped is False
    assert second.skipped is True
    assert len(_reminders(db)) == 1

    run = db.scalar(select(SchedulerRun).where(SchedulerRun.job_key == JOB_KEY))
    assert run.cycle_key == "2026-03"
    assert run.created_count == 1
    assert run.finished_at is not None

    # next month is a new cycle
    third = send_monthly_reminders(db, now=datetime(2026, 4, 5, 9, 0, tzinfo=DHAKA), tz="Asia/Dhaka")
    assert third.skipped is False
    assert len(_reminders(db)) == 2


def test_forced_run_does_not_consume_the_cycle(db, world):
    _occupy(db, world, world.floor_id, world.tenant_phone)
    now = datetime(2026, 3, 1, 10, 0, tzinfo=DHAKA)

    forced = send_monthly_reminders(db, now=now, force=True, tz="Asia/Dhaka")
    scheduled = send_monthly_reminders(db, now=now, tz="Asia/Dhaka")

    assert forced.skipped is False
    assert scheduled.skipped is False
    assert len(_reminders(db)) == 2


def test_property_without_manager_fails_and_others_continue(db, world, make_user, caplog):
    _occupy(db, world, world.floor_id, world.tenant_phone)

    # a second property whose manager assignment is gone
    orphan_mgr = make_user("01766666666")
    orphan = properties.create_property(db, caller_id=orphan_mgr, name="Orphan", address="nowhere")
    of = properties.add_floor(db, caller_id=orphan_mgr, property_id=orphan.id, name="Only")
    floor_actions.assign_tenant(
        db, caller_id=orphan_mgr, property_id=orphan.id, floor_id=of.id, tenant_phone=world.outsider_phone
    )
    db.query(ManagerAssignment).filter(ManagerAssignment.property_id == orphan.id).delete()
    db.commit()

    with caplog.at_level("ERROR"):
        out = send_monthly_reminders(db, now=datetime(2026, 3, 5, 9, 0, tzinfo=DHAKA), tz="Asia/Dhaka")

    assert (out.created, out.failed) == (1, 1)
    rows = _reminders(db)
    assert [r.floor_id for r in rows] == [world.floor_id]
    assert any(rec.getMessage() == "reminder failed" for rec in caplog.records)


def test_no_occupied_floors_still_claims_cycle(db, world):
    out = send_monthly_reminders(db, now=datetime(2026, 5, 5, 9, 0, tzinfo=DHAKA), tz="Asia/Dhaka")
    assert (out.skipped, out.created, out.failed) == (False, 0, 0)
    assert send_monthly_reminders(db, now=datetime(2026, 5, 6, tzinfo=DHAKA), tz="Asia/Dhaka").skipped is True
