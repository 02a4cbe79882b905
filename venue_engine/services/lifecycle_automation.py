"""
Automated booking sweeps run by the worker cron.

Handles in_progress → post_event once the host report is in and the grace
period after the event has passed, and backfills balance scheduling for
deposit-paid bookings that never got balance jobs.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import exists
from sqlalchemy.orm import Session

from ..config import POST_EVENT_GRACE_HOURS
from ..enums import (
    FAMILY_JOB_TYPES,
    BookingType,
    HostReportStatus,
    JobFamily,
    LifecycleStatus,
    PaymentStatus,
)
from ..exceptions import BookingEngineError
from ..models import Booking, BookingHostReport, ScheduledJob
from .audit import record_event
from .catch_up import event_end
from .crm_sync import CrmSyncClient, sync_quietly
from .intervals import DAILY_SENTINEL_END, local_today, to_instant

logger = logging.getLogger(__name__)


def post_event_due_at(booking: Booking) -> datetime:
    """Event end + grace; a daily booking ends at the close of its day"""
    if booking.booking_type == BookingType.DAILY:
        end = to_instant(booking.event_date, DAILY_SENTINEL_END)
    else:
        end = event_end(booking)
    return end + timedelta(hours=POST_EVENT_GRACE_HOURS)


async def transition_post_event_bookings(db: Session, now: datetime, crm: CrmSyncClient) -> dict:
    """
    Move in_progress bookings to post_event.

    Both conditions are required: a submitted host report and event end +
    POST_EVENT_GRACE_HOURS in the past.

    Returns:
        dict: Summary of the sweep
    """
    summary = {"checked": 0, "transitioned": 0, "waiting_for_report": 0, "crm_sync_failed": 0}

    candidates = (
        db.query(Booking)
        .filter(
            Booking.lifecycle_status == LifecycleStatus.IN_PROGRESS,
            Booking.event_date <= local_today(now),
        )
        .all()
    )

    transitioned = []
    try:
        for booking in candidates:
            summary["checked"] += 1
            if post_event_due_at(booking) > now:
                continue

            report = (
                db.query(BookingHostReport)
                .filter(
                    BookingHostReport.booking_id == booking.id,
                    BookingHostReport.status == HostReportStatus.SUBMITTED,
                )
                .first()
            )
            if not report:
                summary["waiting_for_report"] += 1
                logger.debug(f"ℹ️ Booking {booking.id} past grace period but host report not submitted")
                continue

            booking.lifecycle_status = LifecycleStatus.POST_EVENT
            booking.updated_at = now
            transitioned.append(booking)
            logger.info(f"✅ Booking {booking.id} transitioned: in_progress → post_event")

        if transitioned:
            db.commit()
    except Exception as e:
        logger.error(f"❌ Error transitioning bookings to post_event: {str(e)}")
        db.rollback()
        raise

    for booking in transitioned:
        record_event(
            db,
            booking.id,
            "lifecycle_status_changed",
            {
                "from": LifecycleStatus.IN_PROGRESS,
                "to": LifecycleStatus.POST_EVENT,
                "reason": "host_report_submitted_and_grace_elapsed",
            },
        )
        if not await sync_quietly(crm, booking.id):
            summary["crm_sync_failed"] += 1

    summary["transitioned"] = len(transitioned)
    if transitioned:
        logger.info(f"📊 Post-event sweep summary: {summary}")
    return summary


async def backfill_balance_scheduling(db: Session, planner, now: datetime) -> dict:
    """
    Plan balance payments for deposit-paid bookings with no balance jobs at all.

    Catches bookings whose deposit webhook ran before balance planning existed
    or failed mid-flight. One failing booking does not stop the sweep.
    """
    summary = {"checked": 0, "scheduled": 0, "skipped": 0, "errors": 0}

    has_balance_jobs = exists().where(
        ScheduledJob.booking_id == Booking.id,
        ScheduledJob.job_type.in_(FAMILY_JOB_TYPES[JobFamily.BALANCE]),
    )
    bookings = (
        db.query(Booking)
        .filter(
            Booking.payment_status == PaymentStatus.DEPOSIT_PAID,
            Booking.lifecycle_status != LifecycleStatus.CANCELLED,
            Booking.event_date >= local_today(now),
            ~has_balance_jobs,
        )
        .order_by(Booking.event_date.asc())
        .all()
    )

    for booking in bookings:
        summary["checked"] += 1
        try:
            result = await planner.plan_balance_payments(booking.id, now=now)
        except BookingEngineError as e:
            summary["errors"] += 1
            logger.error(f"❌ Balance backfill failed for booking {booking.id}: {e.message}")
            continue

        if result.jobs_created or result.link_created:
            summary["scheduled"] += 1
        else:
            summary["skipped"] += 1

    logger.info(f"🔄 Balance backfill summary: {summary}")
    return summary
