"""Conflict revalidation endpoints - manual business scan and the cron sweep"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from booking_gateway.api.dependencies import get_conflict_webhook_client, get_now, get_request_id, require_cron_auth
from booking_gateway.api.v1.schemas import ConflictScanResponse, CronSweepResponse, RevalidateRequest
from booking_gateway.domain.exceptions import BusinessNotFoundError
from booking_gateway.infrastructure.clients.conflict_webhook import ConflictWebhookClient
from booking_gateway.infrastructure.database.session import get_db
from booking_gateway.services.conflict_detection import (
    BusinessScan,
    detect_and_emit_future_booking_conflicts,
    sweep_booking_conflicts,
)
from booking_gateway.utils.date_utils import at_ph

router = APIRouter()


def to_scan_response(scan: BusinessScan) -> ConflictScanResponse:
    return ConflictScanResponse(
        business_id=scan.business_id,
        business_slug=scan.business_slug,
        scanned=scan.result.scanned,
        conflicts=scan.result.conflicts,
    )


def schedule_signal_delivery(
    background_tasks: BackgroundTasks, webhook_client: ConflictWebhookClient, scan: BusinessScan
) -> None:
    for payload in scan.payloads:
        background_tasks.add_task(webhook_client.send_conflict_event, payload)


@router.post("/businesses/{business_slug}/conflicts/revalidate", response_model=ConflictScanResponse)
def revalidate_business(
    business_slug: str,
    background_tasks: BackgroundTasks,
    request: Request,
    request_body: Optional[RevalidateRequest] = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    webhook_client: ConflictWebhookClient = Depends(get_conflict_webhook_client),
):
    """Re-check a business's future bookings after a staffing change"""
    request_id = get_request_id(request)
    request_body = request_body or RevalidateRequest()

    try:
        scan = detect_and_emit_future_booking_conflicts(
            db,
            trigger=request_body.trigger,
            now=now,
            business_slug=business_slug,
            changed_date=at_ph(request_body.changed_date) if request_body.changed_date else None,
        )
        db.commit()

    except BusinessNotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Conflict revalidation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    schedule_signal_delivery(background_tasks, webhook_client, scan)
    return to_scan_response(scan)


@router.get(
    "/cron/booking-conflicts",
    response_model=CronSweepResponse,
    dependencies=[Depends(require_cron_auth)],
)
def cron_booking_conflicts(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    webhook_client: ConflictWebhookClient = Depends(get_conflict_webhook_client),
):
    """Scheduled sweep across businesses on the v2 booking flow"""
    try:
        sweep = sweep_booking_conflicts(db, now)
        db.commit()

    except Exception as e:
        db.rollback()
        logging.error(f"Booking conflict sweep failed: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    for scan in sweep.scans:
        schedule_signal_delivery(background_tasks, webhook_client, scan)

    logging.info(
        "Booking conflict sweep completed",
        extra={
            "businesses": len(sweep.scans),
            "total_scanned": sweep.total_scanned,
            "total_conflicts": sweep.total_conflicts,
        },
    )

    return CronSweepResponse(
        success=True,
        businesses=len(sweep.scans),
        total_scanned=sweep.total_scanned,
        total_conflicts=sweep.total_conflicts,
        per_business=[to_scan_response(scan) for scan in sweep.scans],
        processed_at=now,
    )
