"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger.json import JsonFormatter

from booking_gateway.config import settings


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_quote(
    request_id: str,
    business_slug: str,
    payment_method: str,
    payment_type: str,
    amount_to_pay: float,
    duration_ms: float,
) -> None:
    """Log structured pricing outcome"""
    logging.info(
        "Booking quote computed",
        extra={
            "request_id": request_id,
            "business_slug": business_slug,
            "step": "quote_complete",
            "payment_method": payment_method,
            "payment_type": payment_type,
            "amount_to_pay": amount_to_pay,
            "duration_ms": duration_ms,
        },
    )


def log_conflict_scan(
    business_id: str,
    business_slug: str,
    trigger: str,
    scanned: int,
    conflicts: int,
) -> None:
    """Log the summary of one conflict revalidation run"""
    logging.info(
        "Booking conflict revalidation complete",
        extra={
            "business_id": business_id,
            "business_slug": business_slug,
            "step": "conflict_scan_complete",
            "trigger": trigger,
            "scanned": scanned,
            "conflicts": conflicts,
        },
    )
