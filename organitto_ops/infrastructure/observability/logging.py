"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from organitto_ops.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level and service name to every record"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger"""
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)


def log_decision(
    request_id: str,
    actor_id: str,
    kind: str,
    record_id: str,
    outcome: str,
    duration_ms: float,
) -> None:
    """Log a recorded approval decision"""
    logging.info(
        "Decision recorded",
        extra={
            "request_id": request_id,
            "actor_id": actor_id,
            "step": "decision_complete",
            "kind": kind,
            "record_id": record_id,
            "outcome": outcome,
            "duration_ms": duration_ms,
        },
    )


def log_stage_advance(
    request_id: str,
    actor_id: str,
    product_id: str,
    stage: str,
    duration_ms: Optional[float] = None,
) -> None:
    """Log a product moving to its next stage"""
    logging.info(
        "Stage advanced",
        extra={
            "request_id": request_id,
            "actor_id": actor_id,
            "step": "stage_advance",
            "product_id": product_id,
            "stage": stage,
            "duration_ms": duration_ms,
        },
    )
