"""
alerts.py – Alert när UploadGuard blockerar en uppladdning.

En JSON-payload POST:as till ALERT_WEBHOOK_URL. Fältet "text" gör att
Slack- och Teams-webhooks visar en läsbar rad utan extra mappning.
Utan URL är modulen en no-op.

Miljövariabler:
  ALERT_WEBHOOK_URL      – webhook som tar emot payloaden
  ALERT_WEBHOOK_TIMEOUT  – timeout i sekunder (default 5)
  ALERT_ENV_NAME         – miljönamn i alertet (default "production")
"""

import asyncio
import json
import logging
import os
from urllib import request as urllib_request

from uploadguard.config import env_float
from uploadguard.models import BlockedUploadRecord

logger = logging.getLogger("uploadguard.alerts")

ALERT_WEBHOOK_URL = os.getenv("ALERT_WEBHOOK_URL", "").strip()
ALERT_WEBHOOK_TIMEOUT = env_float("ALERT_WEBHOOK_TIMEOUT", 5.0)
ALERT_ENV_NAME = os.getenv("ALERT_ENV_NAME", "production")


def _severity(record: BlockedUploadRecord) -> str:
    # Executables and bombs are critical; everything else blocked is high.
    if record.critical or record.stage == "archive_bomb":
        return "critical"
    return "high"


def _build_payload(record: BlockedUploadRecord) -> dict:
    severity = _severity(record)
    return {
        "env": ALERT_ENV_NAME,
        "event": "upload_blocked",
        "severity": severity,
        "text": (
            f"[UploadGuard/{ALERT_ENV_NAME}] {severity.upper()}: blocked "
            f"{record.original_name} at {record.stage} ({record.reason})"
        ),
        "filename": record.original_name,
        "stage": record.stage,
        "reason": record.reason,
        "detected_type": record.detected_type,
        "details": record.details,
        "room": record.room,
        "sender": record.sender,
        "client_ip": record.client_ip,
    }


def _send_webhook(payload: dict) -> None:
    """Synkron POST, körs i en tråd. Fel loggas och sväljs."""
    if not ALERT_WEBHOOK_URL:
        return
    req = urllib_request.Request(
        ALERT_WEBHOOK_URL,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib_request.urlopen(req, timeout=ALERT_WEBHOOK_TIMEOUT) as resp:
            logger.info(
                "Alert delivered: file=%s status=%s", payload.get("filename"), resp.status
            )
    except Exception as exc:
        logger.error("Alert webhook failed for %s: %s", payload.get("filename"), exc)


async def maybe_send_alert(record: BlockedUploadRecord) -> None:
    """
    Anropas för varje blockerad fil.
    Alerting får aldrig påverka svaret till klienten.
    """
    if not ALERT_WEBHOOK_URL:
        return
    payload = _build_payload(record)
    logger.warning(
        "Upload alert: file=%s stage=%s severity=%s ip=%s",
        record.original_name, record.stage, payload["severity"], record.client_ip,
    )
    try:
        await asyncio.to_thread(_send_webhook, payload)
    except Exception as exc:
        logger.error("Alert delivery error: %s", exc)
