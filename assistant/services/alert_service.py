"""Operational alerts posted to an ops Slack channel through an incoming webhook."""

from typing import Optional

import httpx

from assistant.config import settings
from assistant.logging_config import get_logger

logger = get_logger("alert_service")

LEVEL_STYLE = {
    "INFO": (":information_source:", "#439FE0"),
    "WARNING": (":warning:", "warning"),
    "ERROR": (":x:", "danger"),
    "CRITICAL": (":fire:", "danger"),
}


def build_alert_payload(level: str, message: str, context: Optional[dict] = None) -> dict:
    emoji, color = LEVEL_STYLE.get(level, (":loudspeaker:", "#808080"))
    payload: dict = {"text": f"{emoji} *{level}* {message}"}
    if context:
        payload["attachments"] = [
            {
                "color": color,
                "fields": [{"title": str(k), "value": f"`{v}`", "short": True} for k, v in context.items()],
            }
        ]
    return payload


def send_alert(level: str, message: str, context: Optional[dict] = None, webhook_url: Optional[str] = None) -> bool:
    """Post an alert. Returns False (never raises) when unconfigured or the webhook fails."""
    url = webhook_url if webhook_url is not None else settings.alert_webhook_url
    if not url:
        logger.warning(f"Alert webhook not configured, dropping {level} alert: {message}")
        return False

    try:
        with httpx.Client(timeout=10) as client:
            response = client.post(url, json=build_alert_payload(level, message, context))
    except Exception as e:
        logger.error(f"Failed to send alert: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"Alert webhook rejected: status={response.status_code}")
        return False
    return True


def alert_error(message: str, context: Optional[dict] = None) -> bool:
    return send_alert("ERROR", message, context)
