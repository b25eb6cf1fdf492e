from typing import Optional

import httpx

from assistant.logging_config import get_logger

logger = get_logger("slack_service")

SLACK_MAX_MESSAGE_CHARS = 3000


def split_message(text: str, max_chars: int = SLACK_MAX_MESSAGE_CHARS) -> list[str]:
    """Split text into parts of at most max_chars.

    Each cut is made at the last newline under the limit, else the last space,
    else a hard cut at the limit.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be >= 1")
    if len(text) <= max_chars:
        return [text]

    parts = []
    remaining = text
    while len(remaining) > max_chars:
        window = remaining[: max_chars + 1]
        cut = window.rfind("\n", 0, max_chars + 1)
        if cut <= 0:
            cut = window.rfind(" ", 0, max_chars + 1)
        if cut <= 0:
            parts.append(remaining[:max_chars])
            remaining = remaining[max_chars:]
            continue
        parts.append(remaining[:cut])
        # The separator itself is dropped.
        remaining = remaining[cut + 1 :]
    if remaining:
        parts.append(remaining)
    return parts


class SlackService:
    """Service for sending messages to Slack via the Web API."""

    BASE_URL = "https://slack.com/api"

    def __init__(self, bot_token: str, max_message_chars: int = SLACK_MAX_MESSAGE_CHARS, base_url: Optional[str] = None):
        self.bot_token = bot_token
        self.max_message_chars = max_message_chars
        self.base_url = (base_url or self.BASE_URL).rstrip("/")

    def _make_request(self, method: str, data: Optional[dict] = None, http_method: str = "POST") -> dict:
        """Make request to Slack Web API."""
        url = f"{self.base_url}/{method}"
        headers = {"Authorization": f"Bearer {self.bot_token}"}
        try:
            with httpx.Client(timeout=30.0) as client:
                if http_method == "GET":
                    response = client.get(url, params=data or {}, headers=headers)
                else:
                    response = client.post(url, json=data or {}, headers=headers)
                return response.json()
        except Exception as e:
            logger.error(f"Slack API error: {e}")
            return {"ok": False, "error": str(e)}

    def post_message(self, channel_id: str, text: str, thread_ts: Optional[str] = None) -> bool:
        data = {"channel": channel_id, "text": text, "mrkdwn": True}
        if thread_ts:
            data["thread_ts"] = thread_ts

        result = self._make_request("chat.postMessage", data)
        if result.get("ok"):
            logger.info(f"Posted to channel={channel_id} ts={result.get('ts')}")
            return True
        logger.error(
            "Slack post failed",
            extra={"context": {"channel_id": channel_id, "error": result.get("error")}},
        )
        return False

    def deliver(self, channel_id: str, text: str, reply_target: Optional[str] = None) -> bool:
        """Post text, split into sequential parts if it exceeds the platform limit."""
        parts = split_message(text, self.max_message_chars)
        if len(parts) > 1:
            logger.info(f"Splitting message into {len(parts)} parts for channel={channel_id}")
        delivered = True
        for part in parts:
            if not self.post_message(channel_id, part, thread_ts=reply_target):
                delivered = False
        return delivered

    def resolve_channel_name(self, channel_id: str) -> str:
        """Channel name via conversations.info; the id itself when lookup fails."""
        result = self._make_request("conversations.info", {"channel": channel_id}, http_method="GET")
        channel = result.get("channel") if result.get("ok") else None
        if isinstance(channel, dict) and channel.get("name"):
            return channel["name"]
        logger.warning(f"Could not resolve channel name for {channel_id}: {result.get('error')}")
        return channel_id
