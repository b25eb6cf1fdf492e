from unittest.mock import MagicMock, Mock, patch

import pytest

from assistant.services.slack_service import SlackService, split_message


class TestSplitMessage:
    def test_short_text_untouched(self):
        assert split_message("hello", 10) == ["hello"]

    def test_prefers_newline(self):
        assert split_message("line one\nline two", 12) == ["line one", "line two"]

    def test_falls_back_to_space(self):
        assert split_message("alpha beta gamma", 11) == ["alpha beta", "gamma"]

    def test_hard_cut_without_separator(self):
        assert split_message("abcdefghij", 4) == ["abcd", "efgh", "ij"]

    def test_every_part_within_limit(self):
        text = ("word " * 900).strip()
        parts = split_message(text, 3000)
        assert len(parts) == 2
        assert all(len(p) <= 3000 for p in parts)

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            split_message("x", 0)


def _mock_client(mock_client_class, payload):
    mock_client = MagicMock()
    mock_client_class.return_value.__enter__.return_value = mock_client
    mock_client.post.return_value = Mock(json=Mock(return_value=payload))
    mock_client.get.return_value = Mock(json=Mock(return_value=payload))
    return mock_client


class TestSlackService:
    @patch("assistant.services.slack_service.httpx.Client")
    def test_post_message_in_thread(self, mock_client_class):
        client = _mock_client(mock_client_class, {"ok": True, "ts": "1700.2"})

        assert SlackService("xoxb-test").post_message("C1", "hi", thread_ts="1700.1") is True

        url = client.post.call_args[0][0]
        kwargs = client.post.call_args[1]
        assert url == "https://slack.com/api/chat.postMessage"
        assert kwargs["json"] == {"channel": "C1", "text": "hi", "mrkdwn": True, "thread_ts": "1700.1"}
        assert kwargs["headers"]["Authorization"] == "Bearer xoxb-test"

    @patch("assistant.services.slack_service.httpx.Client")
    def test_post_message_api_error(self, mock_client_class):
        _mock_client(mock_client_class, {"ok": False, "error": "channel_not_found"})
        assert SlackService("xoxb-test").post_message("C1", "hi") is False

    @patch("assistant.services.slack_service.httpx.Client")
    def test_network_error_is_not_raised(self, mock_client_class):
        mock_client_class.return_value.__enter__.side_effect = Exception("Network error")
        assert SlackService("xoxb-test").post_message("C1", "hi") is False

    @patch("assistant.services.slack_service.httpx.Client")
    def test_deliver_splits_long_text(self, mock_client_class):
        client = _mock_client(mock_client_class, {"ok": True})

        delivered = SlackService("xoxb-test", max_message_chars=10).deliver("C1", "first part\nsecond", "1700.1")

        assert delivered is True
        texts = [c[1]["json"]["text"] for c in client.post.call_args_list]
        assert texts == ["first part", "second"]

    @patch("assistant.services.slack_service.httpx.Client")
    def test_resolve_channel_name(self, mock_client_class):
        client = _mock_client(mock_client_class, {"ok": True, "channel": {"id": "C1", "name": "artemishelp"}})

        assert SlackService("xoxb-test").resolve_channel_name("C1") == "artemishelp"
        assert client.get.call_args[1]["params"] == {"channel": "C1"}

    @patch("assistant.services.slack_service.httpx.Client")
    def test_resolve_channel_name_falls_back_to_id(self, mock_client_class):
        _mock_client(mock_client_class, {"ok": False, "error": "missing_scope"})
        assert SlackService("xoxb-test").resolve_channel_name("C1") == "C1"
