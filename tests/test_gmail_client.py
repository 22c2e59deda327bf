"""Tests for Gmail query building, message parsing and labelling."""

import base64
from datetime import datetime, timezone
from unittest.mock import MagicMock

from tracker.gmail_client import GmailSource, build_gmail_query, parse_message


def encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


class TestBuildQuery:
    def test_window_label_and_phrases(self, config):
        config = config.model_copy(update={"query_phrases": ["application received", 'say "hi"']})
        assert build_gmail_query(config) == (
            'newer_than:2d -label:"Jobs/Processed" ("application received" OR "say hi")'
        )

    def test_watermark_prefix(self, config):
        query = build_gmail_query(config, "1767614400")
        assert query.startswith('after:1767614400 newer_than:2d -label:"Jobs/Processed" (')
        assert '"thank you for applying"' in query


class TestParseMessage:
    def test_multipart_prefers_plain_text(self):
        message = {
            "id": "m1",
            "internalDate": "1767614400000",
            "payload": {
                "mimeType": "multipart/alternative",
                "headers": [
                    {"name": "Subject", "value": "Application received"},
                    {"name": "From", "value": "Acme Careers <careers@acme.com>"},
                ],
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": encode("Hello there")}},
                    {"mimeType": "text/html", "body": {"data": encode("<p>Ignored</p>")}},
                ],
            },
        }
        parsed = parse_message(message)

        assert parsed.id == "m1"
        assert parsed.subject == "Application received"
        assert parsed.sender == "Acme Careers <careers@acme.com>"
        assert parsed.body == "Hello there"
        assert parsed.date == datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)

    def test_html_only_is_stripped(self):
        message = {
            "payload": {
                "mimeType": "text/html",
                "headers": [{"name": "Date", "value": "Mon, 05 Jan 2026 09:30:00 -0500"}],
                "body": {"data": encode("<div><p>Hi there</p></div>")},
            },
        }
        parsed = parse_message(message)

        assert "Hi there" in parsed.body
        assert "<p>" not in parsed.body
        assert parsed.date.year == 2026 and parsed.date.day == 5

    def test_missing_parts(self):
        parsed = parse_message({"payload": {}})
        assert parsed.body == ""
        assert parsed.date is None


class TestGmailSource:
    def test_search_follows_pages(self):
        service = MagicMock()
        threads = service.users.return_value.threads.return_value
        threads.list.return_value.execute.side_effect = [
            {"threads": [{"id": "a"}], "nextPageToken": "p2"},
            {"threads": [{"id": "b"}]},
        ]
        threads.get.return_value.execute.side_effect = [
            {"id": "a", "messages": [{"id": "m1", "payload": {}}]},
            {"id": "b", "messages": []},
        ]

        result = GmailSource(service).search("q")

        assert [t.id for t in result] == ["a", "b"]
        assert result[0].latest.id == "m1"
        assert result[1].latest is None
        assert threads.list.call_args_list[1].kwargs["pageToken"] == "p2"

    def test_add_label_uses_existing_label(self):
        service = MagicMock()
        users = service.users.return_value
        users.labels.return_value.list.return_value.execute.return_value = {
            "labels": [{"name": "Jobs/Processed", "id": "L1"}]
        }

        result = GmailSource(service).add_label("t1", "Jobs/Processed")

        assert result.ok
        modify = users.threads.return_value.modify
        assert modify.call_args.kwargs["body"] == {"addLabelIds": ["L1"]}
        users.labels.return_value.create.assert_not_called()

    def test_add_label_creates_missing_label_once(self):
        service = MagicMock()
        users = service.users.return_value
        users.labels.return_value.list.return_value.execute.return_value = {"labels": []}
        users.labels.return_value.create.return_value.execute.return_value = {"id": "L2"}
        source = GmailSource(service)

        source.add_label("t1", "Jobs/Processed")
        source.add_label("t2", "Jobs/Processed")

        assert users.labels.return_value.create.call_count == 1
        assert users.threads.return_value.modify.call_args.kwargs["body"] == {"addLabelIds": ["L2"]}

    def test_add_label_failure_is_reported(self):
        service = MagicMock()
        users = service.users.return_value
        users.labels.return_value.list.return_value.execute.return_value = {
            "labels": [{"name": "Jobs/Processed", "id": "L1"}]
        }
        users.threads.return_value.modify.return_value.execute.side_effect = RuntimeError("forbidden")

        result = GmailSource(service).add_label("t1", "Jobs/Processed")

        assert not result.ok
        assert result.reason == "forbidden"
