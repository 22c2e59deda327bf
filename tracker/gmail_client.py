"""Gmail API client for fetching application confirmation threads."""

import base64
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from .config import Config
from .models import Message, SideEffectResult, Thread
from .parser import safe_plain_text

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]


def get_credentials() -> Credentials:
    """Get or refresh Gmail API credentials."""
    config_dir = Path(__file__).parent.parent / "config"
    token_path = config_dir / "token.json"
    credentials_path = config_dir / "credentials.json"

    creds = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            logger.info("Refreshing expired credentials")
            creds.refresh(Request())
        else:
            if not credentials_path.exists():
                raise FileNotFoundError(
                    f"Credentials file not found: {credentials_path}. "
                    "Download credentials.json from Google Cloud Console."
                )
            logger.info("Starting OAuth flow for Gmail")
            flow = InstalledAppFlow.from_client_secrets_file(
                str(credentials_path), SCOPES
            )
            creds = flow.run_local_server(port=0)

        with open(token_path, "w") as token:
            token.write(creds.to_json())
            logger.info(f"Saved credentials to {token_path}")

    return creds


def build_gmail_query(config: Config, since: Optional[str] = None) -> str:
    """Build Gmail search query for application confirmations.

    ``since`` is the epoch-seconds watermark of the last successful run.
    """
    quoted = ['"' + phrase.replace('"', "") + '"' for phrase in config.query_phrases]
    phrases = " OR ".join(quoted)
    query = f'newer_than:{config.query_window} -label:"{config.processed_label}" ({phrases})'
    if since:
        query = f"after:{since} {query}"
    return query


def _decode(data: str) -> str:
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def get_email_bodies(message: dict[str, Any]) -> tuple[str, str]:
    """Return the first text/plain and text/html bodies of a message."""
    plain, html_body = "", ""

    def walk(part: dict) -> None:
        nonlocal plain, html_body
        mime = part.get("mimeType", "")
        data = part.get("body", {}).get("data", "")
        if data:
            if mime == "text/plain" and not plain:
                plain = _decode(data)
            elif mime == "text/html" and not html_body:
                html_body = _decode(data)
        for sub in part.get("parts", []) or []:
            walk(sub)

    walk(message.get("payload", {}))
    return plain, html_body


def get_email_headers(message: dict[str, Any]) -> dict[str, str]:
    """Extract common headers from email message."""
    headers = {}
    payload = message.get("payload", {})

    for header in payload.get("headers", []):
        name = header.get("name", "").lower()
        if name in ("from", "to", "subject", "date"):
            headers[name] = header.get("value", "")

    return headers


def get_email_date(message: dict[str, Any], headers: dict[str, str]) -> Optional[datetime]:
    """Message timestamp from internalDate, else the Date header."""
    internal = message.get("internalDate")
    if internal:
        return datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc)
    if headers.get("date"):
        try:
            return parsedate_to_datetime(headers["date"])
        except (TypeError, ValueError):
            logger.debug(f"Unparseable Date header: {headers['date']}")
    return None


def parse_message(message: dict[str, Any]) -> Message:
    """Convert a Gmail API message resource to a Message."""
    headers = get_email_headers(message)
    plain, html_body = get_email_bodies(message)
    return Message(
        id=message.get("id", ""),
        subject=headers.get("subject", ""),
        body=safe_plain_text(plain, html_body),
        sender=headers.get("from", ""),
        date=get_email_date(message, headers),
    )


class GmailSource:
    """Thread search and labelling over the Gmail API."""

    def __init__(self, service=None):
        self.service = service or build("gmail", "v1", credentials=get_credentials())
        self._label_ids: dict[str, str] = {}

    def search(self, query: str) -> list[Thread]:
        logger.info(f"Fetching threads with query: {query}")

        refs = []
        page_token = None
        while True:
            results = (
                self.service.users()
                .threads()
                .list(userId="me", q=query, pageToken=page_token)
                .execute()
            )
            refs.extend(results.get("threads", []))
            page_token = results.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"Found {len(refs)} candidate threads")

        threads = []
        for ref in refs:
            data = (
                self.service.users()
                .threads()
                .get(userId="me", id=ref["id"], format="full")
                .execute()
            )
            messages = [parse_message(m) for m in data.get("messages", [])]
            threads.append(Thread(id=data.get("id", ref["id"]), messages=messages))
        return threads

    def _label_id(self, name: str) -> str:
        if name in self._label_ids:
            return self._label_ids[name]
        labels = self.service.users().labels().list(userId="me").execute().get("labels", [])
        for label in labels:
            if label.get("name") == name:
                self._label_ids[name] = label["id"]
                return label["id"]
        created = (
            self.service.users()
            .labels()
            .create(userId="me", body={"name": name, "labelListVisibility": "labelShow", "messageListVisibility": "show"})
            .execute()
        )
        logger.info(f"Created label {name}")
        self._label_ids[name] = created["id"]
        return created["id"]

    def add_label(self, thread_id: str, name: str) -> SideEffectResult:
        """Label a thread; failures are reported, never raised."""
        try:
            label_id = self._label_id(name)
            self.service.users().threads().modify(
                userId="me", id=thread_id, body={"addLabelIds": [label_id]}
            ).execute()
        except Exception as e:
            logger.debug(f"Could not add label {name} to thread {thread_id}: {e}")
            return SideEffectResult.skipped(str(e))
        return SideEffectResult.succeeded()
