"""
Calendar Sync Adapter

Pushes committed events to the user's external calendar and answers
free/busy questions for the conflict checker.

Providers:
- none: no external calendar; nothing is synced
- google: Google Calendar v3 REST API over httpx

The adapter never raises. An external failure means the local event is
still created, just without an external id.
"""

import logging
from typing import Callable, Optional, Protocol

import httpx

from ..common.schemas import EventDraft
from ..common.store import DEFAULT_EVENT_LENGTH
from ..common.timeutil import ensure_utc

logger = logging.getLogger("sift.ingest.calendar")

# Given a user id, return an OAuth access token or None if no account is linked
TokenProvider = Callable[[str], Optional[str]]


class CalendarService(Protocol):
    """External calendar capability"""

    def create_event(self, user_id: str, draft: EventDraft) -> Optional[str]:
        ...

    def is_busy(self, user_id: str, start, end) -> bool:
        ...


class NullCalendarService:
    """No external calendar linked"""

    def create_event(self, user_id: str, draft: EventDraft) -> Optional[str]:
        return None

    def is_busy(self, user_id: str, start, end) -> bool:
        return False


class GoogleCalendarService:
    """
    Google Calendar via its REST API.

    Authorization is delegated to ``token_provider``; token refresh is the
    provider's concern.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        api_base: str = "https://www.googleapis.com/calendar/v3",
        calendar_id: str = "primary",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self._token_provider = token_provider
        self._api_base = api_base.rstrip("/")
        self._calendar_id = calendar_id
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self, user_id: str) -> Optional[dict]:
        token = self._token_provider(user_id)
        if not token:
            return None
        return {"Authorization": f"Bearer {token}"}

    def create_event(self, user_id: str, draft: EventDraft) -> Optional[str]:
        headers = self._headers(user_id)
        if headers is None:
            logger.info("No calendar account linked for user %s, skipping sync", user_id)
            return None

        start = ensure_utc(draft.start_time)
        end = ensure_utc(draft.end_time) if draft.end_time else start + DEFAULT_EVENT_LENGTH
        body = {
            "summary": draft.title,
            "start": {"dateTime": start.isoformat()},
            "end": {"dateTime": end.isoformat()},
        }
        if draft.location:
            body["location"] = draft.location

        response = self._client.post(
            f"{self._api_base}/calendars/{self._calendar_id}/events",
            json=body,
            headers=headers,
        )
        response.raise_for_status()
        return response.json().get("id")

    def is_busy(self, user_id: str, start, end) -> bool:
        headers = self._headers(user_id)
        if headers is None:
            return False

        body = {
            "timeMin": ensure_utc(start).isoformat(),
            "timeMax": ensure_utc(end).isoformat(),
            "items": [{"id": self._calendar_id}],
        }
        response = self._client.post(f"{self._api_base}/freeBusy", json=body, headers=headers)
        response.raise_for_status()

        calendars = response.json().get("calendars", {})
        busy = calendars.get(self._calendar_id, {}).get("busy", [])
        return len(busy) > 0


def build_calendar_service(calendar_config, token_provider: Optional[TokenProvider] = None) -> CalendarService:
    """Pick a calendar backend from config"""
    provider = (calendar_config.provider or "none").lower()
    if provider == "google":
        if token_provider is None and calendar_config.access_token:
            token = calendar_config.access_token
            token_provider = lambda _user_id: token  # noqa: E731
        if token_provider is None:
            logger.warning("Google calendar configured without a token provider, sync disabled")
            return NullCalendarService()
        return GoogleCalendarService(
            token_provider,
            api_base=calendar_config.api_base,
            calendar_id=calendar_config.calendar_id,
            timeout=calendar_config.timeout,
        )
    if provider != "none":
        logger.warning("Unsupported calendar provider: %s", provider)
    return NullCalendarService()


class CalendarSyncAdapter:
    """Best-effort wrapper over a CalendarService"""

    def __init__(self, service: Optional[CalendarService] = None):
        self._service = service or NullCalendarService()

    @property
    def service(self) -> CalendarService:
        return self._service

    def create_event(self, user_id: str, draft: EventDraft) -> Optional[str]:
        """
        Create the event externally.

        Returns:
            External event id, or None when nothing was synced
        """
        try:
            return self._service.create_event(user_id, draft)
        except Exception as e:
            logger.warning("Calendar sync failed for user %s (%s): %s", user_id, draft.title, e)
            return None
