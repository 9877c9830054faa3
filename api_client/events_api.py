"""HTTP client for the events review REST API."""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


class EventsApiError(Exception):
    """Base error for events API calls."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FetchError(EventsApiError):
    """Raised when reading events or stats fails."""


class UpdateError(EventsApiError):
    """Raised when a write to the events API fails."""


class EventsApiClient:
    """Client for the /api/events endpoints."""

    EVENTS_PATH = "/api/events"
    STATS_PATH = "/api/events/stats"

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the events API client.

        Args:
            base_url: Server root, e.g. "http://localhost:8080"
            timeout: HTTP request timeout in seconds (default: 30)
            token: Optional bearer token for authenticated servers
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        if token:
            self.session.headers.update({'Authorization': f'Bearer {token}'})

    def get_events(self) -> List[Dict[str, Any]]:
        """
        Fetch the full event collection.

        Returns:
            List of raw event dictionaries

        Raises:
            FetchError: On network failure, non-2xx status or bad JSON
        """
        events = self._read(self.EVENTS_PATH)
        if events is None:
            return []
        if not isinstance(events, list):
            raise FetchError(
                f"Expected a list of events, got {type(events).__name__}"
            )
        logger.info(f"Fetched {len(events)} events")
        return events

    def get_stats(self) -> Dict[str, Any]:
        """
        Fetch the event summary.

        Raises:
            FetchError: On network failure, non-2xx status or bad JSON
        """
        return self._read(self.STATS_PATH) or {}

    def patch_event(self, uid: str, recurrence_id: Optional[str], **fields: Any) -> None:
        """
        Send a partial update for one event occurrence.

        Args:
            uid: Event UID
            recurrence_id: Occurrence ID, None and "" both mean no recurrence
            **fields: Fields to patch (rejected, organization or type)

        Raises:
            UpdateError: On network failure or non-2xx status
        """
        body = {'recurrence_id': recurrence_id or ''}
        body.update(fields)
        self._write('PATCH', self._event_path(uid), json=body)

    def set_overlay(
        self,
        uid: str,
        field: str,
        value: str,
        merge_logic: str,
        reason: str
    ) -> None:
        """
        Set a manual overlay for one field of an event.

        Raises:
            UpdateError: On network failure or non-2xx status
        """
        body = {
            'field': field,
            'value': value,
            'mergeLogic': merge_logic,
            'reason': reason
        }
        self._write('POST', f"{self._event_path(uid)}/overlay", json=body)

    def delete_overlay(self, uid: str, field: str) -> None:
        """
        Remove the manual overlay for one field of an event.

        Raises:
            UpdateError: On network failure or non-2xx status
        """
        path = f"{self._event_path(uid)}/overlay/{quote(field, safe='')}"
        self._write('DELETE', path)

    def _event_path(self, uid: str) -> str:
        return f"{self.EVENTS_PATH}/{quote(uid, safe='')}"

    def _read(self, path: str) -> Any:
        """
        GET a JSON document. One attempt only.

        Raises:
            FetchError: If the request fails or the body is not JSON
        """
        url = self.base_url + path
        logger.debug(f"GET {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request to {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(
                f"Invalid JSON from {url}: {e}",
                status_code=response.status_code
            ) from e

    def _write(self, method: str, path: str, json: Optional[dict] = None) -> None:
        """
        Send a write request. The response body is ignored.

        Raises:
            UpdateError: If the request fails or the status is not 2xx
        """
        url = self.base_url + path
        logger.debug(f"{method} {url}")

        try:
            response = self.session.request(
                method,
                url,
                json=json,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise UpdateError(f"{method} {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise UpdateError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code
            )
