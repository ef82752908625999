import time
import requests
from typing import Dict, List, Optional
from requests.exceptions import ConnectionError, RequestException, Timeout

from pushtrello.logging_config import get_logger

logger = get_logger(__name__)


class TrelloAPIError(Exception):
    """A Trello request failed. ``status_code`` is None for transport failures."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class TrelloAPI:
    """Trello REST connection layer on a reusable requests session."""
    BASE_URL = "https://api.trello.com/1"
    # Methods safe to resend after a connection error or timeout
    RETRYABLE_METHODS = ("GET", "PUT")

    def __init__(self, api_key, token, timeout: float = 30, max_retries: int = 3, retry_delay: float = 1.0):
        self.api_key = api_key
        self.token = token
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.token)

    def _request(self, method: str, endpoint: str, params: Optional[Dict] = None):
        """
        Make a request, retrying connection errors with exponential backoff.

        Only GET and PUT are retried here; a failed POST is left to the
        caller so a comment is never sent twice from inside one call.

        Raises:
            TrelloAPIError: on HTTP errors or when retries are exhausted
        """
        if not self.is_configured:
            raise TrelloAPIError("Missing Trello configuration (TRELLO_API_KEY / TRELLO_TOKEN)")
        url = f"{self.BASE_URL}{endpoint}"
        query = {"key": self.api_key, "token": self.token}
        if params:
            query.update(params)

        attempts = self.max_retries if method in self.RETRYABLE_METHODS else 1
        for attempt in range(attempts):
            try:
                r = self.session.request(method, url, params=query, timeout=self.timeout)
                r.raise_for_status()
                return r.json() if r.text else None
            except (ConnectionError, Timeout) as e:
                if attempt < attempts - 1:
                    wait_time = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        "Trello connection error, retrying",
                        method=method,
                        endpoint=endpoint,
                        attempt=attempt + 1,
                        wait_seconds=wait_time,
                        error=str(e),
                    )
                    time.sleep(wait_time)
                    continue
                raise TrelloAPIError(
                    f"{method} {endpoint} failed after {attempts} attempt(s): {e}"
                ) from e
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                body = e.response.text[:200] if e.response is not None else ""
                raise TrelloAPIError(f"{method} {endpoint} returned {status}: {body}", status_code=status) from e
            except (RequestException, ValueError) as e:
                raise TrelloAPIError(f"{method} {endpoint} failed: {e}") from e

    # -------------------------
    # Cards
    # -------------------------
    def post_comment(self, card_id: str, text: str) -> Dict:
        return self._request("POST", f"/cards/{card_id}/actions/comments", params={"text": text})

    def get_card(self, card_id: str) -> Dict:
        return self._request("GET", f"/cards/{card_id}")

    def move_card(self, card_id: str, list_id: str) -> Dict:
        return self._request("PUT", f"/cards/{card_id}", params={"idList": list_id})

    # -------------------------
    # Boards
    # -------------------------
    def get_board(self, board_id: str) -> Dict:
        return self._request("GET", f"/boards/{board_id}")

    def get_board_lists(self, board_id: str) -> List[Dict]:
        return self._request("GET", f"/boards/{board_id}/lists") or []
