"""
Client for the verification endpoint (`POST /api/checkInitData`).

Transport problems (no connection, timeouts, 5xx, 408 and 429) are retried. A rejection by the endpoint is final:
the same payload would be rejected again, so it is raised straight away.
"""

import logging
import time
from typing import Optional

import requests

from miniapp_chess.config import Settings
from miniapp_chess.core.exceptions import (
    ExpiredSessionError,
    MalformedPayloadError,
    SignatureMismatchError,
    TransientVerificationError,
    VerificationError,
)

logger = logging.getLogger(__name__)

CHECK_INIT_DATA_PATH = "/api/checkInitData"

# answered by proxies / rate limiters: worth another attempt
RETRY_STATUS = {408, 429}

REJECTIONS: dict[str, type[VerificationError]] = {
    MalformedPayloadError.kind: MalformedPayloadError,
    SignatureMismatchError.kind: SignatureMismatchError,
    ExpiredSessionError.kind: ExpiredSessionError,
}


class RemoteVerifier:
    """Asks the backend to verify init data."""

    def __init__(
        self,
        base_url: str,
        retries: int = 3,
        timeout: float = 10.0,
        retry_delay: float = 0.5,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = base_url.rstrip("/") + CHECK_INIT_DATA_PATH
        self.retries = retries
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "RemoteVerifier":
        return cls(settings.verify_url, retries=settings.verify_retries, session=session)

    def verify(self, raw_payload: str) -> dict:
        """
        Returns the endpoint's answer `{"ok": True, "user_id": ..., "username": ...}`.

        Raises the matching terminal VerificationError when the endpoint rejects the payload (a 401 naming
        a known error kind), and TransientVerificationError once every attempt failed on the way there or
        the answer makes no sense.
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.retries + 1):
            try:
                response = self.session.post(
                    self.url, data={"initData": raw_payload}, timeout=self.timeout
                )
            except requests.exceptions.RequestException as exc:
                logger.warning("Verification request failed (attempt %d/%d): %s", attempt, self.retries, exc)
                last_error = exc
            else:
                if not self._should_retry(response.status_code):
                    return self._read_answer(response)
                logger.warning(
                    "Verification endpoint answered %d (attempt %d/%d)",
                    response.status_code,
                    attempt,
                    self.retries,
                )
                last_error = requests.exceptions.HTTPError(
                    f"{response.status_code} from {self.url}", response=response
                )

            if attempt < self.retries:
                time.sleep(self.retry_delay * attempt)

        raise TransientVerificationError(
            f"Verification endpoint unreachable after {self.retries} attempts: {last_error}"
        )

    @staticmethod
    def _should_retry(status_code: int) -> bool:
        return status_code >= 500 or status_code in RETRY_STATUS

    def _read_answer(self, response: requests.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            raise TransientVerificationError(
                f"Verification endpoint sent no JSON (status {response.status_code})."
            ) from None

        if not isinstance(body, dict):
            raise TransientVerificationError(
                f"Unexpected answer from the verification endpoint (status {response.status_code})."
            )

        if response.status_code == 200 and body.get("ok") is True:
            return body

        kind = body.get("error")
        error_class = REJECTIONS.get(kind) if isinstance(kind, str) else None
        if response.status_code != 401 or error_class is None:
            raise TransientVerificationError(
                f"Unexpected answer from the verification endpoint (status {response.status_code})."
            )

        detail = body.get("detail")
        field = body.get("field")
        raise error_class(
            detail if isinstance(detail, str) else "Init data rejected.",
            field=field if isinstance(field, str) else None,
        )
