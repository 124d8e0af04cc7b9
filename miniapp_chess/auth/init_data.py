"""
Verification of the signed identity payload ("init data") the host platform hands to the mini-app.

The host signs the payload with a key derived from the bot token:

1. the payload is a URL-encoded query string `key=value&key=value...`, one of the keys being `hash`
2. all other fields, sorted by key, are written as `key=value` lines joined by a newline: the check string
3. secret key = HMAC-SHA256(key="WebAppData", message=bot token)
4. hash = hex(HMAC-SHA256(key=secret key, message=check string))

The server has to repeat exactly these steps, otherwise client and server disagree on the signature.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from urllib.parse import parse_qsl

from pydantic import BaseModel, ValidationError

from miniapp_chess.core.exceptions import (
    ExpiredSessionError,
    MalformedPayloadError,
    SignatureMismatchError,
)

logger = logging.getLogger(__name__)

WEB_APP_DATA_KEY = b"WebAppData"
HASH_FIELD = "hash"
AUTH_DATE_FIELD = "auth_date"
USER_FIELD = "user"

MaxAge = Union[int, float, timedelta]


class InitDataUser(BaseModel):
    """The JSON object in the `user` field. The host sends more fields than these, they are ignored."""

    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    language_code: Optional[str] = None


@dataclass(frozen=True)
class VerifiedUser:
    id: int
    username: Optional[str]
    auth_date: datetime


def parse_init_data(raw_payload: str) -> dict[str, str]:
    """Split the query string into its fields (values are percent-decoded). Every key may only appear once."""
    try:
        pairs = parse_qsl(raw_payload, keep_blank_values=True, strict_parsing=True)
    except ValueError as exc:
        raise MalformedPayloadError(
            f"Cannot parse init data: {exc}", field="init_data"
        ) from exc

    fields: dict[str, str] = {}
    for key, value in pairs:
        if key in fields:
            raise MalformedPayloadError(f"Field {key!r} appears more than once.", field=key)
        fields[key] = value
    return fields


def build_check_string(fields: dict[str, str]) -> str:
    """Every field except the hash, sorted by key, as key=value lines. No trailing newline."""
    return "\n".join(
        f"{key}={value}" for key, value in sorted(fields.items()) if key != HASH_FIELD
    )


def derive_secret_key(bot_token: str) -> bytes:
    return hmac.new(WEB_APP_DATA_KEY, bot_token.encode(), hashlib.sha256).digest()


def compute_hash(fields: dict[str, str], bot_token: str) -> str:
    check_string = build_check_string(fields)
    return hmac.new(
        derive_secret_key(bot_token), check_string.encode(), hashlib.sha256
    ).hexdigest()


def verify_init_data(
    raw_payload: str,
    bot_token: str,
    max_age: Optional[MaxAge] = None,
    now: Optional[float] = None,
) -> VerifiedUser:
    """
    Check the signature of the payload and return who it was issued for.
    ----

    * MalformedPayloadError: not a query string, `hash` / `auth_date` / `user` missing or unreadable
    * SignatureMismatchError: the hash does not match (compared in constant time)
    * ExpiredSessionError: `auth_date` lies more than `max_age` seconds in the past (`max_age=None` skips this check)

    `now` is a unix timestamp, defaults to the current time.
    """
    fields = parse_init_data(raw_payload)
    for required in (HASH_FIELD, AUTH_DATE_FIELD):
        if required not in fields:
            raise MalformedPayloadError(f"Init data has no {required!r} field.", field=required)

    expected_hash = compute_hash(fields, bot_token)
    # compare_digest does not stop at the first differing character
    if not hmac.compare_digest(expected_hash.encode(), fields[HASH_FIELD].encode()):
        logger.warning("Init data signature mismatch")
        raise SignatureMismatchError("Init data signature does not match.", field=HASH_FIELD)

    try:
        auth_date = int(fields[AUTH_DATE_FIELD])
    except ValueError:
        raise MalformedPayloadError(
            f"auth_date is not a unix timestamp: {fields[AUTH_DATE_FIELD]!r}",
            field=AUTH_DATE_FIELD,
        ) from None

    if max_age is not None:
        max_age_seconds = max_age.total_seconds() if isinstance(max_age, timedelta) else max_age
        current_time = time.time() if now is None else now
        if current_time - auth_date > max_age_seconds:
            logger.warning("Init data expired (auth_date=%s)", auth_date)
            raise ExpiredSessionError(
                f"Init data issued at {auth_date} is older than {max_age_seconds:.0f} seconds.",
                field=AUTH_DATE_FIELD,
            )

    user = _parse_user(fields)
    return VerifiedUser(
        id=user.id,
        username=user.username,
        auth_date=datetime.fromtimestamp(auth_date, tz=timezone.utc),
    )


def _parse_user(fields: dict[str, str]) -> InitDataUser:
    if USER_FIELD not in fields:
        raise MalformedPayloadError("Init data has no 'user' field.", field=USER_FIELD)
    try:
        return InitDataUser.model_validate_json(fields[USER_FIELD])
    except ValidationError as exc:
        raise MalformedPayloadError(
            f"Cannot read the user field: {exc.error_count()} error(s)", field=USER_FIELD
        ) from exc
