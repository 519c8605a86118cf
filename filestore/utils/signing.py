"""HMAC-SHA256 signing and verification of URLs.

Parameter names follow the AWS query string authentication scheme with an
``X-Amx`` prefix. The signature covers the whole URL, with query parameters
sorted by name, excluding the signature parameter itself.
"""

import base64
import binascii
import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple, Union
from urllib.parse import SplitResult, parse_qsl, quote_plus, unquote_plus, urlencode, urlsplit, urlunsplit

from filestore.storage.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

SIGNATURE_QUERY_NAME = "X-Amx-Signature"
EXPIRATION_QUERY_NAME = "X-Amx-Expiration"
TIME_QUERY_NAME = "X-Amx-Date"
TIME_FORMAT = "%Y%m%dT%H%M%SZ"
MAX_EXPIRATION = 86400 * 30

Query = List[Tuple[str, str]]


def _key_bytes(signing_key: Union[str, bytes]) -> bytes:
    return signing_key.encode("utf-8") if isinstance(signing_key, str) else signing_key


def _with_query(parts: SplitResult, query: Query) -> str:
    encoded = urlencode(sorted(query, key=lambda kv: kv[0]))
    return urlunsplit(parts._replace(query=encoded))


def _first(query: Query, name: str) -> Optional[str]:
    for key, value in query:
        if key == name:
            return value
    return None


def _sign(data: str, signing_key: bytes) -> bytes:
    return hmac.new(signing_key, data.encode("utf-8"), hashlib.sha256).digest()


def presign_object(
    uri: str,
    signing_key: Union[str, bytes],
    expiration: int,
    now: Optional[datetime] = None,
) -> str:
    """
    Sign a URL so it can be verified later with the same key.

    Args:
        uri: Full URL, with or without existing query parameters
        signing_key: HMAC key
        expiration: Validity in seconds, at most 30 days
        now: Signing time (timezone aware); defaults to the current UTC time

    Returns:
        The URL with date, expiration and signature parameters added

    Raises:
        InvalidInputError: If the expiration is negative or longer than 30 days
    """
    if expiration > MAX_EXPIRATION:
        raise InvalidInputError(
            "Expiration time too long",
            details={"expiration": expiration, "max_expiration": MAX_EXPIRATION},
        )
    if expiration < 0:
        raise InvalidInputError("Expiration time must not be negative", details={"expiration": expiration})

    now = now or datetime.now(timezone.utc)
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append((TIME_QUERY_NAME, now.astimezone(timezone.utc).strftime(TIME_FORMAT)))
    query.append((EXPIRATION_QUERY_NAME, str(expiration)))

    signature = _sign(_with_query(parts, query), _key_bytes(signing_key))
    query.append((SIGNATURE_QUERY_NAME, quote_plus(base64.b64encode(signature).decode("ascii"))))
    return _with_query(parts, query)


def _verify_signature(parts: SplitResult, query: Query, signing_key: bytes) -> bool:
    encoded = _first(query, SIGNATURE_QUERY_NAME)
    if encoded is None:
        return False
    try:
        signature = base64.b64decode(unquote_plus(encoded), validate=True)
    except (binascii.Error, ValueError):
        return False
    unsigned = [(k, v) for k, v in query if k != SIGNATURE_QUERY_NAME]
    expected = _sign(_with_query(parts, unsigned), signing_key)
    return hmac.compare_digest(signature, expected)


def _verify_expiration(query: Query, now: datetime) -> bool:
    try:
        issued = datetime.strptime(_first(query, TIME_QUERY_NAME) or "", TIME_FORMAT)
        seconds = int(_first(query, EXPIRATION_QUERY_NAME) or "")
        expires = issued.replace(tzinfo=timezone.utc) + timedelta(seconds=seconds)
    except (ValueError, OverflowError):
        return False
    return expires > now


def verify_signed_object(
    uri: str,
    signing_key: Union[str, bytes],
    now: Optional[datetime] = None,
) -> bool:
    """Return True only if the signature matches and the URL has not expired.

    Malformed URLs and parameters count as a failed verification.
    """
    try:
        parts = urlsplit(uri)
        query = parse_qsl(parts.query, keep_blank_values=True)
    except ValueError as e:
        logger.debug(f"Unable to parse signed URL: {e}")
        return False

    now = now or datetime.now(timezone.utc)
    signature_ok = _verify_signature(parts, query, _key_bytes(signing_key))
    expiration_ok = _verify_expiration(query, now)
    return signature_ok and expiration_ok
