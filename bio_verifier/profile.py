"""Fetch and parse the public profile page that carries a member's bio.

The platform serves a client-rendered HTML document. The bio is embedded in
one of several structured-data shapes that have changed over time, so each
known shape gets its own parser and they are tried in a fixed order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, Literal

import aiohttp

from .errors import InvalidHandleError, ParseError

log: Final = logging.getLogger("bio-verifier")

DEFAULT_BASE_URL: Final[str] = "https://www.tiktok.com"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
NOT_FOUND_STATUS_CODE: Final[str] = "10221"

HANDLE_PATTERN: Final = re.compile(r"[A-Za-z0-9_.]{2,24}")

# Android mobile Chrome; desktop and bot user agents get a captcha page.
MOBILE_HEADERS: Final[dict[str, str]] = {
    "sec-ch-ua": '" Not A;Brand";v="99", "Chromium";v="99", "Google Chrome";v="99"',
    "sec-ch-ua-mobile": "?1",
    "sec-ch-ua-platform": '"Android"',
    "upgrade-insecure-requests": "1",
    "User-Agent": (
        "Mozilla/5.0 (Linux; Android 8.0.0; Plume L2) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/99.0.4844.88 Mobile Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
        "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.9"
    ),
    "sec-fetch-site": "none",
    "sec-fetch-mode": "navigate",
    "sec-fetch-user": "?1",
    "sec-fetch-dest": "document",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

_PROFILE_URL = re.compile(
    r"(?:https?://)?(?:[a-z0-9-]+\.)?tiktok\.com/@([A-Za-z0-9_.]+)", re.IGNORECASE
)
_URL_NOISE = re.compile(r"https?://|(?:www\.)?tiktok\.com/?", re.IGNORECASE)
_STATUS_SENTINEL = re.compile(r'"webapp\.user-detail":\s*\{"statusCode":(\d+)')
_REHYDRATION_SCRIPT = re.compile(
    r'<script[^>]*id="__UNIVERSAL_DATA_FOR_REHYDRATION__"[^>]*>([^<]+)</script>'
)
_SIGI_SCRIPT = re.compile(r'<script[^>]*id="SIGI_STATE"[^>]*>([^<]+)</script>')
_RAW_SIGNATURE = re.compile(r'"signature":"((?:[^"\\]|\\.)*)"')
_UNICODE_ESCAPE = re.compile(r"\\u([0-9A-Fa-f]{4})")


def normalize_handle(raw: str | None) -> str | None:
    """Reduce a handle, ``@handle`` or profile URL to the bare handle."""
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None

    match = _PROFILE_URL.search(value)
    if match:
        handle = match.group(1)
    else:
        # Share links without an /@handle path never name the account.
        if "tiktok.com" in value.lower():
            return None
        handle = _URL_NOISE.sub("", value.lstrip("@")).lstrip("@").strip()

    if handle == "undefined" or not HANDLE_PATTERN.fullmatch(handle):
        return None
    return handle


def unescape_bio(text: str) -> str:
    text = text.replace('\\"', '"').replace("\\\\", "\\")
    text = _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), text)
    return text.replace("\\n", "\n")


# ---------- Payload shapes ----------

PayloadShape = Literal["rehydration", "sigi_state", "raw_signature"]


@dataclass(slots=True, frozen=True)
class ProfilePayload:
    """Bio text as found in one known payload shape (may be empty)."""

    shape: PayloadShape
    bio: str


def _load_script_json(pattern: re.Pattern[str], html: str) -> dict | None:
    match = pattern.search(html)
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _dig(data: object, *keys: str) -> object:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_rehydration(html: str) -> ProfilePayload | None:
    data = _load_script_json(_REHYDRATION_SCRIPT, html)
    signature = _dig(
        data, "__DEFAULT_SCOPE__", "webapp.user-detail", "userInfo", "user", "signature"
    )
    if not isinstance(signature, str):
        return None
    return ProfilePayload(shape="rehydration", bio=signature)


def parse_sigi_state(html: str) -> ProfilePayload | None:
    users = _dig(_load_script_json(_SIGI_SCRIPT, html), "UserModule", "users")
    if not isinstance(users, dict) or not users:
        return None
    signature = _dig(next(iter(users.values())), "signature")
    if not isinstance(signature, str):
        return None
    return ProfilePayload(shape="sigi_state", bio=signature)


def parse_raw_signature(html: str) -> ProfilePayload | None:
    match = _RAW_SIGNATURE.search(html)
    if not match:
        return None
    return ProfilePayload(shape="raw_signature", bio=match.group(1))


PAYLOAD_PARSERS: Final[tuple[Callable[[str], ProfilePayload | None], ...]] = (
    parse_rehydration,
    parse_sigi_state,
    parse_raw_signature,
)


def is_not_found_payload(html: str) -> bool:
    match = _STATUS_SENTINEL.search(html)
    return bool(match) and match.group(1) == NOT_FOUND_STATUS_CODE


# ---------- Fetch results ----------

FetchStatus = Literal["found", "empty", "not_found", "unavailable"]


@dataclass(slots=True)
class ProfileFetchResult:
    """Return object describing the result of a profile fetch."""

    status: FetchStatus
    handle: str
    bio: str | None = None
    shape: PayloadShape | None = None
    http_status: int | None = None
    exception: Exception | None = None

    @property
    def terminal(self) -> bool:
        return self.status == "not_found"

    @property
    def retryable(self) -> bool:
        return self.status == "unavailable"


def classify_payload(handle: str, html: str, *, attempt: int = 1) -> ProfileFetchResult:
    """Turn a successfully downloaded profile page into a fetch result."""
    if is_not_found_payload(html):
        log.info("Attempt %d: profile @%s does not exist", attempt, handle)
        return ProfileFetchResult(status="not_found", handle=handle)

    saw_empty: PayloadShape | None = None
    for parser in PAYLOAD_PARSERS:
        payload = parser(html)
        if payload is None:
            continue
        if payload.bio:
            bio = unescape_bio(payload.bio)
            log.info(
                "Attempt %d: got bio for @%s from %s: %r",
                attempt,
                handle,
                payload.shape,
                bio[:80],
            )
            return ProfileFetchResult(
                status="found", handle=handle, bio=bio, shape=payload.shape
            )
        saw_empty = saw_empty or payload.shape

    if saw_empty is not None:
        log.info("Attempt %d: profile @%s has an empty bio", attempt, handle)
        return ProfileFetchResult(status="empty", handle=handle, bio="", shape=saw_empty)

    exc = ParseError(f"Unrecognized profile payload for @{handle}")
    log.warning("Attempt %d: %s (%d bytes)", attempt, exc, len(html))
    return ProfileFetchResult(status="unavailable", handle=handle, exception=exc)


class ProfileFetcher:
    """Single-request profile reader; retries belong to the caller."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def profile_url(self, handle: str) -> str:
        return f"{self._base_url}/@{handle}?_cb={int(time.time() * 1000)}"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def fetch(self, handle: str, *, attempt: int = 1) -> ProfileFetchResult:
        clean = normalize_handle(handle)
        if clean is None:
            raise InvalidHandleError(handle)

        session = await self._get_session()
        try:
            async with session.get(
                self.profile_url(clean),
                headers=MOBILE_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if not 200 <= response.status < 300:
                    log.warning(
                        "Attempt %d: profile fetch for @%s returned HTTP %s",
                        attempt,
                        clean,
                        response.status,
                    )
                    return ProfileFetchResult(
                        status="unavailable", handle=clean, http_status=response.status
                    )
                html = await response.text()
        except UnicodeDecodeError as exc:
            error = ParseError(f"Undecodable profile payload for @{clean}: {exc}")
            log.warning("Attempt %d: %s", attempt, error)
            return ProfileFetchResult(status="unavailable", handle=clean, exception=error)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log.warning(
                "Attempt %d: error fetching profile @%s: %s", attempt, clean, exc
            )
            return ProfileFetchResult(status="unavailable", handle=clean, exception=exc)

        return classify_payload(clean, html, attempt=attempt)
