"""Twitter/X verification.

- Tweet fetch: TwitterAPI.io via TWITTERAPI_IO_API_KEY (cheaper), else the
  official API v2 via TWITTER_BEARER_TOKEN.
- Follow check: official API v2 only (TWITTER_BEARER_TOKEN + TWITTER_ACCOUNT_ID).

Network and API errors never escape this module: a failed follow lookup is
"not following", a failed tweet fetch is "not found".
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib import request as urlrequest
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode

from loguru import logger


TWITTER_API_BASE = "https://api.twitter.com/2"
TWITTERAPI_IO_BASE = "https://api.twitterapi.io"

FOLLOWERS_MAX_PAGES = 20
FOLLOWERS_PAGE_SIZE = 1000

REF_QUOTED = "quoted"
REF_RETWEETED = "retweeted"
REF_REPLIED_TO = "replied_to"

_TWEET_URL_RE = re.compile(r"(?:twitter\.com|x\.com)/[^/]+/status/(\d+)", re.IGNORECASE)


def _strip_at(handle: str) -> str:
    handle = (handle or "").strip()
    return handle[1:] if handle.startswith("@") else handle


@dataclass(frozen=True)
class VerificationCapabilities:
    """Which external checks this deployment can run. Injected into the claim engine."""

    follow_check_enabled: bool = False
    post_check_enabled: bool = False
    account_id: Optional[str] = None
    handle: str = "abc"

    @classmethod
    def from_env(cls) -> "VerificationCapabilities":
        bearer = os.getenv("TWITTER_BEARER_TOKEN") or None
        io_key = os.getenv("TWITTERAPI_IO_API_KEY") or None
        account_id = os.getenv("TWITTER_ACCOUNT_ID") or None
        return cls(
            follow_check_enabled=bool(bearer and account_id),
            post_check_enabled=bool(io_key or bearer),
            account_id=account_id,
            handle=_strip_at(os.getenv("TWITTER_USERNAME", "abc")),
        )

    def to_dict(self) -> dict:
        return {
            "twitter_verification_enabled": self.follow_check_enabled,
            "twitter_tweet_verification_enabled": self.post_check_enabled,
        }


@dataclass(frozen=True)
class PostInfo:
    author_id: str
    text: str = ""
    referenced: frozenset = field(default_factory=frozenset)

    @property
    def is_quote(self) -> bool:
        return REF_QUOTED in self.referenced

    @property
    def is_repost(self) -> bool:
        return REF_RETWEETED in self.referenced

    @property
    def is_reply(self) -> bool:
        return REF_REPLIED_TO in self.referenced

    def mentions(self, handle: str) -> bool:
        h = _strip_at(handle).lower()
        return f"@{h}" in (self.text or "").lower()


def parse_tweet_url(url) -> Optional[str]:
    """Tweet id from an x.com / twitter.com status link, or None."""
    if not url or not isinstance(url, str):
        return None
    match = _TWEET_URL_RE.search(url.strip())
    return match.group(1) if match else None


def _http_get_json(url: str, headers: dict, timeout: int = 12) -> tuple[int, Optional[dict]]:
    """GET a JSON document. Returns (status, body); body is None on non-2xx."""
    req = urlrequest.Request(url, headers={"Accept": "application/json", **headers})
    try:
        with urlrequest.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
            return resp.status, (json.loads(raw) if raw else {})
    except HTTPError as e:
        return e.code, None


class TwitterVerifier:
    def __init__(self, bearer_token: Optional[str] = None, twitterapi_io_key: Optional[str] = None, timeout: int = 12):
        self.bearer_token = bearer_token
        self.twitterapi_io_key = twitterapi_io_key
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "TwitterVerifier":
        return cls(
            bearer_token=os.getenv("TWITTER_BEARER_TOKEN") or None,
            twitterapi_io_key=os.getenv("TWITTERAPI_IO_API_KEY") or None,
        )

    def _official_get(self, path: str, params: dict) -> tuple[int, Optional[dict]]:
        if not self.bearer_token:
            raise RuntimeError("Twitter API not configured")
        url = f"{TWITTER_API_BASE}{path}?{urlencode(params)}"
        return _http_get_json(url, {"Authorization": f"Bearer {self.bearer_token}"}, self.timeout)

    # ---- follow check ----

    def user_follows(self, social_id: str, account_id: str) -> bool:
        """Page through the followers of `account_id` looking for `social_id`."""
        if not social_id or not account_id:
            return False
        next_token = None
        try:
            for _ in range(FOLLOWERS_MAX_PAGES):
                params = {"max_results": str(FOLLOWERS_PAGE_SIZE), "user.fields": "id"}
                if next_token:
                    params["pagination_token"] = next_token
                status, data = self._official_get(f"/users/{quote(account_id, safe='')}/followers", params)
                if data is None:
                    logger.warning(f"TWITTER: followers API error {status} for account {account_id}")
                    return False
                ids = [u.get("id") for u in (data.get("data") or [])]
                if social_id in ids:
                    return True
                next_token = (data.get("meta") or {}).get("next_token")
                if not next_token:
                    break
        except (URLError, OSError, ValueError, RuntimeError) as e:
            logger.warning(f"TWITTER: follow check failed for {social_id}: {e}")
            return False
        return False

    # ---- tweet fetch ----

    def fetch_post(self, post_id: str) -> Optional[PostInfo]:
        try:
            if self.twitterapi_io_key:
                return self._fetch_via_twitterapi_io(post_id)
            if self.bearer_token:
                return self._fetch_via_official_api(post_id)
        except (URLError, OSError, ValueError) as e:
            logger.warning(f"TWITTER: could not fetch tweet {post_id}: {e}")
        return None

    def _fetch_via_twitterapi_io(self, post_id: str) -> Optional[PostInfo]:
        url = f"{TWITTERAPI_IO_BASE}/twitter/tweets?{urlencode({'tweet_ids': post_id})}"
        status, data = _http_get_json(url, {"X-API-Key": self.twitterapi_io_key}, self.timeout)
        if data is None:
            if status != 404:
                logger.warning(f"TWITTER: TwitterAPI.io error {status} for tweet {post_id}")
            return None

        tweets = data.get("tweets")
        if data.get("status") == "error" or not isinstance(tweets, list) or not tweets:
            return None

        tweet = tweets[0]
        author_id = (tweet.get("author") or {}).get("id")
        if not author_id:
            return None

        referenced = set()
        if tweet.get("retweeted_tweet"):
            referenced.add(REF_RETWEETED)
        if tweet.get("quoted_tweet"):
            referenced.add(REF_QUOTED)
        if tweet.get("isReply"):
            referenced.add(REF_REPLIED_TO)
        return PostInfo(author_id=str(author_id), text=tweet.get("text") or "", referenced=frozenset(referenced))

    def _fetch_via_official_api(self, post_id: str) -> Optional[PostInfo]:
        status, data = self._official_get(
            f"/tweets/{quote(post_id, safe='')}",
            {"tweet.fields": "author_id,created_at,referenced_tweets", "expansions": "author_id"},
        )
        if data is None:
            if status != 404:
                logger.warning(f"TWITTER: API v2 error {status} for tweet {post_id}")
            return None

        tweet = data.get("data")
        if not tweet or not tweet.get("author_id"):
            return None
        referenced = frozenset(r.get("type") for r in (tweet.get("referenced_tweets") or []) if r.get("type"))
        return PostInfo(author_id=str(tweet["author_id"]), text=tweet.get("text") or "", referenced=referenced)
