"""Candidate source adapters: JSON exports and RSS/Atom feeds."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx
from defusedxml import ElementTree

from news_issue.config import IngestSettings
from news_issue.errors import FatalStepError, PipelineError
from news_issue.models import CandidateItem
from news_issue.storage.common import from_iso
from news_issue.text import html_to_text

logger = logging.getLogger(__name__)

UNKNOWN_PUBLISHED_AT = datetime(1970, 1, 1, tzinfo=UTC)
RETRYABLE_HTTP_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class SourceFetchError(PipelineError):
    """A source could not be read right now; the ingest step may retry."""


class CandidateSource(Protocol):
    """Produces normalized candidates for the pool."""

    name: str

    def fetch(self) -> list[CandidateItem]:
        """Return every candidate the source currently offers."""
        raise NotImplementedError


class JsonFileSource:
    """Reads a JSON list (or ``{"candidates": [...]}``) of candidate objects."""

    def __init__(self, path: Path, *, default_module_id: str | None = None) -> None:
        self.path = path
        self.default_module_id = default_module_id
        self.name = f"json:{path.name}"

    def fetch(self) -> list[CandidateItem]:
        try:
            payload = json.loads(self.path.read_text("utf-8"))
        except FileNotFoundError as error:
            raise FatalStepError(f"Candidate file not found: {self.path}") from error
        except json.JSONDecodeError as error:
            raise FatalStepError(f"Invalid candidate JSON in {self.path}: {error}") from error

        items = payload.get("candidates", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise FatalStepError(f"Expected a list of candidates in {self.path}")
        return [self._candidate(item) for item in items]

    def _candidate(self, item: dict[str, Any]) -> CandidateItem:
        try:
            url = str(item["url"])
            title = str(item["title"])
        except KeyError as error:
            raise FatalStepError(f"Candidate in {self.path} is missing {error}") from error
        raw_published = item.get("published_at")
        return CandidateItem(
            candidate_id=str(item.get("id") or build_candidate_id(url)),
            source_name=str(item.get("source") or _extract_domain(url)),
            source_url=url,
            title=title,
            published_at=from_iso(raw_published) if raw_published else UNKNOWN_PUBLISHED_AT,
            description=html_to_text(str(item.get("description") or "")),
            full_text=html_to_text(str(item.get("full_text") or item.get("content") or "")),
            category=item.get("category"),
            module_id=item.get("module_id") or self.default_module_id,
        )


@dataclass(slots=True)
class RssFeedConfig:
    url: str
    module_id: str | None = None
    category: str | None = None


class RssCandidateSource:
    """Fetches RSS 2.0 and Atom feeds over HTTP."""

    def __init__(
        self,
        feeds: Sequence[RssFeedConfig],
        *,
        timeout_seconds: float = 20.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.feeds = list(feeds)
        self.timeout_seconds = timeout_seconds
        self._client = client
        self.name = "rss"

    def fetch(self) -> list[CandidateItem]:
        candidates: list[CandidateItem] = []
        client = self._client or httpx.Client(timeout=self.timeout_seconds, follow_redirects=True)
        try:
            for feed in self.feeds:
                items = parse_feed(self._request(client, feed.url), feed.url)
                for item in items:
                    item.module_id = feed.module_id
                    item.category = item.category or feed.category
                logger.info("Fetched %d items from %s", len(items), feed.url)
                candidates.extend(items)
        finally:
            if self._client is None:
                client.close()
        return candidates

    def _request(self, client: httpx.Client, url: str) -> str:
        try:
            response = client.get(url)
        except httpx.HTTPError as error:
            raise SourceFetchError(f"Feed request failed for {url}: {error}") from error
        if response.status_code in RETRYABLE_HTTP_STATUS_CODES:
            raise SourceFetchError(f"Feed {url} returned HTTP {response.status_code}")
        if response.status_code >= 400:  # noqa: PLR2004
            raise FatalStepError(f"Feed {url} returned HTTP {response.status_code}")
        return response.text


def parse_feed(raw_xml: str, feed_url: str) -> list[CandidateItem]:
    try:
        root = ElementTree.fromstring(raw_xml)
    except ElementTree.ParseError as error:
        raise FatalStepError(f"Invalid RSS/Atom XML from {feed_url}") from error

    root_name = _local_name(root.tag)
    if root_name == "rss":
        channel = root.find("channel")
        return _parse_rss(channel if channel is not None else root, feed_url)
    if root_name == "feed":
        return _parse_atom(root, feed_url)
    raise FatalStepError(f"Unsupported feed format from {feed_url}")


def build_candidate_id(url: str) -> str:
    digest = hashlib.sha1(url.strip().encode("utf-8"), usedforsecurity=False).hexdigest()  # noqa: S324
    return f"cand:{digest}"


def _parse_rss(container: ElementTree.Element, feed_url: str) -> list[CandidateItem]:
    feed_title = _child_text(container, "title")
    results: list[CandidateItem] = []
    for item in container:
        if _local_name(item.tag) != "item":
            continue
        link = _child_text(item, "link") or feed_url
        guid = _child_text(item, "guid")
        results.append(
            CandidateItem(
                candidate_id=build_candidate_id(guid or link),
                source_name=feed_title or _extract_domain(link),
                source_url=link,
                title=_child_text(item, "title") or "Untitled",
                published_at=_parse_datetime(_child_text(item, "pubDate")),
                description=html_to_text(_child_text(item, "description") or ""),
                full_text=html_to_text(_child_text(item, "encoded") or ""),
                category=_child_text(item, "category"),
            ),
        )
    return results


def _parse_atom(root: ElementTree.Element, feed_url: str) -> list[CandidateItem]:
    feed_title = _child_text(root, "title")
    results: list[CandidateItem] = []
    for entry in root:
        if _local_name(entry.tag) != "entry":
            continue
        link = _atom_link(entry) or feed_url
        entry_id = _child_text(entry, "id")
        results.append(
            CandidateItem(
                candidate_id=build_candidate_id(entry_id or link),
                source_name=feed_title or _extract_domain(link),
                source_url=link,
                title=_child_text(entry, "title") or "Untitled",
                published_at=_parse_datetime(
                    _child_text(entry, "published") or _child_text(entry, "updated"),
                ),
                description=html_to_text(_child_text(entry, "summary") or ""),
                full_text=html_to_text(_child_text(entry, "content") or ""),
            ),
        )
    return results


def _atom_link(entry: ElementTree.Element) -> str | None:
    fallback: str | None = None
    for child in entry:
        if _local_name(child.tag) != "link":
            continue
        href = child.attrib.get("href", "").strip()
        if not href:
            continue
        rel = child.attrib.get("rel", "").strip().lower()
        if not rel or rel == "alternate":
            return href
        fallback = fallback or href
    return fallback


def _child_text(element: ElementTree.Element, name: str) -> str | None:
    target = name.lower()
    for child in element:
        if _local_name(child.tag) != target:
            continue
        text = "".join(child.itertext()).strip()
        if text:
            return text
    return None


def _local_name(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1].lower()
    return tag.lower()


def _parse_datetime(raw_value: str | None) -> datetime:
    if not raw_value:
        return UNKNOWN_PUBLISHED_AT
    try:
        parsed = parsedate_to_datetime(raw_value)
    except (TypeError, ValueError):
        try:
            return from_iso(raw_value).astimezone(UTC)
        except ValueError:
            return UNKNOWN_PUBLISHED_AT
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _extract_domain(url: str) -> str:
    return urlparse(url).netloc.lower() or "unknown"


def build_source(settings: IngestSettings) -> CandidateSource | None:
    """Source for the ingest step, or None when nothing is configured."""

    if settings.candidates_file is not None:
        return JsonFileSource(
            settings.candidates_file,
            default_module_id=settings.default_module_id,
        )
    if settings.rss_feeds:
        return RssCandidateSource(
            [
                RssFeedConfig(url=url, module_id=settings.default_module_id)
                for url in settings.rss_feeds
            ],
        )
    return None
