"""Multi-pass duplicate detection.

Passes run cheapest first: historical hash match against recently published
issues, exact content hash, title word-set Jaccard similarity, and embedding
cosine similarity. An item placed in a group by an earlier pass is never
reconsidered, so groups are disjoint.
"""

from __future__ import annotations

import hashlib
from collections import defaultdict, deque
from collections.abc import Callable

from news_issue.dedup.embedder import Embedder, Vector, cosine_similarity
from news_issue.models import CandidateItem, DetectionMethod, DuplicateGroup, DuplicateMember
from news_issue.text import content_hash, jaccard_similarity, normalize_content, title_words

_TOPIC_SIGNATURE_MAX_CHARS = 200


class DuplicateDetector:
    """Groups duplicate candidates of one issue."""

    def __init__(
        self,
        *,
        strictness_threshold: float,
        semantic_threshold: float,
        embedder: Embedder | None = None,
    ) -> None:
        self.strictness_threshold = strictness_threshold
        self.semantic_threshold = semantic_threshold
        self.embedder = embedder

    def detect(
        self,
        *,
        issue_id: str,
        candidates: list[CandidateItem],
        published_hashes: dict[str, str] | None = None,
    ) -> list[DuplicateGroup]:
        ordered = sorted(candidates, key=lambda item: (item.published_at, item.candidate_id))
        hashes = {
            item.candidate_id: content_hash(
                full_text=item.full_text,
                description=item.description,
                title=item.title,
            )
            for item in ordered
        }
        grouped: set[str] = set()
        groups: list[DuplicateGroup] = []

        groups.extend(
            self._historical_pass(issue_id, ordered, hashes, published_hashes or {}, grouped),
        )
        groups.extend(self._content_hash_pass(issue_id, ordered, hashes, grouped))
        groups.extend(self._title_pass(issue_id, ordered, grouped))
        groups.extend(self._semantic_pass(issue_id, ordered, grouped))
        return groups

    def _historical_pass(
        self,
        issue_id: str,
        ordered: list[CandidateItem],
        hashes: dict[str, str],
        published_hashes: dict[str, str],
        grouped: set[str],
    ) -> list[DuplicateGroup]:
        matches: dict[str, list[CandidateItem]] = defaultdict(list)
        for item in ordered:
            published_id = published_hashes.get(hashes[item.candidate_id])
            if published_id is not None and published_id != item.candidate_id:
                matches[published_id].append(item)

        groups: list[DuplicateGroup] = []
        for published_id, items in matches.items():
            grouped.update(item.candidate_id for item in items)
            groups.append(
                DuplicateGroup(
                    group_id=_build_group_id(
                        issue_id,
                        DetectionMethod.HISTORICAL_MATCH,
                        [published_id, *(item.candidate_id for item in items)],
                    ),
                    detection_method=DetectionMethod.HISTORICAL_MATCH,
                    canonical_id=published_id,
                    canonical_is_historical=True,
                    topic_signature=_topic_signature(items[0]),
                    members=[
                        DuplicateMember(
                            candidate_id=item.candidate_id,
                            similarity_score=1.0,
                            detection_method=DetectionMethod.HISTORICAL_MATCH,
                        )
                        for item in items
                    ],
                ),
            )
        return groups

    def _content_hash_pass(
        self,
        issue_id: str,
        ordered: list[CandidateItem],
        hashes: dict[str, str],
        grouped: set[str],
    ) -> list[DuplicateGroup]:
        buckets: dict[str, list[CandidateItem]] = defaultdict(list)
        for item in _remaining(ordered, grouped):
            buckets[hashes[item.candidate_id]].append(item)

        return [
            _build_group(
                issue_id,
                DetectionMethod.CONTENT_HASH,
                bucket,
                grouped,
                similarity=lambda _canonical, _member: 1.0,
            )
            for bucket in buckets.values()
            if len(bucket) > 1
        ]

    def _title_pass(
        self,
        issue_id: str,
        ordered: list[CandidateItem],
        grouped: set[str],
    ) -> list[DuplicateGroup]:
        remaining = _remaining(ordered, grouped)
        words = {item.candidate_id: title_words(item.title) for item in remaining}

        def title_similarity(left: CandidateItem, right: CandidateItem) -> float:
            return jaccard_similarity(words[left.candidate_id], words[right.candidate_id])

        components = _components(
            remaining,
            lambda left, right: title_similarity(left, right) >= self.strictness_threshold,
        )
        return [
            _build_group(
                issue_id,
                DetectionMethod.TITLE_SIMILARITY,
                component,
                grouped,
                similarity=title_similarity,
            )
            for component in components
            if len(component) > 1
        ]

    def _semantic_pass(
        self,
        issue_id: str,
        ordered: list[CandidateItem],
        grouped: set[str],
    ) -> list[DuplicateGroup]:
        remaining = _remaining(ordered, grouped)
        if self.embedder is None or len(remaining) < 2:  # noqa: PLR2004
            return []

        vectors: dict[str, Vector] = dict(
            zip(
                (item.candidate_id for item in remaining),
                self.embedder.embed([_embedding_text(item) for item in remaining]),
                strict=True,
            ),
        )

        def semantic_similarity(left: CandidateItem, right: CandidateItem) -> float:
            return cosine_similarity(vectors[left.candidate_id], vectors[right.candidate_id])

        components = _components(
            remaining,
            lambda left, right: semantic_similarity(left, right) >= self.semantic_threshold,
        )
        return [
            _build_group(
                issue_id,
                DetectionMethod.SEMANTIC,
                component,
                grouped,
                similarity=semantic_similarity,
            )
            for component in components
            if len(component) > 1
        ]


def choose_canonical(items: list[CandidateItem]) -> CandidateItem:
    """Highest score wins, ties go to the earliest publication, then the lowest id."""

    return sorted(
        items,
        key=lambda item: (
            -(item.total_score if item.total_score is not None else float("-inf")),
            item.published_at,
            item.candidate_id,
        ),
    )[0]


def count_duplicates(groups: list[DuplicateGroup]) -> int:
    return sum(len(group.members) for group in groups)


def _build_group(
    issue_id: str,
    method: DetectionMethod,
    items: list[CandidateItem],
    grouped: set[str],
    *,
    similarity: Callable[[CandidateItem, CandidateItem], float],
) -> DuplicateGroup:
    canonical = choose_canonical(items)
    grouped.update(item.candidate_id for item in items)
    members = [
        DuplicateMember(
            candidate_id=item.candidate_id,
            similarity_score=round(similarity(canonical, item), 4),
            detection_method=method,
        )
        for item in sorted(items, key=lambda entry: entry.candidate_id)
        if item.candidate_id != canonical.candidate_id
    ]
    return DuplicateGroup(
        group_id=_build_group_id(issue_id, method, [item.candidate_id for item in items]),
        detection_method=method,
        canonical_id=canonical.candidate_id,
        topic_signature=_topic_signature(canonical),
        members=members,
    )


def _remaining(ordered: list[CandidateItem], grouped: set[str]) -> list[CandidateItem]:
    return [item for item in ordered if item.candidate_id not in grouped]


def _components(
    items: list[CandidateItem],
    linked: Callable[[CandidateItem, CandidateItem], bool],
) -> list[list[CandidateItem]]:
    adjacency: dict[str, set[str]] = defaultdict(set)
    for index, left in enumerate(items):
        for right in items[index + 1 :]:
            if linked(left, right):
                adjacency[left.candidate_id].add(right.candidate_id)
                adjacency[right.candidate_id].add(left.candidate_id)

    by_id = {item.candidate_id: item for item in items}
    visited: set[str] = set()
    components: list[list[CandidateItem]] = []
    for item in items:
        if item.candidate_id in visited:
            continue
        queue: deque[str] = deque([item.candidate_id])
        component: list[CandidateItem] = []
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            component.append(by_id[current])
            queue.extend(sorted(adjacency.get(current, set()) - visited))
        components.append(component)
    return components


def _embedding_text(item: CandidateItem) -> str:
    title = item.title.strip()
    body = (item.full_text or item.description).strip()
    if title and body:
        return f"{title}. {body}"
    return title or body or f"[candidate:{item.candidate_id}]"


def _topic_signature(item: CandidateItem) -> str:
    return normalize_content(item.title)[:_TOPIC_SIGNATURE_MAX_CHARS]


def _build_group_id(issue_id: str, method: DetectionMethod, candidate_ids: list[str]) -> str:
    joined = "|".join([issue_id, method.value, *sorted(candidate_ids)])
    digest = hashlib.sha1(joined.encode("utf-8"), usedforsecurity=False).hexdigest()  # noqa: S324
    return f"dup:{digest}"
