from __future__ import annotations

from datetime import UTC, datetime, timedelta

import allure
import pytest

from news_issue.dedup.embedder import HashingEmbedder, cosine_similarity
from news_issue.dedup.engine import DuplicateDetector, choose_canonical, count_duplicates
from news_issue.models import DetectionMethod
from news_issue.text import content_hash

pytestmark = [
    allure.epic("Issue Assembly"),
    allure.feature("Deduplication"),
]

DISTINCT_TITLES = [
    "Apple unveils new iPhone with faster chip today",
    "Central bank holds interest rates steady",
    "Rust compiler release adds async closures",
    "Heatwave breaks temperature records across Europe",
    "Startup raises seed round for battery recycling",
    "City council approves new bike lanes downtown",
    "Researchers map protein folding in yeast cells",
    "Football club signs veteran goalkeeper on loan",
    "Open source database ships vector search support",
]


def _detector(**overrides) -> DuplicateDetector:
    params = {"strictness_threshold": 0.80, "semantic_threshold": 0.92, "embedder": None}
    params.update(overrides)
    return DuplicateDetector(**params)


def test_ten_candidates_with_one_similar_title_pair_leave_nine_survivors(make_candidate) -> None:
    candidates = [
        make_candidate(f"c{index}", title=title, full_text=f"Body number {index}.")
        for index, title in enumerate(DISTINCT_TITLES)
    ]
    candidates.append(
        make_candidate(
            "c9",
            title="Apple unveils new iPhone with faster chip",
            full_text="A different write-up of the launch.",
        ),
    )

    groups = _detector().detect(issue_id="issue-1", candidates=candidates)

    assert len(groups) == 1
    group = groups[0]
    assert group.detection_method is DetectionMethod.TITLE_SIMILARITY
    assert {group.canonical_id, *group.suppressed_ids} == {"c0", "c9"}
    assert group.members[0].similarity_score == pytest.approx(7 / 8, abs=1e-4)
    survivors = {item.candidate_id for item in candidates} - set(group.suppressed_ids)
    assert len(survivors) == 9


def test_content_hash_pass_runs_before_title_pass(make_candidate) -> None:
    candidates = [
        make_candidate("a", title="Totally different headline", full_text="Same body text"),
        make_candidate("b", title="Unrelated other words", full_text="  same BODY text "),
    ]

    groups = _detector().detect(issue_id="issue-1", candidates=candidates)

    assert [group.detection_method for group in groups] == [DetectionMethod.CONTENT_HASH]
    assert groups[0].members[0].similarity_score == 1.0


def test_canonical_prefers_score_then_earliest_publication(make_candidate) -> None:
    base = datetime(2026, 10, 14, tzinfo=UTC)
    low = make_candidate("a", total_score=3.0, published_at=base)
    high_late = make_candidate("b", total_score=9.0, published_at=base + timedelta(hours=2))
    high_early = make_candidate("c", total_score=9.0, published_at=base + timedelta(hours=1))

    assert choose_canonical([low, high_late, high_early]).candidate_id == "c"


def test_historical_match_suppresses_items_already_published(make_candidate) -> None:
    published = make_candidate("old", full_text="The story everyone covered.")
    repeat = make_candidate("new", title="Fresh title", full_text="The story everyone covered.")
    other = make_candidate("other", title="Something else entirely")
    hashes = {
        content_hash(
            full_text=published.full_text,
            description=published.description,
            title=published.title,
        ): "old",
    }

    groups = _detector().detect(
        issue_id="issue-2",
        candidates=[repeat, other],
        published_hashes=hashes,
    )

    assert len(groups) == 1
    assert groups[0].detection_method is DetectionMethod.HISTORICAL_MATCH
    assert groups[0].canonical_id == "old"
    assert groups[0].canonical_is_historical is True
    assert groups[0].suppressed_ids == ["new"]


def test_groups_partition_candidates_and_are_deterministic(make_candidate) -> None:
    candidates = [
        make_candidate("a", title="Markets rally on strong jobs report", full_text="x one"),
        make_candidate("b", title="Markets rally on strong jobs report data", full_text="x two"),
        make_candidate("c", title="Markets rally on a strong jobs report data", full_text="x 3"),
        make_candidate("d", title="Unrelated science news", full_text="y"),
        make_candidate("e", title="Unrelated science news", full_text="y"),
    ]
    detector = _detector(embedder=HashingEmbedder())

    first = detector.detect(issue_id="issue-1", candidates=candidates)
    second = detector.detect(issue_id="issue-1", candidates=list(reversed(candidates)))

    assert [group.group_id for group in first] == [group.group_id for group in second]
    seen: list[str] = []
    for group in first:
        seen.extend([group.canonical_id, *group.suppressed_ids])
    assert len(seen) == len(set(seen))
    assert count_duplicates(first) == 3


def test_semantic_pass_groups_near_identical_bodies() -> None:
    embedder = HashingEmbedder()
    left, right, far = embedder.embed(
        [
            "Storm floods coastal towns, thousands evacuated overnight",
            "Storm floods coastal towns; thousands evacuated overnight.",
            "Chess grandmaster wins the candidates tournament",
        ],
    )

    assert cosine_similarity(left, right) > 0.9
    assert cosine_similarity(left, far) < 0.5
