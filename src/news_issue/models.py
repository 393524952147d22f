"""Domain models for issue assembly stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from news_issue.errors import InvalidTransitionError


class IssueStatus(str, Enum):
    """Lifecycle states for an issue."""

    PROCESSING = "processing"
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    SENT = "sent"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[IssueStatus, frozenset[IssueStatus]] = {
    IssueStatus.PROCESSING: frozenset(
        {IssueStatus.PROCESSING, IssueStatus.DRAFT, IssueStatus.FAILED},
    ),
    IssueStatus.DRAFT: frozenset(
        {IssueStatus.DRAFT, IssueStatus.IN_REVIEW, IssueStatus.FAILED, IssueStatus.PROCESSING},
    ),
    IssueStatus.IN_REVIEW: frozenset(
        {IssueStatus.DRAFT, IssueStatus.SENT, IssueStatus.FAILED},
    ),
    IssueStatus.FAILED: frozenset({IssueStatus.FAILED, IssueStatus.PROCESSING}),
    IssueStatus.SENT: frozenset(),
}


def can_transition(current: IssueStatus, target: IssueStatus) -> bool:
    """Whether the issue lifecycle allows moving from ``current`` to ``target``."""

    return target in _ALLOWED_TRANSITIONS[current]


def assert_transition(current: IssueStatus, target: IssueStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)


class ModuleKind(str, Enum):
    """Kinds of bounded-capacity issue sections."""

    ARTICLE = "article"
    APP = "app"
    AD = "ad"
    POLL = "poll"


class SelectionMode(str, Enum):
    """How a module fills the slots that are not pinned."""

    AFFILIATE_PRIORITY = "affiliate_priority"
    RANDOM = "random"
    MANUAL = "manual"


class DetectionMethod(str, Enum):
    """Deduplication pass that produced a duplicate group."""

    HISTORICAL_MATCH = "historical_match"
    CONTENT_HASH = "content_hash"
    TITLE_SIMILARITY = "title_similarity"
    SEMANTIC = "semantic"


class StepStatus(str, Enum):
    """Outcome of one orchestrated step."""

    SUCCESS = "success"
    FAILED = "failed"


class PinSource(str, Enum):
    """Configuration layer a resolved pin came from."""

    GLOBAL = "global"
    ISSUE = "issue"


@dataclass(slots=True)
class Issue:
    """One periodical edition being assembled."""

    issue_id: str
    issue_date: date
    status: IssueStatus
    subject_line: str | None = None
    failed_step: str | None = None
    last_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class CandidateItem:
    """Normalized ingested content unit awaiting scoring and generation."""

    candidate_id: str
    source_name: str
    source_url: str
    title: str
    published_at: datetime
    description: str = ""
    full_text: str = ""
    category: str | None = None
    module_id: str | None = None
    issue_id: str | None = None
    ingested_at: datetime | None = None
    total_score: float | None = None
    suppressed: bool = False


@dataclass(slots=True)
class CriterionConfig:
    """One weighted scoring criterion attached to a module."""

    number: int
    name: str
    weight: float = 1.0
    prompt: str = ""
    enabled: bool = True
    minimum_score: int | None = None


@dataclass(slots=True)
class CriterionScore:
    """Raw 0-10 score for one criterion."""

    number: int
    name: str
    raw_score: int
    weight: float
    rationale: str = ""

    @property
    def weighted(self) -> float:
        return self.raw_score * self.weight


@dataclass(slots=True)
class ScoreRecord:
    """Weighted score of one candidate for one module."""

    candidate_id: str
    module_id: str
    criteria: list[CriterionScore]
    total_score: float


@dataclass(slots=True)
class ScoringSummary:
    """Counters for one scoring pass."""

    scored: int = 0
    deferred: int = 0
    skipped: int = 0


@dataclass(slots=True)
class DuplicateMember:
    """Suppressed candidate within a duplicate group."""

    candidate_id: str
    similarity_score: float
    detection_method: DetectionMethod


@dataclass(slots=True)
class DuplicateGroup:
    """Set of candidates judged to cover the same story."""

    group_id: str
    detection_method: DetectionMethod
    canonical_id: str
    topic_signature: str
    members: list[DuplicateMember] = field(default_factory=list)
    canonical_is_historical: bool = False

    @property
    def suppressed_ids(self) -> list[str]:
        return [member.candidate_id for member in self.members]


@dataclass(slots=True)
class DedupSummary:
    """Result of one deduplication stage run."""

    group_count: int = 0
    duplicate_count: int = 0
    method_counts: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class ModuleConfig:
    """Configurable bounded-capacity issue section."""

    module_id: str
    name: str
    kind: ModuleKind
    count: int
    selection_mode: SelectionMode = SelectionMode.AFFILIATE_PRIORITY
    max_per_category: int | None = None
    cooldown_days: int = 0
    display_order: int = 0
    is_active: bool = True
    lookback_hours: int | None = None
    criteria: list[CriterionConfig] = field(default_factory=list)

    @property
    def enabled_criteria(self) -> list[CriterionConfig]:
        return [criterion for criterion in self.criteria if criterion.enabled]


@dataclass(slots=True)
class Asset:
    """Selectable item for a module slot: sponsor, app, ad, poll or article unit."""

    asset_id: str
    name: str
    module_kind: ModuleKind
    category: str | None = None
    priority: float = 0.0
    is_affiliate: bool = False
    is_active: bool = True
    pinned_position: int | None = None
    last_used_at: datetime | None = None
    times_used: int = 0


@dataclass(slots=True)
class ModuleAllocation:
    """Ordered selection of items placed into one module for one issue."""

    issue_id: str
    module_id: str
    item_ids: list[str]
    selection_mode: SelectionMode
    pinned_ids: list[str] = field(default_factory=list)
    pinned_overrides: dict[str, int | None] = field(default_factory=dict)
    selected_at: datetime | None = None
    used_at: datetime | None = None


@dataclass(slots=True)
class GeneratedContent:
    """Finished article unit produced for one candidate in one module."""

    content_id: str
    issue_id: str
    module_id: str
    candidate_id: str
    headline: str
    body: str = ""
    word_count: int = 0
    fact_check_score: int | None = None
    fact_check_details: str | None = None
    rank: int | None = None
    final_position: int | None = None
    manual_order: int | None = None
    is_active: bool = False
    skipped: bool = False

    @property
    def has_body(self) -> bool:
        return bool(self.body.strip())


@dataclass(slots=True)
class GenerationFailure:
    """Per-candidate generation failure that excludes the item."""

    candidate_id: str
    module_id: str
    stage: str
    reason: str


@dataclass(slots=True)
class GenerationSummary:
    """Counters for one generation stage run."""

    generated: int = 0
    skipped: int = 0
    failures: list[GenerationFailure] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "generated": self.generated,
            "skipped": self.skipped,
            "failed": len(self.failures),
        }


@dataclass(slots=True)
class StepAttempt:
    """Audit row for one execution attempt of a pipeline step."""

    issue_id: str
    step_name: str
    attempt_no: int
    status: StepStatus
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


@dataclass(slots=True)
class StepResult:
    """Result of a single pipeline step."""

    step_name: str
    status: StepStatus
    attempts: int
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


@dataclass(slots=True)
class PipelineResult:
    """Result of a complete pipeline run for one issue."""

    issue_id: str
    success: bool
    results: list[StepResult] = field(default_factory=list)

    @property
    def failed_step(self) -> str | None:
        for result in self.results:
            if result.status is StepStatus.FAILED:
                return result.step_name
        return None


@dataclass(slots=True)
class FinalizeSummary:
    """Outcome of the finalization stage."""

    subject_line: str | None
    active_units: int
    released: int
    modules: dict[str, list[str]] = field(default_factory=dict)
