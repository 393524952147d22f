"""SQLModel-backed storage facade for issue assembly."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from uuid import uuid4

from sqlmodel import Session, col, delete, select

from news_issue.errors import IssueNotFoundError
from news_issue.models import (
    Asset,
    CandidateItem,
    CriterionConfig,
    CriterionScore,
    DetectionMethod,
    DuplicateGroup,
    DuplicateMember,
    GeneratedContent,
    Issue,
    IssueStatus,
    ModuleAllocation,
    ModuleConfig,
    ModuleKind,
    ScoreRecord,
    SelectionMode,
    StepAttempt,
    StepStatus,
    assert_transition,
)
from news_issue.storage.alembic_runner import upgrade_head
from news_issue.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from news_issue.storage.sqlmodel_models import (
    AssetRow,
    CandidateRow,
    CandidateScoreRow,
    DuplicateGroupRow,
    DuplicateMemberRow,
    GeneratedContentRow,
    IssueRow,
    ModuleAllocationRow,
    ModuleRow,
    StepAttemptRow,
)
from news_issue.text import content_hash

logger = logging.getLogger(__name__)
DEFAULT_BUSY_TIMEOUT_MS = 5_000


class IssueRepository:
    """Facade that persists issue assembly entities using SQLModel and Alembic."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    # Issues

    def create_issue(self, *, issue_date: date, issue_id: str | None = None) -> Issue:
        now = utc_now()
        row = IssueRow(
            issue_id=issue_id or str(uuid4()),
            issue_date=issue_date,
            status=IssueStatus.PROCESSING.value,
            created_at=now,
            updated_at=now,
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _issue_from_row(row)

    def get_issue(self, issue_id: str) -> Issue | None:
        with Session(self.engine) as session:
            row = session.get(IssueRow, issue_id)
            return _issue_from_row(row) if row is not None else None

    def require_issue(self, issue_id: str) -> Issue:
        issue = self.get_issue(issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return issue

    def list_issues(self, *, limit: int = 20) -> list[Issue]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(IssueRow)
                .order_by(col(IssueRow.issue_date).desc(), col(IssueRow.created_at).desc())
                .limit(limit),
            ).all()
            return [_issue_from_row(row) for row in rows]

    def set_issue_status(
        self,
        issue_id: str,
        status: IssueStatus,
        *,
        failed_step: str | None = None,
        last_error: str | None = None,
    ) -> Issue:
        with Session(self.engine) as session:
            row = session.get(IssueRow, issue_id)
            if row is None:
                raise IssueNotFoundError(issue_id)
            assert_transition(IssueStatus(row.status), status)
            row.status = status.value
            if status is IssueStatus.FAILED:
                row.failed_step = failed_step
                row.last_error = last_error
            else:
                row.failed_step = None
                row.last_error = None
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            session.refresh(row)
            return _issue_from_row(row)

    def set_subject_line(self, issue_id: str, subject_line: str | None) -> None:
        with Session(self.engine) as session:
            row = session.get(IssueRow, issue_id)
            if row is None:
                raise IssueNotFoundError(issue_id)
            row.subject_line = subject_line
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    # Modules

    def upsert_module(self, module: ModuleConfig) -> None:
        with Session(self.engine) as session:
            row = session.get(ModuleRow, module.module_id) or ModuleRow(
                module_id=module.module_id,
                name=module.name,
                kind=module.kind.value,
                count=module.count,
                selection_mode=module.selection_mode.value,
            )
            row.name = module.name
            row.kind = module.kind.value
            row.count = module.count
            row.selection_mode = module.selection_mode.value
            row.max_per_category = module.max_per_category
            row.cooldown_days = module.cooldown_days
            row.display_order = module.display_order
            row.is_active = module.is_active
            row.lookback_hours = module.lookback_hours
            row.criteria_json = json.dumps(
                [_criterion_to_dict(criterion) for criterion in module.criteria],
                ensure_ascii=False,
            )
            session.add(row)
            session.commit()

    def get_module(self, module_id: str) -> ModuleConfig | None:
        with Session(self.engine) as session:
            row = session.get(ModuleRow, module_id)
            return _module_from_row(row) if row is not None else None

    def list_modules(self, *, active_only: bool = True) -> list[ModuleConfig]:
        with Session(self.engine) as session:
            statement = select(ModuleRow)
            if active_only:
                statement = statement.where(col(ModuleRow.is_active).is_(True))
            rows = session.exec(
                statement.order_by(col(ModuleRow.display_order), col(ModuleRow.module_id)),
            ).all()
            return [_module_from_row(row) for row in rows]

    # Candidates

    def upsert_candidate(self, candidate: CandidateItem) -> bool:
        """Insert or refresh a candidate; assignment to an issue is never overwritten."""

        with Session(self.engine) as session:
            row = session.get(CandidateRow, candidate.candidate_id)
            inserted = row is None
            if row is None:
                row = CandidateRow(
                    candidate_id=candidate.candidate_id,
                    source_name=candidate.source_name,
                    source_url=candidate.source_url,
                    title=candidate.title,
                    content_hash="",
                    published_at=to_db_datetime(candidate.published_at),
                    ingested_at=candidate.ingested_at or utc_now(),
                    issue_id=candidate.issue_id,
                )
            row.source_name = candidate.source_name
            row.source_url = candidate.source_url
            row.title = candidate.title
            row.description = candidate.description
            row.full_text = candidate.full_text
            row.category = candidate.category
            row.module_id = candidate.module_id or row.module_id
            row.published_at = to_db_datetime(candidate.published_at)
            row.content_hash = content_hash(
                full_text=candidate.full_text,
                description=candidate.description,
                title=candidate.title,
            )
            session.add(row)
            session.commit()
            return inserted

    def get_candidate(self, candidate_id: str) -> CandidateItem | None:
        with Session(self.engine) as session:
            row = session.get(CandidateRow, candidate_id)
            if row is None:
                return None
            return self._candidates_with_scores(session, [row])[0]

    def list_pool_candidates(self, *, module_id: str, since: datetime) -> list[CandidateItem]:
        """Unassigned candidates routed to ``module_id`` and published after ``since``."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(CandidateRow)
                .where(
                    col(CandidateRow.issue_id).is_(None),
                    CandidateRow.module_id == module_id,
                    col(CandidateRow.published_at) >= to_db_datetime(since),
                )
                .order_by(col(CandidateRow.published_at), col(CandidateRow.candidate_id)),
            ).all()
            return self._candidates_with_scores(session, list(rows))

    def list_issue_candidates(
        self,
        issue_id: str,
        *,
        module_id: str | None = None,
    ) -> list[CandidateItem]:
        """Candidates assigned to an issue ordered by publication time then id."""

        with Session(self.engine) as session:
            statement = select(CandidateRow).where(CandidateRow.issue_id == issue_id)
            if module_id is not None:
                statement = statement.where(CandidateRow.module_id == module_id)
            rows = session.exec(
                statement.order_by(col(CandidateRow.published_at), col(CandidateRow.candidate_id)),
            ).all()
            candidates = self._candidates_with_scores(session, list(rows))
            suppressed = self._suppressed_ids(session, issue_id)
            for candidate in candidates:
                candidate.suppressed = candidate.candidate_id in suppressed
            return candidates

    def assign_candidates(self, *, issue_id: str, module_id: str, candidate_ids: list[str]) -> int:
        if not candidate_ids:
            return 0
        with Session(self.engine) as session:
            rows = session.exec(
                select(CandidateRow).where(
                    col(CandidateRow.candidate_id).in_(candidate_ids),
                    col(CandidateRow.issue_id).is_(None),
                ),
            ).all()
            for row in rows:
                row.issue_id = issue_id
                row.module_id = module_id
                session.add(row)
            session.commit()
            return len(rows)

    def release_candidates(self, *, issue_id: str, candidate_ids: Iterable[str]) -> int:
        """Return candidates to the pool."""

        ids = list(candidate_ids)
        if not ids:
            return 0
        with Session(self.engine) as session:
            rows = session.exec(
                select(CandidateRow).where(
                    CandidateRow.issue_id == issue_id,
                    col(CandidateRow.candidate_id).in_(ids),
                ),
            ).all()
            for row in rows:
                row.issue_id = None
                session.add(row)
            session.commit()
            return len(rows)

    # Scores

    def save_score(self, record: ScoreRecord) -> None:
        with Session(self.engine) as session:
            row = session.exec(
                select(CandidateScoreRow).where(
                    CandidateScoreRow.candidate_id == record.candidate_id,
                    CandidateScoreRow.module_id == record.module_id,
                ),
            ).one_or_none()
            if row is None:
                row = CandidateScoreRow(
                    candidate_id=record.candidate_id,
                    module_id=record.module_id,
                    criteria_json="[]",
                    total_score=0.0,
                    scored_at=utc_now(),
                )
            row.criteria_json = json.dumps(
                [
                    {
                        "number": item.number,
                        "name": item.name,
                        "raw_score": item.raw_score,
                        "weight": item.weight,
                        "rationale": item.rationale,
                    }
                    for item in record.criteria
                ],
                ensure_ascii=False,
            )
            row.total_score = record.total_score
            row.scored_at = utc_now()
            session.add(row)
            session.commit()

    def get_score(self, candidate_id: str, module_id: str) -> ScoreRecord | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(CandidateScoreRow).where(
                    CandidateScoreRow.candidate_id == candidate_id,
                    CandidateScoreRow.module_id == module_id,
                ),
            ).one_or_none()
            if row is None:
                return None
            return ScoreRecord(
                candidate_id=row.candidate_id,
                module_id=row.module_id,
                criteria=[CriterionScore(**item) for item in json.loads(row.criteria_json)],
                total_score=row.total_score,
            )

    # Deduplication

    def replace_duplicate_groups(self, *, issue_id: str, groups: list[DuplicateGroup]) -> None:
        """Atomically replace every duplicate group recorded for an issue."""

        created_at = utc_now()
        with Session(self.engine) as session:
            existing_ids = list(
                session.exec(
                    select(DuplicateGroupRow.group_id).where(
                        DuplicateGroupRow.issue_id == issue_id,
                    ),
                ).all(),
            )
            if existing_ids:
                session.exec(
                    delete(DuplicateMemberRow).where(
                        col(DuplicateMemberRow.group_id).in_(existing_ids),
                    ),
                )
                session.exec(
                    delete(DuplicateGroupRow).where(col(DuplicateGroupRow.issue_id) == issue_id),
                )

            for group in groups:
                session.add(
                    DuplicateGroupRow(
                        group_id=group.group_id,
                        issue_id=issue_id,
                        detection_method=group.detection_method.value,
                        canonical_id=group.canonical_id,
                        canonical_is_historical=group.canonical_is_historical,
                        topic_signature=group.topic_signature,
                        created_at=created_at,
                    ),
                )
            session.flush()
            for group in groups:
                for member in group.members:
                    session.add(
                        DuplicateMemberRow(
                            group_id=group.group_id,
                            candidate_id=member.candidate_id,
                            similarity_score=member.similarity_score,
                            detection_method=member.detection_method.value,
                        ),
                    )
            session.commit()

    def list_duplicate_groups(self, issue_id: str) -> list[DuplicateGroup]:
        with Session(self.engine) as session:
            group_rows = session.exec(
                select(DuplicateGroupRow)
                .where(DuplicateGroupRow.issue_id == issue_id)
                .order_by(col(DuplicateGroupRow.group_id)),
            ).all()
            groups: list[DuplicateGroup] = []
            for group_row in group_rows:
                member_rows = session.exec(
                    select(DuplicateMemberRow)
                    .where(DuplicateMemberRow.group_id == group_row.group_id)
                    .order_by(col(DuplicateMemberRow.candidate_id)),
                ).all()
                groups.append(
                    DuplicateGroup(
                        group_id=group_row.group_id,
                        detection_method=DetectionMethod(group_row.detection_method),
                        canonical_id=group_row.canonical_id,
                        canonical_is_historical=group_row.canonical_is_historical,
                        topic_signature=group_row.topic_signature,
                        members=[
                            DuplicateMember(
                                candidate_id=member.candidate_id,
                                similarity_score=member.similarity_score,
                                detection_method=DetectionMethod(member.detection_method),
                            )
                            for member in member_rows
                        ],
                    ),
                )
            return groups

    def list_published_hashes(
        self,
        *,
        since: date,
        until: date,
        exclude_issue_id: str,
    ) -> dict[str, str]:
        """Content hashes of items published in sent issues dated within ``[since, until]``."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(CandidateRow.content_hash, CandidateRow.candidate_id)
                .join(
                    GeneratedContentRow,
                    col(GeneratedContentRow.candidate_id) == col(CandidateRow.candidate_id),
                )
                .join(IssueRow, col(IssueRow.issue_id) == col(GeneratedContentRow.issue_id))
                .where(
                    IssueRow.status == IssueStatus.SENT.value,
                    col(IssueRow.issue_date) >= since,
                    col(IssueRow.issue_date) <= until,
                    IssueRow.issue_id != exclude_issue_id,
                    col(GeneratedContentRow.is_active).is_(True),
                    col(GeneratedContentRow.skipped).is_(False),
                )
                .order_by(col(CandidateRow.candidate_id)),
            ).all()
        published: dict[str, str] = {}
        for hash_value, candidate_id in rows:
            published.setdefault(hash_value, candidate_id)
        return published

    # Assets

    def upsert_asset(self, asset: Asset) -> None:
        with Session(self.engine) as session:
            row = session.get(AssetRow, asset.asset_id) or AssetRow(
                asset_id=asset.asset_id,
                name=asset.name,
                module_kind=asset.module_kind.value,
            )
            row.name = asset.name
            row.module_kind = asset.module_kind.value
            row.category = asset.category
            row.priority = asset.priority
            row.is_affiliate = asset.is_affiliate
            row.is_active = asset.is_active
            row.pinned_position = asset.pinned_position
            if asset.last_used_at is not None:
                row.last_used_at = to_db_datetime(asset.last_used_at)
            session.add(row)
            session.commit()

    def list_assets(self, *, module_kind: ModuleKind, active_only: bool = True) -> list[Asset]:
        with Session(self.engine) as session:
            statement = select(AssetRow).where(AssetRow.module_kind == module_kind.value)
            if active_only:
                statement = statement.where(col(AssetRow.is_active).is_(True))
            rows = session.exec(statement.order_by(col(AssetRow.asset_id))).all()
            return [_asset_from_row(row) for row in rows]

    def get_asset(self, asset_id: str) -> Asset | None:
        with Session(self.engine) as session:
            row = session.get(AssetRow, asset_id)
            return _asset_from_row(row) if row is not None else None

    def record_asset_usage(self, *, asset_ids: list[str], used_at: datetime) -> int:
        with Session(self.engine) as session:
            rows = session.exec(
                select(AssetRow).where(col(AssetRow.asset_id).in_(asset_ids)),
            ).all()
            for row in rows:
                row.last_used_at = to_db_datetime(used_at)
                row.times_used += 1
                session.add(row)
            session.commit()
            return len(rows)

    # Allocations

    def get_allocation(self, issue_id: str, module_id: str) -> ModuleAllocation | None:
        with Session(self.engine) as session:
            row = self._allocation_row(session, issue_id, module_id)
            return _allocation_from_row(row) if row is not None else None

    def list_allocations(self, issue_id: str) -> list[ModuleAllocation]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(ModuleAllocationRow)
                .where(ModuleAllocationRow.issue_id == issue_id)
                .order_by(col(ModuleAllocationRow.module_id)),
            ).all()
            return [_allocation_from_row(row) for row in rows]

    def save_allocation(self, allocation: ModuleAllocation) -> None:
        with Session(self.engine) as session:
            row = self._allocation_row(session, allocation.issue_id, allocation.module_id)
            if row is None:
                row = ModuleAllocationRow(
                    issue_id=allocation.issue_id,
                    module_id=allocation.module_id,
                    selection_mode=allocation.selection_mode.value,
                )
            row.selection_mode = allocation.selection_mode.value
            row.item_ids_json = json.dumps(allocation.item_ids)
            row.pinned_ids_json = json.dumps(allocation.pinned_ids)
            row.pinned_overrides_json = json.dumps(allocation.pinned_overrides, sort_keys=True)
            row.selected_at = (
                to_db_datetime(allocation.selected_at) if allocation.selected_at else None
            )
            row.used_at = to_db_datetime(allocation.used_at) if allocation.used_at else None
            session.add(row)
            session.commit()

    # Generated content

    def insert_content(self, content: GeneratedContent) -> bool:
        """Insert a content unit unless one exists for the same issue/module/candidate."""

        with Session(self.engine) as session:
            existing = self._content_row(
                session,
                content.issue_id,
                content.module_id,
                content.candidate_id,
            )
            if existing is not None:
                return False
            now = utc_now()
            session.add(
                GeneratedContentRow(
                    content_id=content.content_id,
                    issue_id=content.issue_id,
                    module_id=content.module_id,
                    candidate_id=content.candidate_id,
                    headline=content.headline,
                    body=content.body,
                    word_count=content.word_count,
                    fact_check_score=content.fact_check_score,
                    fact_check_details=content.fact_check_details,
                    rank=content.rank,
                    final_position=content.final_position,
                    manual_order=content.manual_order,
                    is_active=content.is_active,
                    skipped=content.skipped,
                    created_at=now,
                    updated_at=now,
                ),
            )
            session.commit()
            return True

    def update_content(self, content: GeneratedContent) -> None:
        with Session(self.engine) as session:
            row = session.get(GeneratedContentRow, content.content_id)
            if row is None:
                raise RuntimeError(f"Content unit not found: {content.content_id}")
            row.headline = content.headline
            row.body = content.body
            row.word_count = content.word_count
            row.fact_check_score = content.fact_check_score
            row.fact_check_details = content.fact_check_details
            row.rank = content.rank
            row.final_position = content.final_position
            row.manual_order = content.manual_order
            row.is_active = content.is_active
            row.skipped = content.skipped
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def get_content(self, content_id: str) -> GeneratedContent | None:
        with Session(self.engine) as session:
            row = session.get(GeneratedContentRow, content_id)
            return _content_from_row(row) if row is not None else None

    def list_content(
        self,
        issue_id: str,
        *,
        module_id: str | None = None,
    ) -> list[GeneratedContent]:
        with Session(self.engine) as session:
            statement = select(GeneratedContentRow).where(
                GeneratedContentRow.issue_id == issue_id,
            )
            if module_id is not None:
                statement = statement.where(GeneratedContentRow.module_id == module_id)
            rows = session.exec(
                statement.order_by(
                    col(GeneratedContentRow.module_id),
                    col(GeneratedContentRow.candidate_id),
                ),
            ).all()
            return [_content_from_row(row) for row in rows]

    # Step attempts

    def record_step_attempt(self, attempt: StepAttempt) -> None:
        with Session(self.engine) as session:
            session.add(
                StepAttemptRow(
                    issue_id=attempt.issue_id,
                    step_name=attempt.step_name,
                    attempt_no=attempt.attempt_no,
                    status=attempt.status.value,
                    error=attempt.error,
                    started_at=attempt.started_at or utc_now(),
                    finished_at=attempt.finished_at,
                ),
            )
            session.commit()

    def list_step_attempts(
        self,
        issue_id: str,
        *,
        step_name: str | None = None,
    ) -> list[StepAttempt]:
        with Session(self.engine) as session:
            statement = select(StepAttemptRow).where(StepAttemptRow.issue_id == issue_id)
            if step_name is not None:
                statement = statement.where(StepAttemptRow.step_name == step_name)
            rows = session.exec(statement.order_by(col(StepAttemptRow.id))).all()
            return [
                StepAttempt(
                    issue_id=row.issue_id,
                    step_name=row.step_name,
                    attempt_no=row.attempt_no,
                    status=StepStatus(row.status),
                    error=row.error,
                    started_at=to_utc_aware_datetime(row.started_at),
                    finished_at=(
                        to_utc_aware_datetime(row.finished_at)
                        if row.finished_at is not None
                        else None
                    ),
                )
                for row in rows
            ]

    def _candidates_with_scores(
        self,
        session: Session,
        rows: list[CandidateRow],
    ) -> list[CandidateItem]:
        ids = [row.candidate_id for row in rows]
        scores: dict[tuple[str, str], float] = {}
        if ids:
            for score_row in session.exec(
                select(CandidateScoreRow).where(col(CandidateScoreRow.candidate_id).in_(ids)),
            ).all():
                scores[(score_row.candidate_id, score_row.module_id)] = score_row.total_score
        return [
            _candidate_from_row(row, scores.get((row.candidate_id, row.module_id or "")))
            for row in rows
        ]

    def _suppressed_ids(self, session: Session, issue_id: str) -> set[str]:
        rows = session.exec(
            select(DuplicateMemberRow.candidate_id)
            .join(
                DuplicateGroupRow,
                col(DuplicateGroupRow.group_id) == col(DuplicateMemberRow.group_id),
            )
            .where(DuplicateGroupRow.issue_id == issue_id),
        ).all()
        return set(rows)

    def _allocation_row(
        self,
        session: Session,
        issue_id: str,
        module_id: str,
    ) -> ModuleAllocationRow | None:
        return session.exec(
            select(ModuleAllocationRow).where(
                ModuleAllocationRow.issue_id == issue_id,
                ModuleAllocationRow.module_id == module_id,
            ),
        ).one_or_none()

    def _content_row(
        self,
        session: Session,
        issue_id: str,
        module_id: str,
        candidate_id: str,
    ) -> GeneratedContentRow | None:
        return session.exec(
            select(GeneratedContentRow).where(
                GeneratedContentRow.issue_id == issue_id,
                GeneratedContentRow.module_id == module_id,
                GeneratedContentRow.candidate_id == candidate_id,
            ),
        ).one_or_none()


def _issue_from_row(row: IssueRow) -> Issue:
    return Issue(
        issue_id=row.issue_id,
        issue_date=row.issue_date,
        status=IssueStatus(row.status),
        subject_line=row.subject_line,
        failed_step=row.failed_step,
        last_error=row.last_error,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _criterion_to_dict(criterion: CriterionConfig) -> dict[str, object]:
    return {
        "number": criterion.number,
        "name": criterion.name,
        "weight": criterion.weight,
        "prompt": criterion.prompt,
        "enabled": criterion.enabled,
        "minimum_score": criterion.minimum_score,
    }


def _module_from_row(row: ModuleRow) -> ModuleConfig:
    return ModuleConfig(
        module_id=row.module_id,
        name=row.name,
        kind=ModuleKind(row.kind),
        count=row.count,
        selection_mode=SelectionMode(row.selection_mode),
        max_per_category=row.max_per_category,
        cooldown_days=row.cooldown_days,
        display_order=row.display_order,
        is_active=row.is_active,
        lookback_hours=row.lookback_hours,
        criteria=[CriterionConfig(**item) for item in json.loads(row.criteria_json)],
    )


def _candidate_from_row(row: CandidateRow, total_score: float | None) -> CandidateItem:
    return CandidateItem(
        candidate_id=row.candidate_id,
        source_name=row.source_name,
        source_url=row.source_url,
        title=row.title,
        published_at=to_utc_aware_datetime(row.published_at),
        description=row.description,
        full_text=row.full_text,
        category=row.category,
        module_id=row.module_id,
        issue_id=row.issue_id,
        ingested_at=to_utc_aware_datetime(row.ingested_at),
        total_score=total_score,
    )


def _asset_from_row(row: AssetRow) -> Asset:
    return Asset(
        asset_id=row.asset_id,
        name=row.name,
        module_kind=ModuleKind(row.module_kind),
        category=row.category,
        priority=row.priority,
        is_affiliate=row.is_affiliate,
        is_active=row.is_active,
        pinned_position=row.pinned_position,
        last_used_at=(
            to_utc_aware_datetime(row.last_used_at) if row.last_used_at is not None else None
        ),
        times_used=row.times_used,
    )


def _allocation_from_row(row: ModuleAllocationRow) -> ModuleAllocation:
    return ModuleAllocation(
        issue_id=row.issue_id,
        module_id=row.module_id,
        item_ids=list(json.loads(row.item_ids_json)),
        selection_mode=SelectionMode(row.selection_mode),
        pinned_ids=list(json.loads(row.pinned_ids_json)),
        pinned_overrides=dict(json.loads(row.pinned_overrides_json)),
        selected_at=(
            to_utc_aware_datetime(row.selected_at) if row.selected_at is not None else None
        ),
        used_at=to_utc_aware_datetime(row.used_at) if row.used_at is not None else None,
    )


def _content_from_row(row: GeneratedContentRow) -> GeneratedContent:
    return GeneratedContent(
        content_id=row.content_id,
        issue_id=row.issue_id,
        module_id=row.module_id,
        candidate_id=row.candidate_id,
        headline=row.headline,
        body=row.body,
        word_count=row.word_count,
        fact_check_score=row.fact_check_score,
        fact_check_details=row.fact_check_details,
        rank=row.rank,
        final_position=row.final_position,
        manual_order=row.manual_order,
        is_active=row.is_active,
        skipped=row.skipped,
    )
