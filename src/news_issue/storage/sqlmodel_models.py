"""SQLModel ORM tables for issue assembly storage."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class IssueRow(SQLModel, table=True):
    __tablename__ = "issues"  # type: ignore[bad-override]

    issue_id: str = Field(primary_key=True)
    issue_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    status: str = Field(index=True)
    subject_line: str | None = None
    failed_step: str | None = None
    last_error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ModuleRow(SQLModel, table=True):
    __tablename__ = "modules"  # type: ignore[bad-override]

    module_id: str = Field(primary_key=True)
    name: str
    kind: str = Field(index=True)
    count: int
    selection_mode: str
    max_per_category: int | None = None
    cooldown_days: int = 0
    display_order: int = 0
    is_active: bool = True
    lookback_hours: int | None = None
    criteria_json: str = Field(default="[]", sa_column=Column(Text, nullable=False))


class CandidateRow(SQLModel, table=True):
    __tablename__ = "candidates"  # type: ignore[bad-override]

    candidate_id: str = Field(primary_key=True)
    source_name: str = Field(index=True)
    source_url: str
    title: str = Field(sa_column=Column(Text, nullable=False))
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    full_text: str = Field(default="", sa_column=Column(Text, nullable=False))
    content_hash: str = Field(index=True)
    category: str | None = None
    module_id: str | None = Field(
        default=None,
        sa_column=Column(
            ForeignKey("modules.module_id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )
    issue_id: str | None = Field(
        default=None,
        sa_column=Column(
            ForeignKey("issues.issue_id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )
    published_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    ingested_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class CandidateScoreRow(SQLModel, table=True):
    __tablename__ = "candidate_scores"  # type: ignore[bad-override]

    candidate_id: str = Field(
        sa_column=Column(
            ForeignKey("candidates.candidate_id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    module_id: str = Field(primary_key=True)
    criteria_json: str = Field(sa_column=Column(Text, nullable=False))
    total_score: float = Field(index=True)
    scored_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class DuplicateGroupRow(SQLModel, table=True):
    __tablename__ = "duplicate_groups"  # type: ignore[bad-override]

    group_id: str = Field(primary_key=True)
    issue_id: str = Field(
        sa_column=Column(
            ForeignKey("issues.issue_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    detection_method: str
    canonical_id: str
    canonical_is_historical: bool = False
    topic_signature: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class DuplicateMemberRow(SQLModel, table=True):
    __tablename__ = "duplicate_members"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("group_id", "candidate_id", name="uq_duplicate_members_group_candidate"),
    )

    id: int | None = Field(default=None, primary_key=True)
    group_id: str = Field(
        sa_column=Column(
            ForeignKey("duplicate_groups.group_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    candidate_id: str = Field(index=True)
    similarity_score: float
    detection_method: str


class AssetRow(SQLModel, table=True):
    __tablename__ = "assets"  # type: ignore[bad-override]

    asset_id: str = Field(primary_key=True)
    name: str
    module_kind: str = Field(index=True)
    category: str | None = None
    priority: float = 0.0
    is_affiliate: bool = False
    is_active: bool = True
    pinned_position: int | None = None
    last_used_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    times_used: int = 0


class ModuleAllocationRow(SQLModel, table=True):
    __tablename__ = "module_allocations"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("issue_id", "module_id", name="uq_module_allocations_issue_module"),
    )

    id: int | None = Field(default=None, primary_key=True)
    issue_id: str = Field(
        sa_column=Column(
            ForeignKey("issues.issue_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    module_id: str = Field(
        sa_column=Column(
            ForeignKey("modules.module_id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    selection_mode: str
    item_ids_json: str = Field(default="[]", sa_column=Column(Text, nullable=False))
    pinned_ids_json: str = Field(default="[]", sa_column=Column(Text, nullable=False))
    pinned_overrides_json: str = Field(default="{}", sa_column=Column(Text, nullable=False))
    selected_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    used_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )


class GeneratedContentRow(SQLModel, table=True):
    __tablename__ = "generated_content"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint(
            "issue_id",
            "module_id",
            "candidate_id",
            name="uq_generated_content_issue_module_candidate",
        ),
        Index("idx_generated_content_issue_module", "issue_id", "module_id"),
    )

    content_id: str = Field(primary_key=True)
    issue_id: str = Field(
        sa_column=Column(
            ForeignKey("issues.issue_id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    module_id: str
    candidate_id: str = Field(index=True)
    headline: str = Field(sa_column=Column(Text, nullable=False))
    body: str = Field(default="", sa_column=Column(Text, nullable=False))
    word_count: int = 0
    fact_check_score: int | None = None
    fact_check_details: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    rank: int | None = None
    final_position: int | None = None
    manual_order: int | None = None
    is_active: bool = False
    skipped: bool = False
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class StepAttemptRow(SQLModel, table=True):
    __tablename__ = "step_attempts"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    issue_id: str = Field(
        sa_column=Column(
            ForeignKey("issues.issue_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    step_name: str = Field(index=True)
    attempt_no: int
    status: str
    error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    started_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    finished_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
