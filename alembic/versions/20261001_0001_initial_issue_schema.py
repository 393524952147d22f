"""Create issue assembly schema."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "issues",
        sa.Column("issue_id", sa.String(), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("subject_line", sa.String(), nullable=True),
        sa.Column("failed_step", sa.String(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("issue_id"),
    )
    op.create_index("ix_issues_issue_date", "issues", ["issue_date"])
    op.create_index("ix_issues_status", "issues", ["status"])

    op.create_table(
        "modules",
        sa.Column("module_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("selection_mode", sa.String(), nullable=False),
        sa.Column("max_per_category", sa.Integer(), nullable=True),
        sa.Column("cooldown_days", sa.Integer(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("lookback_hours", sa.Integer(), nullable=True),
        sa.Column("criteria_json", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("module_id"),
    )
    op.create_index("ix_modules_kind", "modules", ["kind"])

    op.create_table(
        "candidates",
        sa.Column("candidate_id", sa.String(), nullable=False),
        sa.Column("source_name", sa.String(), nullable=False),
        sa.Column("source_url", sa.String(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("full_text", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("module_id", sa.String(), nullable=True),
        sa.Column("issue_id", sa.String(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("candidate_id"),
        sa.ForeignKeyConstraint(["module_id"], ["modules.module_id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["issue_id"], ["issues.issue_id"], ondelete="SET NULL"),
    )
    op.create_index("ix_candidates_source_name", "candidates", ["source_name"])
    op.create_index("ix_candidates_content_hash", "candidates", ["content_hash"])
    op.create_index("ix_candidates_module_id", "candidates", ["module_id"])
    op.create_index("ix_candidates_issue_id", "candidates", ["issue_id"])
    op.create_index("ix_candidates_published_at", "candidates", ["published_at"])

    op.create_table(
        "candidate_scores",
        sa.Column("candidate_id", sa.String(), nullable=False),
        sa.Column("module_id", sa.String(), nullable=False),
        sa.Column("criteria_json", sa.Text(), nullable=False),
        sa.Column("total_score", sa.Float(), nullable=False),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("candidate_id", "module_id"),
        sa.ForeignKeyConstraint(
            ["candidate_id"],
            ["candidates.candidate_id"],
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_candidate_scores_total_score", "candidate_scores", ["total_score"])

    op.create_table(
        "duplicate_groups",
        sa.Column("group_id", sa.String(), nullable=False),
        sa.Column("issue_id", sa.String(), nullable=False),
        sa.Column("detection_method", sa.String(), nullable=False),
        sa.Column("canonical_id", sa.String(), nullable=False),
        sa.Column("canonical_is_historical", sa.Boolean(), nullable=False),
        sa.Column("topic_signature", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("group_id"),
        sa.ForeignKeyConstraint(["issue_id"], ["issues.issue_id"], ondelete="CASCADE"),
    )
    op.create_index("ix_duplicate_groups_issue_id", "duplicate_groups", ["issue_id"])

    op.create_table(
        "duplicate_members",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("group_id", sa.String(), nullable=False),
        sa.Column("candidate_id", sa.String(), nullable=False),
        sa.Column("similarity_score", sa.Float(), nullable=False),
        sa.Column("detection_method", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["duplicate_groups.group_id"],
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "group_id",
            "candidate_id",
            name="uq_duplicate_members_group_candidate",
        ),
    )
    op.create_index("ix_duplicate_members_group_id", "duplicate_members", ["group_id"])
    op.create_index("ix_duplicate_members_candidate_id", "duplicate_members", ["candidate_id"])

    op.create_table(
        "assets",
        sa.Column("asset_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("module_kind", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("priority", sa.Float(), nullable=False),
        sa.Column("is_affiliate", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("pinned_position", sa.Integer(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("times_used", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("asset_id"),
    )
    op.create_index("ix_assets_module_kind", "assets", ["module_kind"])

    op.create_table(
        "module_allocations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("issue_id", sa.String(), nullable=False),
        sa.Column("module_id", sa.String(), nullable=False),
        sa.Column("selection_mode", sa.String(), nullable=False),
        sa.Column("item_ids_json", sa.Text(), nullable=False),
        sa.Column("pinned_ids_json", sa.Text(), nullable=False),
        sa.Column("pinned_overrides_json", sa.Text(), nullable=False),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["issue_id"], ["issues.issue_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["modules.module_id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "issue_id",
            "module_id",
            name="uq_module_allocations_issue_module",
        ),
    )
    op.create_index("ix_module_allocations_issue_id", "module_allocations", ["issue_id"])

    op.create_table(
        "generated_content",
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("issue_id", sa.String(), nullable=False),
        sa.Column("module_id", sa.String(), nullable=False),
        sa.Column("candidate_id", sa.String(), nullable=False),
        sa.Column("headline", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.Column("fact_check_score", sa.Integer(), nullable=True),
        sa.Column("fact_check_details", sa.Text(), nullable=True),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("final_position", sa.Integer(), nullable=True),
        sa.Column("manual_order", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("skipped", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("content_id"),
        sa.ForeignKeyConstraint(["issue_id"], ["issues.issue_id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "issue_id",
            "module_id",
            "candidate_id",
            name="uq_generated_content_issue_module_candidate",
        ),
    )
    op.create_index(
        "idx_generated_content_issue_module",
        "generated_content",
        ["issue_id", "module_id"],
    )
    op.create_index("ix_generated_content_candidate_id", "generated_content", ["candidate_id"])

    op.create_table(
        "step_attempts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("issue_id", sa.String(), nullable=False),
        sa.Column("step_name", sa.String(), nullable=False),
        sa.Column("attempt_no", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["issue_id"], ["issues.issue_id"], ondelete="CASCADE"),
    )
    op.create_index("ix_step_attempts_issue_id", "step_attempts", ["issue_id"])
    op.create_index("ix_step_attempts_step_name", "step_attempts", ["step_name"])


def downgrade() -> None:
    op.drop_table("step_attempts")
    op.drop_table("generated_content")
    op.drop_table("module_allocations")
    op.drop_table("assets")
    op.drop_table("duplicate_members")
    op.drop_table("duplicate_groups")
    op.drop_table("candidate_scores")
    op.drop_table("candidates")
    op.drop_table("modules")
    op.drop_table("issues")
