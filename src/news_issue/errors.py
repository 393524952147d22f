"""Error taxonomy shared by pipeline stages."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base error raised by issue assembly stages."""


class FatalStepError(PipelineError):
    """Configuration or state error that retrying cannot fix."""


class IssueNotFoundError(FatalStepError):
    def __init__(self, issue_id: str) -> None:
        super().__init__(f"Issue not found: {issue_id}")
        self.issue_id = issue_id


class InvalidTransitionError(FatalStepError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Issue status cannot move from {current} to {target}.")
        self.current = current
        self.target = target


class ScoringError(PipelineError):
    """Scoring of one candidate failed; the candidate is deferred."""

    def __init__(self, candidate_id: str, message: str) -> None:
        super().__init__(f"Scoring failed for {candidate_id}: {message}")
        self.candidate_id = candidate_id


class GenerationError(PipelineError):
    """Generation of one content unit failed; the unit is excluded."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage
