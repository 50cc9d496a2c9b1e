"""Domain models for the meal deletion lease."""

from dataclasses import dataclass
from typing import Literal

DeletePlanAction = Literal["already_deleted", "wait_for_inflight", "delete_now"]
DeleteStatus = Literal["completed", "already_deleted", "already_processing"]


@dataclass(frozen=True)
class DeletePlan:
    """Decision taken while holding the delete lease transaction."""

    action: DeletePlanAction


@dataclass(frozen=True)
class DeleteOutcome:
    """Result reported to the caller of a meal deletion."""

    deleted: bool
    status: DeleteStatus
