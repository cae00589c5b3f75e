"""Coverage conflict detection for vacation requests.

For every day of a request's half-open interval the evaluator counts who
would be absent: the requester plus the distinct requesters of other
``fully_approved`` or ``level_*_pending`` requests filed against the same
org unit or a unit beneath it. A day conflicts when the remaining headcount
drops below the minimum coverage, or when absences exceed the workspace's
``max_concurrent_absences``.

Conflicts only annotate a request; nothing is rejected automatically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from workforce_api.core.models import COUNTED_STATUSES, ApprovalRequest
from workforce_api.features.org.repository import OrgRepository
from workforce_api.settings import Settings

from .repository import ApprovalsRepository

ONE_DAY = timedelta(days=1)


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open overlap: ``[a_start, a_end)`` and ``[b_start, b_end)`` share a day."""
    return a_start < b_end and b_start < a_end


def iter_days(start: date, end: date):
    day = start
    while day < end:
        yield day
        day += ONE_DAY


@dataclass(frozen=True, slots=True)
class ConflictDay:
    day: date
    absent: int
    staff_count: int
    min_coverage: int
    max_concurrent_absences: int | None
    conflicting_request_ids: tuple[UUID, ...]

    @property
    def remaining(self) -> int:
        return self.staff_count - self.absent

    def as_detail(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "absent": self.absent,
            "staff_count": self.staff_count,
            "remaining": self.remaining,
            "min_coverage": self.min_coverage,
            "max_concurrent_absences": self.max_concurrent_absences,
            "conflicting_request_ids": [str(value) for value in self.conflicting_request_ids],
        }


@dataclass(frozen=True, slots=True)
class ConflictReport:
    days: tuple[ConflictDay, ...] = ()
    overlapping_request_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def has_conflict(self) -> bool:
        return bool(self.days)

    def details(self) -> list[dict[str, Any]] | None:
        if not self.days:
            return None
        return [day.as_detail() for day in self.days]


class ConflictEvaluator:
    def __init__(
        self,
        *,
        repository: ApprovalsRepository,
        org: OrgRepository,
        settings: Settings,
    ) -> None:
        self._repo = repository
        self._org = org
        self._settings = settings

    async def evaluate(self, request: ApprovalRequest) -> ConflictReport:
        others = await self._repo.overlapping(
            scope_type=request.scope_type,
            scope_id=request.scope_id,
            start_date=request.start_date,
            end_date=request.end_date,
            statuses=COUNTED_STATUSES,
            exclude_id=request.id,
        )
        min_coverage, max_absences = await self._rules(request)
        staff_count = len(await self._org.staff_user_ids(request.scope_type, request.scope_id))

        days: list[ConflictDay] = []
        for day in iter_days(request.start_date, request.end_date):
            covering = [
                other
                for other in others
                if intervals_overlap(other.start_date, other.end_date, day, day + ONE_DAY)
            ]
            absent = len({request.requester_id, *(other.requester_id for other in covering)})
            # coverage is only measurable with a staff roster for the unit
            below_coverage = staff_count > 0 and staff_count - absent < min_coverage
            over_cap = max_absences is not None and absent > max_absences
            if below_coverage or over_cap:
                days.append(
                    ConflictDay(
                        day=day,
                        absent=absent,
                        staff_count=staff_count,
                        min_coverage=min_coverage,
                        max_concurrent_absences=max_absences,
                        conflicting_request_ids=tuple(other.id for other in covering),
                    )
                )

        return ConflictReport(
            days=tuple(days),
            overlapping_request_ids=tuple(other.id for other in others),
        )

    async def _rules(self, request: ApprovalRequest) -> tuple[int, int | None]:
        min_coverage = self._settings.approval_min_coverage
        max_absences: int | None = None
        lineage = await self._org.lineage(request.scope_type, request.scope_id)
        if lineage is not None:
            workspace = await self._org.get_workspace(lineage.workspace_id)
            if workspace is not None:
                if workspace.min_staff_coverage is not None:
                    min_coverage = workspace.min_staff_coverage
                max_absences = workspace.max_concurrent_absences
        return min_coverage, max_absences


__all__ = [
    "ConflictDay",
    "ConflictEvaluator",
    "ConflictReport",
    "intervals_overlap",
    "iter_days",
]
