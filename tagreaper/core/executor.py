"""
Deletion Executor
=================

Runs a ``DeletionPlan`` stage by stage.

This module handles:
- Concurrent deletion of every unit in a stage on a bounded thread pool
- A strict barrier between stages
- Delete then await per unit, with a per-type wait timeout
- Skipping units whose dependencies were not deleted
- Cooperative cancellation between stages

Classes
-------
DeleteSummary
    Outcome counts for a run.
DeletionExecutor
    Executes a plan and returns one outcome per attempted unit.

Example
-------
>>> executor = DeletionExecutor(build_cleaners(client), max_workers=8)
>>> outcomes = executor.execute(plan)
>>> summary = DeleteSummary.from_outcomes(outcomes)
>>> print(f"{summary.deleted} deleted, {summary.failed} failed")

Notes
-----
Cancellation never interrupts a unit that has started: its delete and
await run to a terminal status. No further stage is started, and the
outcomes collected so far are returned.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.exceptions import (
    CleanerError,
    DeleteError,
    DeletionTimeoutError,
    DependencyError,
)
from tagreaper.core.models import DeleteStatus, DeletionUnit, Outcome, ResourceType
from tagreaper.core.planner import DeletionPlan

logger = logging.getLogger(__name__)

# Seconds to wait for a unit to disappear after its delete call
DEFAULT_WAIT_TIMEOUTS: Dict[ResourceType, float] = {
    ResourceType.EC2_INSTANCES: 600,
    ResourceType.ECS_SERVICE: 600,
    ResourceType.ECS_CLUSTER: 300,
    ResourceType.NAT_GATEWAY: 600,
}
FALLBACK_WAIT_TIMEOUT = 120.0


@dataclass
class DeleteSummary:
    """
    Summary of a deletion run.

    Attributes
    ----------
    total, deleted, failed, skipped, dry_run : int
        Outcome counts by status.
    outcomes : list of Outcome
        Individual outcomes in completion order.
    cancelled : bool
        Whether the run stopped early.
    start_time, end_time : datetime
        Bounds of the run.
    """

    total: int = 0
    deleted: int = 0
    failed: int = 0
    skipped: int = 0
    dry_run: int = 0
    outcomes: List[Outcome] = field(default_factory=list)
    cancelled: bool = False
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None

    def add_outcome(self, outcome: Outcome) -> None:
        """Add an outcome and update counts."""
        self.outcomes.append(outcome)
        self.total += 1

        if outcome.status == DeleteStatus.DELETED:
            self.deleted += 1
        elif outcome.status == DeleteStatus.FAILED:
            self.failed += 1
        elif outcome.status == DeleteStatus.SKIPPED_DEPENDENCY_FAILED:
            self.skipped += 1
        elif outcome.status == DeleteStatus.DRY_RUN:
            self.dry_run += 1

    @classmethod
    def from_outcomes(cls, outcomes: List[Outcome], cancelled: bool = False) -> "DeleteSummary":
        summary = cls(cancelled=cancelled)
        for outcome in outcomes:
            summary.add_outcome(outcome)
        summary.complete()
        return summary

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or self.skipped > 0

    def complete(self) -> None:
        """Mark the run as complete."""
        self.end_time = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "deleted": self.deleted,
            "failed": self.failed,
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "outcomes": [o.to_record() for o in self.outcomes],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


class DeletionExecutor:
    """
    Executes deletion plans.

    Parameters
    ----------
    cleaners : mapping
        ``ResourceType`` -> cleaner dispatch table.
    max_workers : int, default=8
        Concurrent units per stage.
    poll_interval : float, default=5.0
        Seconds between status polls.
    wait_timeouts : mapping, optional
        Per-type overrides of ``DEFAULT_WAIT_TIMEOUTS``, keyed by
        ``ResourceType`` or its string value.
    dry_run : bool, default=False
        Report ``DRY_RUN`` for every unit without calling the provider.
    cancel_event : threading.Event, optional
        When set, no further stage is started.
    progress_callback : callable, optional
        Called with each ``Outcome`` as it is produced.
    """

    def __init__(
        self,
        cleaners: Mapping[ResourceType, BaseCleaner],
        max_workers: int = 8,
        poll_interval: float = 5.0,
        wait_timeouts: Optional[Mapping[Any, float]] = None,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[Outcome], None]] = None,
    ) -> None:
        self.cleaners = dict(cleaners)
        self.max_workers = max_workers
        self.poll_interval = poll_interval
        self.dry_run = dry_run
        self.cancel_event = cancel_event or threading.Event()
        self.progress_callback = progress_callback

        self.wait_timeouts: Dict[ResourceType, float] = dict(DEFAULT_WAIT_TIMEOUTS)
        for key, seconds in (wait_timeouts or {}).items():
            self.wait_timeouts[ResourceType(key) if isinstance(key, str) else key] = float(seconds)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def timeout_for(self, resource_type: ResourceType) -> float:
        return self.wait_timeouts.get(resource_type, FALLBACK_WAIT_TIMEOUT)

    # -------------------------------------------------------------------------
    # Per-unit work
    # -------------------------------------------------------------------------

    def _await_deletion(self, cleaner: BaseCleaner, unit: DeletionUnit) -> None:
        timeout = self.timeout_for(unit.resource_type)
        deadline = time.monotonic() + timeout
        while True:
            if cleaner.is_deleted(unit):
                return
            if time.monotonic() >= deadline:
                raise DeletionTimeoutError(
                    f"{unit} still present after {timeout:g}s",
                    resource_id=unit.identifier,
                    resource_type=unit.resource_type.value,
                )
            time.sleep(self.poll_interval)

    def _process(self, unit: DeletionUnit) -> Outcome:
        if self.dry_run:
            logger.info(f"[dry-run] Would delete {unit}")
            return Outcome(unit, DeleteStatus.DRY_RUN)

        cleaner = self.cleaners.get(unit.resource_type)
        if cleaner is None:
            error = DeleteError(
                f"No cleaner registered for {unit.resource_type.value}",
                resource_id=unit.identifier,
                resource_type=unit.resource_type.value,
            )
            logger.error(str(error))
            return Outcome(unit, DeleteStatus.FAILED, cause=error)

        try:
            logger.info(f"Deleting {unit}")
            cleaner.delete(unit)
            self._await_deletion(cleaner, unit)
        except CleanerError as e:
            logger.error(f"Failed to delete {unit}: {e}")
            return Outcome(unit, DeleteStatus.FAILED, cause=e)
        except Exception as e:
            logger.exception(f"Unexpected error deleting {unit}")
            error = DeleteError(
                f"Unexpected error deleting {unit}: {e}",
                resource_id=unit.identifier,
                resource_type=unit.resource_type.value,
            )
            return Outcome(unit, DeleteStatus.FAILED, cause=error)

        logger.info(f"Deleted {unit}")
        return Outcome(unit, DeleteStatus.DELETED)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _record(self, outcome: Outcome, statuses: Dict[str, Outcome], outcomes: List[Outcome]) -> None:
        statuses[outcome.unit.key] = outcome
        outcomes.append(outcome)
        if self.progress_callback:
            self.progress_callback(outcome)

    def execute(self, plan: DeletionPlan) -> List[Outcome]:
        """
        Execute ``plan``.

        Returns
        -------
        list of Outcome
            One outcome per unit reached, in stage order. Shorter than the
            plan when the run was cancelled.
        """
        statuses: Dict[str, Outcome] = {}
        outcomes: List[Outcome] = []

        for number, stage in enumerate(plan.stages, 1):
            if self.cancelled:
                logger.warning(f"Cancelled; not starting stage {number} of {len(plan.stages)}")
                break

            runnable: List[DeletionUnit] = []
            for unit in stage:
                if unit.key in statuses:
                    continue
                blockers = sorted(
                    dep for dep in plan.dependencies.get(unit.key, ())
                    if dep not in statuses or not statuses[dep].succeeded
                )
                if blockers:
                    logger.warning(f"Skipping {unit}: blocked by {', '.join(blockers)}")
                    cause = DependencyError(
                        f"Dependency not deleted: {', '.join(blockers)}",
                        resource_id=unit.identifier,
                        resource_type=unit.resource_type.value,
                        details={"blocked_by": blockers},
                    )
                    self._record(
                        Outcome(unit, DeleteStatus.SKIPPED_DEPENDENCY_FAILED, cause=cause),
                        statuses,
                        outcomes,
                    )
                else:
                    runnable.append(unit)

            if not runnable:
                continue

            logger.info(f"Stage {number}/{len(plan.stages)}: {len(runnable)} unit(s)")
            workers = min(self.max_workers, len(runnable))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"stage{number}") as pool:
                # map keeps plan order in the returned outcomes
                for outcome in pool.map(self._process, runnable):
                    self._record(outcome, statuses, outcomes)

        return outcomes
