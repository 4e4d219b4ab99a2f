"""
Reaper Pipeline
===============

Glue for one full run: discover -> plan -> execute.

A single ``threading.Event`` is shared by the discovery coordinator and
the executor. Setting it (``cancel()``, usually from a signal handler)
stops new listers and new stages from starting; work already in flight
finishes and partial outcomes are returned.

Example
-------
>>> pipeline = ReaperPipeline(ReaperConfig(dry_run=True))
>>> result = pipeline.run()
>>> for outcome in result.outcomes:
...     print(outcome.to_record())
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from tagreaper.cleaners import build_cleaners
from tagreaper.core.aws_client import AWSClient
from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.base_lister import BaseLister
from tagreaper.core.config import ReaperConfig
from tagreaper.core.discovery import DiscoveryCoordinator, DiscoveryResult
from tagreaper.core.executor import DeleteSummary, DeletionExecutor
from tagreaper.core.models import Outcome, Resource, ResourceType
from tagreaper.core.planner import DeletionPlan, DeletionPlanner
from tagreaper.listers import build_listers

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a run produced."""

    discovery: DiscoveryResult
    plan: DeletionPlan
    outcomes: List[Outcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def summary(self) -> DeleteSummary:
        return DeleteSummary.from_outcomes(self.outcomes, cancelled=self.cancelled)


class ReaperPipeline:
    """
    Runs discovery, planning and deletion for one region.

    Parameters
    ----------
    config : ReaperConfig
        Run settings.
    aws_client : AWSClient, optional
        Defaults to a client for ``config.region`` / ``config.profile``.
    listers : sequence of BaseLister, optional
        Defaults to ``build_listers(aws_client, config, now)``.
    cleaners : mapping, optional
        Defaults to ``build_cleaners(aws_client)``.
    cancel_event : threading.Event, optional
        Shared cancellation flag.
    now : datetime, optional
        Fixed evaluation time for the eligibility predicate.
    progress_callback : callable, optional
        Receives each deletion ``Outcome`` as it is produced.
    """

    def __init__(
        self,
        config: ReaperConfig,
        aws_client: Optional[AWSClient] = None,
        listers: Optional[Sequence[BaseLister]] = None,
        cleaners: Optional[Mapping[ResourceType, BaseCleaner]] = None,
        cancel_event: Optional[threading.Event] = None,
        now: Optional[datetime] = None,
        progress_callback: Optional[Callable[[Outcome], None]] = None,
    ) -> None:
        self.config = config
        self.aws_client = aws_client or AWSClient(region=config.region, profile=config.profile)
        self.cancel_event = cancel_event or threading.Event()
        self.now = now
        self.progress_callback = progress_callback
        self._listers = listers
        self._cleaners = cleaners

    @property
    def listers(self) -> List[BaseLister]:
        if self._listers is None:
            self._listers = build_listers(self.aws_client, self.config, now=self.now)
        return list(self._listers)

    @property
    def cleaners(self) -> Dict[ResourceType, BaseCleaner]:
        if self._cleaners is None:
            self._cleaners = build_cleaners(self.aws_client)
        return dict(self._cleaners)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Stop starting new work. Safe to call from a signal handler."""
        self.cancel_event.set()

    def discover(self) -> DiscoveryResult:
        # One thread per lister; max_workers bounds deletion only.
        coordinator = DiscoveryCoordinator(self.listers, cancel_event=self.cancel_event)
        result = coordinator.discover()
        if result.error is not None:
            for cause in result.error.errors:
                logger.warning(f"Discovery error: {cause}")
        return result

    def plan(self, resources: Sequence[Resource]) -> DeletionPlan:
        return DeletionPlanner().plan(resources)

    def execute(self, plan: DeletionPlan) -> List[Outcome]:
        executor = DeletionExecutor(
            self.cleaners,
            max_workers=self.config.max_workers,
            poll_interval=self.config.poll_interval,
            wait_timeouts=self.config.wait_timeouts,
            dry_run=self.config.dry_run,
            cancel_event=self.cancel_event,
            progress_callback=self.progress_callback,
        )
        return executor.execute(plan)

    def run(self) -> PipelineResult:
        """
        Discover, plan and delete.

        Discovery errors do not stop the run; whatever was found is still
        reclaimed.

        Raises
        ------
        DependencyCycleError
            If the plan has a cycle. Nothing is deleted.
        """
        discovery = self.discover()
        plan = self.plan(discovery.resources)

        if self.cancelled:
            logger.warning("Cancelled after discovery; nothing deleted")
            return PipelineResult(discovery=discovery, plan=plan, cancelled=True)

        outcomes = self.execute(plan)
        result = PipelineResult(
            discovery=discovery,
            plan=plan,
            outcomes=outcomes,
            cancelled=self.cancelled,
        )
        summary = result.summary
        logger.info(
            f"Run complete: {summary.deleted} deleted, {summary.failed} failed, "
            f"{summary.skipped} skipped, {summary.dry_run} dry-run"
        )
        return result
