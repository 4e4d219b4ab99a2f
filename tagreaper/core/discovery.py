"""
Discovery Coordinator
=====================

Runs every lister concurrently and merges their output into one
collection of resources plus one combined error.

This module handles:
- Fan-out of one task per lister on a thread pool
- Fan-in through a bounded queue (a full queue blocks the producer)
- A join barrier: the result is built only after every lister reported
- Aggregation of lister errors without dropping other listers' resources

Classes
-------
DiscoveryResult
    Resources found and the combined discovery error.
DiscoveryCoordinator
    Orchestrates concurrent listing.

Example
-------
>>> coordinator = DiscoveryCoordinator(build_listers(client, config))
>>> result = coordinator.discover()
>>> print(f"{len(result.resources)} stale resources")
>>> if result.error:
...     print(f"{len(result.error.errors)} lister error(s)")

Notes
-----
The merged collection is ordered by lister position, then by the order
each lister emitted its resources, so repeated runs against the same
account produce the same sequence.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple, Union

from tagreaper.core.base_lister import BaseLister, ListResult
from tagreaper.core.exceptions import DiscoveryError, ResourceFetchError
from tagreaper.core.models import Resource

logger = logging.getLogger(__name__)

# Far above any plausible number of leftovers in one account
DEFAULT_QUEUE_SIZE = 10000

# Position marker sent by a worker after its last resource
_DONE = -1


@dataclass
class DiscoveryResult:
    """
    Aggregated output of a discovery pass.

    Attributes
    ----------
    resources : list of Resource
        Every stale resource found, in discovery order.
    error : DiscoveryError or None
        All lister errors combined; None if every lister succeeded.
    results_by_type : dict
        ``ListResult`` per resource type name.
    skipped : list of str
        Listers not started because the run was cancelled.
    discovery_time : datetime
        When discovery finished.
    """

    resources: List[Resource] = field(default_factory=list)
    error: Optional[DiscoveryError] = None
    results_by_type: Dict[str, ListResult] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    discovery_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_errors(self) -> bool:
        return self.error is not None

    def identifiers(self) -> List[Tuple[str, str]]:
        """(resource type, identifier) pairs, handy for comparing runs."""
        return [(r.resource_type.value, r.identifier) for r in self.resources]

    def __repr__(self) -> str:
        return (
            f"DiscoveryResult(resources={len(self.resources)}, "
            f"errors={len(self.error.errors) if self.error else 0})"
        )


class DiscoveryCoordinator:
    """
    Runs listers in parallel and merges their results.

    Parameters
    ----------
    listers : sequence of BaseLister
        Listers to run. Their order defines the discovery order.
    max_workers : int, optional
        Thread pool size. Defaults to one thread per lister.
    queue_size : int, default=10000
        Capacity of the merge queue.
    cancel_event : threading.Event, optional
        When set, listers that have not started yet are skipped.
    """

    def __init__(
        self,
        listers: Sequence[BaseLister],
        max_workers: Optional[int] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.listers = list(listers)
        self.max_workers = max_workers or max(len(self.listers), 1)
        self.queue_size = queue_size
        self.cancel_event = cancel_event or threading.Event()

    def _run_lister(self, index: int, lister: BaseLister, sink: "queue.Queue") -> None:
        """
        Worker body: list, push each resource, then push the done marker.

        The done payload is the ``ListResult``, a ``ResourceFetchError`` if
        the lister crashed, or None if it was skipped.
        """
        name = lister.__class__.__name__
        payload: Union[ListResult, ResourceFetchError, None] = None
        try:
            if self.cancel_event.is_set():
                logger.info(f"Cancelled before running {name}")
                return
            result = lister.list_resources()
            for position, resource in enumerate(result.resources):
                sink.put((index, position, resource))
            payload = result
        except Exception as e:
            logger.exception(f"{name} crashed")
            payload = ResourceFetchError(f"{name} crashed: {e}", details={"lister": name})
        finally:
            sink.put((index, _DONE, payload))

    def discover(self) -> DiscoveryResult:
        """
        Run every lister and wait for all of them.

        Returns
        -------
        DiscoveryResult
            Partial results are returned together with the combined error;
            the caller decides whether they are acceptable.
        """
        logger.info(f"Starting discovery with {len(self.listers)} lister(s)")
        sink: "queue.Queue" = queue.Queue(maxsize=self.queue_size)
        found: List[Tuple[int, int, Resource]] = []
        results: Dict[int, Union[ListResult, ResourceFetchError, None]] = {}

        if not self.listers:
            return DiscoveryResult()

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="lister") as executor:
            for index, lister in enumerate(self.listers):
                executor.submit(self._run_lister, index, lister, sink)

            # Drain while listers run so a full queue only ever blocks briefly.
            while len(results) < len(self.listers):
                index, position, payload = sink.get()
                if position == _DONE:
                    results[index] = payload
                else:
                    found.append((index, position, payload))

        found.sort(key=lambda item: (item[0], item[1]))

        errors: List[BaseException] = []
        by_type: Dict[str, ListResult] = {}
        skipped: List[str] = []
        for index, lister in enumerate(self.listers):
            result = results.get(index)
            if result is None:
                skipped.append(lister.__class__.__name__)
                continue
            if isinstance(result, ResourceFetchError):
                errors.append(result)
                continue
            by_type[result.resource_type.value] = result
            errors.extend(result.errors)

        discovery = DiscoveryResult(
            resources=[resource for _, _, resource in found],
            error=DiscoveryError.from_errors(errors, message=f"Discovery finished with {len(errors)} error(s)"),
            results_by_type=by_type,
            skipped=skipped,
        )
        logger.info(
            f"Discovery complete: {len(discovery.resources)} resource(s), "
            f"{len(errors)} error(s)"
        )
        return discovery
