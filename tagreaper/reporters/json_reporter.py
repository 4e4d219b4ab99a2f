"""
JSON Reporter Module
====================

Exports deletion outcomes as JSON lines for machine consumption.

Every outcome becomes one line holding exactly one record::

    {"resource_type": "ecs_service", "identifier": "arn:...", "status": "deleted", "cause": null}
    {"resource_type": "ecs_cluster", "identifier": "arn:...", "status": "skipped_dependency_failed", "cause": "..."}

Lines follow the order outcomes were produced, i.e. stage order.

Classes
-------
JSONReporter
    Main reporter class for JSON lines export.

Example
-------
>>> from tagreaper.reporters import JSONReporter
>>>
>>> reporter = JSONReporter(output_path="outcomes.jsonl")
>>> filepath = reporter.report(result.outcomes)
>>>
>>> # Or get as string
>>> lines = reporter.to_string(result.outcomes)

See Also
--------
CLIReporter : For terminal display.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO

from tagreaper.core.models import Outcome

# Module logger
logger = logging.getLogger(__name__)


class JSONReporter:
    """
    Reporter for exporting outcomes as JSON lines.

    Parameters
    ----------
    output_path : str, optional
        Path for the output file. If not provided, generates a
        timestamped filename in the current directory.

    Examples
    --------
    Export to file:

    >>> reporter = JSONReporter(output_path="outcomes.jsonl")
    >>> filepath = reporter.report(outcomes)

    Write to an open stream:

    >>> reporter.write(outcomes, sys.stdout)
    """

    def __init__(self, output_path: Optional[str] = None) -> None:
        """Initialize the JSON reporter with an optional output path."""
        self.output_path = output_path
        logger.debug(f"Initialized JSONReporter (output_path={output_path})")

    def _get_output_path(self) -> Path:
        if self.output_path:
            return Path(self.output_path)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return Path(f"tag_reaper_outcomes_{timestamp}.jsonl")

    @staticmethod
    def to_records(outcomes: Iterable[Outcome]) -> List[Dict[str, Any]]:
        """Flatten outcomes into ``{resource_type, identifier, status, cause}`` records."""
        return [outcome.to_record() for outcome in outcomes]

    def write(self, outcomes: Iterable[Outcome], stream: TextIO) -> int:
        """
        Write one JSON line per outcome to ``stream``.

        Returns
        -------
        int
            Number of lines written.
        """
        count = 0
        for record in self.to_records(outcomes):
            stream.write(json.dumps(record, default=str))
            stream.write("\n")
            count += 1
        return count

    def report(self, outcomes: Iterable[Outcome]) -> str:
        """
        Export outcomes to a JSON lines file.

        Returns
        -------
        str
            Path to the created file.
        """
        output_path = self._get_output_path()

        with open(output_path, "w", encoding="utf-8") as f:
            count = self.write(outcomes, f)

        logger.info(f"Wrote {count} outcome record(s) to {output_path}")
        return str(output_path)

    def to_string(self, outcomes: Iterable[Outcome]) -> str:
        """Convert outcomes to a JSON lines string without writing a file."""
        return "".join(json.dumps(r, default=str) + "\n" for r in self.to_records(outcomes))

    def __repr__(self) -> str:
        """Return string representation."""
        return f"JSONReporter(output_path={self.output_path!r})"
