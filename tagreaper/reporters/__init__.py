"""
Report Generators
=================

Output formatters for discovery, plans and deletion outcomes.

Available Reporters
-------------------
CLIReporter
    Rich terminal output with formatted tables.
JSONReporter
    JSON lines export, one ``{resource_type, identifier, status, cause}``
    record per deletion outcome.

Example
-------
>>> from tagreaper.reporters import CLIReporter, JSONReporter
>>>
>>> CLIReporter().report_outcomes(result.outcomes)
>>> JSONReporter(output_path="outcomes.jsonl").report(result.outcomes)
"""

from tagreaper.reporters.cli_reporter import CLIReporter
from tagreaper.reporters.json_reporter import JSONReporter

__all__ = [
    "CLIReporter",
    "JSONReporter",
]
