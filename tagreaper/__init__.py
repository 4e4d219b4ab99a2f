"""
Tag-Reaper: Tag-Scoped AWS Garbage Collector
============================================

Finds AWS resources left behind by CI builds and deletes them in
dependency order. A resource is reclaimed only when its owner tag names
the CI project and its build-time tag is older than the configured age.

Modules
-------
core
    Core components (AWS client, eligibility, discovery, planner, executor)
listers
    Resource-specific listers
cleaners
    Resource-specific cleaners
reporters
    Output formatters (CLI, JSON lines)

Example
-------
>>> from tagreaper import ReaperConfig, ReaperPipeline
>>>
>>> result = ReaperPipeline(ReaperConfig(region="us-west-2", dry_run=True)).run()
>>> print(f"{len(result.discovery.resources)} stale resources")

Notes
-----
Requires AWS credentials configured via:
- Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
- AWS credentials file (~/.aws/credentials)
- IAM role (when running on AWS infrastructure)

See Also
--------
boto3 : AWS SDK for Python
"""

__version__ = "0.1.0"
__author__ = "Tag-Reaper Team"
__license__ = "MIT"

# Public API
from tagreaper.core.aws_client import AWSClient
from tagreaper.core.config import EligibilityConfig, ReaperConfig
from tagreaper.core.pipeline import PipelineResult, ReaperPipeline

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core classes
    "AWSClient",
    "EligibilityConfig",
    "ReaperConfig",
    "PipelineResult",
    "ReaperPipeline",
]
