"""
Custom Exceptions for Tag-Reaper
================================

This module defines a hierarchy of custom exceptions used throughout
the application for consistent error handling and reporting.

Exception Hierarchy
-------------------
::

    TagReaperError (base)
    ├── ConfigError
    ├── AWSClientError
    │   ├── CredentialsError
    │   ├── RegionError
    │   └── ServiceError
    ├── ListerError
    │   └── ResourceFetchError
    ├── AggregateError
    │   └── DiscoveryError
    ├── PlanError
    │   └── DependencyCycleError
    └── CleanerError
        ├── DeleteError
        ├── DependencyError
        └── DeletionTimeoutError

Example
-------
>>> from tagreaper.core.exceptions import DiscoveryError
>>>
>>> result = coordinator.discover()
>>> if result.error is not None:
...     for cause in result.error.errors:
...         print(f"Lister failed: {cause}")
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class TagReaperError(Exception):
    """
    Base exception for all Tag-Reaper errors.

    All custom exceptions in the application inherit from this class,
    allowing for broad exception catching when needed.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(TagReaperError):
    """Raised when a configuration value cannot be parsed or is out of range."""

    pass


# =============================================================================
# AWS Client Exceptions
# =============================================================================


class AWSClientError(TagReaperError):
    """
    Base exception for AWS client-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        The AWS service that caused the error.
    region : str, optional
        The AWS region where the error occurred.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class CredentialsError(AWSClientError):
    """Raised when AWS credentials are invalid, missing, or expired."""

    pass


class RegionError(AWSClientError):
    """Raised when there's an issue with the specified AWS region."""

    pass


class ServiceError(AWSClientError):
    """Raised when there's an error accessing a specific AWS service."""

    pass


# =============================================================================
# Lister Exceptions
# =============================================================================


class ListerError(TagReaperError):
    """
    Base exception for lister-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    resource_type : str, optional
        The type of resource being listed.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.resource_type = resource_type
        full_details = details or {}
        if resource_type:
            full_details["resource_type"] = resource_type
        super().__init__(message, full_details)


class ResourceFetchError(ListerError):
    """
    Raised when a lister is unable to enumerate its resource type.

    Example
    -------
    >>> raise ResourceFetchError(
    ...     "Failed to list ECS clusters",
    ...     resource_type="ecs_cluster",
    ... )
    """

    pass


# =============================================================================
# Aggregated Errors
# =============================================================================


class AggregateError(TagReaperError):
    """
    Several independent failures combined into one error value.

    Nested aggregates are flattened, so ``errors`` always holds the
    underlying causes.

    Parameters
    ----------
    errors : iterable of Exception
        The collected failures.
    message : str, optional
        Summary message. Defaults to a count of the errors.

    Attributes
    ----------
    errors : list of Exception
        The flattened list of causes, in the order they were collected.

    Example
    -------
    >>> err = AggregateError.from_errors([ValueError("a"), KeyError("b")])
    >>> len(err.errors)
    2
    >>> AggregateError.from_errors([]) is None
    True
    """

    def __init__(
        self,
        errors: Iterable[BaseException],
        message: Optional[str] = None,
    ) -> None:
        self.errors: List[BaseException] = _flatten(errors)
        summary = message or f"{len(self.errors)} error(s) occurred"
        super().__init__(summary, {"errors": [str(e) for e in self.errors]})

    @classmethod
    def from_errors(
        cls,
        errors: Iterable[Optional[BaseException]],
        message: Optional[str] = None,
    ) -> Optional["AggregateError"]:
        """
        Build an aggregate from a list that may contain ``None`` entries.

        Returns
        -------
        AggregateError or None
            None when there is nothing to report.
        """
        collected = [e for e in errors if e is not None]
        if not collected:
            return None
        return cls(collected, message)

    def __len__(self) -> int:
        return len(self.errors)


class DiscoveryError(AggregateError):
    """Combined failures of one or more listers during a discovery pass."""

    pass


def _flatten(errors: Iterable[BaseException]) -> List[BaseException]:
    flat: List[BaseException] = []
    for error in errors:
        if isinstance(error, AggregateError):
            flat.extend(error.errors)
        else:
            flat.append(error)
    return flat


# =============================================================================
# Planner Exceptions
# =============================================================================


class PlanError(TagReaperError):
    """Base exception for deletion planning errors."""

    pass


class DependencyCycleError(PlanError):
    """
    Raised when the deletion dependency graph contains a cycle.

    This is fatal: the run aborts before any deletion is attempted.

    Parameters
    ----------
    message : str
        Human-readable error message.
    cycle : list of str
        Keys of the units forming the cycle.
    """

    def __init__(self, message: str, cycle: Optional[List[str]] = None) -> None:
        self.cycle = list(cycle or [])
        super().__init__(message, {"cycle": self.cycle} if self.cycle else None)


# =============================================================================
# Cleaner Exceptions
# =============================================================================


class CleanerError(TagReaperError):
    """
    Base exception for cleaner-related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    resource_id : str, optional
        The ID of the resource being cleaned.
    resource_type : str, optional
        The type of resource being cleaned.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        resource_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.resource_id = resource_id
        self.resource_type = resource_type
        full_details = details or {}
        if resource_id:
            full_details["resource_id"] = resource_id
        if resource_type:
            full_details["resource_type"] = resource_type
        super().__init__(message, full_details)


class DeleteError(CleanerError):
    """
    Raised when the provider rejects a delete call.

    Example
    -------
    >>> raise DeleteError(
    ...     "Failed to delete subnet",
    ...     resource_id="subnet-123456",
    ...     resource_type="subnet",
    ...     details={"error_code": "DependencyViolation"},
    ... )
    """

    pass


class DependencyError(CleanerError):
    """
    Raised when a resource is not attempted because something it depends on
    could not be deleted.

    Example
    -------
    >>> raise DependencyError(
    ...     "Dependency ecs_service:arn:...:service/web was not deleted",
    ...     resource_id="arn:aws:ecs:...:cluster/consul-ecs-1",
    ...     details={"blocked_by": ["ecs_service:arn:...:service/web"]},
    ... )
    """

    pass


class DeletionTimeoutError(CleanerError):
    """Raised when a resource is still present after its wait timeout elapsed."""

    pass
