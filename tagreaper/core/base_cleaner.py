"""
Base Cleaner Module
===================

Abstract base class for resource cleaners.

A cleaner owns the two sub-steps the executor runs for every deletion
unit of the types it handles:

1. ``delete(unit)``: issue the provider call(s) that start deletion.
2. ``is_deleted(unit)``: one status poll; True once the unit is gone.

Both translate "not found" provider errors into success, so re-running
against partially cleaned accounts never reports a failure for something
that is already gone. Any other provider error becomes a ``DeleteError``
with a readable message.

Example
-------
>>> class MyCleaner(BaseCleaner):
...     def get_handlers(self):
...         return {ResourceType.LOG_GROUP: (self.delete_log_group, self.log_group_deleted)}
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, FrozenSet, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from tagreaper.core.aws_client import error_code
from tagreaper.core.exceptions import DeleteError
from tagreaper.core.models import DeletionUnit, ResourceType

logger = logging.getLogger(__name__)

Handler = Tuple[Callable[[DeletionUnit], None], Callable[[DeletionUnit], bool]]


class BaseCleaner(ABC):
    """
    Abstract base class for cleaners.

    Subclasses declare which resource types they handle through
    ``get_handlers`` and may extend ``NOT_FOUND_CODES`` and
    ``ERROR_MESSAGES``.

    Parameters
    ----------
    aws_client : AWSClient
        Shared AWS client.
    """

    # Error codes meaning the target no longer exists
    NOT_FOUND_CODES: FrozenSet[str] = frozenset()

    # Common error codes and user-friendly messages
    ERROR_MESSAGES: Dict[str, str] = {
        "DependencyViolation": "Resource is still in use by another resource",
        "UnauthorizedOperation": "Insufficient permissions to delete resource",
        "AccessDenied": "Insufficient permissions to delete resource",
        "AccessDeniedException": "Insufficient permissions to delete resource",
    }

    def __init__(self, aws_client) -> None:
        self.aws_client = aws_client
        self._handlers: Dict[ResourceType, Handler] = self.get_handlers()

    @abstractmethod
    def get_handlers(self) -> Dict[ResourceType, Handler]:
        """Map each handled type to its (delete, is_deleted) pair."""
        pass

    @property
    def resource_types(self) -> Tuple[ResourceType, ...]:
        return tuple(self._handlers)

    def is_not_found(self, error: ClientError) -> bool:
        return error_code(error) in self.NOT_FOUND_CODES

    def _handler(self, unit: DeletionUnit) -> Handler:
        try:
            return self._handlers[unit.resource_type]
        except KeyError:
            raise DeleteError(
                f"{self.__class__.__name__} cannot delete {unit.resource_type.value}",
                resource_id=unit.identifier,
                resource_type=unit.resource_type.value,
            ) from None

    def _error(self, unit: DeletionUnit, action: str, error: Exception) -> DeleteError:
        if isinstance(error, ClientError):
            code = error_code(error)
            message = self.ERROR_MESSAGES.get(
                code, error.response.get("Error", {}).get("Message", str(error))
            )
            details = {"error_code": code}
        else:
            message, details = str(error), {}
        return DeleteError(
            f"Failed to {action} {unit.resource_type.value} {unit.identifier}: {message}",
            resource_id=unit.identifier,
            resource_type=unit.resource_type.value,
            details=details,
        )

    def delete(self, unit: DeletionUnit) -> None:
        """
        Start deletion of ``unit``.

        Raises
        ------
        DeleteError
            If the provider rejects the request.
        """
        deleter, _ = self._handler(unit)
        try:
            deleter(unit)
        except ClientError as e:
            if self.is_not_found(e):
                logger.info(f"{unit} already deleted")
                return
            raise self._error(unit, "delete", e) from e
        except BotoCoreError as e:
            raise self._error(unit, "delete", e) from e

    def is_deleted(self, unit: DeletionUnit) -> bool:
        """
        Poll once whether ``unit`` is gone.

        Raises
        ------
        DeleteError
            If the status query itself fails.
        """
        _, checker = self._handler(unit)
        try:
            return checker(unit)
        except ClientError as e:
            if self.is_not_found(e):
                return True
            raise self._error(unit, "check", e) from e
        except BotoCoreError as e:
            raise self._error(unit, "check", e) from e

    def __repr__(self) -> str:
        types = ", ".join(t.value for t in self.resource_types)
        return f"{self.__class__.__name__}({types})"
