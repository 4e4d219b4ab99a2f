"""
Cleaner for IAM roles and instance profiles.

IAM refuses to delete a role that still has policies or instance
profiles, so the role deleter empties it first:

1. Instance profiles are separate units in an earlier stage; each one
   removes the role from itself and is then deleted.
2. Managed policies are detached and inline policies deleted.
3. The role is deleted.

IAM is eventually consistent; ``NoSuchEntity`` from ``GetRole`` or
``GetInstanceProfile`` is the signal that the unit is gone.
"""

from __future__ import annotations

import logging

from botocore.exceptions import ClientError

from tagreaper.core.aws_client import error_code
from tagreaper.core.base_cleaner import BaseCleaner
from tagreaper.core.models import DeletionUnit, IamRole, ResourceType

logger = logging.getLogger(__name__)


class IamCleaner(BaseCleaner):
    """Deletes IAM roles and their instance profiles."""

    NOT_FOUND_CODES = frozenset({"NoSuchEntity"})

    ERROR_MESSAGES = {
        **BaseCleaner.ERROR_MESSAGES,
        "DeleteConflict": "Role still has attached policies or instance profiles",
        "UnmodifiableEntity": "Role is protected and cannot be modified",
    }

    def __init__(self, aws_client) -> None:
        self._iam_client = None
        super().__init__(aws_client)

    @property
    def iam_client(self):
        """Lazy load IAM client."""
        if self._iam_client is None:
            self._iam_client = self.aws_client.get_iam_client()
        return self._iam_client

    def get_handlers(self):
        return {
            ResourceType.INSTANCE_PROFILE: (self.delete_instance_profile, self.instance_profile_deleted),
            ResourceType.IAM_ROLE: (self.delete_role, self.role_deleted),
        }

    # -- instance profiles -------------------------------------------------

    def delete_instance_profile(self, unit: DeletionUnit) -> None:
        if isinstance(unit.owner, IamRole):
            try:
                self.iam_client.remove_role_from_instance_profile(
                    InstanceProfileName=unit.identifier, RoleName=unit.owner.name
                )
            except ClientError as e:
                # Role already removed; the profile itself may still exist.
                if error_code(e) != "NoSuchEntity":
                    raise
        self.iam_client.delete_instance_profile(InstanceProfileName=unit.identifier)

    def instance_profile_deleted(self, unit: DeletionUnit) -> bool:
        self.iam_client.get_instance_profile(InstanceProfileName=unit.identifier)
        return False

    # -- roles -------------------------------------------------------------

    def detach_policies(self, role_name: str) -> None:
        """Detach managed policies and delete inline policies of a role."""
        paginator = self.iam_client.get_paginator("list_attached_role_policies")
        for page in paginator.paginate(RoleName=role_name):
            for policy in page.get("AttachedPolicies", []):
                logger.debug(f"Detaching {policy['PolicyArn']} from {role_name}")
                self.iam_client.detach_role_policy(RoleName=role_name, PolicyArn=policy["PolicyArn"])

        paginator = self.iam_client.get_paginator("list_role_policies")
        for page in paginator.paginate(RoleName=role_name):
            for policy_name in page.get("PolicyNames", []):
                logger.debug(f"Deleting inline policy {policy_name} of {role_name}")
                self.iam_client.delete_role_policy(RoleName=role_name, PolicyName=policy_name)

    def delete_role(self, unit: DeletionUnit) -> None:
        self.detach_policies(unit.identifier)
        self.iam_client.delete_role(RoleName=unit.identifier)

    def role_deleted(self, unit: DeletionUnit) -> bool:
        self.iam_client.get_role(RoleName=unit.identifier)
        return False
