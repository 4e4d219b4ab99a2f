"""
IAM Role Lister
===============

Finds stale IAM roles and the instance profiles that reference them.

This is the most expensive lister: ``ListRoles`` supports no name or tag
filter, so every role in the account is paged through and tags are fetched
one role at a time. The name-prefix check runs first so tags are only
fetched for candidates. It is left out of the default lister set and must
be requested explicitly.

Detection Logic
---------------
1. Page through all roles.
2. Keep roles whose name starts with the naming convention.
3. Fetch tags per candidate. A failure is recorded and the next role is
   processed.
4. Apply the eligibility predicate.
5. Resolve instance profiles (best effort).
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.eligibility import tags_from_list
from tagreaper.core.exceptions import ResourceFetchError
from tagreaper.core.models import IamRole, Resource, ResourceType

logger = logging.getLogger(__name__)


class IamRoleLister(BaseLister):
    """Lister for stale IAM roles."""

    def __init__(self, aws_client, config, now=None) -> None:
        super().__init__(aws_client, config, now=now)
        self._iam_client = None

    @property
    def iam_client(self):
        """Get IAM client (lazy loaded)."""
        if self._iam_client is None:
            self._iam_client = self.aws_client.get_iam_client()
        return self._iam_client

    def get_resource_type(self) -> ResourceType:
        return ResourceType.IAM_ROLE

    def list_stale_resources(self) -> List[Resource]:
        logger.info("Listing IAM roles")
        roles: List[Resource] = []

        paginator = self.iam_client.get_paginator("list_roles")
        for page in paginator.paginate():
            for role in page.get("Roles", []):
                name = role["RoleName"]
                if not self.matches_name(name):
                    continue

                try:
                    tags = self._list_role_tags(name)
                except Exception as e:
                    self.record_error(
                        ResourceFetchError(
                            f"Failed to fetch tags for role {name}: {e}",
                            resource_type=ResourceType.IAM_ROLE.value,
                        )
                    )
                    continue

                if self.is_stale(tags):
                    roles.append(
                        IamRole(
                            id=role["RoleId"],
                            name=name,
                            instance_profile_names=self.list_instance_profiles(name),
                        )
                    )
        return roles

    def _list_role_tags(self, role_name: str):
        tags = []
        kwargs = {"RoleName": role_name}
        while True:
            response = self.iam_client.list_role_tags(**kwargs)
            tags.extend(response.get("Tags", []))
            if not response.get("IsTruncated"):
                break
            kwargs["Marker"] = response["Marker"]
        return tags_from_list(tags)

    def list_instance_profiles(self, role_name: str) -> Tuple[str, ...]:
        logger.debug(f"Listing instance profiles for role {role_name}")
        names: List[str] = []
        try:
            paginator = self.iam_client.get_paginator("list_instance_profiles_for_role")
            for page in paginator.paginate(RoleName=role_name):
                names.extend(p["InstanceProfileName"] for p in page.get("InstanceProfiles", []))
        except (ClientError, BotoCoreError) as e:
            self.record_error(
                ResourceFetchError(
                    f"Failed to list instance profiles for role {role_name}: {e}",
                    resource_type=ResourceType.INSTANCE_PROFILE.value,
                    details={"role": role_name},
                )
            )
            return ()
        return tuple(names)
