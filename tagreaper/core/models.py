"""
Resource Model
==============

Immutable snapshots of discovered resources and the values that flow
through planning and deletion.

Resources form a closed set of seven variants. Each one is a frozen
dataclass carrying the identifiers needed to delete it and its children;
``describe()`` gives a one-line human summary. Deletion itself is
dispatched by ``ResourceType`` in the executor, not through methods on the
resources.

Classes
-------
ResourceType
    Every kind of thing the reaper can delete, including child units.
Resource
    Base class of the discovered variants.
InstanceGroup, EcsCluster, NatGateway, Vpc, ElasticIp, LogGroup, IamRole
    The discovered variants.
DeletionUnit
    One delete/await target in a plan (a resource or one of its children).
DeleteStatus, Outcome
    Terminal result of a deletion unit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from tagreaper.core.eligibility import TagSet


class ResourceType(Enum):
    """Resource and child-unit types, valued by their report name."""

    EC2_INSTANCES = "ec2_instances"
    ECS_CLUSTER = "ecs_cluster"
    ECS_SERVICE = "ecs_service"
    NAT_GATEWAY = "nat_gateway"
    VPC = "vpc"
    SUBNET = "subnet"
    SECURITY_GROUP = "security_group"
    ROUTE_TABLE = "route_table"
    INTERNET_GATEWAY = "internet_gateway"
    ELASTIC_IP = "elastic_ip"
    LOG_GROUP = "log_group"
    IAM_ROLE = "iam_role"
    INSTANCE_PROFILE = "instance_profile"


# =============================================================================
# Discovered Resources
# =============================================================================


@dataclass(frozen=True)
class Resource:
    """
    Base class for discovered resources.

    Subclasses set ``resource_type`` and implement ``identifier`` and
    ``describe``.
    """

    resource_type = None  # type: ResourceType

    @property
    def identifier(self) -> str:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "resource_type": self.resource_type.value,
            "identifier": self.identifier,
            "description": self.describe(),
        }


@dataclass(frozen=True)
class InstanceGroup(Resource):
    """
    Stale EC2 instances found in one discovery pass.

    ``subnet_ids`` and ``security_group_ids`` record where the instances
    run so they can be terminated before those network pieces are removed.
    """

    instance_ids: Tuple[str, ...]
    subnet_ids: Tuple[str, ...] = ()
    security_group_ids: Tuple[str, ...] = ()

    resource_type = ResourceType.EC2_INSTANCES

    @property
    def identifier(self) -> str:
        return ",".join(self.instance_ids)

    def describe(self) -> str:
        return f"instances={list(self.instance_ids)}"


@dataclass(frozen=True)
class EcsCluster(Resource):
    """ECS cluster and the services registered in it."""

    arn: str
    service_arns: Tuple[str, ...] = ()

    resource_type = ResourceType.ECS_CLUSTER

    @property
    def identifier(self) -> str:
        return self.arn

    @property
    def name(self) -> str:
        return self.arn.rsplit("/", 1)[-1]

    def describe(self) -> str:
        return f"arn={self.arn} services={list(self.service_arns)}"


@dataclass(frozen=True)
class NatGateway(Resource):
    """NAT gateway, with the subnet it lives in and the EIPs it holds."""

    id: str
    vpc_id: Optional[str] = None
    subnet_id: Optional[str] = None
    allocation_ids: Tuple[str, ...] = ()

    resource_type = ResourceType.NAT_GATEWAY

    @property
    def identifier(self) -> str:
        return self.id

    def describe(self) -> str:
        return f"natgw={self.id} vpc={self.vpc_id} eips={list(self.allocation_ids)}"


@dataclass(frozen=True)
class Vpc(Resource):
    """
    VPC and the children that must go before it.

    The main route table and the default security group are never
    included; the provider removes them together with the VPC.
    """

    id: str
    internet_gateway_id: Optional[str] = None
    subnet_ids: Tuple[str, ...] = ()
    security_group_ids: Tuple[str, ...] = ()
    route_table_ids: Tuple[str, ...] = ()

    resource_type = ResourceType.VPC

    @property
    def identifier(self) -> str:
        return self.id

    def describe(self) -> str:
        return (
            f"vpc={self.id} igw={self.internet_gateway_id or ''} "
            f"subnets={list(self.subnet_ids)} secgroups={list(self.security_group_ids)} "
            f"routetables={list(self.route_table_ids)}"
        )


@dataclass(frozen=True)
class ElasticIp(Resource):
    """Elastic IP allocation."""

    allocation_id: str
    public_ip: Optional[str] = None
    association_id: Optional[str] = None

    resource_type = ResourceType.ELASTIC_IP

    @property
    def identifier(self) -> str:
        return self.allocation_id

    def describe(self) -> str:
        return f"eip={self.allocation_id} ip={self.public_ip or ''}"


@dataclass(frozen=True)
class LogGroup(Resource):
    """CloudWatch Logs log group."""

    name: str

    resource_type = ResourceType.LOG_GROUP

    @property
    def identifier(self) -> str:
        return self.name

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class IamRole(Resource):
    """IAM role and the instance profiles that reference it."""

    id: str
    name: str
    instance_profile_names: Tuple[str, ...] = ()

    resource_type = ResourceType.IAM_ROLE

    @property
    def identifier(self) -> str:
        return self.name

    def describe(self) -> str:
        return f"id={self.id} name={self.name} instanceProfiles={list(self.instance_profile_names)}"


# =============================================================================
# Planning and Execution
# =============================================================================


@dataclass(frozen=True)
class DeletionUnit:
    """
    A single thing to delete and await.

    Attributes
    ----------
    resource_type : ResourceType
        What kind of unit this is.
    identifier : str
        Provider identifier (ARN, ID or name).
    owner : Resource
        The discovered resource this unit belongs to. Child units read
        context from it, e.g. a service's cluster or an IGW's VPC.
    sequence : int
        Discovery order, used as the tie-break inside a stage.
    """

    resource_type: ResourceType
    identifier: str
    owner: Resource = field(compare=False, hash=False, repr=False)
    sequence: int = field(default=0, compare=False, hash=False)

    @property
    def key(self) -> str:
        return f"{self.resource_type.value}:{self.identifier}"

    def __str__(self) -> str:
        return self.key


class DeleteStatus(Enum):
    """Terminal status of a deletion unit."""

    DELETED = "deleted"
    FAILED = "failed"
    SKIPPED_DEPENDENCY_FAILED = "skipped_dependency_failed"
    DRY_RUN = "dry_run"


@dataclass
class Outcome:
    """
    Result for one deletion unit.

    Attributes
    ----------
    unit : DeletionUnit
        The unit that was processed.
    status : DeleteStatus
        Terminal status.
    cause : Exception, optional
        Why the unit failed or was skipped.
    timestamp : datetime
        When the terminal status was reached.
    """

    unit: DeletionUnit
    status: DeleteStatus
    cause: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.status in (DeleteStatus.DELETED, DeleteStatus.DRY_RUN)

    def to_record(self) -> Dict[str, Any]:
        """Flat record for report sinks."""
        return {
            "resource_type": self.unit.resource_type.value,
            "identifier": self.unit.identifier,
            "status": self.status.value,
            "cause": str(self.cause) if self.cause is not None else None,
        }
