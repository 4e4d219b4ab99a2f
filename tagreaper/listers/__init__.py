"""
Resource Listers
================

One lister per resource type. Each queries AWS for its type, narrows the
candidates by naming convention, applies the eligibility predicate and
resolves child identifiers needed for ordered deletion.

Available Listers
-----------------
InstanceLister
    Stale EC2 instances, grouped into one resource.
EcsClusterLister
    Stale ECS clusters with their services.
NatGatewayLister
    Stale NAT gateways.
VpcLister
    Stale VPCs with subnets, security groups, route tables and IGW.
ElasticIpLister
    Stale Elastic IPs.
LogGroupLister
    Stale CloudWatch Logs log groups.
IamRoleLister
    Stale IAM roles with instance profiles. Expensive; not run by default.

Example
-------
>>> from tagreaper.listers import build_listers
>>> listers = build_listers(client, config)
>>> results = [lister.list_resources() for lister in listers]
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Type

from tagreaper.core.base_lister import BaseLister
from tagreaper.core.config import ReaperConfig
from tagreaper.listers.ec2_lister import InstanceLister
from tagreaper.listers.ecs_lister import EcsClusterLister
from tagreaper.listers.elastic_ip_lister import ElasticIpLister
from tagreaper.listers.iam_role_lister import IamRoleLister
from tagreaper.listers.log_group_lister import LogGroupLister
from tagreaper.listers.nat_gateway_lister import NatGatewayLister
from tagreaper.listers.vpc_lister import VpcLister

# Order here is the discovery order used to break ties in a plan.
DEFAULT_LISTERS: List[Type[BaseLister]] = [
    InstanceLister,
    EcsClusterLister,
    NatGatewayLister,
    VpcLister,
    LogGroupLister,
    ElasticIpLister,
]

ALL_LISTERS: List[Type[BaseLister]] = DEFAULT_LISTERS + [IamRoleLister]


def build_listers(
    aws_client,
    config: ReaperConfig,
    now: Optional[datetime] = None,
) -> List[BaseLister]:
    """Instantiate the listers selected by ``config``."""
    lister_classes = ALL_LISTERS if config.include_iam else DEFAULT_LISTERS
    return [cls(aws_client, config, now=now) for cls in lister_classes]


__all__ = [
    "ALL_LISTERS",
    "DEFAULT_LISTERS",
    "EcsClusterLister",
    "ElasticIpLister",
    "IamRoleLister",
    "InstanceLister",
    "LogGroupLister",
    "NatGatewayLister",
    "VpcLister",
    "build_listers",
]
