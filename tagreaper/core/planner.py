"""
Dependency-Ordered Deletion Planner
===================================

Turns discovered resources into a sequence of stages. Every unit in a
stage can be deleted concurrently; stages run strictly one after another.

Units and Edges
---------------
Each discovered resource expands into deletion units: itself plus its
children (ECS services, VPC subnets/security groups/route tables/IGW,
IAM instance profiles). An edge ``A -> B`` means A must be gone before B
is attempted.

Fixed edges per resource:

- ECS service -> its cluster
- VPC child -> its VPC
- instance profile -> its role

Cross-resource edges, added when both ends were discovered:

- NAT gateway -> Elastic IP it holds
- NAT gateway -> subnet it lives in, its VPC's IGW, its VPC
- EC2 instances -> subnets and security groups they use

Units and edges form a ``networkx.DiGraph``. Each topological generation
is one stage, so a unit lands in the earliest stage its dependencies
allow; ties inside a stage follow discovery order. A cycle is a fatal ``DependencyCycleError``.

Example
-------
>>> plan = DeletionPlanner().plan(discovery.resources)
>>> for number, stage in enumerate(plan.stages, 1):
...     print(number, [str(u) for u in stage])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
)

import networkx as nx

from tagreaper.core.exceptions import DependencyCycleError
from tagreaper.core.models import (
    DeletionUnit,
    EcsCluster,
    ElasticIp,
    IamRole,
    InstanceGroup,
    LogGroup,
    NatGateway,
    Resource,
    ResourceType,
    Vpc,
)

logger = logging.getLogger(__name__)

# (children, parent) pair produced for one discovered resource
Expansion = Tuple[List[Tuple[ResourceType, str]], Tuple[ResourceType, str]]

# Returns (before_key, after_key) edges across resources
EdgeRule = Callable[[Dict[str, DeletionUnit], Sequence[Resource]], Iterable[Tuple[str, str]]]


def unit_key(resource_type: ResourceType, identifier: str) -> str:
    return f"{resource_type.value}:{identifier}"


# =============================================================================
# Expansion table
# =============================================================================


def _expand_single(resource: Resource) -> Expansion:
    return [], (resource.resource_type, resource.identifier)


def _expand_cluster(cluster: EcsCluster) -> Expansion:
    children = [(ResourceType.ECS_SERVICE, arn) for arn in cluster.service_arns]
    return children, (ResourceType.ECS_CLUSTER, cluster.arn)


def _expand_vpc(vpc: Vpc) -> Expansion:
    children: List[Tuple[ResourceType, str]] = []
    if vpc.internet_gateway_id:
        children.append((ResourceType.INTERNET_GATEWAY, vpc.internet_gateway_id))
    children.extend((ResourceType.SUBNET, i) for i in vpc.subnet_ids)
    children.extend((ResourceType.SECURITY_GROUP, i) for i in vpc.security_group_ids)
    children.extend((ResourceType.ROUTE_TABLE, i) for i in vpc.route_table_ids)
    return children, (ResourceType.VPC, vpc.id)


def _expand_role(role: IamRole) -> Expansion:
    children = [(ResourceType.INSTANCE_PROFILE, n) for n in role.instance_profile_names]
    return children, (ResourceType.IAM_ROLE, role.name)


EXPANDERS: Dict[type, Callable] = {
    InstanceGroup: _expand_single,
    EcsCluster: _expand_cluster,
    NatGateway: _expand_single,
    Vpc: _expand_vpc,
    ElasticIp: _expand_single,
    LogGroup: _expand_single,
    IamRole: _expand_role,
}


# =============================================================================
# Cross-resource edge rules
# =============================================================================


def nat_gateway_edges(units: Dict[str, DeletionUnit], resources: Sequence[Resource]) -> Iterable[Tuple[str, str]]:
    """A NAT gateway goes before its EIPs, its subnet and its VPC's IGW."""
    vpcs = {r.id: r for r in resources if isinstance(r, Vpc)}
    for gateway in (r for r in resources if isinstance(r, NatGateway)):
        before = unit_key(ResourceType.NAT_GATEWAY, gateway.id)
        targets = [unit_key(ResourceType.ELASTIC_IP, a) for a in gateway.allocation_ids]
        if gateway.subnet_id:
            targets.append(unit_key(ResourceType.SUBNET, gateway.subnet_id))
        vpc = vpcs.get(gateway.vpc_id)
        if vpc is not None:
            targets.append(unit_key(ResourceType.VPC, vpc.id))
            if vpc.internet_gateway_id:
                targets.append(unit_key(ResourceType.INTERNET_GATEWAY, vpc.internet_gateway_id))
        for after in targets:
            if after in units:
                yield before, after


def instance_edges(units: Dict[str, DeletionUnit], resources: Sequence[Resource]) -> Iterable[Tuple[str, str]]:
    """Instances are terminated before the subnets and groups they occupy."""
    for group in (r for r in resources if isinstance(r, InstanceGroup)):
        before = unit_key(ResourceType.EC2_INSTANCES, group.identifier)
        targets = [unit_key(ResourceType.SUBNET, s) for s in group.subnet_ids]
        targets += [unit_key(ResourceType.SECURITY_GROUP, g) for g in group.security_group_ids]
        for after in targets:
            if after in units:
                yield before, after


DEFAULT_EDGE_RULES: List[EdgeRule] = [nat_gateway_edges, instance_edges]


# =============================================================================
# Plan
# =============================================================================


@dataclass
class DeletionPlan:
    """
    Ordered deletion stages.

    Attributes
    ----------
    stages : list of list of DeletionUnit
        Stages in execution order.
    dependencies : dict
        Unit key -> keys of the units that must be deleted first.
    """

    stages: List[List[DeletionUnit]] = field(default_factory=list)
    dependencies: Dict[str, FrozenSet[str]] = field(default_factory=dict)

    @property
    def units(self) -> List[DeletionUnit]:
        return [unit for stage in self.stages for unit in stage]

    def stage_of(self, key: str) -> Optional[int]:
        """Zero-based stage index of a unit key, or None."""
        for index, stage in enumerate(self.stages):
            if any(unit.key == key for unit in stage):
                return index
        return None

    def __len__(self) -> int:
        return sum(len(stage) for stage in self.stages)

    def to_dict(self) -> Dict[str, object]:
        return {
            "stages": [[unit.key for unit in stage] for stage in self.stages],
            "dependencies": {k: sorted(v) for k, v in self.dependencies.items() if v},
        }


class DeletionPlanner:
    """
    Builds a ``DeletionPlan`` from discovered resources.

    Parameters
    ----------
    edge_rules : sequence of callables, optional
        Cross-resource edge rules. Defaults to ``DEFAULT_EDGE_RULES``.
    """

    def __init__(self, edge_rules: Optional[Sequence[EdgeRule]] = None) -> None:
        self.edge_rules = list(DEFAULT_EDGE_RULES if edge_rules is None else edge_rules)

    def _expand(self, resources: Sequence[Resource]) -> Tuple[Dict[str, DeletionUnit], nx.DiGraph]:
        units: Dict[str, DeletionUnit] = {}
        graph = nx.DiGraph()

        def add(resource_type: ResourceType, identifier: str, owner: Resource) -> str:
            key = unit_key(resource_type, identifier)
            if key not in units:
                units[key] = DeletionUnit(resource_type, identifier, owner, sequence=len(units))
                graph.add_node(key)
            else:
                logger.debug(f"Unit {key} discovered twice; scheduling once")
            return key

        for resource in resources:
            expander = EXPANDERS.get(type(resource))
            if expander is None:
                raise TypeError(f"No deletion expansion for {type(resource).__name__}")
            children, (parent_type, parent_id) = expander(resource)
            child_keys = [add(t, i, resource) for t, i in children]
            parent_key = add(parent_type, parent_id, resource)
            graph.add_edges_from((child, parent_key) for child in child_keys)

        return units, graph

    def plan(self, resources: Sequence[Resource]) -> DeletionPlan:
        """
        Compute deletion stages for ``resources``.

        The graph has an edge ``child -> parent`` for every "delete child
        first" constraint; each topological generation becomes one stage.

        Raises
        ------
        DependencyCycleError
            If the dependency graph has a cycle.
        """
        units, graph = self._expand(resources)

        for rule in self.edge_rules:
            for before, after in rule(units, resources):
                if before != after and before in units and after in units:
                    graph.add_edge(before, after)

        try:
            generations = list(nx.topological_generations(graph))
        except nx.NetworkXUnfeasible as e:
            cycle = [u for u, _ in nx.find_cycle(graph)]
            cycle.append(cycle[0])
            raise DependencyCycleError(
                f"Deletion dependencies contain a cycle: {' -> '.join(cycle)}",
                cycle=cycle,
            ) from e

        stages = [
            [units[k] for k in sorted(generation, key=lambda k: units[k].sequence)]
            for generation in generations
        ]

        plan = DeletionPlan(
            stages=stages,
            dependencies={k: frozenset(graph.predecessors(k)) for k in units},
        )
        logger.info(f"Planned {len(plan)} deletion unit(s) in {len(stages)} stage(s)")
        return plan
