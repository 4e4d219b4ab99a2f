"""
Tests for the dependency-ordered deletion planner.
"""

import pytest

from tagreaper.core.exceptions import DependencyCycleError
from tagreaper.core.models import (
    EcsCluster,
    ElasticIp,
    IamRole,
    InstanceGroup,
    LogGroup,
    NatGateway,
    ResourceType,
    Vpc,
)
from tagreaper.core.planner import DeletionPlanner, unit_key

CLUSTER = "arn:aws:ecs:us-west-2:123456789012:cluster/consul-ecs-abc"
SERVICES = tuple(f"arn:aws:ecs:us-west-2:123456789012:service/consul-ecs-abc/svc-{i}" for i in range(2))


@pytest.fixture
def planner():
    return DeletionPlanner()


@pytest.fixture
def vpc():
    return Vpc(
        id="vpc-1",
        internet_gateway_id="igw-1",
        subnet_ids=("subnet-1", "subnet-2"),
        security_group_ids=("sg-1",),
        route_table_ids=("rtb-1",),
    )


def keys(stage):
    return [unit.key for unit in stage]


class TestExpansion:
    """Resources expand into a parent unit plus child units."""

    def test_cluster_services_before_cluster(self, planner):
        plan = planner.plan([EcsCluster(arn=CLUSTER, service_arns=SERVICES)])

        assert len(plan.stages) == 2
        assert keys(plan.stages[0]) == [unit_key(ResourceType.ECS_SERVICE, s) for s in SERVICES]
        assert keys(plan.stages[1]) == [f"ecs_cluster:{CLUSTER}"]

    def test_cluster_without_services(self, planner):
        plan = planner.plan([EcsCluster(arn=CLUSTER)])
        assert [keys(s) for s in plan.stages] == [[f"ecs_cluster:{CLUSTER}"]]

    def test_vpc_children_before_vpc(self, planner, vpc):
        plan = planner.plan([vpc])

        assert keys(plan.stages[0]) == [
            "internet_gateway:igw-1",
            "subnet:subnet-1",
            "subnet:subnet-2",
            "security_group:sg-1",
            "route_table:rtb-1",
        ]
        assert keys(plan.stages[1]) == ["vpc:vpc-1"]
        assert plan.dependencies["vpc:vpc-1"] == frozenset(keys(plan.stages[0]))

    def test_instance_profiles_before_role(self, planner):
        plan = planner.plan([IamRole(id="AROA1", name="consul-ecs-task", instance_profile_names=("p1",))])
        assert [keys(s) for s in plan.stages] == [["instance_profile:p1"], ["iam_role:consul-ecs-task"]]

    def test_child_units_carry_owner(self, planner, vpc):
        plan = planner.plan([vpc])
        assert all(unit.owner is vpc for unit in plan.units)

    def test_unknown_resource_type(self, planner):
        with pytest.raises(TypeError):
            planner.plan([object()])


class TestStaging:
    """Units land in the earliest stage their dependencies allow."""

    def test_independent_resources_share_first_stage(self, planner, vpc):
        plan = planner.plan([
            EcsCluster(arn=CLUSTER, service_arns=SERVICES),
            vpc,
            LogGroup(name="consul-ecs-logs"),
        ])

        assert plan.stage_of("log_group:consul-ecs-logs") == 0
        assert plan.stage_of(unit_key(ResourceType.ECS_SERVICE, SERVICES[0])) == 0
        assert plan.stage_of("subnet:subnet-1") == 0
        assert plan.stage_of(f"ecs_cluster:{CLUSTER}") == 1
        assert plan.stage_of("vpc:vpc-1") == 1

    def test_ties_follow_discovery_order(self, planner):
        plan = planner.plan([LogGroup(name="b"), LogGroup(name="a"), ElasticIp(allocation_id="eipalloc-1")])
        assert keys(plan.stages[0]) == ["log_group:b", "log_group:a", "elastic_ip:eipalloc-1"]

    def test_nat_gateway_before_its_eip_and_network(self, planner, vpc):
        nat = NatGateway(id="nat-1", vpc_id="vpc-1", subnet_id="subnet-1", allocation_ids=("eipalloc-1",))
        plan = planner.plan([nat, vpc, ElasticIp(allocation_id="eipalloc-1")])

        assert plan.stage_of("nat_gateway:nat-1") == 0
        assert plan.stage_of("elastic_ip:eipalloc-1") == 1
        assert plan.stage_of("subnet:subnet-1") == 1
        assert plan.stage_of("internet_gateway:igw-1") == 1
        # Unrelated children stay in the first stage
        assert plan.stage_of("subnet:subnet-2") == 0
        assert plan.stage_of("vpc:vpc-1") == 2

    def test_nat_edges_need_both_ends(self, planner):
        """An EIP that was not discovered adds no unit and no edge."""
        plan = planner.plan([NatGateway(id="nat-1", allocation_ids=("eipalloc-9",))])
        assert [keys(s) for s in plan.stages] == [["nat_gateway:nat-1"]]

    def test_instances_before_subnets_and_groups(self, planner, vpc):
        instances = InstanceGroup(instance_ids=("i-1", "i-2"), subnet_ids=("subnet-1",), security_group_ids=("sg-1",))
        plan = planner.plan([instances, vpc])

        assert plan.stage_of("ec2_instances:i-1,i-2") == 0
        assert plan.stage_of("subnet:subnet-1") == 1
        assert plan.stage_of("security_group:sg-1") == 1
        assert plan.stage_of("vpc:vpc-1") == 2

    def test_every_dependency_in_earlier_stage(self, planner, vpc):
        plan = planner.plan([
            InstanceGroup(instance_ids=("i-1",), subnet_ids=("subnet-2",)),
            EcsCluster(arn=CLUSTER, service_arns=SERVICES),
            NatGateway(id="nat-1", vpc_id="vpc-1", subnet_id="subnet-1", allocation_ids=("eipalloc-1",)),
            vpc,
            ElasticIp(allocation_id="eipalloc-1"),
            IamRole(id="AROA1", name="consul-ecs-role", instance_profile_names=("p1",)),
        ])
        for unit in plan.units:
            for dependency in plan.dependencies[unit.key]:
                assert plan.stage_of(dependency) < plan.stage_of(unit.key)

    def test_empty(self, planner):
        plan = planner.plan([])
        assert plan.stages == []
        assert len(plan) == 0


class TestDeduplication:
    """Duplicate resources are scheduled once."""

    def test_duplicate_resource(self, planner):
        plan = planner.plan([LogGroup(name="a"), LogGroup(name="a")])
        assert len(plan) == 1

    def test_first_occurrence_wins(self, planner, vpc):
        other = Vpc(id="vpc-1", subnet_ids=("subnet-9",))
        plan = planner.plan([vpc, other])
        assert plan.units[-1].owner is vpc
        assert plan.stage_of("subnet:subnet-9") == 0


class TestCycles:
    """A cycle in the graph is fatal."""

    def test_cycle_is_reported(self, vpc):
        def vpc_before_subnet(units, resources):
            yield "vpc:vpc-1", "subnet:subnet-1"

        planner = DeletionPlanner(edge_rules=[vpc_before_subnet])
        with pytest.raises(DependencyCycleError) as exc_info:
            planner.plan([vpc])

        assert "vpc:vpc-1" in exc_info.value.cycle
        assert "subnet:subnet-1" in exc_info.value.cycle
        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]
        assert " -> " in str(exc_info.value)

    def test_self_edges_are_ignored(self):
        def self_edge(units, resources):
            yield "log_group:a", "log_group:a"

        plan = DeletionPlanner(edge_rules=[self_edge]).plan([LogGroup(name="a")])
        assert len(plan) == 1

    def test_edges_to_undiscovered_units_are_ignored(self):
        def dangling(units, resources):
            yield "log_group:a", "vpc:vpc-gone"

        plan = DeletionPlanner(edge_rules=[dangling]).plan([LogGroup(name="a")])
        assert [u.key for u in plan.units] == ["log_group:a"]
        assert plan.dependencies == {"log_group:a": frozenset()}


class TestDeletionPlan:
    """Tests for the plan value."""

    def test_to_dict(self, planner):
        plan = planner.plan([EcsCluster(arn=CLUSTER, service_arns=SERVICES[:1])])
        data = plan.to_dict()

        assert data["stages"] == [[f"ecs_service:{SERVICES[0]}"], [f"ecs_cluster:{CLUSTER}"]]
        assert data["dependencies"] == {f"ecs_cluster:{CLUSTER}": [f"ecs_service:{SERVICES[0]}"]}

    def test_stage_of_unknown(self, planner):
        assert planner.plan([LogGroup(name="a")]).stage_of("vpc:nope") is None
