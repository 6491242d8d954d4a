import json

import pytest
from aws_cdk import App
from aws_cdk.assertions import Match, Template
from infrastructure.lib.ecs_blue_green_stack import EcsBlueGreenDeploymentsStack
from infrastructure.lib.shared.variants import BLUE, GREEN

PREFIX = "dev-simflexcloud-test-ecs-blue-green-deployments"


@pytest.fixture
def stack(dev_environment):
    app = App()
    return EcsBlueGreenDeploymentsStack(
        app,
        "test-ecs-blue-green",
        environment=dev_environment,
        env=dev_environment.to_cdk_environment(),
    )


@pytest.fixture
def template(stack):
    return Template.from_stack(stack)


def find_service(template: Template, service_name: str) -> dict:
    services = template.find_resources(
        "AWS::ECS::Service", {"Properties": {"ServiceName": service_name}}
    )
    assert len(services) == 1
    return next(iter(services.values()))


def find_container(template: Template, image_tag: str) -> dict:
    """The single container definition whose image uses ``image_tag``."""
    containers = [
        container
        for task_definition in template.find_resources("AWS::ECS::TaskDefinition").values()
        for container in task_definition["Properties"]["ContainerDefinitions"]
        if f"ecs-blue-green-deployments:{image_tag}" in json.dumps(container["Image"])
    ]
    assert len(containers) == 1
    return containers[0]


def ingress_rules(template: Template) -> list:
    """Ingress rules declared inline on security groups or as separate resources."""
    rules = []
    for group in template.find_resources("AWS::EC2::SecurityGroup").values():
        rules.extend(group["Properties"].get("SecurityGroupIngress", []))
    for ingress in template.find_resources("AWS::EC2::SecurityGroupIngress").values():
        rules.append(ingress["Properties"])
    return rules


class TestNetwork:
    """Test suite for the VPC and security groups."""

    def test_vpc_created(self, template):
        """Test that a named VPC with a single NAT gateway is created."""
        template.resource_count_is("AWS::EC2::VPC", 1)
        template.has_resource_properties(
            "AWS::EC2::VPC",
            {"Tags": Match.array_with([{"Key": "Name", "Value": PREFIX}])},
        )
        template.resource_count_is("AWS::EC2::NatGateway", 1)

    def test_security_groups_created(self, template):
        """Test that compute and load balancer security groups exist."""
        template.has_resource_properties(
            "AWS::EC2::SecurityGroup", {"GroupName": f"{PREFIX}-ec2"}
        )
        template.has_resource_properties(
            "AWS::EC2::SecurityGroup", {"GroupName": f"{PREFIX}-alb"}
        )

    def test_compute_tier_accepts_all_traffic_from_load_balancer(self, template):
        """Test the ingress rule from the load balancer tier into the compute tier."""
        # When
        rules = ingress_rules(template)

        # Then
        assert any(
            rule.get("IpProtocol") == "-1"
            and rule.get("Description")
            == "Allow all traffic from the load balancer security group"
            and "SourceSecurityGroupId" in rule
            for rule in rules
        )


class TestCompute:
    """Test suite for the cluster and its capacity."""

    def test_single_instance_auto_scaling_group(self, template):
        """Test that the Auto Scaling group is fixed at one instance."""
        template.has_resource_properties(
            "AWS::AutoScaling::AutoScalingGroup",
            {
                "AutoScalingGroupName": PREFIX,
                "MinSize": "1",
                "MaxSize": "1",
            },
        )

    def test_cluster_created(self, template):
        template.has_resource_properties("AWS::ECS::Cluster", {"ClusterName": PREFIX})

    def test_capacity_provider_attached(self, template):
        """Test that the ASG capacity provider is attached without managed scaling."""
        template.has_resource_properties(
            "AWS::ECS::CapacityProvider",
            {
                "Name": f"{PREFIX}-asg-capacity-provider",
                "AutoScalingGroupProvider": {
                    "ManagedTerminationProtection": "DISABLED",
                },
            },
        )
        template.resource_count_is("AWS::ECS::ClusterCapacityProviderAssociations", 1)

    def test_roles_created(self, template):
        template.has_resource_properties("AWS::IAM::Role", {"RoleName": f"{PREFIX}-ec2"})
        template.has_resource_properties(
            "AWS::IAM::Role", {"RoleName": f"{PREFIX}-ecs-task"}
        )


class TestTaskDefinitions:
    """Test suite for the blue and green task definitions."""

    @pytest.mark.parametrize("variant", ["blue", "green"])
    def test_task_definition_per_variant(self, template, variant):
        """Test that each variant runs its own image tag on a dynamic host port."""
        # When
        container = find_container(template, f"test{variant}")

        # Then
        assert container["Memory"] == 256
        assert container["PortMappings"] == [
            {
                "ContainerPort": 8081,
                "HostPort": 0,
                "Protocol": "tcp",
                "Name": f"ecs-{variant}-container-8081-tcp",
                "AppProtocol": "http",
            }
        ]

    def test_task_definition_sizing(self, template):
        """Test that both task definitions reserve the same EC2 capacity."""
        template.all_resources_properties(
            "AWS::ECS::TaskDefinition",
            {"Cpu": "128", "Memory": "256", "RequiresCompatibilities": ["EC2"]},
        )

    def test_two_independent_task_definitions(self, stack, template):
        template.resource_count_is("AWS::ECS::TaskDefinition", 2)
        assert set(stack.task_definitions) == {"blue", "green"}
        assert stack.task_definitions["blue"] is not stack.task_definitions["green"]


class TestServices:
    """Test suite for the services and the load balancer wiring."""

    def test_default_desired_counts(self, template):
        """Test that blue is on standby and green is active."""
        assert find_service(template, f"{PREFIX}-svc-blue")["Properties"]["DesiredCount"] == 0
        assert find_service(template, f"{PREFIX}-svc-green")["Properties"]["DesiredCount"] == 2

    def test_listener_targets_both_services(self, template):
        """Test that both services register with the single target group."""
        # Given
        target_groups = template.find_resources("AWS::ElasticLoadBalancingV2::TargetGroup")
        assert len(target_groups) == 1
        target_group_id = next(iter(target_groups))

        # Then
        for variant in ("blue", "green"):
            service = find_service(template, f"{PREFIX}-svc-{variant}")
            load_balancers = service["Properties"]["LoadBalancers"]
            assert len(load_balancers) == 1
            assert load_balancers[0]["TargetGroupArn"] == {"Ref": target_group_id}
            assert load_balancers[0]["ContainerPort"] == 8081

    def test_health_check_and_listener(self, template):
        """Test the port 80 listener and the /api/ health check."""
        template.has_resource_properties(
            "AWS::ElasticLoadBalancingV2::Listener", {"Port": 80, "Protocol": "HTTP"}
        )
        template.has_resource_properties(
            "AWS::ElasticLoadBalancingV2::TargetGroup",
            {"HealthCheckPath": "/api/", "Protocol": "HTTP"},
        )

    def test_load_balancer_is_internet_facing(self, template):
        template.has_resource_properties(
            "AWS::ElasticLoadBalancingV2::LoadBalancer",
            {"Name": "ecs-blue-green-deployments", "Scheme": "internet-facing"},
        )

    def test_wiring_does_not_depend_on_desired_count(self, dev_environment):
        """Test that swapping desired counts keeps both services registered."""
        # Given
        app = App()
        stack = EcsBlueGreenDeploymentsStack(
            app,
            "test-ecs-swapped",
            environment=dev_environment,
            variants=(BLUE.with_desired_count(2), GREEN.with_desired_count(0)),
            env=dev_environment.to_cdk_environment(),
        )

        # When
        template = Template.from_stack(stack)

        # Then
        blue = find_service(template, f"{PREFIX}-svc-blue")
        green = find_service(template, f"{PREFIX}-svc-green")
        assert blue["Properties"]["DesiredCount"] == 2
        assert green["Properties"]["DesiredCount"] == 0
        assert blue["Properties"]["LoadBalancers"][0]["TargetGroupArn"] == (
            green["Properties"]["LoadBalancers"][0]["TargetGroupArn"]
        )

    def test_duplicate_variant_names_rejected(self, dev_environment):
        app = App()
        with pytest.raises(ValueError, match="must be unique"):
            EcsBlueGreenDeploymentsStack(
                app,
                "test-ecs-duplicate",
                environment=dev_environment,
                variants=(BLUE, BLUE),
            )

    def test_outputs_created(self, template):
        template.has_output("LoadBalancerDNS", {})
