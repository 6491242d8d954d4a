from typing import Dict, Sequence

from aws_cdk import (
    Stack,
    aws_autoscaling as autoscaling,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    CfnOutput,
)
from constructs import Construct

from infrastructure.lib.shared.constants import (
    APPLICATION_NAME,
    CONTAINER_PORT,
    ECR_REPOSITORY_NAME,
    HEALTH_CHECK_PATH,
)
from infrastructure.lib.shared.environment import EnvironmentConfig
from infrastructure.lib.shared.naming import ecs_resource_prefix
from infrastructure.lib.shared.variants import DEFAULT_VARIANTS, DeploymentVariant


class EcsBlueGreenDeploymentsStack(Stack):
    """
    Network and compute for the blue/green application.

    Both variants run as separate EC2 services on one cluster and sit behind
    the same listener target group. Traffic is split by the services' desired
    counts; switching variants means changing those counts.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: EnvironmentConfig,
        variants: Sequence[DeploymentVariant] = DEFAULT_VARIANTS,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        names = [variant.name for variant in variants]
        if len(set(names)) != len(names):
            raise ValueError(f"Deployment variant names must be unique: {names}")

        prefix = ecs_resource_prefix(environment.pattern, environment.stage)

        # Instance role for the container hosts
        ec2_role = iam.Role(
            self,
            f"{prefix}-ec2-role",
            role_name=f"{prefix}-ec2",
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonEC2ContainerServiceforEC2Role"
                ),
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "AmazonSSMManagedInstanceCore"
                ),
            ],
        )

        # Execution role used by the ECS agent to pull images
        execution_role = iam.Role(
            self,
            f"{prefix}-ecs-role",
            role_name=f"{prefix}-ecs-task",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonECSTaskExecutionRolePolicy"
                )
            ],
        )

        self.vpc = ec2.Vpc(
            self,
            f"{prefix}-vpc",
            vpc_name=prefix,
            nat_gateways=1,
            max_azs=2,
        )

        ec2_sg = ec2.SecurityGroup(
            self,
            f"{prefix}-ec2-sg",
            security_group_name=f"{prefix}-ec2",
            vpc=self.vpc,
        )

        alb_sg = ec2.SecurityGroup(
            self,
            f"{prefix}-alb-sg",
            security_group_name=f"{prefix}-alb",
            vpc=self.vpc,
        )

        ec2_sg.add_ingress_rule(
            peer=ec2.Peer.security_group_id(alb_sg.security_group_id),
            connection=ec2.Port.all_traffic(),
            description="Allow all traffic from the load balancer security group",
        )

        asg = autoscaling.AutoScalingGroup(
            self,
            f"{prefix}-asg",
            auto_scaling_group_name=prefix,
            min_capacity=1,
            max_capacity=1,
            vpc=self.vpc,
            security_group=ec2_sg,
            role=ec2_role,
            instance_type=ec2.InstanceType.of(
                ec2.InstanceClass.T3A, ec2.InstanceSize.MEDIUM
            ),
            machine_image=ecs.EcsOptimizedImage.amazon_linux2(),
        )

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            f"{prefix}-alb",
            load_balancer_name=APPLICATION_NAME,
            vpc=self.vpc,
            security_group=alb_sg,
            internet_facing=True,
        )

        self.cluster = ecs.Cluster(
            self,
            f"{prefix}-cluster",
            cluster_name=prefix,
            vpc=self.vpc,
        )

        capacity_provider = ecs.AsgCapacityProvider(
            self,
            f"{prefix}-asg-capacity-provider",
            auto_scaling_group=asg,
            capacity_provider_name=f"{prefix}-asg-capacity-provider",
            enable_managed_scaling=False,
            enable_managed_termination_protection=False,
        )
        self.cluster.add_asg_capacity_provider(capacity_provider)

        # Created by the image build stack, referenced by name only
        repository = ecr.Repository.from_repository_name(
            self, f"{prefix}-ecr", ECR_REPOSITORY_NAME
        )

        self.task_definitions: Dict[str, ecs.TaskDefinition] = {}
        self.services: Dict[str, ecs.Ec2Service] = {}
        for variant in variants:
            task_definition = self._add_task_definition(
                prefix, variant, repository, execution_role
            )
            self.task_definitions[variant.name] = task_definition
            self.services[variant.name] = ecs.Ec2Service(
                self,
                f"{prefix}-ec2-{variant.name}-service",
                service_name=f"{prefix}-svc-{variant.name}",
                task_definition=task_definition,
                desired_count=variant.desired_count,
                cluster=self.cluster,
            )

        # Every variant is registered regardless of its desired count
        listener = self.load_balancer.add_listener(
            f"{prefix}-listener-80", port=80, open=True
        )
        listener.add_targets(
            f"{prefix}-target-80",
            protocol=elbv2.ApplicationProtocol.HTTP,
            health_check=elbv2.HealthCheck(path=HEALTH_CHECK_PATH),
            targets=list(self.services.values()),
        )

        CfnOutput(
            self,
            "LoadBalancerDNS",
            value=self.load_balancer.load_balancer_dns_name,
            description="Application Load Balancer DNS name",
        )

    def _add_task_definition(
        self,
        prefix: str,
        variant: DeploymentVariant,
        repository: ecr.IRepository,
        execution_role: iam.IRole,
    ) -> ecs.TaskDefinition:
        task_definition = ecs.TaskDefinition(
            self,
            f"{prefix}-task-definition-{variant.name}",
            compatibility=ecs.Compatibility.EC2,
            execution_role=execution_role,
            cpu="128",
            memory_mib="256",
        )
        task_definition.add_container(
            f"{prefix}-{variant.name}-container",
            image=ecs.ContainerImage.from_ecr_repository(repository, variant.image_tag),
            port_mappings=[
                ecs.PortMapping(
                    container_port=CONTAINER_PORT,
                    host_port=0,
                    protocol=ecs.Protocol.TCP,
                    name=f"ecs-{variant.name}-container-{CONTAINER_PORT}-tcp",
                    app_protocol=ecs.AppProtocol.http,
                )
            ],
            memory_limit_mib=256,
        )
        return task_definition
