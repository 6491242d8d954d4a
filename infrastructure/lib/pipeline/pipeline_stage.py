from aws_cdk import Stage, Tags
from constructs import Construct

from infrastructure.lib.ecs_blue_green_stack import EcsBlueGreenDeploymentsStack
from infrastructure.lib.pipeline.build_image_stack import BuildImageStack
from infrastructure.lib.shared.constants import APPLICATION_NAME, PROJECT_NAME
from infrastructure.lib.shared.environment import EnvironmentConfig
from infrastructure.lib.shared.tagging import build_tags

TAGGED_SERVICE_NAME = "build-image"


class EcsBlueGreenDeploymentsPipelineStage(Stage):
    """Deployable unit holding the image build stack and the ECS stack."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: EnvironmentConfig,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.build_image_stack = BuildImageStack(
            self,
            f"{PROJECT_NAME}-{APPLICATION_NAME}-build-image",
            environment=environment,
            env=environment.to_cdk_environment(),
        )

        self.ecs_stack = EcsBlueGreenDeploymentsStack(
            self,
            "EcsBlueGreenDeploymentsStack",
            environment=environment,
            env=environment.to_cdk_environment(),
        )

        # Tags for all stacks
        tags = build_tags(TAGGED_SERVICE_NAME, environment)
        for stack in [self.build_image_stack, self.ecs_stack]:
            for key, value in tags.items():
                Tags.of(stack).add(key, value)

        # Task definitions pull from the registry owned by the build stack
        self.ecs_stack.add_stack_dependency(self.build_image_stack)
