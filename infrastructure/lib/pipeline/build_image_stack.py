from typing import Dict, Sequence

from aws_cdk import (
    Stack,
    aws_codebuild as codebuild,
    aws_codecommit as codecommit,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as pipeline_actions,
    aws_ecr as ecr,
    aws_iam as iam,
    RemovalPolicy,
)
from constructs import Construct

from infrastructure.lib.shared.constants import APPLICATION_NAME, ECR_REPOSITORY_NAME
from infrastructure.lib.shared.environment import EnvironmentConfig
from infrastructure.lib.shared.naming import build_image_resource_prefix
from infrastructure.lib.shared.variants import BLUE, GREEN, DeploymentVariant


class BuildImageStack(Stack):
    """
    Builds and publishes the blue and green container images.

    Each variant has its own CodeBuild project and a pipeline that runs on
    pushes to the branch named after the variant's image tag.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: EnvironmentConfig,
        variants: Sequence[DeploymentVariant] = (BLUE, GREEN),
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        if len(variants) != 2:
            raise ValueError("Image build pipelines require exactly two variants")

        prefix = build_image_resource_prefix(environment.pattern, environment.stage)

        # Container registry for both variants
        self.repository = ecr.Repository(
            self,
            f"{prefix}-ecr",
            repository_name=ECR_REPOSITORY_NAME,
            removal_policy=RemovalPolicy.DESTROY,
        )

        # Application source
        self.source_repository = codecommit.Repository(
            self,
            f"{prefix}-repo",
            description="ECS Blue/Green deployments",
            repository_name=APPLICATION_NAME,
        )

        # CodeBuild role to pull and push images
        role = iam.Role(
            self,
            f"{prefix}-codebuild-role",
            role_name=f"{prefix}-codebuild",
            assumed_by=iam.ServicePrincipal("codebuild.amazonaws.com"),
        )
        self.repository.grant_pull_push(role)

        self.build_projects: Dict[str, codebuild.PipelineProject] = {
            variant.name: self._create_build_project(prefix, variant, environment, role)
            for variant in variants
        }

        # Each branch pipeline runs the other variant's project: a push to
        # testblue publishes the testgreen image and the reverse.
        first, second = variants
        self.pipelines: Dict[str, codepipeline.Pipeline] = {
            first.name: self._create_pipeline(
                prefix, first, self.build_projects[second.name]
            ),
            second.name: self._create_pipeline(
                prefix, second, self.build_projects[first.name]
            ),
        }

    def _create_build_project(
        self,
        prefix: str,
        variant: DeploymentVariant,
        environment: EnvironmentConfig,
        role: iam.IRole,
    ) -> codebuild.PipelineProject:
        return codebuild.PipelineProject(
            self,
            f"{prefix}-codebuild-{variant.name}",
            project_name=f"{prefix}-codebuild-{variant.name}",
            description=f"Pipeline for building {variant.name} docker image",
            build_spec=codebuild.BuildSpec.from_source_filename("./buildspec.yml"),
            environment=codebuild.BuildEnvironment(
                privileged=True,
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
            ),
            environment_variables={
                "IMAGE_REPO_NAME": codebuild.BuildEnvironmentVariable(
                    value=self.repository.repository_name
                ),
                "IMAGE_TAG": codebuild.BuildEnvironmentVariable(value=variant.image_tag),
                "AWS_ACCOUNT_ID": codebuild.BuildEnvironmentVariable(
                    value=environment.account
                ),
                "AWS_DEFAULT_REGION": codebuild.BuildEnvironmentVariable(
                    value=environment.region
                ),
            },
            role=role,
        )

    def _create_pipeline(
        self,
        prefix: str,
        variant: DeploymentVariant,
        project: codebuild.IProject,
    ) -> codepipeline.Pipeline:
        pipeline = codepipeline.Pipeline(
            self,
            f"{prefix}-build-image-{variant.name}",
            pipeline_name=f"{variant.image_tag}-{prefix}",
        )

        source_output = codepipeline.Artifact()
        pipeline.add_stage(
            stage_name="Source",
            actions=[
                pipeline_actions.CodeCommitSourceAction(
                    action_name="CodeCommit",
                    repository=self.source_repository,
                    output=source_output,
                    branch=variant.image_tag,
                )
            ],
        )
        pipeline.add_stage(
            stage_name="Build",
            actions=[
                pipeline_actions.CodeBuildAction(
                    action_name="CodeBuild",
                    project=project,
                    input=source_output,
                )
            ],
        )
        return pipeline
