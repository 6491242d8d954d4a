from aws_cdk import (
    Stack,
    aws_codebuild as codebuild,
    aws_codecommit as codecommit,
    pipelines,
    CfnOutput,
)
from constructs import Construct

from infrastructure.lib.pipeline.pipeline_stage import EcsBlueGreenDeploymentsPipelineStage
from infrastructure.lib.shared.constants import APPLICATION_NAME
from infrastructure.lib.shared.environment import DEFAULT_PREFIX, EnvironmentConfig

INFRA_REPOSITORY_NAME = f"{APPLICATION_NAME}-infra"


class EcsBlueGreenDeploymentsPipelineStack(Stack):
    """
    Self-mutating CDK pipeline for this repository.

    The synth step re-synthesizes ``app.py`` from the infrastructure
    repository and deploys the resulting stage for ``environment``.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: EnvironmentConfig,
        branch: str = "master",
        env_prefix: str = DEFAULT_PREFIX,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.repository = codecommit.Repository(
            self,
            INFRA_REPOSITORY_NAME,
            description=INFRA_REPOSITORY_NAME,
            repository_name=INFRA_REPOSITORY_NAME,
        )

        self.pipeline = self._create_pipeline(branch, environment, env_prefix)

        self.stage = EcsBlueGreenDeploymentsPipelineStage(
            self,
            f"{branch}-{environment.pattern}",
            environment=environment,
            env=environment.to_cdk_environment(),
        )
        self.pipeline.add_stage(self.stage)

        CfnOutput(
            self,
            "InfraRepositoryCloneUrl",
            value=self.repository.repository_clone_url_http,
            description="Infrastructure CodeCommit repository",
        )

    def _create_pipeline(
        self, branch: str, environment: EnvironmentConfig, env_prefix: str
    ) -> pipelines.CodePipeline:
        name = f"{INFRA_REPOSITORY_NAME}-{branch}"
        return pipelines.CodePipeline(
            self,
            name,
            pipeline_name=name,
            use_change_sets=False,
            synth=pipelines.CodeBuildStep(
                "SynthStep",
                input=pipelines.CodePipelineSource.code_commit(self.repository, branch),
                install_commands=["npm install -g aws-cdk"],
                commands=[
                    "pip install -e .",
                    "cdk synth --app 'python app.py'",
                ],
                # No .env file in the build, so the environment travels with the step
                env=environment.to_env_vars(env_prefix),
            ),
            code_build_defaults=pipelines.CodeBuildOptions(
                build_environment=codebuild.BuildEnvironment(privileged=True),
                partial_build_spec=codebuild.BuildSpec.from_object(
                    {"cache": {"paths": ["/root/.cache/pip/**/*"]}}
                ),
            ),
            docker_enabled_for_synth=True,
            docker_enabled_for_self_mutation=True,
        )
