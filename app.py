#!/usr/bin/env python3
import logging

import aws_cdk as cdk
from infrastructure.lib.pipeline.pipeline_stack import EcsBlueGreenDeploymentsPipelineStack
from infrastructure.lib.shared.environment import (
    EnvironmentConfigError,
    load_environment_config,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Resolve the environment before any construct exists so a bad
# configuration produces no cloud assembly at all
try:
    dev_env = load_environment_config("DEV")
except EnvironmentConfigError as e:
    logger.error("Cannot synthesize: %s", e)
    raise

app = cdk.App()

# CI/CD pipeline stack, deployed into the same environment it manages
EcsBlueGreenDeploymentsPipelineStack(
    app,
    "ecs-blue-green-deployments-pipeline",
    environment=dev_env,
    env=dev_env.to_cdk_environment(),
    description="Self-mutating pipeline for the ECS blue/green deployments",
)

app.synth()
