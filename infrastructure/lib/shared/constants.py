"""
Shared constants for the ECS blue/green deployments infrastructure.
"""

PROJECT_NAME = "simflexcloud"
APPLICATION_NAME = "ecs-blue-green-deployments"

# ECR repository shared by the image build pipelines and the ECS task definitions
ECR_REPOSITORY_NAME = f"{PROJECT_NAME}/{APPLICATION_NAME}"

# Tag keys
STACK_NAME = "stack-name"
SERVICE = "service"
LOCATION = "location"
OWNER = "owner"
STAGE = "stage"

# Image tags, also used as the source branch names of the build pipelines
BLUE_IMAGE_TAG = "testblue"
GREEN_IMAGE_TAG = "testgreen"

CONTAINER_PORT = 8081
HEALTH_CHECK_PATH = "/api/"
