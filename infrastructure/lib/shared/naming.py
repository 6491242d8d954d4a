from infrastructure.lib.shared.constants import APPLICATION_NAME, PROJECT_NAME


def service_name_prefix(pattern: str, stage: str, service_name: str) -> str:
    """Name shared by every resource of a service, e.g. dev-simflexcloud-test-build-image."""
    return f"{pattern}-{PROJECT_NAME}-{stage}-{service_name}"


def ecs_resource_prefix(pattern: str, stage: str) -> str:
    return service_name_prefix(pattern, stage, APPLICATION_NAME)


def build_image_resource_prefix(pattern: str, stage: str) -> str:
    # Build pipeline resources put the stage before the project name
    return f"{pattern}-{stage}-{PROJECT_NAME}-{APPLICATION_NAME}"
