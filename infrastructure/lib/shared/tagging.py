from typing import Dict

from infrastructure.lib.shared.constants import LOCATION, OWNER, SERVICE, STACK_NAME, STAGE
from infrastructure.lib.shared.environment import EnvironmentConfig
from infrastructure.lib.shared.naming import service_name_prefix


def build_tags(service_name: str, environment: EnvironmentConfig) -> Dict[str, str]:
    """Tags applied to every resource of a stack deployed for ``service_name``."""
    return {
        STACK_NAME: service_name_prefix(
            environment.pattern, environment.stage, service_name
        ),
        SERVICE: service_name,
        LOCATION: environment.pattern,
        OWNER: environment.owner,
        STAGE: environment.stage,
    }
