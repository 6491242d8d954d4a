from dataclasses import dataclass, replace
from typing import Tuple

from infrastructure.lib.shared.constants import BLUE_IMAGE_TAG, GREEN_IMAGE_TAG


@dataclass(frozen=True)
class DeploymentVariant:
    """One side of the blue/green pair: an image tag and how many tasks run it."""

    name: str
    image_tag: str
    desired_count: int

    def __post_init__(self):
        if self.desired_count < 0:
            raise ValueError(
                f"Desired count for variant {self.name} must not be negative"
            )

    def with_desired_count(self, desired_count: int) -> "DeploymentVariant":
        return replace(self, desired_count=desired_count)


BLUE = DeploymentVariant(name="blue", image_tag=BLUE_IMAGE_TAG, desired_count=0)
GREEN = DeploymentVariant(name="green", image_tag=GREEN_IMAGE_TAG, desired_count=2)

DEFAULT_VARIANTS: Tuple[DeploymentVariant, ...] = (BLUE, GREEN)
