"""
Environment resolution for synthesis.

An environment is described by five settings read from the process
environment, optionally seeded from a ``.env`` file:

    <PREFIX>_ACCOUNT   12 digit AWS account id
    <PREFIX>_REGION    AWS region, e.g. ap-southeast-1
    <PREFIX>_PATTERN   location pattern, e.g. dev
    <PREFIX>_STAGE     stage name, e.g. test
    <PREFIX>_OWNER     owner tag value

Process environment variables take precedence over values in the file.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import aws_cdk as cdk
from dotenv import dotenv_values, find_dotenv

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "DEV"

ENVIRONMENT_FIELDS = ("account", "region", "pattern", "stage", "owner")

_NAME_SEGMENT = re.compile(r"^[A-Za-z0-9]+$")
_ACCOUNT_ID = re.compile(r"^\d{12}$")


class EnvironmentConfigError(ValueError):
    """Raised when the deployment environment cannot be resolved."""


@dataclass(frozen=True)
class EnvironmentConfig:
    """A single deployment target."""

    account: str
    region: str
    pattern: str
    stage: str
    owner: str

    def __post_init__(self):
        errors = []
        for field_name in ENVIRONMENT_FIELDS:
            if not getattr(self, field_name):
                errors.append(f"{field_name} must not be empty")
        # Resource names join pattern and stage with "-", so neither may contain one
        for field_name in ("pattern", "stage"):
            value = getattr(self, field_name)
            if value and not _NAME_SEGMENT.match(value):
                errors.append(f"{field_name} must be alphanumeric, got {value!r}")
        if self.account and not _ACCOUNT_ID.match(self.account):
            errors.append(f"account must be a 12 digit AWS account id, got {self.account!r}")
        if errors:
            raise EnvironmentConfigError("; ".join(errors))

    def to_cdk_environment(self) -> cdk.Environment:
        return cdk.Environment(account=self.account, region=self.region)

    def to_env_vars(self, prefix: str = DEFAULT_PREFIX) -> Dict[str, str]:
        """Environment variables that resolve back to this config."""
        return {
            _variable_name(prefix, field_name): getattr(self, field_name)
            for field_name in ENVIRONMENT_FIELDS
        }


def _variable_name(prefix: str, field_name: str) -> str:
    return f"{prefix}_{field_name.upper()}"


def load_environment_config(
    prefix: str = DEFAULT_PREFIX,
    dotenv_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EnvironmentConfig:
    """
    Resolve the environment named by ``prefix``.

    Args:
        prefix: Variable name prefix, e.g. ``DEV`` for ``DEV_ACCOUNT``
        dotenv_path: Explicit ``.env`` file; searched from the working directory when omitted
        environ: Variables overriding the file; defaults to ``os.environ``

    Raises:
        EnvironmentConfigError: a variable is missing or holds an invalid value
    """
    path = dotenv_path or find_dotenv(usecwd=True)
    values: Dict[str, Optional[str]] = {}
    if path:
        logger.debug("Loading environment file %s", path)
        values.update(dotenv_values(path))
    values.update(os.environ if environ is None else environ)

    resolved = {}
    missing = []
    for field_name in ENVIRONMENT_FIELDS:
        key = _variable_name(prefix, field_name)
        value = (values.get(key) or "").strip()
        if not value:
            missing.append(key)
        resolved[field_name] = value

    if missing:
        raise EnvironmentConfigError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    config = EnvironmentConfig(**resolved)
    logger.info(
        "Resolved %s environment: pattern=%s stage=%s account=%s region=%s",
        prefix,
        config.pattern,
        config.stage,
        config.account,
        config.region,
    )
    return config
