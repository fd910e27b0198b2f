# SPDX-License-Identifier: MPL-2.0
"""Runtime configuration for the checker."""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from bindcheck.core.exceptions import ConfigurationError

DEFAULT_FETCH_TIMEOUT = 10.0  # seconds
DEFAULT_MAX_DEPTH = 32
# Each nesting level costs a few interpreter frames.
MAX_DEPTH_LIMIT = 128
DEFAULT_USER_AGENT = "bindcheck"

ENV_PREFIX = "BINDCHECK_"


class CheckerConfig(BaseModel):
    """Settings shared by the fetcher and the metadata walker."""

    fetch_timeout: float = Field(default=DEFAULT_FETCH_TIMEOUT, gt=0)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, le=MAX_DEPTH_LIMIT)
    max_workers: int = Field(default=1, ge=1)
    thumbprint_hash: Literal["S1", "S224", "S256", "S384", "S512"] = "S256"
    user_agent: str = DEFAULT_USER_AGENT

    model_config = {"frozen": True, "extra": "forbid"}

    @classmethod
    def from_env(cls, **overrides: Any) -> "CheckerConfig":
        """Build a config from ``BINDCHECK_*`` environment variables.

        Keyword arguments that are not ``None`` take precedence over the
        environment.

        Raises:
            ConfigurationError: If a value does not validate.
        """
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            env_value = os.getenv(ENV_PREFIX + name.upper())
            if env_value is not None and env_value != "":
                values[name] = env_value
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except PydanticValidationError as exc:
            raise ConfigurationError(
                f"Invalid configuration: {exc.errors()[0]['msg']}",
                {"errors": exc.errors(include_url=False)},
            ) from exc
