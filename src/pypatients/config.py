"""Client configuration for pypatients."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pypatients.exceptions import PatientsConfigError


@dataclasses.dataclass(frozen=True)
class PatientsConfig:
    """Client and view configuration.

    Parameters
    ----------
    base_url : str
        Patient API base URL, without trailing slash.
    username : str or None
        HTTP basic-auth user name.  Leave unset for servers that do not
        require authentication.
    password : str or None
        HTTP basic-auth password.
    page_size : int
        Number of rows on one visible page.
    filter_settle_delay : float
        Quiet period in seconds a filter input must stay unchanged before
        the list view recomputes.
    request_timeout : float
        Total timeout for one HTTP request, in seconds.
    """

    base_url: str = "http://localhost:8080/api"
    username: str | None = None
    password: str | None = dataclasses.field(default=None, repr=False)
    page_size: int = 4
    filter_settle_delay: float = 0.3
    request_timeout: float = 30.0

    def validate(self) -> PatientsConfig:
        """Raise :class:`PatientsConfigError` for unusable values."""
        if self.page_size <= 0:
            raise PatientsConfigError(f"page_size must be positive, got {self.page_size}")
        if self.filter_settle_delay < 0:
            raise PatientsConfigError(f"filter_settle_delay must not be negative, got {self.filter_settle_delay}")
        if self.request_timeout <= 0:
            raise PatientsConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if not self.base_url:
            raise PatientsConfigError("base_url must be set")
        return self

    @property
    def has_credentials(self) -> bool:
        return self.username is not None and self.password is not None

    @classmethod
    def from_env(cls, **overrides: Any) -> PatientsConfig:
        """Create configuration from environment variables.

        Reads ``PATIENTS_BASE_URL``, ``PATIENTS_USERNAME``,
        ``PATIENTS_PASSWORD`` and the optional numeric ``PATIENTS_*``
        settings.  Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "PATIENTS_BASE_URL": "base_url",
            "PATIENTS_USERNAME": "username",
            "PATIENTS_PASSWORD": "password",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        page_size_env = env.get("PATIENTS_PAGE_SIZE")
        if page_size_env is not None and "page_size" not in overrides:
            config_kwargs["page_size"] = _parse_number(int, "PATIENTS_PAGE_SIZE", page_size_env)

        delay_env = env.get("PATIENTS_FILTER_SETTLE_DELAY")
        if delay_env is not None and "filter_settle_delay" not in overrides:
            config_kwargs["filter_settle_delay"] = _parse_number(float, "PATIENTS_FILTER_SETTLE_DELAY", delay_env)

        timeout_env = env.get("PATIENTS_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = _parse_number(float, "PATIENTS_REQUEST_TIMEOUT", timeout_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs).validate()


def _parse_number(kind: type[int] | type[float], name: str, raw: str) -> Any:
    try:
        return kind(raw.strip())
    except ValueError as exc:
        raise PatientsConfigError(f"{name} is not a valid {kind.__name__}: {raw!r}") from exc
