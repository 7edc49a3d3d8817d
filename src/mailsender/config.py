"""Configuration loading for mailsender.

Settings live in a YAML file named ``mailsender.conf.yml`` and are exposed
as a :class:`box.Box` with attribute access. The file is looked up in this
order:

1. the ``path`` argument of :func:`load_config`;
2. the ``MAILSENDER_CONFIG`` environment variable;
3. ``./mailsender.conf.yml``;
4. ``~/.config/mailsender/mailsender.conf.yml``.

When no file is found, an empty configuration is returned. String values
may reference environment variables as ``${VAR}`` (required) or
``${VAR:-default}`` (optional).

Example file::

    mail:
      smtp:
        host: smtp.example.com
        port: 587
        username: robot@example.com
        password: ${SMTP_PASSWORD}
        security:
          use_starttls: true
      defaults:
        sender: robot@example.com
        subject: Report
    logging:
      console:
        level: INFO
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from box import Box

from mailsender.exceptions import ConfigFileNotFoundError, ConfigFormatError, MailConfigError

__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "clear_config",
    "find_config_file",
    "get_config",
    "load_config",
]

log = logging.getLogger(__name__)

CONFIG_FILENAME = "mailsender.conf.yml"
CONFIG_ENV_VAR = "MAILSENDER_CONFIG"

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)(?::-([^}]*))?\}")

_cached_config: Box | None = None


def _expand_env_vars(value: str, source: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in ``value``.

    Raises:
        MailConfigError: If a required variable is not set.

    Examples:
        >>> import os
        >>> os.environ["MAILSENDER_DOC_HOST"] = "smtp.example.com"
        >>> _expand_env_vars("${MAILSENDER_DOC_HOST}:${MAILSENDER_DOC_PORT:-25}", "doc")
        'smtp.example.com:25'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if default_value is not None:
            return default_value
        raise MailConfigError(f"Environment variable '{var_name}' is not set (required by {source})")

    return _ENV_VAR_PATTERN.sub(replacer, value)


def _expand_env_vars_recursive(data: Any, source: str) -> Any:
    if isinstance(data, dict):
        return {k: _expand_env_vars_recursive(v, source) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars_recursive(item, source) for item in data]
    if isinstance(data, str):
        return _expand_env_vars(data, source)
    return data


def find_config_file(path: str | os.PathLike[str] | None = None) -> Path | None:
    """Return the configuration file to load, or None if there is none.

    Raises:
        ConfigFileNotFoundError: If ``path`` or ``MAILSENDER_CONFIG`` names
            a file that does not exist.
    """
    explicit = path if path is not None else os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidate = Path(explicit).expanduser()
        if not candidate.is_file():
            raise ConfigFileNotFoundError(str(candidate))
        return candidate

    for candidate in (Path.cwd() / CONFIG_FILENAME, Path.home() / ".config" / "mailsender" / CONFIG_FILENAME):
        if candidate.is_file():
            return candidate
    return None


def load_config(path: str | os.PathLike[str] | None = None) -> Box:
    """Load the configuration file and cache it for :func:`get_config`.

    Args:
        path: Explicit file to load. Overrides the lookup order.

    Returns:
        The configuration as a Box (empty if no file was found).

    Raises:
        ConfigFileNotFoundError: If an explicit file is missing.
        ConfigFormatError: If the file is not valid YAML or not a mapping.
        MailConfigError: If a required environment variable is not set.
    """
    global _cached_config  # pylint: disable=global-statement

    config_path = find_config_file(path)
    if config_path is None:
        log.debug("No %s found, using empty configuration", CONFIG_FILENAME)
        _cached_config = Box(default_box=True)
        return _cached_config

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigFormatError(str(config_path), str(e)) from e
    except OSError as e:
        raise ConfigFormatError(str(config_path), e.strerror or str(e)) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigFormatError(str(config_path), f"expected a mapping, got {type(raw).__name__}")

    data = _expand_env_vars_recursive(raw, str(config_path))
    log.debug("Loaded configuration from %s", config_path)
    _cached_config = Box(data, default_box=True)
    return _cached_config


def get_config() -> Box:
    """Return the cached configuration, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def clear_config() -> None:
    """Forget the cached configuration."""
    global _cached_config  # pylint: disable=global-statement
    _cached_config = None
