"""Configuration loader for healthcore-sdk.

``ConfigLoader`` resolves configuration from YAML files, JSON files,
environment variables, or auto-discovers the first available source by
searching well-known paths.  Files are dispatched on suffix; anything that
is not ``.json`` is read as YAML.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import NamedTuple

import yaml
from pydantic import ValidationError

from healthcore.config.defaults import DEFAULT_CONFIG
from healthcore.config.schema import as_configuration_error, validate_config
from healthcore.schema.config import ENV_PREFIX, HealthCoreConfig
from healthcore.schema.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Ordered list of paths searched by load_auto()
_AUTO_SEARCH_PATHS: tuple[str, ...] = (
    "healthcore.yaml",
    "healthcore.yml",
    "healthcore.json",
    ".healthcore.yaml",
    ".healthcore.yml",
    ".healthcore.json",
)


class _FileFormat(NamedTuple):
    label: str
    parse: Callable[[str], object]
    parse_errors: tuple[type[Exception], ...]


_YAML = _FileFormat("YAML", yaml.safe_load, (yaml.YAMLError,))
_JSON = _FileFormat("JSON", json.loads, (json.JSONDecodeError,))


def _format_for(path: Path) -> _FileFormat:
    return _JSON if path.suffix.lower() == ".json" else _YAML


class ConfigLoader:
    """Loads ``HealthCoreConfig`` from multiple sources.

    All loader methods return a validated ``HealthCoreConfig`` instance.

    Examples
    --------
    >>> loader = ConfigLoader()
    >>> config = loader.load_env()
    >>> config.cache.return_stale_on_error
    True
    """

    def load_path(self, path: str | Path) -> HealthCoreConfig:
        """Load a YAML or JSON file, chosen by suffix.

        An empty file, or one whose top level is not a mapping, yields the
        default configuration.

        Raises
        ------
        ConfigurationError
            If the file is missing, unreadable, unparsable, or fails
            validation.
        """
        resolved = Path(path)
        return self._read(resolved, _format_for(resolved))

    def load_yaml(self, path: str | Path) -> HealthCoreConfig:
        """Load *path* as YAML regardless of its suffix."""
        return self._read(Path(path), _YAML)

    def load_json(self, path: str | Path) -> HealthCoreConfig:
        """Load *path* as JSON regardless of its suffix."""
        return self._read(Path(path), _JSON)

    def _read(self, path: Path, file_format: _FileFormat) -> HealthCoreConfig:
        context = {"path": str(path), "format": file_format.label}
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigurationError(
                f"{file_format.label} config file not found: {path}", context=context
            ) from exc
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read config file {path}: {exc}", context=context
            ) from exc
        try:
            raw = file_format.parse(text)
        except file_format.parse_errors as exc:
            raise ConfigurationError(
                f"Failed to parse {file_format.label} config at {path}: {exc}",
                context=context,
            ) from exc

        if raw is not None and not isinstance(raw, dict):
            logger.warning(
                "Top level of %s is %s, not a mapping; using defaults",
                path,
                type(raw).__name__,
            )
        data = raw if isinstance(raw, dict) else {}
        logger.debug("Loaded %s config from %s", file_format.label, path)
        return validate_config(data, source=str(path))

    def load_env(self, prefix: str = ENV_PREFIX) -> HealthCoreConfig:
        """Build configuration from environment variables.

        See :meth:`~healthcore.schema.config.HealthCoreConfig.env_overrides`
        for the variable naming rules.

        Raises
        ------
        ConfigurationError
            If an environment value fails validation.
        """
        config = validate_config(
            HealthCoreConfig.env_overrides(prefix), source=f"environment ({prefix}*)"
        )
        logger.debug("Loaded config from environment with prefix %r", prefix)
        return config

    def load_auto(
        self,
        search_dir: str | Path | None = None,
        env_prefix: str = ENV_PREFIX,
    ) -> HealthCoreConfig:
        """Auto-discover and load configuration.

        Discovery order:

        1. Search *search_dir* (defaults to ``cwd``) for ``healthcore.yaml``,
           ``healthcore.yml``, ``healthcore.json``, and hidden variants.
        2. Overlay environment variables from *env_prefix* on top.
        3. Fall back to ``DEFAULT_CONFIG`` if nothing is found.
        """
        base_dir = Path(search_dir) if search_dir is not None else Path.cwd()
        base_config: HealthCoreConfig | None = None

        for candidate_name in _AUTO_SEARCH_PATHS:
            candidate = base_dir / candidate_name
            if not candidate.exists():
                continue
            try:
                base_config = self.load_path(candidate)
                logger.info("Auto-loaded healthcore config from %s", candidate)
                break
            except ConfigurationError:
                logger.warning("Could not load config from %s; trying next.", candidate)

        if base_config is None:
            base_config = DEFAULT_CONFIG
            logger.debug("No config file found; using DEFAULT_CONFIG.")

        overrides = HealthCoreConfig.env_overrides(env_prefix)
        if overrides:
            try:
                base_config = base_config.merge(overrides)
            except ValidationError as exc:
                raise as_configuration_error(
                    exc, source=f"environment ({env_prefix}*)"
                ) from exc
            logger.debug("Applied environment variable overlay: %s", sorted(overrides))

        return base_config


__all__ = ["ConfigLoader"]
