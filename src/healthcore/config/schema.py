"""Validation entry point for raw healthcore configuration data.

``HealthCoreConfig`` is re-exported so ``healthcore.config`` is a complete
import path.  Every loader funnels raw mappings through
:func:`validate_config`, so all invalid input surfaces as
:class:`~healthcore.schema.errors.ConfigurationError`.
"""
from __future__ import annotations

from collections.abc import Mapping

from pydantic import ValidationError

from healthcore.schema.config import HealthCoreConfig
from healthcore.schema.errors import ConfigurationError

__all__ = ["HealthCoreConfig", "as_configuration_error", "validate_config"]


def as_configuration_error(
    exc: ValidationError, source: str | None = None
) -> ConfigurationError:
    """Translate a pydantic error into a :class:`ConfigurationError`.

    The context carries the structured ``errors`` list and, when known,
    the ``source`` the data came from.
    """
    context: dict[str, object] = {"errors": exc.errors(include_url=False)}
    where = ""
    if source is not None:
        context["source"] = source
        where = f" from {source}"
    return ConfigurationError(
        f"Invalid healthcore configuration{where} "
        f"({exc.error_count()} error(s)): {exc}",
        context=context,
    )


def validate_config(
    data: Mapping[str, object], source: str | None = None
) -> HealthCoreConfig:
    """Validate *data* into a ``HealthCoreConfig``.

    Raises
    ------
    ConfigurationError
        With the ``ValidationError`` as ``__cause__``.

    Examples
    --------
    >>> validate_config({"cache": {"healthy_ttl_seconds": 60}}).cache.healthy_ttl_seconds
    60.0
    """
    try:
        return HealthCoreConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise as_configuration_error(exc, source) from exc
