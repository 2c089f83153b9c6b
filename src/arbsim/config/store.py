"""
In-memory settings store.

Holds one session's RiskSettings. Mutations are validated as a whole and
rejected atomically, so a bad update never leaves half-applied settings.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from arbsim.config.settings import RiskSettings
from arbsim.core.errors import ConfigurationError


logger = logging.getLogger(__name__)


def _normalize_keys(partial: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase aliases to field names and reject unknown keys."""
    by_alias = {
        (info.alias or name): name for name, info in RiskSettings.model_fields.items()
    }
    normalized: dict[str, Any] = {}
    unknown: list[str] = []

    for key, value in partial.items():
        if key in RiskSettings.model_fields:
            normalized[key] = value
        elif key in by_alias:
            normalized[by_alias[key]] = value
        else:
            unknown.append(key)

    if unknown:
        raise ConfigurationError(
            f"Unknown risk setting(s): {', '.join(sorted(unknown))}",
            {"fields": sorted(unknown)},
        )
    return normalized


class InMemorySettingsStore:
    """
    Settings store backed by a single immutable RiskSettings value.

    Readers always get a complete, validated snapshot; the session reads
    it afresh on every tick so changes apply on the next tick.
    """

    def __init__(self, defaults: RiskSettings | None = None) -> None:
        """
        Initialize settings store.

        Args:
            defaults: Settings restored by reset(); library defaults if omitted.
        """
        self._defaults = defaults or RiskSettings()
        self._current = self._defaults

    def get(self) -> RiskSettings:
        """Current settings."""
        return self._current

    def set(self, partial: Mapping[str, Any]) -> RiskSettings:
        """
        Merge a partial update into the current settings.

        Args:
            partial: Field names (or camelCase aliases) to new values.

        Returns:
            The new settings.

        Raises:
            ConfigurationError: Unknown key or invalid value; prior settings kept.
        """
        merged = {**self._current.model_dump(), **_normalize_keys(partial)}

        try:
            updated = RiskSettings.model_validate(merged)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise ConfigurationError(
                f"Invalid risk settings: {', '.join(fields) or 'unknown field'}",
                {"fields": fields, "errors": e.errors(include_url=False, include_context=False)},
            ) from e

        self._current = updated
        logger.info(f"Risk settings updated: {sorted(partial)}")
        return updated

    def replace(self, settings: RiskSettings) -> RiskSettings:
        """Replace settings wholesale with an already-validated value."""
        self._current = settings
        return settings

    def reset(self) -> RiskSettings:
        """Restore defaults."""
        self._current = self._defaults
        logger.info("Risk settings reset to defaults")
        return self._current

    @property
    def defaults(self) -> RiskSettings:
        return self._defaults
