"""
Settings service for managing configuration.

Defaults come from ``thresholds``; any field can be overridden with an
environment variable named ``CIVICTRACK_<SECTION>_<FIELD>`` (upper case),
e.g. ``CIVICTRACK_DUPLICATE_DETECTION_MAX_DISTANCE_METERS=150``.

Each service instance keeps its own cache of serialized sections with a
configurable TTL, keyed by section name and invalidated on writes.
"""

import logging
import os
import time
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Callable, Dict, Optional, Tuple

from .thresholds import (
    DUPLICATE_MAX_DISTANCE_METERS,
    DUPLICATE_PROXIMITY_OVERRIDE_METERS,
    DESCRIPTION_MATCH_PERCENT,
    DESCRIPTION_MIN_WORD_LENGTH,
    DEADLINE_DRIFT_TOLERANCE_HOURS,
    FALLBACK_TIMEFRAME_HOURS,
    SEVERITY_TIMEFRAME_HOURS,
    INCIDENT_TYPE_CACHE_TTL_SECONDS,
    TRUST_COMPLETION_BONUS,
    TRUST_SEED_ON_VERIFICATION,
    TRUST_SEED_ON_FALSE_REPORT,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "CIVICTRACK_"

SETTINGS_CACHE_TTL: float = float(os.getenv("SETTINGS_CACHE_TTL", "60"))  # seconds


def _coerce(raw: str, current: Any) -> Any:
    """Convert an env string to the type of the current value."""
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


def apply_env_overrides(section_name: str, section: Any, environ: Optional[Dict[str, str]] = None) -> None:
    """Overwrite scalar fields of a settings dataclass from the environment."""
    environ = os.environ if environ is None else environ
    for f in fields(section):
        key = f"{ENV_PREFIX}{section_name}_{f.name}".upper()
        if key not in environ:
            continue
        current = getattr(section, f.name)
        if isinstance(current, dict):
            continue
        try:
            setattr(section, f.name, _coerce(environ[key], current))
            logger.info(f"Settings override from {key}")
        except ValueError:
            logger.warning(f"Ignoring invalid value for {key}: {environ[key]!r}")


@dataclass
class DuplicateDetectionSettings:
    """Duplicate detection configuration settings."""
    max_distance_meters: float = DUPLICATE_MAX_DISTANCE_METERS
    proximity_override_meters: float = DUPLICATE_PROXIMITY_OVERRIDE_METERS
    description_match_percent: float = DESCRIPTION_MATCH_PERCENT
    min_word_length: int = DESCRIPTION_MIN_WORD_LENGTH  # words must be longer than this


@dataclass
class DeadlineSettings:
    """SLA deadline configuration settings."""
    timeframe_hours: Dict[str, int] = field(default_factory=lambda: dict(SEVERITY_TIMEFRAME_HOURS))
    fallback_timeframe_hours: int = FALLBACK_TIMEFRAME_HOURS
    drift_tolerance_hours: float = DEADLINE_DRIFT_TOLERANCE_HOURS


@dataclass
class TrustSettings:
    """Reporter trust event configuration settings."""
    completion_bonus: int = TRUST_COMPLETION_BONUS
    seed_on_verification: int = TRUST_SEED_ON_VERIFICATION
    seed_on_false_report: int = TRUST_SEED_ON_FALSE_REPORT


@dataclass
class CatalogSettings:
    """Incident-type catalog configuration settings."""
    cache_ttl_seconds: float = INCIDENT_TYPE_CACHE_TTL_SECONDS


@dataclass
class AllSettings:
    """All application settings combined."""
    duplicate_detection: DuplicateDetectionSettings = field(default_factory=DuplicateDetectionSettings)
    deadline: DeadlineSettings = field(default_factory=DeadlineSettings)
    trust: TrustSettings = field(default_factory=TrustSettings)
    catalog: CatalogSettings = field(default_factory=CatalogSettings)


SECTION_KEYS = ("duplicate_detection", "deadline", "trust", "catalog")


class SettingsService:
    """Service for managing application settings."""

    def __init__(
        self,
        environ: Optional[Dict[str, str]] = None,
        cache_ttl: float = SETTINGS_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = AllSettings()
        self._cache: Dict[str, Tuple[Any, float]] = {}  # {section_key: (value, timestamp)}
        self.cache_ttl = cache_ttl
        self._clock = clock
        for name in SECTION_KEYS:
            apply_env_overrides(name, getattr(self._settings, name), environ)

    @property
    def duplicate_detection(self) -> DuplicateDetectionSettings:
        return self._settings.duplicate_detection

    @property
    def deadline(self) -> DeadlineSettings:
        return self._settings.deadline

    @property
    def trust(self) -> TrustSettings:
        return self._settings.trust

    @property
    def catalog(self) -> CatalogSettings:
        return self._settings.catalog

    # -----------------------------------------------------------------------
    # Serialized-section cache, avoids repeated asdict() per request.
    # -----------------------------------------------------------------------

    def _get_cached(self, key: str) -> Tuple[bool, Any]:
        """Return (hit, value). hit=False means cache miss or expired."""
        entry = self._cache.get(key)
        if entry is not None:
            value, ts = entry
            if self._clock() - ts < self.cache_ttl:
                return True, value
        return False, None

    def _set_cached(self, key: str, value: Any) -> None:
        self._cache[key] = (value, self._clock())

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("Settings cache cleared")

    def get_all(self) -> dict:
        """Get all settings as a dict."""
        hit, cached = self._get_cached("all")
        if hit:
            return cached
        result = {name: self.get_section(name) for name in SECTION_KEYS}
        self._set_cached("all", result)
        return result

    def get_section(self, name: str) -> dict:
        """Get one settings section as a dict."""
        if name not in SECTION_KEYS:
            raise KeyError(name)
        hit, cached = self._get_cached(name)
        if hit:
            return cached
        result = asdict(getattr(self._settings, name))
        self._set_cached(name, result)
        return result

    def update_section(self, name: str, config: dict) -> dict:
        """Update fields of one settings section in place.

        Services hold the section objects, so changes apply to them at once;
        the catalog TTL is read when the services are built.
        Dict fields are merged key by key.
        """
        if name not in SECTION_KEYS:
            raise KeyError(name)
        section = getattr(self._settings, name)
        for key, value in config.items():
            if not hasattr(section, key):
                continue
            current = getattr(section, key)
            if isinstance(current, dict) and isinstance(value, dict):
                current.update(value)
            else:
                setattr(section, key, value)
            logger.info(f"Updated {name}.{key} = {value}")

        self._cache.pop(name, None)
        self._cache.pop("all", None)
        return self.get_section(name)


# Singleton instance
_settings_service: Optional[SettingsService] = None


def get_settings_service() -> SettingsService:
    """Get the singleton settings service instance."""
    global _settings_service
    if _settings_service is None:
        _settings_service = SettingsService()
    return _settings_service
