"""
settings_resolver.py — merge the persisted settings blob onto typed defaults.

The blob is whatever the settings store returned: camelCase keys, possibly
partial, occasionally malformed.  It is resolved once per pass into a
``SystemSettings``; every later lookup reads the typed struct.

Fallback is field-level: a bad ``wasteThreshold`` falls back to its default
without discarding a good ``efficiencyThreshold`` next to it.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import ValidationError

from plantpulse.config import FALLBACK_KPI_THRESHOLD, KPI_DEFINITIONS
from plantpulse.models.settings import (
    AlertSettings,
    AlertToggleSettings,
    KPIDefinition,
    KPIThreshold,
    SettingsModel,
    SystemSettings,
    WidgetConfig,
    default_widgets,
)

logger = logging.getLogger("plantpulse-settings")


def _lookup(raw: Mapping[str, Any], name: str, alias: Optional[str]) -> Any:
    if alias and alias in raw:
        return raw[alias]
    return raw.get(name)


def _merge_fields(
    model: Type[SettingsModel],
    raw: Any,
    section: str,
    base: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Validate each field of ``model`` on its own (on top of ``base`` for models
    with required fields); keep only the ones that pass.
    """
    base = dict(base or {})
    accepted: Dict[str, Any] = {}
    if raw is None:
        return accepted
    if not isinstance(raw, Mapping):
        logger.warning(f"Settings section '{section}' is not an object, using defaults")
        return accepted

    for name, field in model.model_fields.items():
        value = _lookup(raw, name, field.alias)
        if value is None:
            continue
        try:
            checked = model.model_validate({**base, name: value})
        except ValidationError as exc:
            logger.warning(
                f"Invalid setting {section}.{field.alias or name}={value!r}, using default "
                f"({exc.error_count()} error(s))"
            )
            continue
        accepted[name] = getattr(checked, name)
    return accepted


def _resolve_thresholds(raw: Any) -> Dict[str, KPIThreshold]:
    thresholds = SystemSettings().kpi_thresholds
    if raw is None:
        return thresholds
    if not isinstance(raw, Mapping):
        logger.warning("Settings section 'kpiThresholds' is not an object, using defaults")
        return thresholds

    for key, band in raw.items():
        if not isinstance(band, Mapping):
            logger.warning(f"Invalid KPI threshold '{key}', using default")
            continue
        current = (thresholds.get(key) or KPIThreshold(**FALLBACK_KPI_THRESHOLD)).model_dump()
        merged = {**current, **_merge_fields(KPIThreshold, band, f"kpiThresholds.{key}", current)}
        thresholds[key] = KPIThreshold(**merged)
    return thresholds


def _resolve_widgets(raw: Any) -> Dict[str, List[WidgetConfig]]:
    widgets = SystemSettings().dashboard_widgets
    if raw is None:
        return widgets
    if not isinstance(raw, Mapping):
        logger.warning("Settings section 'dashboardWidgets' is not an object, using defaults")
        return widgets

    for dashboard_key, entries in raw.items():
        if not isinstance(entries, (list, tuple)):
            logger.warning(f"Widget list for '{dashboard_key}' is not a list, using defaults")
            continue
        parsed: List[WidgetConfig] = []
        for entry in entries:
            try:
                parsed.append(WidgetConfig.model_validate(entry))
            except ValidationError:
                logger.warning(f"Dropping invalid widget entry {entry!r} on '{dashboard_key}'")
        # An empty persisted list means "not customised"
        if parsed:
            widgets[dashboard_key] = parsed
    return widgets


def resolve_system_settings(raw: Any = None) -> SystemSettings:
    """Single merge of a persisted settings blob with the documented defaults."""
    if raw is None:
        return SystemSettings()
    if not isinstance(raw, Mapping):
        logger.warning(f"Ignoring settings blob of type {type(raw).__name__}")
        return SystemSettings()

    settings = SystemSettings(
        alert_settings=AlertSettings(**_merge_fields(AlertSettings, raw.get("alertSettings"), "alertSettings")),
        kpi_thresholds=_resolve_thresholds(raw.get("kpiThresholds")),
        alert_toggles=AlertToggleSettings(
            **_merge_fields(AlertToggleSettings, raw.get("alertToggles"), "alertToggles")
        ),
        dashboard_widgets=_resolve_widgets(raw.get("dashboardWidgets")),
    )
    logger.debug(f"Resolved settings: {settings.alert_settings!r}")
    return settings


# ---------------------------------------------------------------------------
# Lookups over a resolved struct
# ---------------------------------------------------------------------------

def get_alert_settings(settings: Optional[SystemSettings] = None) -> AlertSettings:
    return (settings or SystemSettings()).alert_settings


def get_kpi_threshold(settings: Optional[SystemSettings], kpi_key: str) -> KPIThreshold:
    resolved = settings or SystemSettings()
    return resolved.kpi_thresholds.get(kpi_key) or KPIThreshold(**FALLBACK_KPI_THRESHOLD)


def get_widget_order(settings: Optional[SystemSettings], dashboard_key: str) -> List[WidgetConfig]:
    resolved = settings or SystemSettings()
    return list(resolved.dashboard_widgets.get(dashboard_key) or default_widgets(dashboard_key))


def is_widget_visible(settings: Optional[SystemSettings], dashboard_key: str, widget_id: str) -> bool:
    """Unknown widgets are visible."""
    for widget in get_widget_order(settings, dashboard_key):
        if widget.id == widget_id:
            return widget.visible
    return True


def kpi_definitions() -> List[KPIDefinition]:
    return [
        KPIDefinition(key=key, label=label, unit=unit, inverted_scale=inverted)
        for key, label, unit, inverted in KPI_DEFINITIONS
    ]
