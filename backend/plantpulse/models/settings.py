"""
Typed threshold / alert / widget configuration.

The persisted settings blob is loosely typed and often partial; the resolver in
``services/settings_resolver.py`` merges it onto these models once per pass.
Defaults live in ``plantpulse.config``.
"""
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from plantpulse.config import (
    DASHBOARD_WIDGETS,
    DEFAULT_ALERT_SETTINGS,
    DEFAULT_KPI_THRESHOLDS,
)


class SettingsModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class AlertSettings(SettingsModel):
    """Numeric limits that turn KPIs into alerts."""

    waste_threshold: float = Field(DEFAULT_ALERT_SETTINGS["waste_threshold"], ge=0)
    cost_variance_threshold: float = Field(DEFAULT_ALERT_SETTINGS["cost_variance_threshold"], ge=0)
    efficiency_threshold: float = Field(DEFAULT_ALERT_SETTINGS["efficiency_threshold"], ge=0)
    plan_delay_days: int = Field(int(DEFAULT_ALERT_SETTINGS["plan_delay_days"]), ge=0)


class KPIThreshold(SettingsModel):
    """A ``{good, warning}`` band; direction comes from the KPI definition."""

    good: float
    warning: float


class AlertToggleSettings(SettingsModel):
    enable_plan_delay_alert: bool = True
    enable_cost_variance_alert: bool = True


class WidgetConfig(SettingsModel):
    id: str
    visible: bool = True


class KPIDefinition(SettingsModel):
    key: str
    label: str
    unit: str = "%"
    inverted_scale: bool = False


def _default_thresholds() -> Dict[str, KPIThreshold]:
    return {key: KPIThreshold(**band) for key, band in DEFAULT_KPI_THRESHOLDS.items()}


def default_widgets(dashboard_key: str) -> List[WidgetConfig]:
    return [WidgetConfig(id=widget_id) for widget_id in DASHBOARD_WIDGETS.get(dashboard_key, [])]


def _default_dashboard_widgets() -> Dict[str, List[WidgetConfig]]:
    return {key: default_widgets(key) for key in DASHBOARD_WIDGETS}


class SystemSettings(SettingsModel):
    """Fully-resolved settings for one computation pass."""

    alert_settings: AlertSettings = Field(default_factory=AlertSettings)
    kpi_thresholds: Dict[str, KPIThreshold] = Field(default_factory=_default_thresholds)
    alert_toggles: AlertToggleSettings = Field(default_factory=AlertToggleSettings)
    dashboard_widgets: Dict[str, List[WidgetConfig]] = Field(default_factory=_default_dashboard_widgets)
