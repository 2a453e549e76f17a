"""User settings schema and default template."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError
from pydantic.alias_generators import to_camel

from pawsync.contracts.exceptions import InvalidSettingsError

SETTINGS_VERSION = "1.0.0"
EXPORT_VERSION = "1.0.0"
EXPORT_METADATA_KEYS = frozenset({"exportedAt", "exportVersion"})


class _SettingsModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class EmailNotifications(_SettingsModel):
    pet_matches: StrictBool = True
    community_updates: StrictBool = True
    system_updates: StrictBool = True
    marketing_emails: StrictBool = False


class PushNotifications(_SettingsModel):
    enabled: StrictBool = True
    pet_alerts: StrictBool = True
    messages: StrictBool = True
    reminders: StrictBool = True


class SavedSearchFilters(_SettingsModel):
    pet_type: list[StrictStr] = Field(default_factory=list)
    age_range: list[StrictStr] = Field(default_factory=list)
    location: StrictStr = ""


class PetPreferences(_SettingsModel):
    species: list[StrictStr] = Field(default_factory=list)
    sizes: list[StrictStr] = Field(default_factory=list)
    ages: list[StrictStr] = Field(default_factory=list)
    special_needs: StrictBool = False


class DashboardLayout(_SettingsModel):
    widgets: list[StrictStr] = Field(default_factory=lambda: ["recent-activity", "saved-searches", "quick-actions"])
    order: list[StrictInt] = Field(default_factory=lambda: [0, 1, 2])
    collapsed: list[StrictStr] = Field(default_factory=list)


def _local_timezone() -> str:
    return (os.environ.get("TZ") or "").strip() or "UTC"


class UserSettings(_SettingsModel):
    """One user's preferences.

    The sync engine treats this as opaque payload except for ``version`` and
    ``last_updated``. Field names are camelCase on the wire (``fontSize``) and
    snake_case in Python (``font_size``).
    """

    theme: Literal["light", "dark", "auto"] = "light"
    color_scheme: Literal["default", "high-contrast", "colorblind-friendly"] = "default"
    font_size: Literal["small", "medium", "large"] = "medium"
    reduced_motion: StrictBool = False

    email_notifications: EmailNotifications = Field(default_factory=EmailNotifications)
    push_notifications: PushNotifications = Field(default_factory=PushNotifications)

    profile_visibility: Literal["public", "private", "friends-only"] = "public"
    show_email: StrictBool = False
    show_location: StrictBool = True
    two_factor_enabled: StrictBool = False

    default_search_radius: StrictInt = Field(default=25, ge=0)
    preferred_location: StrictStr = ""
    saved_search_filters: SavedSearchFilters = Field(default_factory=SavedSearchFilters)

    language: StrictStr = "en"
    timezone: StrictStr = Field(default_factory=_local_timezone)
    auto_save: StrictBool = True
    show_tutorials: StrictBool = True
    compact_view: StrictBool = False

    pet_preferences: PetPreferences = Field(default_factory=PetPreferences)
    dashboard_layout: DashboardLayout = Field(default_factory=DashboardLayout)

    preferred_contact_method: Literal["email", "phone", "app"] = "email"
    response_time_expectation: Literal["immediate", "within-hour", "within-day", "flexible"] = "within-day"

    screen_reader: StrictBool = False
    high_contrast: StrictBool = False
    keyboard_navigation: StrictBool = False

    data_retention: StrictInt = Field(default=365, ge=0)
    backup_frequency: Literal["daily", "weekly", "monthly", "never"] = "weekly"

    version: StrictStr = SETTINGS_VERSION
    last_updated: StrictStr = ""


def default_settings(*, last_updated: str = "") -> UserSettings:
    """Return a fresh copy of the default template."""
    return UserSettings(last_updated=last_updated)


def to_payload(settings: UserSettings) -> dict[str, Any]:
    """Serialize settings to the camelCase, JSON-ready wire shape."""
    return settings.model_dump(mode="json", by_alias=True)


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``overrides`` into ``base``; nested mappings merge, everything else replaces."""
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def normalize_keys(payload: Mapping[str, Any], model: type[BaseModel] = UserSettings) -> dict[str, Any]:
    """Rewrite snake_case field names to their camelCase aliases.

    Unknown keys pass through untouched and are dropped later by validation.
    """
    fields = {name: (info.alias or name, info.annotation) for name, info in model.model_fields.items()}
    by_alias = {alias: annotation for alias, annotation in fields.values()}

    normalized: dict[str, Any] = {}
    for key, value in payload.items():
        if key in by_alias:
            alias, annotation = key, by_alias[key]
        elif key in fields:
            alias, annotation = fields[key]
        else:
            normalized[key] = value
            continue
        if isinstance(annotation, type) and issubclass(annotation, BaseModel) and isinstance(value, Mapping):
            value = normalize_keys(value, annotation)
        normalized[alias] = value
    return normalized


def _format_errors(exc: ValidationError) -> list[str]:
    errors: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        errors.append(f"{location}: {error['msg']}")
    return errors


def merge_settings(
    base: UserSettings,
    overrides: Mapping[str, Any],
    *,
    error_cls: type[InvalidSettingsError] = InvalidSettingsError,
    message: str = "Settings failed validation",
) -> UserSettings:
    """Deep-merge a partial payload over ``base`` and validate the result.

    Raises:
        InvalidSettingsError: (or ``error_cls``) when the merged record fails
            strict validation. Nothing is coerced.
    """
    merged = deep_merge(to_payload(base), normalize_keys(overrides))
    try:
        return UserSettings.model_validate(merged)
    except ValidationError as exc:
        raise error_cls(message, _format_errors(exc)) from exc


def settings_over_defaults(
    payload: Mapping[str, Any],
    *,
    error_cls: type[InvalidSettingsError] = InvalidSettingsError,
    message: str = "Settings failed validation",
) -> UserSettings:
    """Backfill every field missing from ``payload`` with its default value."""
    return merge_settings(default_settings(), payload, error_cls=error_cls, message=message)
