"""Configuration model: process settings loaded once at startup."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from remote_dispatch._location import parse_root
from remote_dispatch._resolver import PROFILE_TYPE_KEY

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_SEPARATOR = "__"


_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def as_bool(value: object) -> bool:
    """Interpret a configuration value as a boolean.

    :raises ValueError: If a string value is not a recognized boolean.
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Expected a boolean, got {value!r}")


def _config_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class _StoreSettings(BaseModel):
    uri: Optional[str] = None


class _EnvSettings(BaseSettings):
    """Environment source behind :meth:`ServiceConfig.from_env`."""

    model_config = SettingsConfigDict(env_nested_delimiter=ENV_SEPARATOR, case_sensitive=False, extra="ignore")

    store: _StoreSettings = Field(default_factory=_StoreSettings)
    profiles: dict[str, dict[str, str]] = Field(
        default_factory=dict, validation_alias=AliasChoices("profiles", "profile")
    )


@dataclasses.dataclass(frozen=True)
class ServiceConfig:
    """Top-level configuration container.

    :param store_uri: Backend root of a scoped deployment. ``None`` selects
        dynamic mode, where every request carries a full URI.
    :param profiles: Profile name to flat configuration map; each map names
        its backend kind under ``type``.
    """

    store_uri: Optional[str] = None
    profiles: dict[str, dict[str, str]] = dataclasses.field(default_factory=dict)

    @property
    def scoped(self) -> bool:
        return self.store_uri is not None

    def validate(self) -> None:
        """Check the configuration before any service is built.

        :raises UriInvalid: If ``store_uri`` is not a URI.
        :raises ValueError: If a profile has no ``type`` entry.
        """
        if self.store_uri is not None:
            parse_root(self.store_uri)
        for name, profile in self.profiles.items():
            if not profile.get(PROFILE_TYPE_KEY):
                raise ValueError(
                    f"Profile '{name}' has no '{PROFILE_TYPE_KEY}' entry. Keys: {sorted(profile)}"
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ServiceConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON).

        :param data: Dict with optional ``store`` and ``profiles`` keys.
            ``profile`` is accepted as an alias of ``profiles``.
        """
        raw_store = data.get("store") or {}
        raw_profiles = data.get("profiles", data.get("profile")) or {}
        if not isinstance(raw_store, dict) or not isinstance(raw_profiles, dict):
            msg = "Expected 'store' and 'profiles' to be dicts"
            raise TypeError(msg)

        uri = raw_store.get("uri")
        if uri is not None and not isinstance(uri, str):
            msg = "'store.uri' must be a string"
            raise TypeError(msg)

        profiles: dict[str, dict[str, str]] = {}
        for name, profile in raw_profiles.items():
            if not isinstance(profile, dict):
                msg = f"Profile '{name}' must be a dict"
                raise TypeError(msg)
            profiles[str(name).lower()] = {str(k): _config_value(v) for k, v in profile.items()}

        return cls(store_uri=uri or None, profiles=profiles)

    @classmethod
    def from_env(cls) -> ServiceConfig:
        """Construct from the process environment.

        Names are split on ``__`` and matched case-insensitively:
        ``STORE__URI`` sets the store root, ``PROFILES__BACKUP__TYPE=s3``
        sets key ``type`` of profile ``backup``. Unrelated variables are
        ignored.

        :raises ValueError: If a matching variable has the wrong shape.
        """
        settings = _EnvSettings()
        return cls.from_dict(settings.model_dump())
