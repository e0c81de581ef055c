"""
Admin settings of the OpenSocial OAuth2 provider.

Settings are validated with a marshmallow schema and kept either in
memory or in a JSON file.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Optional

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates

from .config import ProviderConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSettings:
    """Settings edited through the provider's admin form."""

    # Base URL of the Moodle installation
    moodle_url: str = ""

    # Create Moodle accounts for OpenSocial users on first login
    enable_auto_provisioning: bool = True


class ProviderSettingsSchema(Schema):
    """Validate submitted provider settings."""

    class Meta:
        unknown = EXCLUDE

    moodle_url = fields.String(load_default="")
    enable_auto_provisioning = fields.Boolean(load_default=True)

    @validates("moodle_url")
    def validate_moodle_url(self, value, **kwargs):
        if value:
            validate.URL(relative=False)(value)


class SettingsStore:
    """
    Persist provider settings.

    Args:
        path: JSON file to keep settings in; None keeps them in memory
        defaults: Settings returned while nothing has been saved
    """

    def __init__(self, path: Optional[str] = None, defaults: Optional[ProviderSettings] = None):
        self.path = Path(path) if path else None
        self.defaults = defaults or ProviderSettings()
        self._settings: Optional[ProviderSettings] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ProviderConfig) -> "SettingsStore":
        return cls(
            path=config.settings_file or None,
            defaults=ProviderSettings(
                moodle_url=config.moodle_url,
                enable_auto_provisioning=config.enable_auto_provisioning,
            ),
        )

    def load(self) -> ProviderSettings:
        """Return the saved settings, or the defaults."""
        if self._settings is not None:
            return self._settings

        if self.path is not None and self.path.exists():
            try:
                data = json.loads(self.path.read_text())
                loaded = ProviderSettingsSchema().load(data, partial=True)
            except (ValueError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
                return self.defaults
            return replace(self.defaults, **loaded)

        return self.defaults

    def save(self, settings: ProviderSettings) -> ProviderSettings:
        with self._lock:
            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(json.dumps(asdict(settings), indent=2))
            self._settings = settings

        logger.info(f"Saved provider settings: moodle_url={settings.moodle_url!r}, "
                    f"enable_auto_provisioning={settings.enable_auto_provisioning}")
        return settings

    def update(self, data: dict) -> ProviderSettings:
        """
        Validate submitted values and save them over the current settings.

        Raises:
            marshmallow.ValidationError: submitted values are invalid
        """
        changes = ProviderSettingsSchema().load(data, partial=True)
        return self.save(replace(self.load(), **changes))
