"""Runtime provider settings.

Provider credentials start out from the environment and can be changed by an
administrator at runtime. Changes are persisted in the ``settings`` table so
they survive restarts. Channel adapters never read the environment
themselves, they ask this store whether they are configured.
"""

import logging
import os
from typing import Dict, Iterable

from roydadyar.db.repository import Repository
from roydadyar.utils.constants import DEFAULT_APP_URL, EMAIL, SMS, WHATSAPP

logger = logging.getLogger(__name__)

MASK = "••••••••"

# Keys the store knows about and their defaults
SETTING_DEFAULTS: Dict[str, str] = {
    "EMAIL_USER": "",
    "EMAIL_PASS": "",
    "SMTP_HOST": "smtp.gmail.com",
    "SMTP_PORT": "587",
    "SMS_USERNAME": "",
    "SMS_PASSWORD": "",
    "SMS_SENDER": "",
    "WHATSAPP_API_KEY": "",
    "ZARINPAL_MERCHANT_ID": "",
    "ZARINPAL_SANDBOX": "false",
    "APP_URL": DEFAULT_APP_URL,
}

SECRET_KEYS = {"EMAIL_PASS", "SMS_PASSWORD", "WHATSAPP_API_KEY", "ZARINPAL_MERCHANT_ID"}

# Keys that must all be non-empty for a channel to be live
CHANNEL_REQUIREMENTS: Dict[str, tuple[str, ...]] = {
    EMAIL: ("EMAIL_USER", "EMAIL_PASS"),
    SMS: ("SMS_USERNAME", "SMS_PASSWORD"),
    WHATSAPP: ("WHATSAPP_API_KEY",),
}


class SettingsStore:
    """Key-value store for provider credentials."""

    def __init__(self, values: Dict[str, str] | None = None):
        self._values: Dict[str, str] = dict(SETTING_DEFAULTS)
        if values:
            self._values.update({k: v for k, v in values.items() if v is not None})

    @classmethod
    def from_env(cls) -> "SettingsStore":
        """Seed a store from environment variables."""
        return cls({key: os.getenv(key, default) for key, default in SETTING_DEFAULTS.items()})

    def get(self, key: str, default: str = "") -> str:
        """Get a setting, stripped of surrounding whitespace."""
        return (self._values.get(key) or default).strip()

    def get_int(self, key: str, default: int) -> int:
        """Get a numeric setting, falling back on bad values."""
        try:
            return int(self.get(key))
        except ValueError:
            return default

    def get_bool(self, key: str) -> bool:
        """Get a boolean setting ("true"/"1"/"yes" are true)."""
        return self.get(key).lower() in ("true", "1", "yes")

    def set(self, key: str, value: str) -> None:
        """Set a single setting in memory."""
        if key not in SETTING_DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")
        self._values[key] = value

    def has(self, keys: Iterable[str]) -> bool:
        """Check that every key has a non-empty value."""
        return all(self.get(key) for key in keys)

    def is_configured(self, channel: str) -> bool:
        """Whether a notification channel has live credentials."""
        required = CHANNEL_REQUIREMENTS.get(channel)
        if required is None:
            return False
        return self.has(required)

    @property
    def payment_sandbox(self) -> bool:
        """Payment calls are mocked when sandboxed or no merchant is set."""
        return self.get_bool("ZARINPAL_SANDBOX") or not self.get("ZARINPAL_MERCHANT_ID")

    @property
    def app_url(self) -> str:
        return self.get("APP_URL", DEFAULT_APP_URL).rstrip("/")

    async def load(self, repo: Repository) -> None:
        """Overlay values persisted by an administrator."""
        stored = await repo.get_settings()
        known = {k: v for k, v in stored.items() if k in SETTING_DEFAULTS}
        self._values.update(known)
        if known:
            logger.info(f"Loaded {len(known)} stored settings")

    async def update(self, repo: Repository, values: Dict[str, str]) -> list[str]:
        """Apply and persist changes from the admin screen.

        Masked secrets are ignored so that re-submitting the masked view
        does not wipe the real values.

        Returns:
            The keys that were changed
        """
        changes: Dict[str, str] = {}
        for key, value in values.items():
            if key not in SETTING_DEFAULTS:
                raise KeyError(f"Unknown setting: {key}")
            value = "" if value is None else str(value).strip()
            if key in SECRET_KEYS and MASK in value:
                continue
            if self._values.get(key) != value:
                changes[key] = value

        if changes:
            self._values.update(changes)
            await repo.save_settings(changes)
            logger.info(f"Settings updated: {', '.join(sorted(changes))}")

        return sorted(changes)

    def masked(self) -> Dict[str, object]:
        """Settings grouped for display, with secrets hidden."""

        def hide(key: str) -> str:
            return MASK if self.get(key) else ""

        return {
            "email": {
                "user": self.get("EMAIL_USER"),
                "password": hide("EMAIL_PASS"),
                "smtp_host": self.get("SMTP_HOST"),
                "smtp_port": self.get_int("SMTP_PORT", 587),
                "enabled": self.is_configured(EMAIL),
            },
            "sms": {
                "username": self.get("SMS_USERNAME"),
                "password": hide("SMS_PASSWORD"),
                "sender": self.get("SMS_SENDER"),
                "enabled": self.is_configured(SMS),
            },
            "whatsapp": {
                "api_key": hide("WHATSAPP_API_KEY"),
                "enabled": self.is_configured(WHATSAPP),
            },
            "zarinpal": {
                "merchant_id": hide("ZARINPAL_MERCHANT_ID"),
                "sandbox": self.payment_sandbox,
                "enabled": bool(self.get("ZARINPAL_MERCHANT_ID")),
            },
            "app": {"url": self.app_url},
        }
