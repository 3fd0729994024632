from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.dispatch import receiver


@dataclass(frozen=True)
class InventoryConfig:
    default_threshold: int = 5
    critical_ratio: float = 0.5
    validate_locations: bool = True
    alert_email_recipients: Tuple[str, ...] = field(default_factory=tuple)
    alert_webhook_url: str = ""
    webhook_timeout: int = 10

    def __post_init__(self):
        if not 0 < self.critical_ratio <= 1:
            raise ImproperlyConfigured(
                f"INVENTORY['CRITICAL_RATIO'] must be in (0, 1], got {self.critical_ratio}"
            )
        if self.default_threshold < 0:
            raise ImproperlyConfigured("INVENTORY['DEFAULT_THRESHOLD'] must be non-negative")

    @classmethod
    def from_settings(cls) -> "InventoryConfig":
        values = getattr(settings, "INVENTORY", {}) or {}
        return cls(
            default_threshold=int(values.get("DEFAULT_THRESHOLD", 5)),
            critical_ratio=float(values.get("CRITICAL_RATIO", 0.5)),
            validate_locations=bool(values.get("VALIDATE_LOCATIONS", True)),
            alert_email_recipients=tuple(values.get("ALERT_EMAIL_RECIPIENTS") or ()),
            alert_webhook_url=values.get("ALERT_WEBHOOK_URL") or "",
            webhook_timeout=int(values.get("WEBHOOK_TIMEOUT", 10)),
        )


@lru_cache(maxsize=None)
def get_config() -> InventoryConfig:
    return InventoryConfig.from_settings()


@receiver(setting_changed)
def _reset_config(*, setting, **kwargs):
    if setting == "INVENTORY":
        get_config.cache_clear()
