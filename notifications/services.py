import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db import transaction

from .models import Notification

logger = logging.getLogger(__name__)


@dataclass
class AlertNotificationOptions:
    notify_in_app: bool = True
    notify_email: bool = False
    notify_webhook: bool = False
    email_recipients: Tuple[str, ...] = field(default_factory=tuple)
    webhook_url: str = ""


class NotificationService:
    @classmethod
    @transaction.atomic
    def notify(
        cls,
        *,
        user,
        notification_type: str,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        return Notification.objects.create(
            user=user,
            type=notification_type,
            title=title,
            message=message,
            payload=payload or {},
        )


class NotificationTemplates:
    @staticmethod
    def low_stock(items_by_location) -> Tuple[str, str, Dict[str, Any]]:
        item_count = sum(len(items) for items in items_by_location.values())
        lines = []
        locations = []
        for location, items in items_by_location.items():
            skus = [item.sku for item in items]
            locations.append({"location": location, "count": len(items), "skus": skus})
            lines.append(f"{location}: " + ", ".join(f"{item.sku} ({item.stock}/{item.threshold})" for item in items))
        return (
            "Low Stock Alert",
            f"{item_count} item(s) at or below threshold across {len(locations)} location(s).\n" + "\n".join(lines),
            {
                "type": Notification.Type.LOW_STOCK_ALERT.value,
                "itemCount": item_count,
                "locations": locations,
            },
        )


class LowStockNotifier:
    """Fans a grouped low-stock alert out to in-app, e-mail and webhook channels."""

    def __init__(self, config):
        self.config = config

    def dispatch(self, items_by_location, options: AlertNotificationOptions) -> bool:
        title, message, payload = NotificationTemplates.low_stock(items_by_location)
        ok = True
        if options.notify_in_app:
            ok = self._notify_in_app(title, message, payload) and ok
        if options.notify_email:
            ok = self._send_email(title, message, options) and ok
        if options.notify_webhook:
            webhook_payload = {
                **payload,
                "items": {
                    location: [item.to_representation() for item in items]
                    for location, items in items_by_location.items()
                },
            }
            ok = self._post_webhook(webhook_payload, options) and ok
        return ok

    def recipients(self) -> List:
        users = get_user_model().objects.filter(is_active=True)
        return [user for user in users if user.has_alert_access]

    def _notify_in_app(self, title: str, message: str, payload: Dict[str, Any]) -> bool:
        try:
            users = self.recipients()
            for user in users:
                NotificationService.notify(
                    user=user,
                    notification_type=Notification.Type.LOW_STOCK_ALERT,
                    title=title,
                    message=message,
                    payload=payload,
                )
        except Exception:
            logger.exception("In-app low stock notification failed")
            return False
        logger.info("In-app low stock notification created recipients=%s", len(users))
        return True

    def _send_email(self, title: str, message: str, options: AlertNotificationOptions) -> bool:
        recipients = list(options.email_recipients or self.config.alert_email_recipients)
        if not recipients:
            logger.warning("Low stock e-mail requested but no recipients are configured")
            return False
        try:
            send_mail(title, message, None, recipients, fail_silently=False)
        except Exception:
            logger.exception("Low stock e-mail failed recipients=%s", len(recipients))
            return False
        return True

    def _post_webhook(self, payload: Dict[str, Any], options: AlertNotificationOptions) -> bool:
        url = options.webhook_url or self.config.alert_webhook_url
        if not url:
            logger.warning("Low stock webhook requested but no URL is configured")
            return False
        try:
            response = requests.post(url, json=payload, timeout=self.config.webhook_timeout)
            response.raise_for_status()
        except requests.RequestException:
            logger.exception("Low stock webhook failed url=%s", url)
            return False
        return True
