"""
Management command to report low stock and optionally dispatch alerts.

Meant to be run by an operator or an external cron.
"""
from django.core.management.base import BaseCommand, CommandError

from notifications.services import AlertNotificationOptions

from inventory.alerts import AlertService
from inventory.services import InventoryService


class Command(BaseCommand):
    help = "Repair low-stock flags, print the per-location breakdown and optionally send alerts"

    def add_arguments(self, parser):
        parser.add_argument("--notify", action="store_true", help="Dispatch notifications for breached items")
        parser.add_argument("--critical-only", action="store_true", help="Only critical and out-of-stock items")
        parser.add_argument("--location", help="Restrict the report to one location")
        parser.add_argument("--email", nargs="*", default=None, metavar="ADDRESS", help="Also send e-mail")
        parser.add_argument("--webhook", default=None, metavar="URL", help="Also post to a webhook")

    def handle(self, *args, **options):
        fixed = InventoryService().recompute_low_stock_flags()
        if fixed:
            self.stdout.write(self.style.WARNING(f"Repaired {fixed} stale low-stock flag(s)"))

        service = AlertService()
        report = service.low_stock_report(critical_only=options["critical_only"], location=options["location"])
        summary = report.to_representation()["summary"]

        if not report.location_breakdown:
            self.stdout.write(self.style.SUCCESS("No stock below threshold"))
        for location, breakdown in report.location_breakdown.items():
            self.stdout.write(
                f"{location}: low={breakdown.low_stock_count} "
                f"critical={breakdown.critical_count} out_of_stock={breakdown.out_of_stock_count}"
            )
        self.stdout.write(
            f"Total: low={summary['totalLowStock']} critical={summary['totalCriticalLowStock']} "
            f"out_of_stock={summary['totalOutOfStock']}"
        )

        if not options["notify"]:
            return

        send_email = options["email"] is not None
        notify_options = AlertNotificationOptions(
            notify_in_app=True,
            notify_email=send_email,
            notify_webhook=options["webhook"] is not None,
            email_recipients=tuple(options["email"] or ()),
            webhook_url=options["webhook"] or "",
        )
        if not service.send_low_stock_notifications(report.breaches.all_items(), notify_options):
            raise CommandError("One or more notification channels failed")
        self.stdout.write(self.style.SUCCESS("Notifications sent"))
