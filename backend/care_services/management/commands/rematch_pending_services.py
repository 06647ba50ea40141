from django.core.management.base import BaseCommand

from services.matching import rematch_pending_services


class Command(BaseCommand):
    help = "Re-offer recent pending services that reached too few caregivers."

    def handle(self, *args, **options):
        result = rematch_pending_services()

        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {result.checked} service(s); notified {result.notified} caregiver(s)."
            )
        )
        if result.failed_service_ids:
            self.stderr.write(
                self.style.WARNING(
                    f"Re-matching failed for service(s): {', '.join(map(str, result.failed_service_ids))}"
                )
            )
