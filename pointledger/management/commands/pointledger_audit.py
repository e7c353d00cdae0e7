"""Management command to check ledger reconstruction against balances."""

from django.core.management.base import BaseCommand, CommandError

from pointledger.models import Customer
from pointledger.services import history


class Command(BaseCommand):
    help = "Replay loyalty ledgers and report customers whose balance does not match"

    def add_arguments(self, parser):
        parser.add_argument(
            "--customer",
            type=int,
            default=None,
            help="Audit a single customer id",
        )

    def handle(self, *args, **options):
        if options["customer"] is not None:
            customer_ids = [options["customer"]]
        else:
            customer_ids = Customer.objects.filter(is_active=True).values_list("pk", flat=True)

        checked = 0
        broken = []
        for customer_id in customer_ids:
            audit = history.audit_ledger(customer_id)
            checked += 1
            if not audit.consistent:
                broken.append(audit)
                self.stderr.write(
                    f"Customer {audit.customer_id}: stored {audit.stored_balance}, "
                    f"replayed {audit.replayed_balance}, first break at entry {audit.first_break_id}"
                )

        if broken:
            raise CommandError(f"{len(broken)} of {checked} ledgers are inconsistent.")
        self.stdout.write(self.style.SUCCESS(f"{checked} ledgers consistent."))
