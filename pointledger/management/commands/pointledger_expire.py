"""Management command to expire points of inactive customers."""

from django.core.management.base import BaseCommand

from pointledger.exceptions import InsufficientBalanceError, NotFoundError
from pointledger.services import history, ledger, program


class Command(BaseCommand):
    help = "Expire the balance of customers with no earning activity within the expiration period"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List customers that would expire without writing anything",
        )

    def handle(self, *args, **options):
        days = program.get_settings().expiration_period
        if not days:
            self.stdout.write("Expiration period is 0: points never expire.")
            return

        expired = skipped = 0
        for customer in history.expirable_customers(days):
            if options["dry_run"]:
                self.stdout.write(f"Would expire {customer.loyalty_points} pts for {customer.code}")
                expired += 1
                continue
            try:
                ledger.expire_points(
                    customer.pk,
                    customer.loyalty_points,
                    reason=f"Points expired after {days} days without activity",
                )
            except (InsufficientBalanceError, NotFoundError) as exc:
                # Balance changed since the scan; picked up on the next run
                self.stderr.write(f"Skipped {customer.code}: {exc.message}")
                skipped += 1
                continue
            expired += 1

        verb = "Would expire" if options["dry_run"] else "Expired"
        self.stdout.write(
            self.style.SUCCESS(f"{verb} points for {expired} customers ({skipped} skipped).")
        )
