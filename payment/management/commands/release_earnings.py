# payment/management/commands/release_earnings.py

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from payment.services.ledger import release_matured_earnings


class Command(BaseCommand):
    help = 'Moves pending earnings whose holding period has ended to available.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            dest='as_of',
            help='Release earnings available on or before this date (YYYY-MM-DD). Defaults to today.',
        )

    def handle(self, *args, **options):
        as_of = None
        if options.get('as_of'):
            try:
                as_of = date.fromisoformat(options['as_of'])
            except ValueError:
                raise CommandError(f"Invalid date '{options['as_of']}', expected YYYY-MM-DD")

        result = release_matured_earnings(today=as_of)

        if result['released'] == 0 and result['failed'] == 0:
            self.stdout.write(self.style.SUCCESS('No matured earnings to release.'))
            return

        self.stdout.write(
            self.style.SUCCESS(
                f"Released {result['released']} earnings "
                f"(skipped {result['skipped']}, failed {result['failed']})."
            )
        )
        if result['failed']:
            self.stderr.write(self.style.ERROR(f"{result['failed']} earnings could not be released, see logs."))
