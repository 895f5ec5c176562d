from django.core.management.base import BaseCommand, CommandError

from divisa.client import DivisaClient, DivisaError


class Command(BaseCommand):
    help = "Convert an amount of USD into another currency (default: 1 USD to DOP)"

    def add_arguments(self, parser):
        parser.add_argument('currency', nargs='?', default='DOP', help='Target currency code')
        parser.add_argument('amount', nargs='?', type=float, default=1.0, help='Amount in USD')

    def handle(self, *args, **options):
        try:
            result = DivisaClient().convert(options['currency'], options['amount'])
        except DivisaError as e:
            raise CommandError(str(e))
        self.stdout.write(f"{result}")
