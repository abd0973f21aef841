import os

from django.core.management.base import BaseCommand, CommandError

from apps.catalog.services import import_products
from apps.stores.models import Store
from apps.utils.exceptions import BusinessLogicException


class Command(BaseCommand):
    help = 'Import a store catalog from CSV (name,description,price,category,stock,discount)'

    def add_arguments(self, parser):
        parser.add_argument('store_slug', type=str, help='Slug of the target store')
        parser.add_argument('csv_path', type=str, help='Path to CSV file')

    def handle(self, *args, **kwargs):
        csv_path = kwargs['csv_path']
        if not os.path.exists(csv_path):
            raise CommandError(f'File not found: {csv_path}')

        try:
            store = Store.objects.get(slug=kwargs['store_slug'])
        except Store.DoesNotExist:
            raise CommandError(f"Store not found: {kwargs['store_slug']}")

        with open(csv_path, 'r', encoding='utf-8-sig') as f:
            text = f.read()

        try:
            result = import_products(store, text)
        except BusinessLogicException as e:
            raise CommandError(e.message)

        self.stdout.write(self.style.SUCCESS(f'Successfully imported {result.created} products.'))
        if result.skipped_lines:
            lines = ", ".join(str(n) for n in result.skipped_lines)
            self.stdout.write(self.style.WARNING(f'Skipped lines: {lines}'))
