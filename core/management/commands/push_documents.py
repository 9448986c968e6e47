"""
Push local documents to the remote mirror.
Usage: python manage.py push_documents [keys ...] [--force]
Without keys: pushes every document stored locally.
Without --force: merges with the remote copy (local wins).
"""
from django.core.management.base import BaseCommand, CommandError

from core.store import DocumentStore
from core.sync import get_sync_backend, SyncError


class Command(BaseCommand):
    help = 'Push local documents (tests, submissions, records, ...) to the remote mirror'

    def add_arguments(self, parser):
        parser.add_argument('keys', nargs='*', help='Document keys to push (default: all)')
        parser.add_argument(
            '--force',
            action='store_true',
            help='Overwrite the remote copy instead of merging',
        )

    def handle(self, *args, **options):
        store = DocumentStore()
        keys = options['keys'] or store.keys()
        if not keys:
            self.stdout.write(self.style.WARNING('No documents stored locally; nothing to push.'))
            return

        backend = get_sync_backend(store)
        try:
            outcome = backend.push(keys, force=options['force'])
        except SyncError as e:
            raise CommandError(str(e))

        if outcome.skipped:
            self.stdout.write(self.style.WARNING(f"Sync disabled; skipped: {', '.join(outcome.skipped)}"))
        else:
            mode = 'force' if outcome.forced else 'merge'
            self.stdout.write(self.style.SUCCESS(f"Pushed ({mode}): {', '.join(outcome.keys)}"))
