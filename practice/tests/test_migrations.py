import pytest
from django.core.management import call_command
from django.db.migrations.recorder import MigrationRecorder

pytestmark = pytest.mark.django_db


def test_models_match_committed_migrations():
    # exits non-zero when models.py has changes without a migration
    call_command('makemigrations', 'practice', '--check', '--dry-run', verbosity=0)


def test_initial_migration_is_applied():
    applied = MigrationRecorder.Migration.objects.filter(app='practice').values_list('name', flat=True)
    assert '0001_initial' in applied
