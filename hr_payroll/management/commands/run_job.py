import json

from django.core.management.base import BaseCommand, CommandError
from django.core.serializers.json import DjangoJSONEncoder
from django.utils.dateparse import parse_date

from hr_payroll.scheduler import JOBS, scheduler


class Command(BaseCommand):
    help = 'Run one scheduled job now'

    def add_arguments(self, parser):
        parser.add_argument('job', choices=sorted(JOBS), help='Job to run')
        parser.add_argument(
            '--date',
            help='Run as if today were this date (YYYY-MM-DD)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run the job and roll back every database write',
        )

    def handle(self, *args, **options):
        on = None
        if options.get('date'):
            try:
                on = parse_date(options['date'])
            except ValueError:
                on = None
            if on is None:
                raise CommandError('--date must be a valid date (YYYY-MM-DD)')
        dry_run = options.get('dry_run', False)

        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN - No changes will be kept'))

        outcome = scheduler.run_now(options['job'], on=on, dry_run=dry_run)
        self.stdout.write(json.dumps(outcome, cls=DjangoJSONEncoder, indent=2))

        if not outcome['success']:
            raise CommandError(outcome.get('error') or 'Job failed')
        self.stdout.write(self.style.SUCCESS(f"{options['job']} completed"))
