import time

from django.core.management.base import BaseCommand

from hr_payroll.scheduler import JOBS, JobScheduler


class Command(BaseCommand):
    help = 'Run the nightly job scheduler in the foreground'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tick',
            type=int,
            default=30,
            help='Seconds between cron checks',
        )

    def handle(self, *args, **options):
        scheduler = JobScheduler(tick_seconds=options['tick'])
        for name, (crons, _) in sorted(JOBS.items()):
            self.stdout.write(f"{name}: {', '.join(crons)}")

        scheduler.start()
        self.stdout.write(self.style.SUCCESS('Scheduler running. Press Ctrl+C to stop.'))
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('Stopping scheduler...'))
        finally:
            scheduler.stop()
