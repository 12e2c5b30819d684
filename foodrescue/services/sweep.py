"""Background sweeps over donations.

Each job processes its batch item by item: a failure on one donation is
logged and rolled back, and the rest of the batch still runs.
"""
import logging
from datetime import datetime, timedelta

from apscheduler.triggers.cron import CronTrigger
from flask import has_app_context
from sqlalchemy import update as sql_update

from foodrescue.errors import InvalidState, NotFound
from foodrescue.extensions import db
from foodrescue.models.donation_model import Donation
from foodrescue.services import lifecycle, notifications, stats

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=24)


def expire_donations(now=None):
    """Expire every available donation whose expiration date has passed."""
    now = now or datetime.now()
    overdue = [donation_id for (donation_id,) in db.session.query(Donation.id).filter(
        Donation.status == 'available',
        Donation.expiration_date < now,
    ).all()]
    logger.info('Found %d expired donations', len(overdue))

    summary = {'processed': 0, 'skipped': 0, 'failed': 0}
    for donation_id in overdue:
        try:
            lifecycle.expire_overdue(donation_id, now=now)
            summary['processed'] += 1
        except (InvalidState, NotFound):
            # claimed, edited or removed since the batch was selected
            summary['skipped'] += 1
        except Exception:
            db.session.rollback()
            logger.exception('Error expiring donation %s', donation_id)
            summary['failed'] += 1

    logger.info('Expiration sweep finished: %s', summary)
    return summary


def _mark_reminded(donation_id, now):
    """Claim the reminder slot for a donation; False if already taken."""
    result = db.session.execute(
        sql_update(Donation)
        .where(Donation.id == donation_id,
               Donation.status == 'available',
               Donation.reminder_sent_at.is_(None))
        .values(reminder_sent_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def send_expiry_reminders(now=None):
    """Remind donors once about donations expiring within the next 24 hours."""
    now = now or datetime.now()
    due = [donation_id for (donation_id,) in db.session.query(Donation.id).filter(
        Donation.status == 'available',
        Donation.reminder_sent_at.is_(None),
        Donation.expiration_date >= now,
        Donation.expiration_date <= now + REMINDER_WINDOW,
    ).all()]
    logger.info('Found %d donations about to expire', len(due))

    summary = {'processed': 0, 'skipped': 0, 'failed': 0}
    for donation_id in due:
        try:
            if not _mark_reminded(donation_id, now):
                db.session.rollback()
                summary['skipped'] += 1
                continue
            donation = db.session.get(Donation, donation_id, populate_existing=True)
            donor = donation.donor
            notifications.notify(
                donor, 'system', 'Donation Expiring Soon',
                f'Your donation "{donation.food_name}" will expire in less than 24 hours.',
                donation=donation,
            )
            db.session.commit()
            notifications.send_email(donor.email, 'donationExpiringSoon', [donor.name, donation.food_name])
            summary['processed'] += 1
        except Exception:
            db.session.rollback()
            logger.exception('Error sending expiry reminder for donation %s', donation_id)
            summary['failed'] += 1

    logger.info('Expiry reminder sweep finished: %s', summary)
    return summary


def weekly_statistics(now=None):
    report = stats.weekly_summary(now)
    logger.info('Weekly statistics report: new donations %d, completed donations %d, '
                'total food saved %.2f kg',
                report['newDonations'], report['completedDonations'], report['totalFoodSaved'])
    return report


class SweepScheduler:
    """Registers the sweeps on a Flask-APScheduler instance.

    Jobs run on the scheduler's thread inside an application context.
    ``tick`` runs one job synchronously, which is what tests use.
    """

    JOBS = {
        'expire_donations': ('Expire overdue donations', expire_donations, 'EXPIRY_SWEEP_CRON'),
        'expiry_reminders': ('Expiry reminders', send_expiry_reminders, 'REMINDER_CRON'),
        'weekly_statistics': ('Weekly statistics', weekly_statistics, 'STATS_CRON'),
    }

    def __init__(self, app, scheduler):
        self._app = app
        self._scheduler = scheduler

    def setup_jobs(self):
        for job_id, (name, _, config_key) in self.JOBS.items():
            expr = self._app.config[config_key]
            if self._scheduler.get_job(job_id):
                self._scheduler.remove_job(job_id)
            self._scheduler.add_job(
                id=job_id,
                func=self._run,
                args=(job_id,),
                trigger=CronTrigger.from_crontab(expr),
                name=name,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
            logger.info('Registered job %s: %s', job_id, expr)

    def start(self):
        self.setup_jobs()
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info('Scheduler started')

    def stop(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info('Scheduler stopped')

    @property
    def running(self):
        return self._scheduler.running

    def get_jobs(self):
        jobs = []
        for job in self._scheduler.get_jobs():
            if job.id not in self.JOBS:
                continue
            next_run = getattr(job, 'next_run_time', None)
            jobs.append({
                'id': job.id,
                'name': job.name,
                'nextRun': next_run.isoformat() if next_run else None,
            })
        return jobs

    def tick(self, job_id, now=None):
        """Run a job immediately and return its summary."""
        if job_id not in self.JOBS:
            raise KeyError(job_id)
        job = self.JOBS[job_id][1]
        if has_app_context():
            return job(now=now)
        with self._app.app_context():
            return job(now=now)

    def _run(self, job_id):
        logger.info('Running scheduled task: %s', job_id)
        try:
            self.tick(job_id)
        except Exception:
            logger.exception('Error in scheduled task %s', job_id)
