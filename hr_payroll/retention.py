"""
Media retention for clock records.

Selfies and clock locations become eligible for deletion six months after
the work date. Cleanup blanks the media fields record by record and writes a
DataRetentionLog row in the same transaction.
"""
import logging

from django.db import transaction
from django.db.models import Count, Min, Q

from .models import ClockRecord, DataRetentionLog
from .utils import add_months, local_now, local_today

logger = logging.getLogger(__name__)

PHOTO_FIELDS = ('photo_in_1', 'photo_out_1', 'photo_in_2', 'photo_out_2')
LOCATION_FIELDS = ('location_in_1', 'location_out_1', 'location_in_2', 'location_out_2')
MEDIA_FIELDS = PHOTO_FIELDS + LOCATION_FIELDS

POLICY = {
    'media_retention_months': ClockRecord.MEDIA_RETENTION_MONTHS,
    'hard_delete_months': 12,
    'attendance_retention_years': 7,
}
MAX_CLEANUP_BATCH = 500


def has_photo():
    condition = Q()
    for name in PHOTO_FIELDS:
        condition |= ~Q(**{name: ''})
    return condition


def media_fields_of(record):
    return [name for name in MEDIA_FIELDS if getattr(record, name)]


def urgency(eligible_at, today):
    if eligible_at < add_months(today, -6):
        return 'critical'
    if eligible_at < add_months(today, -3):
        return 'warning'
    return 'normal'


class RetentionService:

    def __init__(self, tenant):
        self.tenant = tenant

    def _records(self):
        return self.tenant.scope(ClockRecord.objects.all())

    def _eligible(self, today):
        return self._records().filter(
            media_deleted_at__isnull=True,
            media_retention_eligible_at__lt=today,
        ).filter(has_photo())

    def status(self):
        today = local_today()
        overdue_before = add_months(today, -6)
        pending = Q(media_deleted_at__isnull=True, media_retention_eligible_at__lt=today)
        totals = self._records().aggregate(
            total_records=Count('id'),
            records_with_media=Count('id', filter=Q(media_deleted_at__isnull=True) & has_photo()),
            pending_cleanup=Count('id', filter=pending),
            overdue_cleanup=Count(
                'id', filter=Q(media_deleted_at__isnull=True, media_retention_eligible_at__lt=overdue_before)
            ),
            cleaned_records=Count('id', filter=Q(media_deleted_at__isnull=False)),
            oldest_pending_date=Min('media_retention_eligible_at', filter=pending),
        )
        totals['compliance_status'] = 'compliant' if totals['overdue_cleanup'] == 0 else 'action_required'

        recent = (
            self.tenant.scope(DataRetentionLog.objects.all())
            .values('created_at__date')
            .annotate(records_deleted=Count('id'))
            .order_by('-created_at__date')[:10]
        )
        return {
            'policy': POLICY,
            'compliance': totals,
            'recent_cleanups': [
                {'date': row['created_at__date'], 'records_deleted': row['records_deleted']} for row in recent
            ],
        }

    def pending(self, limit=None, offset=None):
        limit = min(limit or 50, MAX_CLEANUP_BATCH)
        offset = offset or 0
        today = local_today()
        qs = self._eligible(today).select_related('employee').order_by('media_retention_eligible_at', 'pk')
        total = qs.count()
        records = [
            {
                'id': r.pk,
                'employee_id': r.employee_id,
                'employee_name': r.employee.name,
                'work_date': r.work_date,
                'media_retention_eligible_at': r.media_retention_eligible_at,
                'days_overdue': (today - r.media_retention_eligible_at).days,
                'urgency': urgency(r.media_retention_eligible_at, today),
                'media_fields': media_fields_of(r),
            }
            for r in qs[offset:offset + limit]
        ]
        return {
            'records': records,
            'pagination': {'total': total, 'limit': limit, 'offset': offset, 'has_more': offset + limit < total},
        }

    def logs(self, limit=None, offset=None, start_date=None, end_date=None):
        limit = min(limit or 100, 1000)
        offset = offset or 0
        qs = self.tenant.scope(DataRetentionLog.objects.all())
        if start_date:
            qs = qs.filter(created_at__date__gte=start_date)
        if end_date:
            qs = qs.filter(created_at__date__lte=end_date)
        rows = list(qs.values(
            'id', 'table_name', 'record_id', 'record_date', 'employee_id', 'data_type',
            'fields_cleared', 'retention_policy', 'deleted_by', 'verified', 'created_at',
        )[offset:offset + limit])
        return {
            'logs': rows,
            'pagination': {'limit': limit, 'offset': offset, 'has_more': len(rows) == limit},
        }

    def cleanup(self, dry_run=True, limit=100):
        """
        Blank eligible media. Dry run by default; super admin only.
        Every record commits on its own together with its log row.
        """
        self.tenant.require_super_admin('Only super admin can trigger manual cleanup')
        limit = min(limit or 100, MAX_CLEANUP_BATCH)
        eligible = list(self._eligible(local_today()).order_by('work_date', 'pk')[:limit])

        if dry_run:
            return {
                'mode': 'dry_run',
                'would_delete': len(eligible),
                'records': [
                    {'id': r.pk, 'employee_id': r.employee_id, 'work_date': r.work_date,
                     'fields': media_fields_of(r)}
                    for r in eligible
                ],
                'message': 'Dry run complete. No data was deleted. Set dry_run: false to execute.',
            }

        deleted = 0
        errors = []
        actor = f'admin:{self.tenant.actor_id}'
        for record in eligible:
            try:
                with transaction.atomic():
                    fields = media_fields_of(record)
                    for name in MEDIA_FIELDS:
                        setattr(record, name, '')
                    record.media_deleted_at = local_now()
                    record.media_deletion_logged = True
                    record.save(update_fields=list(MEDIA_FIELDS) + [
                        'media_deleted_at', 'media_deletion_logged', 'updated_at',
                    ])
                    DataRetentionLog.objects.create(
                        company_id=record.company_id,
                        table_name=ClockRecord._meta.db_table,
                        record_id=record.pk,
                        record_date=record.work_date,
                        employee_id=record.employee_id,
                        data_type='media',
                        fields_cleared=fields,
                        retention_policy='6_month_media',
                        deleted_by=actor,
                        verified=True,
                    )
                deleted += 1
            except Exception as e:
                logger.error(f"Retention cleanup failed for clock record {record.pk}: {e}")
                errors.append({'id': record.pk, 'error': str(e)})

        logger.info(f"Retention cleanup by {actor}: {deleted} records cleared, {len(errors)} errors")
        result = {
            'mode': 'live',
            'deleted': deleted,
            'errors': len(errors),
            'message': f'Cleanup complete. {deleted} records processed.',
        }
        if errors:
            result['error_details'] = errors
        return result
