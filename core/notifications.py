import logging

from django.db import transaction

from .models import Notification

logger = logging.getLogger(__name__)


def notify(company, title, message, employee=None, notification_type='general',
           reference_type='', reference_id=None, once=False):
    """
    Persist a notification row.

    With ``once`` the row is only inserted if the employee has no
    notification for the same reference yet. Returns the row, or None when
    the guard suppressed it.
    """
    if once:
        exists = Notification.objects.filter(
            company=company,
            employee=employee,
            reference_type=reference_type,
            reference_id=reference_id,
        ).exists()
        if exists:
            return None

    return Notification.objects.create(
        company=company,
        employee=employee,
        notification_type=notification_type,
        title=title,
        message=message,
        reference_type=reference_type,
        reference_id=reference_id,
    )


def notify_safely(*args, **kwargs):
    """Notification that must never break the caller's primary write."""
    try:
        with transaction.atomic():
            return notify(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Failed to create notification '{kwargs.get('title', '')}': {e}")
        return None
