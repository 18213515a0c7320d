# marketplace/services/alerts.py
import logging
from functools import partial

from django.db import transaction
from django.utils import timezone

from ..exceptions import ValidationError, InvalidStateTransition, collaborator_guard
from ..models import DisasterReport, Notification, User
from .. import signals
from .notifications import build_message

logger = logging.getLogger(__name__)


def _clean_report(title, description, location, estimated_people, urgency):
    title = (title or '').strip()
    description = (description or '').strip()
    location = (location or '').strip()
    if not (title and description and location):
        raise ValidationError('A disaster report needs a title, description and location.')
    try:
        people = int(estimated_people or 0)
    except (TypeError, ValueError):
        raise ValidationError(f"estimated_people must be a whole number, got {estimated_people!r}.")
    if people < 0:
        raise ValidationError('estimated_people cannot be negative.')
    urgency = (urgency or DisasterReport.Urgency.HIGH).lower()
    if urgency not in DisasterReport.Urgency.values:
        raise ValidationError(f"Unknown urgency {urgency!r}.")
    return title, description, location, people, urgency


def report_disaster(ngo, title, description, location, estimated_people=0, urgency='high', contact_number=''):
    """Record a disaster reported by ``ngo`` and alert every restaurant."""
    if not ngo.is_ngo:
        raise InvalidStateTransition('Only NGOs can report disasters.', actor_id=ngo.pk, action='report_disaster')
    title, description, location, people, urgency = _clean_report(
        title, description, location, estimated_people, urgency
    )

    with collaborator_guard('report_disaster', actor_id=ngo.pk):
        with transaction.atomic():
            report = DisasterReport.objects.create(
                ngo=ngo,
                title=title,
                description=description,
                location=location,
                estimated_people=people,
                urgency=urgency,
                contact_number=contact_number or ngo.contact_number,
            )
            alert_title, message = build_message(Notification.Kind.DISASTER_ALERT, disaster=report)
            payload = {'location': location, 'urgency': urgency, 'estimated_people': people}
            restaurants = User.objects.filter(user_type=User.UserType.RESTAURANT, is_active=True)
            Notification.objects.bulk_create([
                Notification(
                    recipient=restaurant,
                    disaster=report,
                    kind=Notification.Kind.DISASTER_ALERT,
                    title=alert_title,
                    message=message,
                    payload=payload,
                )
                for restaurant in restaurants
            ])
            transaction.on_commit(partial(signals.disaster_reported.send, sender=DisasterReport, report=report))

    logger.info(f"Disaster report {report.pk} by NGO {ngo.pk} sent to restaurants")
    return report


def resolve_disaster(report_id, ngo):
    with collaborator_guard('resolve_disaster', actor_id=ngo.pk):
        updated = DisasterReport.objects.filter(
            pk=report_id, ngo=ngo, status=DisasterReport.ReportStatus.ACTIVE
        ).update(status=DisasterReport.ReportStatus.RESOLVED, resolved_at=timezone.now(), updated_at=timezone.now())
    if not updated:
        raise InvalidStateTransition(
            f"Disaster report {report_id} is not an active report of this NGO.",
            actor_id=ngo.pk,
            action='resolve_disaster',
        )
    return DisasterReport.objects.get(pk=report_id)


def active_disasters():
    return DisasterReport.objects.filter(status=DisasterReport.ReportStatus.ACTIVE).select_related('ngo')
