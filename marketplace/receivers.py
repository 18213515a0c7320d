# marketplace/receivers.py
import logging

from django.dispatch import receiver

from .models import Donation, DisasterReport
from . import signals

logger = logging.getLogger(__name__)


@receiver(signals.donation_created, sender=Donation)
def log_donation_created(sender, donation, actor, **kwargs):
    logger.info(f"Donation {donation.pk} created by {actor.pk} for NGO {donation.ngo_id} ({donation.total_kg} kg)")


@receiver(signals.donation_accepted, sender=Donation)
def log_donation_accepted(sender, donation, actor, **kwargs):
    logger.info(f"Donation {donation.pk} accepted by NGO {actor.pk}")


@receiver(signals.donation_rejected, sender=Donation)
def log_donation_rejected(sender, donation, actor, **kwargs):
    logger.info(f"Donation {donation.pk} rejected by NGO {actor.pk}")


@receiver(signals.donation_completed, sender=Donation)
def log_donation_completed(sender, donation, actor, **kwargs):
    logger.info(f"Donation {donation.pk} completed, confirmed by restaurant {actor.pk}")


@receiver(signals.disaster_reported, sender=DisasterReport)
def log_disaster_reported(sender, report, **kwargs):
    logger.warning(f"Disaster reported by NGO {report.ngo_id}: {report.title} ({report.urgency})")
