from django.db import models
from django.contrib.auth.models import AbstractUser
from django.conf import settings
from django.core.validators import MinValueValidator

from .exceptions import ValidationError


# --- ACTORS ---
class User(AbstractUser):
    class UserType(models.TextChoices):
        ADMIN = 'ADMIN', 'Admin'
        RESTAURANT = 'RESTAURANT', 'Restaurant'
        NGO = 'NGO', 'NGO'
    user_type = models.CharField(max_length=10, choices=UserType.choices, default=UserType.ADMIN)
    display_name = models.CharField(max_length=255, blank=True)
    contact_number = models.CharField(max_length=15, blank=True)
    address = models.TextField(blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    def save(self, *args, **kwargs):
        # The role is fixed at registration.
        if self.pk:
            stored_type = User.objects.filter(pk=self.pk).values_list('user_type', flat=True).first()
            if stored_type is not None and stored_type != self.user_type:
                raise ValidationError(
                    f"Cannot change role of {self.username} from {stored_type} to {self.user_type}.",
                    actor_id=self.pk,
                )
        super().save(*args, **kwargs)

    @property
    def name(self):
        return self.display_name or self.username

    @property
    def is_restaurant(self):
        return self.user_type == self.UserType.RESTAURANT

    @property
    def is_ngo(self):
        return self.user_type == self.UserType.NGO

    @property
    def has_location(self):
        return self.latitude is not None and self.longitude is not None

    def __str__(self):
        return f"{self.name} ({self.get_user_type_display()})" # type: ignore


# --- DONATIONS ---
class Donation(models.Model):
    class DonationStatus(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        ACCEPTED = 'ACCEPTED', 'Accepted'
        REJECTED = 'REJECTED', 'Rejected'
        COMPLETED = 'COMPLETED', 'Completed'

    TERMINAL_STATUSES = (DonationStatus.REJECTED, DonationStatus.COMPLETED)

    restaurant = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='donations_made')
    ngo = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='donations_received')
    declared_value = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)], help_text="Donor's estimate of the food's value")
    total_kg = models.DecimalField(max_digits=12, decimal_places=4, default=0, help_text="Sum of all food items in kilograms")
    pickup_address = models.TextField(blank=True)
    status = models.CharField(max_length=10, choices=DonationStatus.choices, default=DonationStatus.PENDING, db_index=True)
    verification_code = models.CharField(max_length=4, null=True, blank=True, help_text="Minted when the NGO accepts")
    verification_attempts = models.PositiveIntegerField(default=0, help_text="Failed verification attempts")
    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['restaurant', 'status'], name='donation_restaurant_status'),
            models.Index(fields=['ngo', 'status'], name='donation_ngo_status'),
        ]

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def __str__(self):
        return f"Donation #{self.pk} from {self.restaurant.name} to {self.ngo.name} ({self.status})"


class FoodItem(models.Model):
    class Unit(models.TextChoices):
        KG = 'kg', 'Kilograms'
        GRAM = 'g', 'Grams'
        MILLILITRE = 'ml', 'Millilitres'
        LITRE = 'liter', 'Litres'
        ITEMS = 'items', 'Items'

    donation = models.ForeignKey(Donation, on_delete=models.CASCADE, related_name='food_items')
    name = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=12, decimal_places=3, validators=[MinValueValidator(0)])
    unit = models.CharField(max_length=5, choices=Unit.choices)
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['position', 'id']

    def __str__(self):
        return f"{self.name} ({self.quantity} {self.unit})"


# --- STATS ---
class ActorStats(models.Model):
    """Running totals per actor. Only ever incremented."""
    actor = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, primary_key=True, related_name='stats')
    total_donations = models.PositiveIntegerField(default=0)
    total_kg = models.DecimalField(max_digits=14, decimal_places=4, default=0)
    total_value = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_points = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'actor stats'

    def __str__(self):
        return f"Stats for {self.actor.name}: {self.total_points} points"


class StatsCredit(models.Model):
    """One row per delta applied to ActorStats; a donation credits each actor at most once."""
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='stats_credits')
    donation = models.ForeignKey(Donation, on_delete=models.CASCADE, null=True, blank=True, related_name='stats_credits')
    donations = models.PositiveIntegerField(default=0)
    kg = models.DecimalField(max_digits=12, decimal_places=4, default=0)
    value = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    points = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['donation', 'actor'], name='unique_stats_credit_per_donation'),
        ]

    def __str__(self):
        return f"{self.points} points to {self.actor_id} for donation {self.donation_id}"


# --- DISASTER ALERTS ---
class DisasterReport(models.Model):
    class Urgency(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'
        CRITICAL = 'critical', 'Critical'

    class ReportStatus(models.TextChoices):
        ACTIVE = 'ACTIVE', 'Active'
        RESOLVED = 'RESOLVED', 'Resolved'

    ngo = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='disaster_reports')
    title = models.CharField(max_length=255)
    description = models.TextField()
    location = models.CharField(max_length=255)
    estimated_people = models.PositiveIntegerField(default=0)
    urgency = models.CharField(max_length=10, choices=Urgency.choices, default=Urgency.HIGH)
    contact_number = models.CharField(max_length=15, blank=True)
    status = models.CharField(max_length=10, choices=ReportStatus.choices, default=ReportStatus.ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} by {self.ngo.name}"


# --- NOTIFICATIONS ---
class Notification(models.Model):
    """Display copy of something that happened. Donation.status stays the source of truth."""
    class Kind(models.TextChoices):
        DONATION_REQUEST = 'donation_request', 'Donation Request'
        DONATION_ACCEPTED = 'donation_accepted', 'Donation Accepted'
        DONATION_REJECTED = 'donation_rejected', 'Donation Rejected'
        DONATION_COMPLETED = 'donation_completed', 'Donation Completed'
        DISASTER_ALERT = 'disaster_alert', 'Disaster Alert'

    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    donation = models.ForeignKey(Donation, on_delete=models.CASCADE, null=True, blank=True, related_name='notifications')
    disaster = models.ForeignKey(DisasterReport, on_delete=models.CASCADE, null=True, blank=True, related_name='notifications')
    kind = models.CharField(max_length=20, choices=Kind.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    payload = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['recipient', '-created_at'], name='notification_recipient_recent'),
        ]

    def __str__(self):
        return f"{self.title} -> {self.recipient_id}"
