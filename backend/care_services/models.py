from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class ServiceType(models.TextChoices):
    ELDERLY_CARE = 'elderly_care', 'Elderly care'
    SPECIAL_NEEDS = 'special_needs', 'Special needs'
    ALZHEIMERS = 'alzheimers', "Alzheimer's and dementia"
    PHYSICAL_THERAPY = 'physical_therapy', 'Physical therapy'
    MEDICATION_MANAGEMENT = 'medication_management', 'Medication management'
    COMPANIONSHIP = 'companionship', 'Companionship'
    PERSONAL_CARE = 'personal_care', 'Personal care'
    DEMENTIA_CARE = 'dementia_care', 'Dementia care'


class CareService(models.Model):
    """A family's request for home care, from posting to payment release"""

    STATUS_PENDING = 'pending'
    STATUS_MATCHED = 'matched'
    STATUS_ACCEPTED = 'accepted'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_MATCHED, 'Matched'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)
    ASSIGNED_STATUSES = (STATUS_ACCEPTED, STATUS_IN_PROGRESS, STATUS_COMPLETED)

    PAYMENT_PENDING = 'pending'
    PAYMENT_HELD = 'held'          # collected, withheld until the service is completed
    PAYMENT_RELEASED = 'released'
    PAYMENT_FAILED = 'failed'

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_HELD, 'Held in escrow'),
        (PAYMENT_RELEASED, 'Released'),
        (PAYMENT_FAILED, 'Failed'),
    ]

    # Parties
    family = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='care_services'
    )
    caregiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_services'
    )

    # What is needed
    service_type = models.CharField(max_length=30, choices=ServiceType.choices)
    patient_name = models.CharField(max_length=120, blank=True)
    patient_age = models.PositiveIntegerField(null=True, blank=True)
    patient_condition = models.TextField(blank=True)
    special_needs = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    # Where & when
    address = models.CharField(max_length=255, blank=True)
    location_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    scheduled_date = models.DateTimeField()
    duration_hours = models.PositiveIntegerField(default=1)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Payment
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    commission_family = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    commission_caregiver = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    net_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    payment_status = models.CharField(
        max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING
    )
    payment_preference_id = models.CharField(max_length=120, blank=True)
    payment_reference = models.CharField(max_length=120, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)

    # Execution
    actual_start = models.DateTimeField(null=True, blank=True)
    actual_end = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    matching_rounds = models.PositiveIntegerField(default=0)
    version = models.PositiveIntegerField(default=0)  # bumped by every status transition

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'care_services'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='care_svc_status_created_idx'),
        ]

    def __str__(self):
        return f"Service #{self.id} - {self.service_type} - {self.status}"

    @property
    def has_location(self) -> bool:
        return self.location_latitude is not None and self.location_longitude is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES


class ServiceNotification(models.Model):
    """One offer of a service to one caregiver in one matching round."""

    STATUS_PENDING = 'pending'
    STATUS_INTERESTED = 'interested'
    STATUS_DECLINED = 'declined'
    STATUS_ACCEPTED = 'accepted'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_INTERESTED, 'Interested'),
        (STATUS_DECLINED, 'Declined'),
        (STATUS_ACCEPTED, 'Accepted'),
    ]

    VIA_EMAIL = 'email'
    VIA_WEBSOCKET = 'websocket'
    VIA_BOTH = 'both'

    VIA_CHOICES = [
        (VIA_EMAIL, 'Email'),
        (VIA_WEBSOCKET, 'WebSocket'),
        (VIA_BOTH, 'Email and WebSocket'),
    ]

    service = models.ForeignKey(
        CareService,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    caregiver = models.ForeignKey(
        'caregivers.CaregiverProfile',
        on_delete=models.CASCADE,
        related_name='service_notifications'
    )

    distance_km = models.FloatField()
    notified_via = models.CharField(max_length=10, choices=VIA_CHOICES, default=VIA_EMAIL)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    matching_round = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'service_notifications'
        ordering = ['distance_km']
        constraints = [
            models.UniqueConstraint(
                fields=['service', 'caregiver', 'matching_round'],
                name='unique_service_caregiver_round'
            )
        ]

    def __str__(self):
        return f"Notification #{self.id} - Service {self.service_id} -> Caregiver {self.caregiver_id} ({self.status})"


class Review(models.Model):
    """Family's review of the caregiver after a completed service"""

    service = models.OneToOneField(CareService, on_delete=models.CASCADE, related_name='review')
    family = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reviews_written'
    )
    caregiver = models.ForeignKey(
        'caregivers.CaregiverProfile',
        on_delete=models.CASCADE,
        related_name='reviews'
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True)
    is_public = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'service_reviews'
        ordering = ['-created_at']

    def __str__(self):
        return f"Review {self.rating}/5 for {self.caregiver} (service {self.service_id})"


class ChatMessage(models.Model):
    """Message between the family and the assigned caregiver of a service"""

    service = models.ForeignKey(CareService, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_messages_sent'
    )
    content = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'service_chat_messages'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['service', 'created_at'], name='chat_msg_service_created_idx'),
        ]

    def __str__(self):
        return f"Message #{self.id} on service {self.service_id} from {self.sender_id}"
