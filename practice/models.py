"""
Database models for the Osteoflow practice backend.

A single practitioner (one-to-one with a Django user) owns patients,
their consultations and the invoices raised for them.  Messaging,
email configuration, follow-up scheduling, satisfaction surveys and
revenue objectives hang off the practitioner as well.  Every domain
record uses a UUID primary key.
"""
from __future__ import annotations

import uuid
from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.db import models


class TimestampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class User(AbstractUser):
    """Login account.  Authentication is by email, which must be unique."""
    email = models.EmailField(unique=True)

    def __str__(self) -> str:
        return self.email or self.username


class Practitioner(TimestampedModel):
    """Professional profile attached to a user account.

    Holds the identity printed on invoices, the billing counters used to
    number invoices, the branding used in emails and the revenue
    objective settings.
    """
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='practitioner')
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True)
    practice_name = models.CharField(max_length=255, blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=10, blank=True)
    siret = models.CharField(max_length=14, blank=True)
    rpps = models.CharField(max_length=11, blank=True)
    specialty = models.CharField(max_length=100, blank=True)
    default_rate = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal('60.00'))
    invoice_prefix = models.CharField(max_length=20, default='FACT')
    invoice_next_number = models.PositiveIntegerField(default=1)
    logo_url = models.CharField(max_length=500, blank=True)
    primary_color = models.CharField(max_length=7, default='#2563eb')
    stamp_url = models.CharField(max_length=500, blank=True)
    accountant_email = models.EmailField(blank=True)
    google_review_url = models.URLField(max_length=500, blank=True)
    annual_revenue_objective = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    vacation_weeks_per_year = models.PositiveSmallIntegerField(default=5)
    working_days_per_week = models.PositiveSmallIntegerField(default=4)
    average_consultation_price = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self) -> str:
        return self.practice_name or self.full_name

    def __str__(self) -> str:
        return self.full_name


class Patient(TimestampedModel):
    GENDER_CHOICES = [('M', 'Homme'), ('F', 'Femme')]

    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='patients')
    gender = models.CharField(max_length=1, choices=GENDER_CHOICES)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, db_index=True)
    birth_date = models.DateField()
    phone = models.CharField(max_length=30)
    email = models.EmailField(blank=True)
    profession = models.CharField(max_length=100, blank=True)
    sport_activity = models.CharField(max_length=255, blank=True)
    primary_physician = models.CharField(max_length=255, blank=True)
    trauma_history = models.TextField(blank=True)
    medical_history = models.TextField(blank=True)
    surgical_history = models.TextField(blank=True)
    family_history = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    archived_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ['last_name', 'first_name']

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return self.full_name


class MedicalHistoryEntry(TimestampedModel):
    TYPE_CHOICES = [
        ('traumatic', 'Traumatique'),
        ('medical', 'Médical'),
        ('surgical', 'Chirurgical'),
        ('family', 'Familial'),
    ]
    UNIT_CHOICES = [('days', 'jours'), ('weeks', 'semaines'), ('months', 'mois'), ('years', 'ans')]

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='history_entries')
    history_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    description = models.TextField()
    onset_date = models.DateField(null=True, blank=True)
    onset_age = models.PositiveSmallIntegerField(null=True, blank=True)
    onset_duration_value = models.PositiveIntegerField(null=True, blank=True)
    onset_duration_unit = models.CharField(max_length=6, choices=UNIT_CHOICES, blank=True)
    is_vigilance = models.BooleanField(default=False)
    note = models.TextField(blank=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['display_order', 'created_at']


class SessionType(TimestampedModel):
    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='session_types')
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=7, decimal_places=2)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class Consultation(TimestampedModel):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='consultations')
    session_type = models.ForeignKey(SessionType, null=True, blank=True, on_delete=models.SET_NULL,
                                     related_name='consultations')
    date_time = models.DateTimeField(db_index=True)
    reason = models.CharField(max_length=500)
    anamnesis = models.TextField(blank=True)
    examination = models.TextField(blank=True)
    advice = models.TextField(blank=True)
    follow_up_7d = models.BooleanField(default=False)
    follow_up_sent_at = models.DateTimeField(null=True, blank=True)
    send_post_session_advice = models.BooleanField(default=False)
    post_session_advice_sent_at = models.DateTimeField(null=True, blank=True)
    archived_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-date_time']

    def __str__(self) -> str:
        return f"{self.patient} {self.date_time:%Y-%m-%d}"


class ConsultationAttachment(TimestampedModel):
    consultation = models.ForeignKey(Consultation, on_delete=models.CASCADE, related_name='attachments')
    filename = models.CharField(max_length=255, unique=True)
    original_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True)
    file_size = models.PositiveBigIntegerField(default=0)


class Invoice(TimestampedModel):
    STATUS_DRAFT = 'draft'
    STATUS_ISSUED = 'issued'
    STATUS_PAID = 'paid'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Brouillon'),
        (STATUS_ISSUED, 'Émise'),
        (STATUS_PAID, 'Payée'),
        (STATUS_CANCELLED, 'Annulée'),
    ]

    consultation = models.OneToOneField(Consultation, on_delete=models.CASCADE, related_name='invoice')
    invoice_number = models.CharField(max_length=50, unique=True)
    amount = models.DecimalField(max_digits=9, decimal_places=2)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    issued_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True, db_index=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return self.invoice_number


class Payment(TimestampedModel):
    METHOD_CHOICES = [
        ('card', 'Carte bancaire'),
        ('cash', 'Espèces'),
        ('check', 'Chèque'),
        ('transfer', 'Virement'),
        ('other', 'Autre'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=9, decimal_places=2)
    method = models.CharField(max_length=10, choices=METHOD_CHOICES)
    payment_date = models.DateField(db_index=True)
    check_number = models.CharField(max_length=50, blank=True)
    notes = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ['payment_date', 'created_at']


class Conversation(TimestampedModel):
    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='conversations')
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.CASCADE,
                                related_name='conversations')
    subject = models.CharField(max_length=255, blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True, db_index=True)
    unread_count = models.PositiveIntegerField(default=0)
    is_archived = models.BooleanField(default=False)
    external_email = models.EmailField(blank=True, db_index=True)
    external_name = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ['-last_message_at']

    @property
    def counterpart_name(self) -> str:
        if self.patient_id:
            return self.patient.full_name
        return self.external_name or self.external_email

    @property
    def counterpart_email(self) -> str:
        if self.patient_id:
            return self.patient.email
        return self.external_email


class Message(TimestampedModel):
    DIRECTION_CHOICES = [('incoming', 'Entrant'), ('outgoing', 'Sortant')]
    CHANNEL_CHOICES = [('internal', 'Interne'), ('email', 'Email'), ('sms', 'SMS')]
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('sent', 'Envoyé'),
        ('delivered', 'Reçu'),
        ('read', 'Lu'),
        ('failed', 'Échec'),
    ]

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    content = models.TextField()
    direction = models.CharField(max_length=8, choices=DIRECTION_CHOICES)
    channel = models.CharField(max_length=8, choices=CHANNEL_CHOICES, default='internal')
    status = models.CharField(max_length=9, choices=STATUS_CHOICES, default='sent')
    consultation = models.ForeignKey(Consultation, null=True, blank=True, on_delete=models.SET_NULL,
                                     related_name='messages')
    sent_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    email_subject = models.CharField(max_length=255, blank=True)
    email_message_id = models.CharField(max_length=255, blank=True)
    external_email_id = models.CharField(max_length=255, blank=True, db_index=True)
    from_email = models.EmailField(blank=True)
    to_email = models.EmailField(blank=True)

    class Meta:
        ordering = ['created_at']


class EmailSettings(TimestampedModel):
    """SMTP/IMAP credentials of a practitioner plus inbox sync state."""
    practitioner = models.OneToOneField(Practitioner, on_delete=models.CASCADE, related_name='email_settings')
    smtp_host = models.CharField(max_length=255)
    smtp_port = models.PositiveIntegerField(default=587)
    smtp_secure = models.BooleanField(default=False)
    smtp_user = models.CharField(max_length=255)
    smtp_password = models.CharField(max_length=255)
    imap_host = models.CharField(max_length=255)
    imap_port = models.PositiveIntegerField(default=993)
    imap_secure = models.BooleanField(default=True)
    imap_user = models.CharField(max_length=255)
    imap_password = models.CharField(max_length=255)
    from_name = models.CharField(max_length=255, blank=True)
    from_email = models.EmailField()
    last_sync_at = models.DateTimeField(null=True, blank=True)
    last_sync_uid = models.PositiveBigIntegerField(default=0)
    sync_enabled = models.BooleanField(default=True)
    is_verified = models.BooleanField(default=False)
    last_error = models.TextField(blank=True)
    last_error_at = models.DateTimeField(null=True, blank=True)


class EmailTemplate(TimestampedModel):
    TYPE_CHOICES = [('invoice', 'Facture'), ('follow_up_7d', 'Suivi J+7')]

    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='email_templates')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    subject = models.CharField(max_length=255)
    body = models.TextField()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['practitioner', 'type'], name='uniq_email_template_type'),
        ]


class MessageTemplate(TimestampedModel):
    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='message_templates')
    name = models.CharField(max_length=100)
    content = models.TextField()
    category = models.CharField(max_length=50, blank=True)
    use_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-use_count', 'name']


class ScheduledTask(TimestampedModel):
    TYPE_FOLLOW_UP = 'follow_up_email'
    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'En attente'),
        (STATUS_COMPLETED, 'Terminée'),
        (STATUS_FAILED, 'Échec'),
        (STATUS_CANCELLED, 'Annulée'),
    ]

    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='scheduled_tasks')
    type = models.CharField(max_length=30, default=TYPE_FOLLOW_UP)
    consultation = models.ForeignKey(Consultation, null=True, blank=True, on_delete=models.CASCADE,
                                     related_name='scheduled_tasks')
    scheduled_for = models.DateTimeField(db_index=True)
    executed_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    error_message = models.TextField(blank=True)

    class Meta:
        ordering = ['scheduled_for']


class SurveyResponse(TimestampedModel):
    STATUS_CHOICES = [('pending', 'En attente'), ('completed', 'Complété')]
    PAIN_CHOICES = [('better', 'Mieux'), ('same', 'Pareil'), ('worse', 'Moins bien')]

    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='surveys')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='surveys')
    consultation = models.ForeignKey(Consultation, on_delete=models.CASCADE, related_name='surveys')
    token = models.CharField(max_length=32, unique=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending', db_index=True)
    overall_rating = models.PositiveSmallIntegerField(null=True, blank=True)
    pain_evolution = models.CharField(max_length=6, choices=PAIN_CHOICES, blank=True)
    comment = models.TextField(blank=True)
    would_recommend = models.BooleanField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    synced_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']


class ManualRevenueEntry(TimestampedModel):
    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='manual_revenues')
    year = models.PositiveSmallIntegerField()
    month = models.PositiveSmallIntegerField()
    amount = models.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['practitioner', 'year', 'month'], name='uniq_manual_revenue_month'),
        ]


class SavedReport(TimestampedModel):
    practitioner = models.ForeignKey(Practitioner, on_delete=models.CASCADE, related_name='saved_reports')
    name = models.CharField(max_length=100)
    filters = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-created_at']


class AuditLog(models.Model):
    """Append-only trail of sensitive actions (logins, deletions, sends)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    practitioner = models.ForeignKey(Practitioner, null=True, blank=True, on_delete=models.SET_NULL,
                                     related_name='audit_logs')
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True)
    object_id = models.CharField(max_length=64, blank=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
