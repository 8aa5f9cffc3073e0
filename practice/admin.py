"""
Django admin registrations for the practice models.

Superusers can inspect patients, billing and the messaging and
scheduling state through ``/admin/``.  Stored passwords of the mail
settings are never listed.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    AuditLog,
    Consultation,
    ConsultationAttachment,
    Conversation,
    EmailSettings,
    EmailTemplate,
    Invoice,
    ManualRevenueEntry,
    MedicalHistoryEntry,
    Message,
    MessageTemplate,
    Patient,
    Payment,
    Practitioner,
    SavedReport,
    ScheduledTask,
    SessionType,
    SurveyResponse,
    User,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('email', 'username', 'is_active', 'is_staff', 'last_login')
    search_fields = ('email', 'username', 'first_name', 'last_name')


@admin.register(Practitioner)
class PractitionerAdmin(admin.ModelAdmin):
    list_display = ('last_name', 'first_name', 'email', 'practice_name', 'invoice_prefix', 'invoice_next_number')
    search_fields = ('last_name', 'first_name', 'email', 'practice_name', 'siret', 'rpps')


class HistoryInline(admin.TabularInline):
    model = MedicalHistoryEntry
    extra = 0


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('last_name', 'first_name', 'gender', 'birth_date', 'email', 'practitioner', 'archived_at')
    list_filter = ('gender', 'practitioner')
    search_fields = ('last_name', 'first_name', 'email', 'phone')
    inlines = [HistoryInline]


@admin.register(SessionType)
class SessionTypeAdmin(admin.ModelAdmin):
    list_display = ('name', 'price', 'is_active', 'practitioner')
    list_filter = ('is_active',)


class AttachmentInline(admin.TabularInline):
    model = ConsultationAttachment
    extra = 0
    readonly_fields = ('filename', 'original_name', 'mime_type', 'file_size')


@admin.register(Consultation)
class ConsultationAdmin(admin.ModelAdmin):
    list_display = ('date_time', 'patient', 'reason', 'follow_up_7d', 'follow_up_sent_at', 'archived_at')
    list_filter = ('follow_up_7d', 'send_post_session_advice')
    search_fields = ('patient__last_name', 'patient__first_name', 'reason')
    date_hierarchy = 'date_time'
    inlines = [AttachmentInline]


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'amount', 'status', 'issued_at', 'paid_at')
    list_filter = ('status',)
    search_fields = ('invoice_number', 'consultation__patient__last_name')
    inlines = [PaymentInline]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ('id', 'practitioner', 'patient', 'external_email', 'subject', 'unread_count', 'last_message_at')
    list_filter = ('is_archived',)
    search_fields = ('subject', 'external_email', 'patient__last_name')


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'conversation', 'direction', 'channel', 'status', 'sent_at')
    list_filter = ('direction', 'channel', 'status')
    search_fields = ('email_subject', 'from_email', 'to_email')


@admin.register(EmailSettings)
class EmailSettingsAdmin(admin.ModelAdmin):
    list_display = ('practitioner', 'from_email', 'smtp_host', 'imap_host', 'is_verified', 'sync_enabled',
                    'last_sync_at')
    list_filter = ('is_verified', 'sync_enabled')
    exclude = ('smtp_password', 'imap_password')


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ('practitioner', 'type', 'subject')
    list_filter = ('type',)


@admin.register(MessageTemplate)
class MessageTemplateAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'use_count', 'practitioner')


@admin.register(ScheduledTask)
class ScheduledTaskAdmin(admin.ModelAdmin):
    list_display = ('type', 'consultation', 'scheduled_for', 'status', 'executed_at')
    list_filter = ('status', 'type')


@admin.register(SurveyResponse)
class SurveyResponseAdmin(admin.ModelAdmin):
    list_display = ('patient', 'status', 'overall_rating', 'pain_evolution', 'would_recommend', 'responded_at')
    list_filter = ('status', 'pain_evolution')
    search_fields = ('token', 'patient__last_name')


@admin.register(ManualRevenueEntry)
class ManualRevenueEntryAdmin(admin.ModelAdmin):
    list_display = ('practitioner', 'year', 'month', 'amount')


@admin.register(SavedReport)
class SavedReportAdmin(admin.ModelAdmin):
    list_display = ('name', 'practitioner', 'created_at')


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'object_type', 'object_id', 'practitioner')
    list_filter = ('action',)
    search_fields = ('action', 'object_id')
