"""
URL mappings for the practice API.

Paths have no trailing slash.  Cron-triggered routes (``emails/follow-up``,
``emails/check-inbox``, ``surveys/sync``) also accept the cron secret.
"""
from django.urls import path

from .auth_views import (
    jwt_refresh_view,
    login_view,
    logout_view,
    practitioners_view,
    register_view,
    user_view,
)
from .views import (
    accounting,
    consultations,
    emails,
    files,
    invoices,
    messages,
    objectives,
    patients,
    surveys,
    tasks,
)
from .views.dashboard import dashboard, statistics
from .views.health import healthz
from .views.settings import practitioner_settings

urlpatterns = [
    # Health check
    path('healthz', healthz),

    # Authentication
    path('api/auth/login', login_view),
    path('api/auth/logout', logout_view),
    path('api/auth/user', user_view),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/practitioners', practitioners_view),
    path('api/auth/register', register_view),

    # Patients
    path('api/patients', patients.patients),
    path('api/patients/import', patients.patient_import),
    path('api/patients/<uuid:patient_id>', patients.patient_detail),
    path('api/patients/<uuid:patient_id>/archive', patients.patient_archive),
    path('api/patients/<uuid:patient_id>/unarchive', patients.patient_unarchive),
    path('api/patients/<uuid:patient_id>/history', patients.history),
    path('api/patients/<uuid:patient_id>/history/<uuid:entry_id>', patients.history_entry),
    path('api/session-types', patients.session_types),
    path('api/session-types/<uuid:session_type_id>', patients.session_type_detail),

    # Consultations and attachments
    path('api/consultations', consultations.consultations),
    path('api/consultations/<uuid:consultation_id>', consultations.consultation_detail),
    path('api/consultations/<uuid:consultation_id>/archive', consultations.consultation_archive),
    path('api/consultations/<uuid:consultation_id>/unarchive', consultations.consultation_unarchive),
    path('api/consultations/<uuid:consultation_id>/attachments', consultations.consultation_attachments),
    path('api/attachments/upload', files.attachment_upload),
    path('api/attachments/<uuid:attachment_id>', files.attachment_detail),
    path('api/stamps/upload', files.stamp_upload),
    path('api/stamps', files.stamp_clear),
    path('api/stamps/<str:filename>', files.stamp_file),

    # Invoices
    path('api/invoices', invoices.invoices),
    path('api/invoices/<uuid:invoice_id>', invoices.invoice_detail),
    path('api/invoices/<uuid:invoice_id>/status', invoices.invoice_status),
    path('api/invoices/<uuid:invoice_id>/payments', invoices.invoice_payments),
    path('api/invoices/<uuid:invoice_id>/pdf', invoices.invoice_pdf),
    path('api/payments/<uuid:payment_id>', invoices.payment_detail),

    # Emails
    path('api/emails/settings', emails.settings_view),
    path('api/emails/templates', emails.templates),
    path('api/emails/templates/<str:template_type>', emails.template_detail),
    path('api/emails/invoice', emails.invoice_email),
    path('api/emails/follow-up', emails.follow_up),
    path('api/emails/post-session-advice', emails.post_session_advice),
    path('api/emails/check-inbox', emails.check_inbox),
    path('api/emails/accounting-recap', emails.accounting_recap),
    path('api/scheduled-tasks', tasks.scheduled_tasks),

    # Messaging
    path('api/conversations', messages.conversations),
    path('api/conversations/<uuid:conversation_id>', messages.conversation_detail),
    path('api/conversations/<uuid:conversation_id>/read', messages.conversation_read),
    path('api/conversations/<uuid:conversation_id>/archive', messages.conversation_archive),
    path('api/conversations/<uuid:conversation_id>/unarchive', messages.conversation_unarchive),
    path('api/conversations/<uuid:conversation_id>/messages', messages.conversation_messages),
    path('api/messages/send-email', messages.send_email),
    path('api/messages/broadcast', messages.broadcast),
    path('api/message-templates', messages.message_templates),
    path('api/message-templates/<uuid:template_id>', messages.message_template_detail),
    path('api/message-templates/<uuid:template_id>/use', messages.message_template_use),

    # Accounting
    path('api/accounting/summary', accounting.summary),
    path('api/accounting/export', accounting.export),
    path('api/accounting/send-report', accounting.send_report),
    path('api/accounting/reports', accounting.reports),
    path('api/accounting/reports/<uuid:report_id>', accounting.report_detail),

    # Objectives, surveys, dashboard
    path('api/objectives', objectives.objectives),
    path('api/objectives/manual-revenue', objectives.manual_revenue),
    path('api/surveys', surveys.surveys),
    path('api/surveys/sync', surveys.sync),
    path('api/dashboard', dashboard),
    path('api/statistics', statistics),
    path('api/settings/practitioner', practitioner_settings),
]
