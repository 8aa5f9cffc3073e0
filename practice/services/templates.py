"""
Email texts: default templates, ``{{variable}}`` substitution and the
HTML wrappers rendered from ``practice/templates/practice/emails``.
"""
import re

from django.template.loader import render_to_string
from django.utils.html import escape

from practice.formatting import format_currency, format_date
from practice.models import EmailTemplate, Practitioner

DEFAULT_TEMPLATES = {
    'invoice': {
        'subject': 'Votre facture {{invoice_number}} - {{practice_name}}',
        'body': (
            "Bonjour {{patient_first_name}},\n\n"
            "Veuillez trouver ci-joint votre facture n°{{invoice_number}} d'un montant de {{invoice_amount}} "
            "pour votre consultation du {{invoice_date}}.\n\n"
            "Merci de votre confiance.\n\n"
            "Cordialement,\n"
            "{{practitioner_name}}\n"
            "{{practitioner_specialty}}"
        ),
    },
    'follow_up_7d': {
        'subject': 'Comment allez-vous ? - {{practice_name}}',
        'body': (
            "Bonjour {{patient_first_name}},\n\n"
            "Votre séance du {{consultation_date}} remonte à quelques jours maintenant. Comment vous sentez-vous ?\n\n"
            "Si vous avez des questions ou la moindre préoccupation, n'hésitez surtout pas à me contacter. "
            "Je reste à votre entière disposition.\n\n"
            "Je vous souhaite une excellente continuation."
        ),
    },
}

TEMPLATE_TYPE_LABELS = {
    'invoice': 'Envoi de facture',
    'follow_up_7d': 'Suivi J+7',
}

VARIABLE_RE = re.compile(r'\{\{\s*(\w+)\s*\}\}')


def replace_variables(template: str, variables: dict) -> str:
    """Substitute ``{{name}}`` placeholders; unknown names are left as-is."""
    def _sub(match):
        key = match.group(1)
        return str(variables[key]) if key in variables else match.group(0)
    return VARIABLE_RE.sub(_sub, template or '')


def text_to_html(text: str) -> str:
    html = []
    for para in re.split(r'\n\s*\n', (text or '').strip()):
        if para.strip():
            lines = [escape(line) for line in para.split('\n')]
            html.append('<p>' + '<br>'.join(lines) + '</p>')
    return ''.join(html)


def get_template(practitioner: Practitioner, template_type: str) -> dict:
    custom = EmailTemplate.objects.filter(practitioner=practitioner, type=template_type).first()
    if custom:
        return {'type': template_type, 'subject': custom.subject, 'body': custom.body, 'is_default': False}
    return {'type': template_type, **DEFAULT_TEMPLATES[template_type], 'is_default': True}


def list_templates(practitioner: Practitioner) -> list[dict]:
    return [
        {**get_template(practitioner, t), 'label': TEMPLATE_TYPE_LABELS[t]}
        for t in DEFAULT_TEMPLATES
    ]


def upsert_template(practitioner: Practitioner, template_type: str, *, subject: str, body: str) -> EmailTemplate:
    obj, _ = EmailTemplate.objects.update_or_create(
        practitioner=practitioner, type=template_type,
        defaults={'subject': subject, 'body': body},
    )
    return obj


def build_variables(practitioner: Practitioner, patient=None, consultation=None, invoice=None) -> dict:
    variables = {
        'practitioner_name': practitioner.full_name,
        'practitioner_specialty': practitioner.specialty or '',
        'practice_name': practitioner.display_name,
    }
    if patient is not None:
        variables.update({
            'patient_name': patient.full_name,
            'patient_first_name': patient.first_name,
        })
    if consultation is not None:
        variables.update({
            'consultation_date': format_date(consultation.date_time),
            'consultation_reason': consultation.reason,
        })
    if invoice is not None:
        variables.update({
            'invoice_number': invoice.invoice_number,
            'invoice_amount': format_currency(invoice.amount),
            'invoice_date': format_date(invoice.issued_at or invoice.created_at),
        })
    return variables


def render_template(practitioner: Practitioner, template_type: str, variables: dict) -> tuple[str, str]:
    tpl = get_template(practitioner, template_type)
    return replace_variables(tpl['subject'], variables), replace_variables(tpl['body'], variables)


def _context(practitioner: Practitioner, body_text: str, **extra) -> dict:
    return {
        'body_html': text_to_html(body_text),
        'display_name': practitioner.display_name,
        'practitioner_name': practitioner.full_name,
        'practice_name': practitioner.practice_name,
        'primary_color': practitioner.primary_color or '#2563eb',
        **extra,
    }


def message_html(practitioner: Practitioner, body_text: str) -> str:
    """Generic wrapper with the practitioner's contact footer."""
    return render_to_string('practice/emails/message.html', _context(
        practitioner, body_text, address=practitioner.address, phone=practitioner.phone,
    ))


def invoice_html(practitioner: Practitioner, body_text: str) -> str:
    return render_to_string('practice/emails/invoice.html', _context(
        practitioner, body_text, review_url=practitioner.google_review_url,
    ))


def follow_up_html(practitioner: Practitioner, body_text: str, survey_url: str | None = None) -> str:
    # The consultation reason is never included in this email
    return render_to_string('practice/emails/follow_up.html', _context(
        practitioner, body_text, review_url=practitioner.google_review_url, survey_url=survey_url,
    ))


def post_session_advice_html(practitioner: Practitioner, body_text: str, advice: str = '') -> str:
    return render_to_string('practice/emails/post_session_advice.html', _context(
        practitioner, body_text,
        advice_html=text_to_html(advice) if advice else '',
        specialty=practitioner.specialty,
        review_url=practitioner.google_review_url,
    ))
