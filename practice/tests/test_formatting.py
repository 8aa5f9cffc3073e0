import datetime

from practice.formatting import (
    NBSP,
    NNBSP,
    calculate_age,
    format_amount,
    format_currency,
    format_date,
    format_datetime,
    format_phone,
    generate_invoice_number,
    get_initials,
)
from practice.services.imap import extract_reply_content, html_to_plain_text
from practice.services.statistics import age_group, normalize_reason
from practice.services.templates import replace_variables, text_to_html


def test_format_currency_groups_thousands():
    assert format_currency(1234.5) == f"1{NNBSP}234,50{NBSP}€"
    assert format_currency(1234567) == f"1{NNBSP}234{NNBSP}567,00{NBSP}€"
    assert format_currency(0) == f"0,00{NBSP}€"
    assert format_currency('-60') == f"-60,00{NBSP}€"


def test_format_amount_is_plain_decimal():
    assert format_amount(65) == '65.00'
    assert format_amount(None) == '0.00'


def test_format_date_accepts_iso_strings_and_dates():
    assert format_date('2024-03-09') == '09/03/2024'
    assert format_date(datetime.date(2024, 12, 31)) == '31/12/2024'
    assert format_date(None) == ''


def test_format_datetime_uses_local_time():
    utc_morning = datetime.datetime(2024, 3, 9, 8, 30, tzinfo=datetime.timezone.utc)
    assert format_datetime(utc_morning) == '09/03/2024 09:30'
    assert format_datetime('2024-07-01T18:05:00+00:00') == '01/07/2024 20:05'
    assert format_datetime(datetime.date(2024, 1, 2)) == '02/01/2024 00:00'
    assert format_datetime('') == ''


def test_format_phone_pairs_french_numbers():
    assert format_phone('0612345678') == '06 12 34 56 78'
    assert format_phone('+33612345678') == '+33612345678'
    assert format_phone('06 12 34 56 78') == '06 12 34 56 78'
    assert format_phone('06.12.34.56.78') == '06 12 34 56 78'
    assert format_phone('123') == '123'
    assert format_phone('') == ''


def test_calculate_age_before_and_after_birthday():
    born = datetime.date(1990, 6, 15)
    assert calculate_age(born, today=datetime.date(2024, 6, 14)) == 33
    assert calculate_age(born, today=datetime.date(2024, 6, 15)) == 34


def test_calculate_age_accepts_strings():
    assert calculate_age('1990-06-15', today=datetime.date(2024, 6, 14)) == 33
    assert calculate_age('1990-06-15T10:00:00', today=datetime.date(2024, 6, 15)) == 34
    assert calculate_age('') is None


def test_invoice_number_layout():
    assert generate_invoice_number('FACT', 7, datetime.date(2024, 1, 5)) == 'FACT-240105-007'
    assert generate_invoice_number('OST', 1234, datetime.date(2024, 1, 5)) == 'OST-240105-1234'


def test_initials():
    assert get_initials('claire', 'martin') == 'CM'
    assert get_initials('', '') == ''


def test_replace_variables_keeps_unknown_placeholders():
    out = replace_variables('Bonjour {{patient_first_name}}, {{ unknown }}', {'patient_first_name': 'Julie'})
    assert out == 'Bonjour Julie, {{ unknown }}'


def test_text_to_html_escapes_and_splits_paragraphs():
    html = text_to_html('Bonjour <b>Julie</b>\nligne 2\n\nFin')
    assert html == '<p>Bonjour &lt;b&gt;Julie&lt;/b&gt;<br>ligne 2</p><p>Fin</p>'


def test_reply_extraction_stops_at_quote_markers():
    text = "Merci, à mardi.\n\nLe lun. 3 juin 2024, Cabinet a écrit :\n> Bonjour"
    assert extract_reply_content(text) == 'Merci, à mardi.'
    assert extract_reply_content('Pas de citation') == 'Pas de citation'


def test_html_to_plain_text_drops_tags_and_scripts():
    html = '<div>Bonjour&nbsp;Docteur</div><script>alert(1)</script><p>A bientôt</p>'
    assert html_to_plain_text(html) == 'Bonjour Docteur\n\nA bientôt'


def test_age_groups_boundaries():
    assert [age_group(a) for a in (0, 17, 18, 29, 30, 44, 45, 59, 60, 74, 75, 99)] == [
        '0-17', '0-17', '18-29', '18-29', '30-44', '30-44', '45-59', '45-59', '60-74', '60-74', '75+', '75+']


def test_reason_normalisation():
    assert normalize_reason('Mal de dos depuis 3 jours') == 'Lombalgie'
    assert normalize_reason('MIGRAINE') == 'Céphalées'
    assert normalize_reason('  ') == 'Non spécifié'
    assert normalize_reason('genou DROIT') == 'Genou droit'
