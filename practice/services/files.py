"""
On-disk storage for consultation attachments and practitioner stamps.

Files live in ``ATTACHMENTS_DIR`` / ``STAMPS_DIR`` under the application
data directory; the database only stores the generated file names.
"""
import base64
import binascii
import logging
import os
import re
import secrets
from pathlib import Path

from django.conf import settings
from django.db import transaction

from practice.models import Consultation, ConsultationAttachment, Practitioner

logger = logging.getLogger(__name__)

ATTACHMENT_MIME_TYPES = {
    'pdf': 'application/pdf',
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'svg': 'image/svg+xml',
    'doc': 'application/msword',
    'docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'xls': 'application/vnd.ms-excel',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'dicom': 'application/dicom',
    'dcm': 'application/dicom',
}

STAMP_MIME_TYPES = {
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'svg': 'image/svg+xml',
}

DATA_URI_PREFIX = re.compile(r'^data:[^;]+;base64,')


class InvalidPath(ValueError):
    pass


def attachments_dir() -> Path:
    return Path(settings.ATTACHMENTS_DIR)


def stamps_dir() -> Path:
    return Path(settings.STAMPS_DIR)


def safe_path(directory: Path, filename: str) -> Path:
    """Resolve ``filename`` inside ``directory`` or raise ``InvalidPath``."""
    base = directory.resolve()
    target = (base / filename).resolve()
    if target == base or base not in target.parents:
        raise InvalidPath('Chemin invalide')
    return target


def mime_for(filename: str, table: dict) -> str:
    ext = os.path.splitext(filename)[1][1:].lower()
    return table.get(ext, 'application/octet-stream')


def decode_base64(data: str) -> bytes:
    try:
        payload = re.sub(r'\s+', '', DATA_URI_PREFIX.sub('', data.strip()))
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError('Fichier invalide')


def store_attachment(consultation: Consultation, *, file_name: str, mime_type: str, data: str) -> ConsultationAttachment:
    payload = decode_base64(data)
    max_bytes = settings.ATTACHMENT_MAX_MB * 1024 * 1024
    if len(payload) > max_bytes:
        raise ValueError(f'Fichier trop volumineux (max {settings.ATTACHMENT_MAX_MB} Mo)')

    ext = os.path.splitext(file_name)[1].lower() or '.bin'
    filename = f"{consultation.id}_{secrets.token_hex(8)}{ext}"
    directory = attachments_dir()
    directory.mkdir(parents=True, exist_ok=True)
    path = safe_path(directory, filename)
    path.write_bytes(payload)
    try:
        return ConsultationAttachment.objects.create(
            consultation=consultation,
            filename=filename,
            original_name=os.path.basename(file_name),
            mime_type=mime_type or mime_for(filename, ATTACHMENT_MIME_TYPES),
            file_size=len(payload),
        )
    except Exception:
        path.unlink(missing_ok=True)
        raise


def attachment_path(attachment: ConsultationAttachment) -> Path:
    return safe_path(attachments_dir(), attachment.filename)


def remove_attachment_file(filename: str) -> None:
    try:
        safe_path(attachments_dir(), filename).unlink(missing_ok=True)
    except (InvalidPath, OSError) as e:
        logger.warning("Could not remove attachment %s: %s", filename, e)


def delete_attachment(attachment: ConsultationAttachment) -> None:
    filename = attachment.filename
    attachment.delete()
    transaction.on_commit(lambda: remove_attachment_file(filename))


def remove_files_for(consultation_ids) -> None:
    """Schedule removal of every attachment file of the given consultations."""
    filenames = list(
        ConsultationAttachment.objects.filter(consultation_id__in=consultation_ids).values_list('filename', flat=True)
    )
    for name in filenames:
        transaction.on_commit(lambda n=name: remove_attachment_file(n))


def store_stamp(practitioner: Practitioner, upload) -> str:
    content_type = getattr(upload, 'content_type', '') or ''
    if not content_type.startswith('image/'):
        raise ValueError('Le fichier doit être une image')
    if (upload.size or 0) > settings.STAMP_MAX_MB * 1024 * 1024:
        raise ValueError(f'Image trop volumineuse (max {settings.STAMP_MAX_MB} Mo)')

    ext = (os.path.splitext(upload.name or '')[1][1:] or 'png').lower()
    if ext not in STAMP_MIME_TYPES:
        raise ValueError('Le fichier doit être une image')
    directory = stamps_dir()
    directory.mkdir(parents=True, exist_ok=True)
    for old in directory.glob(f"{practitioner.id}.*"):
        if old.suffix[1:].lower() != ext:
            old.unlink(missing_ok=True)

    filename = f"{practitioner.id}.{ext}"
    with open(safe_path(directory, filename), 'wb') as fh:
        for chunk in upload.chunks():
            fh.write(chunk)

    practitioner.stamp_url = f"/api/stamps/{filename}"
    practitioner.save(update_fields=['stamp_url', 'updated_at'])
    return practitioner.stamp_url


def stamp_path(filename: str) -> Path:
    return safe_path(stamps_dir(), filename)


def practitioner_stamp_file(practitioner: Practitioner):
    """Local path of the practitioner's stamp, or None."""
    if not practitioner.stamp_url:
        return None
    try:
        path = stamp_path(practitioner.stamp_url.rsplit('/', 1)[-1])
    except InvalidPath:
        return None
    return path if path.is_file() else None


def clear_stamp(practitioner: Practitioner) -> None:
    directory = stamps_dir()
    if directory.exists():
        for old in directory.glob(f"{practitioner.id}.*"):
            old.unlink(missing_ok=True)
    practitioner.stamp_url = ''
    practitioner.save(update_fields=['stamp_url', 'updated_at'])
