import logging

from django.contrib.admin.views.decorators import staff_member_required
from django.core.exceptions import ValidationError
from django.core.validators import URLValidator, validate_email
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import mailer
from .forms import ContactForm, NotificationSettingsForm, OrganizationConfigForm
from .models import AdminNotification, Form, FormSubmission
from .notifications import (
    FormNotification,
    cleanup_expired_notifications,
    dismiss_all_notifications,
    notify_contact_message,
    notify_form_submission,
    send_contact_notification_email,
    send_form_notification_email,
)
from .organization import get_organization_config, save_organization_config
from .payloads import request_data
from .settings_store import (
    EMAIL_NOTIFICATIONS_ENABLED,
    NOTIFICATION_EMAIL,
    default_store,
    notification_email,
    notifications_enabled,
)

logger = logging.getLogger(__name__)


def _invalid_body():
    return JsonResponse({'error': 'Invalid request body'}, status=400)


@csrf_exempt
@require_POST
def contact(request):
    data = request_data(request)
    if data is None:
        return _invalid_body()

    form = ContactForm(data)
    if not form.is_valid():
        return JsonResponse({'error': 'Validation failed', 'errors': form.errors}, status=400)
    contact_message = form.save()

    try:
        notify_contact_message(contact_message)
    except Exception:
        logger.exception("Failed to create notification for contact message %s", contact_message.pk)

    email = send_contact_notification_email(contact_message)
    return JsonResponse({
        'success': True,
        'id': contact_message.pk,
        'email': email.as_dict(),
    }, status=201)


def _missing_required(fields, values):
    missing = []
    for fld in fields:
        if not fld.get('required'):
            continue
        field_id = fld.get('id')
        if fld.get('type') == 'checkbox' and fld.get('options'):
            if any(values.get(f"{field_id}_{i}") for i in range(len(fld['options']))):
                continue
        elif values.get(field_id) not in (None, '', []):
            continue
        missing.append(fld.get('label') or field_id)
    return missing


def _clean_source_url(value):
    """Keep only http(s) URLs; the value ends up in an email link."""
    value = str(value or '').strip()[:500]
    if not value:
        return ''
    try:
        URLValidator(schemes=['http', 'https'])(value)
    except ValidationError:
        logger.info("Dropping invalid sourceUrl %r", value)
        return ''
    return value


@csrf_exempt
@require_POST
def form_submit(request, slug):
    form = get_object_or_404(Form, name=slug, is_active=True)
    data = request_data(request)
    if data is None:
        return _invalid_body()

    values = data.get('data') if isinstance(data.get('data'), dict) else data
    missing = _missing_required(form.fields, values)
    if missing:
        return JsonResponse({'error': 'Missing required fields', 'fields': missing}, status=400)

    submission = FormSubmission.objects.create(
        form=form,
        data=values,
        source_url=_clean_source_url(data.get('sourceUrl')),
        source_content_title=str(data.get('sourceContentTitle') or '')[:200],
    )

    try:
        notify_form_submission(submission)
    except Exception:
        logger.exception("Failed to create notification for submission %s", submission.pk)

    body = {'success': True, 'id': submission.pk}
    if form.send_email_notification:
        email = send_form_notification_email(FormNotification(
            form_title=form.title,
            fields=form.fields,
            data=values,
            source_url=submission.source_url,
            source_content_title=submission.source_content_title,
            notification_email=form.notification_email or None,
        ))
        body['email'] = email.as_dict()
    return JsonResponse(body, status=201)


# -----------------------------
# Dashboard notification feed
# -----------------------------

@staff_member_required
@require_GET
def notifications_list(request):
    try:
        limit = max(1, min(int(request.GET.get('limit', 20)), 100))
    except ValueError:
        limit = 20
    qs = AdminNotification.objects.active()
    if request.GET.get('unreadOnly') in ('1', 'true'):
        qs = qs.filter(is_read=False)
    return JsonResponse({
        'notifications': [n.as_dict() for n in qs[:limit]],
        'unreadCount': AdminNotification.objects.unread().count(),
    })


@staff_member_required
@require_GET
def notifications_unread_count(request):
    return JsonResponse({'count': AdminNotification.objects.unread().count()})


@staff_member_required
@require_POST
def notification_read(request, pk):
    notification = get_object_or_404(AdminNotification, pk=pk)
    notification.mark_read()
    return JsonResponse({'success': True})


@staff_member_required
@require_POST
def notifications_read_all(request):
    updated = AdminNotification.objects.unread().update(is_read=True, read_at=timezone.now())
    return JsonResponse({'success': True, 'updated': updated})


@staff_member_required
@require_POST
def notification_dismiss(request, pk):
    notification = get_object_or_404(AdminNotification, pk=pk)
    notification.is_dismissed = True
    notification.save(update_fields=['is_dismissed'])
    return JsonResponse({'success': True})


@staff_member_required
@require_POST
def notifications_dismiss_all(request):
    return JsonResponse({'success': True, 'dismissed': dismiss_all_notifications()})


@staff_member_required
@require_POST
def notifications_cleanup(request):
    return JsonResponse({'success': True, 'deleted': cleanup_expired_notifications()})


# -----------------------------
# Settings
# -----------------------------

@staff_member_required
@require_http_methods(['GET', 'POST'])
def organization_settings(request):
    store = default_store()
    if request.method == 'POST':
        data = request_data(request)
        if data is None:
            return _invalid_body()
        form = OrganizationConfigForm.from_payload(data)
        if not form.is_valid():
            return JsonResponse({'error': 'Validation failed', 'errors': form.errors}, status=400)
        save_organization_config(form.to_config(), store)
        logger.info("Organization settings updated by %s", request.user)
    return JsonResponse(get_organization_config(store).to_settings_value())


@staff_member_required
@require_http_methods(['GET', 'POST'])
def notification_settings(request):
    store = default_store()
    if request.method == 'POST':
        data = request_data(request)
        if data is None:
            return _invalid_body()
        form = NotificationSettingsForm(data)
        if not form.is_valid():
            return JsonResponse({'error': 'Validation failed', 'errors': form.errors}, status=400)
        store.set(NOTIFICATION_EMAIL, form.cleaned_data['notificationEmail'].strip())
        store.set(EMAIL_NOTIFICATIONS_ENABLED, form.cleaned_data['emailNotificationsEnabled'])
        logger.info("Notification settings updated by %s", request.user)
    return JsonResponse({
        NOTIFICATION_EMAIL: notification_email(store) or '',
        EMAIL_NOTIFICATIONS_ENABLED: notifications_enabled(store),
    })


@staff_member_required
@require_POST
def settings_test_email(request):
    data = request_data(request)
    if data is None:
        return _invalid_body()
    email = str(data.get('email') or '').strip()
    if not email:
        return JsonResponse({'error': 'Email address is required'}, status=400)
    try:
        validate_email(email)
    except ValidationError:
        return JsonResponse({'error': 'Invalid email address'}, status=400)

    result = mailer.send_test_email(email)
    if not result.success:
        logger.warning("Test email to %s failed: %s", email, result.reason or result.error)
        return JsonResponse({
            'error': result.error or 'Failed to send test email',
            'reason': result.reason.value if result.reason else None,
        }, status=500)
    logger.info("Test email sent to %s by %s", email, request.user)
    return JsonResponse({
        'success': True,
        'message': 'Test email sent successfully',
        'messageId': result.message_id,
    })
