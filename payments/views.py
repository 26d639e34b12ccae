import logging
import secrets

from django.conf import settings
from django.contrib.admin.views.decorators import staff_member_required
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from website.models import Project
from website.payloads import as_bool, request_data

from .models import Donation
from .money import parse_amount, to_minor
from .receipt_pdf import render_receipt_pdf
from .receipts import get_receipt_data, log_event, receipt_filename
from .services import complete_donation, expire_donation, fail_donation, send_receipt

logger = logging.getLogger(__name__)

COMPLETED_STATUSES = {'1', 'success', 'paid', 'completed'}
FAILED_STATUSES = {'3', 'failed', 'cancelled'}


def map_gateway_status(value):
    status = str(value or '').strip().lower()
    if status in COMPLETED_STATUSES:
        return Donation.Status.COMPLETED
    if status in FAILED_STATUSES:
        return Donation.Status.FAILED
    return Donation.Status.PENDING


@csrf_exempt
@require_POST
def create_donation(request):
    data = request_data(request)
    if data is None:
        return JsonResponse({'error': 'Invalid request body'}, status=400)

    try:
        amount = to_minor(parse_amount(data.get('amount')))
    except ValueError:
        return JsonResponse({'error': 'Invalid amount'}, status=400)
    if amount < settings.MIN_DONATION_AMOUNT:
        return JsonResponse({'error': 'Amount is below the minimum donation'}, status=400)

    project = None
    project_id = data.get('projectId') or data.get('project')
    if project_id:
        try:
            project = Project.objects.filter(pk=int(project_id), donation_enabled=True).first()
        except (TypeError, ValueError):
            project = None
        if project is None:
            return JsonResponse({'error': 'Project not accepting donations'}, status=400)

    is_anonymous = as_bool(data.get('isAnonymous'))
    donation = Donation.objects.create(
        donor_name='' if is_anonymous else str(data.get('donorName') or '')[:100],
        donor_email=str(data.get('donorEmail') or '').strip()[:255],
        donor_phone=str(data.get('donorPhone') or '')[:20],
        amount=amount,
        currency=str(data.get('currency') or 'MYR').upper()[:8],
        project=project,
        message=str(data.get('message') or ''),
        is_anonymous=is_anonymous,
        payment_method=str(data.get('paymentMethod') or 'fpx')[:16],
        payment_reference=secrets.token_hex(10),
    )
    log_event(donation, 'created', request, amount=amount, currency=donation.currency)
    logger.info("Donation %s created (%s sen)", donation.payment_reference, amount)

    return JsonResponse({
        'paymentReference': donation.payment_reference,
        'amount': donation.amount,
        'currency': donation.currency,
        'status': donation.payment_status,
    }, status=201)


@csrf_exempt
def webhook(request):
    if request.method == 'GET':
        challenge = request.GET.get('challenge')
        if challenge:
            return HttpResponse(challenge, content_type='text/plain')
        return JsonResponse({'status': 'ok', 'endpoint': 'donations-webhook'})
    if request.method != 'POST':
        return JsonResponse({'error': 'Method not allowed'}, status=405)

    data = request_data(request)
    if data is None:
        return JsonResponse({'error': 'Invalid payload'}, status=400)

    reference = (
        data.get('order_id') or data.get('refno')
        or data.get('payment_reference') or data.get('reference')
    )
    if not reference:
        return JsonResponse({'error': 'Missing payment reference'}, status=400)

    donation = Donation.objects.filter(payment_reference=reference).first()
    if donation is None:
        logger.warning("Callback for unknown donation %s", reference)
        return JsonResponse({'error': 'Donation not found'}, status=404)

    raw_status = data.get('status') or data.get('status_id')
    transaction_id = str(data.get('transaction_id') or '')
    log_event(donation, 'callback_received', request, payload=data)

    if donation.payment_status in (Donation.Status.COMPLETED, Donation.Status.REFUNDED):
        logger.info("Donation %s already %s, ignoring callback", reference, donation.payment_status)
        return JsonResponse({'success': True, 'status': donation.payment_status, 'processed': False})

    if data.get('billcode') and not donation.bill_code:
        donation.bill_code = str(data['billcode'])[:64]
        donation.save(update_fields=['bill_code', 'updated_at'])

    previous = donation.payment_status
    status = map_gateway_status(raw_status)
    email = None
    if status == Donation.Status.COMPLETED:
        email = complete_donation(donation, transaction_id=transaction_id, request=request)
    elif status == Donation.Status.FAILED:
        fail_donation(donation, reason=str(data.get('reason') or ''), transaction_id=transaction_id)

    if status != previous:
        log_event(donation, 'status_updated', request, previous=previous, status=status)
        logger.info("Donation %s: %s -> %s", reference, previous, status)

    body = {'success': True, 'status': donation.payment_status, 'processed': True}
    if donation.receipt_number:
        body['receiptNumber'] = donation.receipt_number
    if email is not None:
        body['email'] = email.as_dict()
    return JsonResponse(body)


def receipt_download(request, reference):
    data = get_receipt_data(reference, locale=request.GET.get('locale', 'en'))
    if data is None:
        return JsonResponse({'error': 'Receipt not found'}, status=404)
    if data.is_pending:
        return JsonResponse({'error': 'Receipt number not yet assigned'}, status=400)

    pdf = render_receipt_pdf(data)
    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{receipt_filename(data.receipt_number)}"'
    response['Cache-Control'] = 'no-cache, no-store, must-revalidate'

    donation = Donation.objects.filter(payment_reference=reference).first()
    if donation is not None:
        log_event(donation, 'receipt_downloaded', request, receiptNumber=data.receipt_number)
    return response


@staff_member_required
@require_POST
def receipt_resend(request, reference):
    donation = Donation.objects.filter(payment_reference=reference).first()
    if donation is None or not donation.is_completed:
        return JsonResponse({'error': 'Receipt not found'}, status=404)
    if not donation.receipt_number:
        return JsonResponse({'error': 'Receipt number not yet assigned'}, status=400)

    result = send_receipt(donation, request=request)
    if result is None:
        return JsonResponse({'error': 'Receipt not found'}, status=404)
    log_event(donation, 'receipt_resent', request, requestedBy=request.user.get_username(), success=result.success)
    return JsonResponse(result.as_dict(), status=200 if result.success else 502)


@staff_member_required
@require_POST
def mark_expired(request):
    data = request_data(request)
    if data is None:
        return JsonResponse({'error': 'Invalid request body'}, status=400)
    reference = str(data.get('reference') or '').strip()
    if not reference:
        return JsonResponse({'error': 'Payment reference is required'}, status=400)

    donation = Donation.objects.filter(payment_reference=reference).first()
    if donation is None:
        return JsonResponse({'error': 'Donation not found'}, status=404)
    if donation.payment_status in (Donation.Status.COMPLETED, Donation.Status.REFUNDED):
        return JsonResponse({'error': f"Cannot mark {donation.payment_status} donations as expired"}, status=400)
    if donation.payment_status == Donation.Status.EXPIRED:
        return JsonResponse({
            'success': True,
            'message': 'Donation is already marked as expired',
            'noChange': True,
        })

    previous = expire_donation(
        donation,
        reason=str(data.get('reason') or '').strip(),
        marked_by=request.user.get_username(),
        request=request,
    )
    return JsonResponse({
        'success': True,
        'message': 'Donation marked as expired',
        'previousStatus': previous,
    })
