import base64
import re
import shutil
import struct
import tempfile
import zlib
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from PIL import Image

from payments.emails import receipt_subject, render_receipt_email, send_donation_receipt_email
from payments.models import Donation
from payments.money import format_amount, parse_amount, to_major, to_minor
from payments.receipt_pdf import load_logo, render_receipt_pdf
from payments.receipts import ReceiptData, assign_receipt_number, generate_receipt_number, get_receipt_data
from payments.services import EXPIRED_REASON, complete_donation
from payments.views import map_gateway_status
from website.mailer import EmailReason
from website.models import AdminNotification, Project
from website.organization import DEFAULT_ORGANIZATION
from website.settings_store import StaticSettings

_counter = 0


def make_donation(**kwargs):
    global _counter
    _counter += 1
    defaults = {
        'donor_name': 'Siti Aminah',
        'donor_email': 'siti@example.org',
        'amount': 10000,
        'payment_reference': f"ref{_counter:06d}",
    }
    defaults.update(kwargs)
    return Donation.objects.create(**defaults)


def completed_donation(**kwargs):
    kwargs.setdefault('payment_status', Donation.Status.COMPLETED)
    kwargs.setdefault('completed_at', timezone.now())
    return make_donation(**kwargs)


def receipt_data(**kwargs):
    now = timezone.now()
    values = {
        'receipt_number': 'YIP-2026-000042',
        'donor_name': 'Siti Aminah',
        'donor_email': 'siti@example.org',
        'amount': Decimal('100.00'),
        'currency': 'MYR',
        'payment_reference': 'abc123',
        'payment_method': 'fpx',
        'completed_at': now,
        'created_at': now,
        'organization': DEFAULT_ORGANIZATION,
    }
    values.update(kwargs)
    return ReceiptData(**values)


def resend_response(status=200, body=None):
    response = mock.Mock(status_code=status)
    response.json.return_value = body if body is not None else {'id': 'em_receipt'}
    return response


def page_count(pdf):
    return len(re.findall(rb'/Type\s*/Page(?!s)', pdf))


def png_chunk(tag, payload):
    crc = zlib.crc32(tag + payload) & 0xffffffff
    return struct.pack('>I', len(payload)) + tag + payload + struct.pack('>I', crc)


def corrupt_png():
    """Well-formed chunks with checksums intact, but IDAT is not a deflate stream."""
    header = struct.pack('>IIBBBBB', 16, 16, 8, 2, 0, 0, 0)
    return (
        b'\x89PNG\r\n\x1a\n'
        + png_chunk(b'IHDR', header)
        + png_chunk(b'IDAT', b'not deflate data')
        + png_chunk(b'IEND', b'')
    )


class MoneyTests(TestCase):
    def test_minor_units_to_display(self):
        self.assertEqual(to_major(10000), Decimal('100.00'))
        self.assertEqual(format_amount(to_major(10000), 'MYR'), 'RM 100.00')
        self.assertEqual(format_amount(Decimal('1234567.89'), 'MYR'), 'RM 1,234,567.89')
        self.assertEqual(format_amount(Decimal('5'), 'usd'), 'US$ 5.00')

    def test_parse_recovers_formatted_amount(self):
        for minor in (1, 99, 100, 10050, 123456789, 999999999):
            amount = to_major(minor)
            self.assertEqual(parse_amount(format_amount(amount)), amount)
            self.assertEqual(to_minor(parse_amount(format_amount(amount))), minor)

    def test_parse_bare_numbers(self):
        self.assertEqual(parse_amount('50'), Decimal('50.00'))
        self.assertEqual(parse_amount('RM 1,000'), Decimal('1000.00'))
        with self.assertRaises(ValueError):
            parse_amount('fifty')
        with self.assertRaises(ValueError):
            parse_amount(None)


class ReceiptNumberTests(TestCase):
    now = datetime(2026, 3, 15, 10, 0)

    def test_first_number_of_the_year(self):
        self.assertEqual(generate_receipt_number(self.now), 'YIP-2026-000001')

    def test_sequential_numbers(self):
        numbers = []
        for _ in range(5):
            numbers.append(assign_receipt_number(completed_donation(), now=self.now))
        self.assertEqual(numbers, [f"YIP-2026-{i:06d}" for i in range(1, 6)])

    def test_sequence_restarts_each_year(self):
        completed_donation(receipt_number='YIP-2025-000007')
        self.assertEqual(generate_receipt_number(self.now), 'YIP-2026-000001')
        self.assertEqual(generate_receipt_number(datetime(2025, 12, 31)), 'YIP-2025-000008')

    def test_unparseable_suffix_restarts_at_one(self):
        completed_donation(receipt_number='YIP-2026-ABCDEF')
        with self.assertLogs('payments.receipts', level='WARNING'):
            self.assertEqual(generate_receipt_number(self.now), 'YIP-2026-000001')

    @override_settings(RECEIPT_PREFIX='TST')
    def test_prefix_from_settings(self):
        self.assertEqual(generate_receipt_number(self.now), 'TST-2026-000001')

    def test_assign_is_idempotent_and_requires_completion(self):
        self.assertIsNone(assign_receipt_number(make_donation()))
        donation = completed_donation()
        first = assign_receipt_number(donation, now=self.now)
        self.assertEqual(assign_receipt_number(donation, now=self.now), first)
        self.assertTrue(donation.logs.filter(event_type='receipt_number_assigned').exists())

    def test_taken_number_is_skipped(self):
        completed_donation(receipt_number='YIP-2026-000001')
        completed_donation(receipt_number='YIP-2026-ABCDEF')
        donation = completed_donation()
        with self.assertLogs('payments.receipts', level='WARNING'):
            number = assign_receipt_number(donation, now=self.now)
        self.assertEqual(number, 'YIP-2026-000002')
        donation.refresh_from_db()
        self.assertEqual(donation.receipt_number, 'YIP-2026-000002')

    @mock.patch('payments.receipts.ASSIGN_ATTEMPTS', 2)
    def test_gives_up_after_repeated_collisions(self):
        completed_donation(receipt_number='YIP-2026-000001')
        completed_donation(receipt_number='YIP-2026-000002')
        completed_donation(receipt_number='YIP-2026-ABCDEF')
        donation = completed_donation()
        with mock.patch('payments.receipts._highest_parsed_sequence', return_value=0):
            with self.assertLogs('payments.receipts', level='ERROR'):
                self.assertIsNone(assign_receipt_number(donation, now=self.now))
        self.assertIsNone(donation.receipt_number)
        donation.refresh_from_db()
        self.assertIsNone(donation.receipt_number)
        self.assertTrue(donation.logs.filter(event_type='receipt_number_failed').exists())


class ReceiptDataTests(TestCase):
    def setUp(self):
        self.store = StaticSettings()

    def test_pending_or_unknown_returns_none(self):
        donation = make_donation()
        self.assertIsNone(get_receipt_data(donation.payment_reference, store=self.store))
        self.assertIsNone(get_receipt_data('missing', store=self.store))

    def test_assembles_completed_donation(self):
        project = Project.objects.create(title='Food Bank', title_ms='Bank Makanan')
        donation = completed_donation(
            amount=12345, project=project, donor_name='', transaction_id='TP123', receipt_number='YIP-2026-000003',
        )
        data = get_receipt_data(donation.payment_reference, store=self.store)
        self.assertEqual(data.amount, Decimal('123.45'))
        self.assertEqual(data.donor_name, 'Anonymous')
        self.assertEqual(data.project_title, 'Food Bank')
        self.assertEqual(data.transaction_id, 'TP123')
        self.assertFalse(data.is_pending)
        self.assertEqual(
            get_receipt_data(donation.payment_reference, store=self.store, locale='ms').project_title,
            'Bank Makanan',
        )

    def test_missing_number_is_pending(self):
        donation = completed_donation()
        data = get_receipt_data(donation.payment_reference, store=self.store)
        self.assertEqual(data.receipt_number, 'Pending')
        self.assertTrue(data.is_pending)

    def test_assembly_is_repeatable(self):
        donation = completed_donation(receipt_number='YIP-2026-000009')
        self.assertEqual(
            get_receipt_data(donation.payment_reference, store=self.store),
            get_receipt_data(donation.payment_reference, store=self.store),
        )


class ReceiptEmailTests(TestCase):
    def test_donor_text_is_escaped(self):
        html = render_receipt_email(receipt_data(donor_name='<script>alert(1)</script>'))
        self.assertIn('&lt;script&gt;alert(1)&lt;/script&gt;', html)
        self.assertNotIn('<script>alert(1)</script>', html)

    def test_subject_and_amount(self):
        data = receipt_data()
        self.assertIn('YIP-2026-000042', receipt_subject(data))
        self.assertIn('RM 100.00', render_receipt_email(data))

    @override_settings(RESEND_API_KEY='')
    def test_missing_api_key(self):
        result = send_donation_receipt_email(receipt_data())
        self.assertFalse(result.success)
        self.assertEqual(result.reason, EmailReason.NO_API_KEY)
        self.assertTrue(result.error)

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_missing_donor_email(self, mock_post):
        result = send_donation_receipt_email(receipt_data(donor_email='  '))
        self.assertEqual(result.reason, EmailReason.NO_RECIPIENT)
        mock_post.assert_not_called()

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_pdf_is_attached(self, mock_post):
        mock_post.return_value = resend_response()
        result = send_donation_receipt_email(receipt_data(), pdf=b'%PDF-1.4 test')
        self.assertTrue(result.success)
        self.assertEqual(result.message_id, 'em_receipt')
        attachment = mock_post.call_args.kwargs['json']['attachments'][0]
        self.assertEqual(attachment['filename'], 'YIP-Receipt-YIP-2026-000042.pdf')
        self.assertEqual(base64.b64decode(attachment['content']), b'%PDF-1.4 test')


class ReceiptPdfTests(TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.tmpdir, ignore_errors=True)
        overrides = override_settings(ORGANIZATION_LOGO_DIRS=[Path(self.tmpdir)])
        overrides.enable()
        self.addCleanup(overrides.disable)

    def write_png(self, name='logo.png'):
        buf = BytesIO()
        Image.new('RGBA', (120, 60), (13, 148, 136, 255)).save(buf, format='PNG')
        (Path(self.tmpdir) / name).write_bytes(buf.getvalue())

    def test_missing_logo_still_renders(self):
        with self.assertLogs('payments.receipt_pdf', level='WARNING'):
            pdf = render_receipt_pdf(receipt_data())
        self.assertTrue(pdf.startswith(b'%PDF'))

    def test_renders_with_logo_and_optional_sections(self):
        self.write_png()
        org = replace(DEFAULT_ORGANIZATION, logo_url='/logo.png', tax_exemption_ref='LHDN.01/35/42/51/179-6.7')
        data = receipt_data(
            organization=org,
            donor_name='<b>Ali & Sons</b>',
            donor_phone='+60123456789',
            project_title='Food Bank',
            transaction_id='TP123',
            message='Semoga bermanfaat. ' * 60,
        )
        self.assertIsNotNone(load_logo('/logo.png'))
        pdf = render_receipt_pdf(data)
        self.assertTrue(pdf.startswith(b'%PDF'))
        self.assertEqual(page_count(pdf), 1)

    def test_output_is_deterministic(self):
        self.write_png()
        org = replace(DEFAULT_ORGANIZATION, logo_url='/logo.png')
        data = receipt_data(organization=org)
        self.assertEqual(render_receipt_pdf(data), render_receipt_pdf(data))

    def test_unusable_logos_are_skipped(self):
        (Path(self.tmpdir) / 'broken.png').write_bytes(b'not an image')
        with self.assertLogs('payments.receipt_pdf', level='WARNING'):
            self.assertIsNone(load_logo('/broken.png'))
            self.assertIsNone(load_logo('/../etc/passwd'))
        with mock.patch('payments.receipt_pdf.requests.get', side_effect=requests.Timeout('slow')):
            with self.assertLogs('payments.receipt_pdf', level='WARNING'):
                self.assertIsNone(load_logo('https://cdn.example.org/logo.png'))
        self.assertIsNone(load_logo(''))

    def test_corrupt_image_data_is_rejected(self):
        (Path(self.tmpdir) / 'corrupt.png').write_bytes(corrupt_png())
        with self.assertLogs('payments.receipt_pdf', level='WARNING'):
            self.assertIsNone(load_logo('/corrupt.png'))
        org = replace(DEFAULT_ORGANIZATION, logo_url='/corrupt.png')
        with self.assertLogs('payments.receipt_pdf', level='WARNING'):
            pdf = render_receipt_pdf(receipt_data(organization=org))
        self.assertTrue(pdf.startswith(b'%PDF'))
        self.assertEqual(page_count(pdf), 1)

    def test_logo_that_fails_to_embed_is_dropped(self):
        self.write_png()
        org = replace(DEFAULT_ORGANIZATION, logo_url='/logo.png')
        with mock.patch('payments.receipt_pdf._logo_flowable', side_effect=OSError('cannot identify image')):
            with self.assertLogs('payments.receipt_pdf', level='WARNING') as logs:
                pdf = render_receipt_pdf(receipt_data(organization=org))
        self.assertTrue(pdf.startswith(b'%PDF'))
        self.assertIn('rendering without it', logs.output[0])

    def test_long_message_stays_on_one_page(self):
        self.write_png()
        org = replace(
            DEFAULT_ORGANIZATION,
            logo_url='/logo.png',
            tax_exemption_ref='LHDN.01/35/42/51/179-6.7',
            address=[
                'Level 12, Menara Prihatin',
                'No. 1, Jalan Sultan Ismail',
                'Bukit Bintang',
                '50250 Kuala Lumpur',
                'Wilayah Persekutuan',
                'Malaysia',
            ],
        )
        data = receipt_data(
            organization=org,
            donor_name='Nur Aisyah binti Abdullah Rahman',
            donor_phone='+60123456789',
            project_title='Program Bantuan Makanan Keluarga Asnaf Lembah Klang',
            transaction_id='TP1234567890',
            message=('Semoga sumbangan ini memberi manfaat kepada yang memerlukan. ' * 10)[:570],
        )
        self.assertEqual(page_count(render_receipt_pdf(data)), 1)


@override_settings(RESEND_API_KEY='re_test')
class ReceiptLifecycleTests(TestCase):
    @mock.patch('website.mailer.requests.post')
    def test_completion_issues_and_sends_receipt(self, mock_post):
        mock_post.return_value = resend_response()
        project = Project.objects.create(title='Food Bank', donation_enabled=True, donation_raised=500)
        donation = make_donation(project=project)
        result = complete_donation(donation, transaction_id='TP1')
        self.assertTrue(result.success)
        donation.refresh_from_db()
        self.assertTrue(donation.receipt_number.startswith(f"YIP-{timezone.localtime().year}-"))
        self.assertIsNotNone(donation.receipt_sent_at)
        project.refresh_from_db()
        self.assertEqual(project.donation_raised, 10500)
        notification = AdminNotification.objects.get(type=AdminNotification.Type.DONATION_RECEIVED)
        self.assertIn('RM 100.00', notification.message)
        self.assertEqual(notification.priority, AdminNotification.Priority.HIGH)

    @mock.patch('website.mailer.requests.post')
    def test_email_failure_keeps_number(self, mock_post):
        mock_post.return_value = resend_response(500, {'message': 'Internal error'})
        donation = make_donation()
        result = complete_donation(donation)
        self.assertFalse(result.success)
        donation.refresh_from_db()
        self.assertTrue(donation.receipt_number)
        self.assertIsNone(donation.receipt_sent_at)
        log = donation.logs.get(event_type='receipt_email_failed')
        self.assertEqual(log.event_data['error'], 'Internal error')

    @mock.patch('website.mailer.requests.post')
    @mock.patch('payments.services.render_receipt_pdf', side_effect=RuntimeError('font missing'))
    def test_pdf_failure_sends_without_attachment(self, mock_pdf, mock_post):
        mock_post.return_value = resend_response()
        with self.assertLogs('payments.services', level='ERROR'):
            result = complete_donation(make_donation())
        self.assertTrue(result.success)
        self.assertNotIn('attachments', mock_post.call_args.kwargs['json'])

    @mock.patch('website.mailer.requests.post')
    def test_no_donor_email_assigns_number_only(self, mock_post):
        donation = make_donation(donor_email='')
        self.assertIsNone(complete_donation(donation))
        donation.refresh_from_db()
        self.assertTrue(donation.receipt_number)
        mock_post.assert_not_called()


class GatewayStatusTests(TestCase):
    def test_status_mapping(self):
        for raw in ('1', 'success', 'PAID', 'completed', 1):
            self.assertEqual(map_gateway_status(raw), Donation.Status.COMPLETED)
        for raw in ('3', 'failed', 'cancelled'):
            self.assertEqual(map_gateway_status(raw), Donation.Status.FAILED)
        for raw in ('2', 'pending', '', None):
            self.assertEqual(map_gateway_status(raw), Donation.Status.PENDING)


@override_settings(RESEND_API_KEY='re_test')
class WebhookTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.url = reverse('payments:webhook')
        self.donation = make_donation()

    @mock.patch('website.mailer.requests.post')
    def test_completed_callback(self, mock_post):
        mock_post.return_value = resend_response()
        resp = self.client.post(self.url, {
            'order_id': self.donation.payment_reference,
            'status': '1',
            'transaction_id': 'TP900',
            'billcode': 'bc42',
        }, content_type='application/json')
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body['processed'])
        self.assertEqual(body['status'], 'completed')
        self.assertTrue(body['email']['success'])
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.transaction_id, 'TP900')
        self.assertEqual(self.donation.bill_code, 'bc42')
        self.assertEqual(body['receiptNumber'], self.donation.receipt_number)
        events = list(self.donation.logs.values_list('event_type', flat=True))
        for event in ('callback_received', 'receipt_number_assigned', 'receipt_email_sent', 'status_updated'):
            self.assertIn(event, events)

        # A repeated callback is acknowledged but not reprocessed
        resp = self.client.post(self.url, {'order_id': self.donation.payment_reference, 'status': '1'},
                                content_type='application/json')
        self.assertFalse(resp.json()['processed'])
        self.assertEqual(mock_post.call_count, 1)

    @mock.patch('website.mailer.requests.post')
    def test_completed_callback_skips_taken_receipt_number(self, mock_post):
        mock_post.return_value = resend_response()
        year = timezone.localtime().year
        completed_donation(receipt_number=f"YIP-{year}-000001")
        completed_donation(receipt_number=f"YIP-{year}-ABCDEF")
        with self.assertLogs('payments.receipts', level='WARNING'):
            resp = self.client.post(self.url, {
                'order_id': self.donation.payment_reference,
                'status': '1',
            }, content_type='application/json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['receiptNumber'], f"YIP-{year}-000002")
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.payment_status, Donation.Status.COMPLETED)
        self.assertEqual(self.donation.receipt_number, f"YIP-{year}-000002")
        self.assertIsNotNone(self.donation.receipt_sent_at)

    def test_form_encoded_failed_callback(self):
        resp = self.client.post(self.url, {
            'refno': self.donation.payment_reference,
            'status': '3',
            'reason': 'Insufficient funds',
        })
        self.assertEqual(resp.status_code, 200)
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.payment_status, Donation.Status.FAILED)
        self.assertEqual(self.donation.failure_reason, 'Insufficient funds')
        self.assertIsNone(self.donation.receipt_number)

    def test_pending_callback_changes_nothing(self):
        resp = self.client.post(self.url, {'reference': self.donation.payment_reference, 'status': '2'},
                                content_type='application/json')
        self.assertEqual(resp.json()['status'], 'pending')
        self.assertFalse(self.donation.logs.filter(event_type='status_updated').exists())

    def test_missing_and_unknown_reference(self):
        self.assertEqual(self.client.post(self.url, {'status': '1'}, content_type='application/json').status_code, 400)
        resp = self.client.post(self.url, {'order_id': 'nope', 'status': '1'}, content_type='application/json')
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(self.client.post(self.url, '[1, 2]', content_type='application/json').status_code, 400)

    def test_get_challenge_and_health(self):
        resp = self.client.get(self.url, {'challenge': 'xyz'})
        self.assertEqual(resp.content, b'xyz')
        self.assertEqual(self.client.get(self.url).json()['status'], 'ok')


class CreateDonationTests(TestCase):
    def test_create_pending_donation(self):
        project = Project.objects.create(title='Food Bank', donation_enabled=True)
        resp = Client().post(reverse('payments:create'), {
            'donorName': 'Siti', 'donorEmail': 'siti@example.org', 'amount': 'RM 50.00', 'projectId': project.pk,
        }, content_type='application/json')
        self.assertEqual(resp.status_code, 201)
        donation = Donation.objects.get(payment_reference=resp.json()['paymentReference'])
        self.assertEqual(donation.amount, 5000)
        self.assertEqual(donation.project, project)
        self.assertEqual(donation.payment_status, Donation.Status.PENDING)
        self.assertTrue(donation.logs.filter(event_type='created').exists())

    def test_rejects_bad_amounts_and_projects(self):
        url = reverse('payments:create')
        self.assertEqual(Client().post(url, {'amount': 'abc'}, content_type='application/json').status_code, 400)
        self.assertEqual(Client().post(url, {'amount': '0.50'}, content_type='application/json').status_code, 400)
        closed = Project.objects.create(title='Closed', donation_enabled=False)
        resp = Client().post(url, {'amount': '10', 'projectId': closed.pk}, content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Donation.objects.exists())

    def test_anonymous_donation_drops_name(self):
        resp = Client().post(reverse('payments:create'), {'amount': '10', 'donorName': 'Siti', 'isAnonymous': True},
                             content_type='application/json')
        donation = Donation.objects.get(payment_reference=resp.json()['paymentReference'])
        self.assertTrue(donation.is_anonymous)
        self.assertEqual(donation.donor_name, '')


class ReceiptDownloadTests(TestCase):
    def test_download(self):
        donation = completed_donation(receipt_number='YIP-2026-000001')
        resp = Client().get(reverse('payments:receipt', args=[donation.payment_reference]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp['Content-Type'], 'application/pdf')
        self.assertIn('YIP-Receipt-YIP-2026-000001.pdf', resp['Content-Disposition'])
        self.assertTrue(resp.content.startswith(b'%PDF'))
        self.assertTrue(donation.logs.filter(event_type='receipt_downloaded').exists())

    def test_not_found_and_pending(self):
        self.assertEqual(Client().get(reverse('payments:receipt', args=['missing'])).status_code, 404)
        pending = make_donation()
        self.assertEqual(Client().get(reverse('payments:receipt', args=[pending.payment_reference])).status_code, 404)
        unnumbered = completed_donation()
        self.assertEqual(Client().get(reverse('payments:receipt', args=[unnumbered.payment_reference])).status_code, 400)


@override_settings(RESEND_API_KEY='re_test')
class ReceiptResendTests(TestCase):
    def setUp(self):
        self.donation = completed_donation(receipt_number='YIP-2026-000001')
        self.url = reverse('payments:receipt_resend', args=[self.donation.payment_reference])

    def test_requires_staff(self):
        self.assertEqual(Client().post(self.url).status_code, 302)

    @mock.patch('website.mailer.requests.post')
    def test_staff_resend(self, mock_post):
        mock_post.return_value = resend_response()
        client = Client()
        client.force_login(get_user_model().objects.create_user('staff', password='pw', is_staff=True))
        resp = client.post(self.url)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {'success': True, 'messageId': 'em_receipt'})
        self.donation.refresh_from_db()
        self.assertIsNotNone(self.donation.receipt_sent_at)
        self.assertTrue(self.donation.logs.filter(event_type='receipt_resent').exists())
        self.assertEqual(client.get(self.url).status_code, 405)


class MarkExpiredTests(TestCase):
    def setUp(self):
        self.url = reverse('payments:mark_expired')
        self.client = Client()
        self.client.force_login(get_user_model().objects.create_user('staff', password='pw', is_staff=True))

    def post(self, data):
        return self.client.post(self.url, data, content_type='application/json')

    def test_requires_staff(self):
        self.assertEqual(Client().post(self.url).status_code, 302)

    def test_marks_pending_donation_expired(self):
        donation = make_donation()
        resp = self.post({'reference': donation.payment_reference})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {
            'success': True,
            'message': 'Donation marked as expired',
            'previousStatus': 'pending',
        })
        donation.refresh_from_db()
        self.assertEqual(donation.payment_status, Donation.Status.EXPIRED)
        self.assertEqual(donation.failure_reason, EXPIRED_REASON)
        log = donation.logs.get(event_type='admin_marked_expired')
        self.assertEqual(log.event_data['previousStatus'], 'pending')
        self.assertEqual(log.event_data['markedBy'], 'staff')

    def test_custom_reason_and_repeat(self):
        donation = make_donation(payment_status=Donation.Status.FAILED)
        resp = self.post({'reference': donation.payment_reference, 'reason': 'Bank transfer abandoned'})
        self.assertEqual(resp.json()['previousStatus'], 'failed')
        donation.refresh_from_db()
        self.assertEqual(donation.failure_reason, 'Bank transfer abandoned')

        resp = self.post({'reference': donation.payment_reference})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {
            'success': True,
            'message': 'Donation is already marked as expired',
            'noChange': True,
        })
        self.assertEqual(donation.logs.filter(event_type='admin_marked_expired').count(), 1)

    def test_rejections(self):
        self.assertEqual(self.post({}).status_code, 400)
        self.assertEqual(self.post({'reference': 'missing'}).status_code, 404)
        donation = completed_donation(receipt_number='YIP-2026-000001')
        resp = self.post({'reference': donation.payment_reference})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['error'], 'Cannot mark completed donations as expired')
        donation.refresh_from_db()
        self.assertEqual(donation.payment_status, Donation.Status.COMPLETED)


__all__ = [
    'MoneyTests',
    'ReceiptNumberTests',
    'ReceiptDataTests',
    'ReceiptEmailTests',
    'ReceiptPdfTests',
    'ReceiptLifecycleTests',
    'GatewayStatusTests',
    'WebhookTests',
    'CreateDonationTests',
    'ReceiptDownloadTests',
    'ReceiptResendTests',
    'MarkExpiredTests',
]
