from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from website.mailer import EmailReason, deliver, send_test_email
from website.models import AdminNotification, ContactMessage, Form, FormSubmission, Project, SiteSetting
from website.notifications import (
    FormNotification,
    cleanup_expired_notifications,
    dismiss_all_notifications,
    form_rows,
    send_contact_notification_email,
    send_form_notification_email,
)
from website.organization import DEFAULT_ORGANIZATION, get_organization_config
from website.settings_store import (
    DatabaseSettings,
    StaticSettings,
    notification_email,
    notifications_enabled,
)


class BrokenSettings:
    def get(self, key):
        raise RuntimeError('settings table unavailable')


def resend_response(status=200, body=None):
    response = mock.Mock(status_code=status)
    response.json.return_value = body if body is not None else {'id': 'em_123'}
    return response


class ProjectModelTests(TestCase):
    def test_slug_auto_generation_and_uniqueness(self):
        p1 = Project.objects.create(title='Clean Water')
        p2 = Project.objects.create(title='Clean Water')
        self.assertEqual(p1.slug, 'clean-water')
        self.assertNotEqual(p1.slug, p2.slug)

    def test_localized_title_falls_back_to_english(self):
        project = Project.objects.create(title='Clean Water', title_ms='Air Bersih')
        self.assertEqual(project.localized_title('ms'), 'Air Bersih')
        self.assertEqual(project.localized_title('en'), 'Clean Water')
        project.title_ms = ''
        self.assertEqual(project.localized_title('ms'), 'Clean Water')


class SettingsStoreTests(TestCase):
    def test_database_settings_round_trip(self):
        store = DatabaseSettings()
        self.assertIsNone(store.get('notificationEmail'))
        store.set('notificationEmail', 'admin@example.org')
        store.set('notificationEmail', 'ops@example.org')
        self.assertEqual(store.get('notificationEmail'), 'ops@example.org')
        self.assertEqual(SiteSetting.objects.filter(key='notificationEmail').count(), 1)

    def test_notifications_enabled_unless_explicitly_false(self):
        self.assertTrue(notifications_enabled(StaticSettings()))
        self.assertTrue(notifications_enabled(StaticSettings({'emailNotificationsEnabled': True})))
        self.assertTrue(notifications_enabled(StaticSettings({'emailNotificationsEnabled': 'false'})))
        self.assertFalse(notifications_enabled(StaticSettings({'emailNotificationsEnabled': False})))

    def test_notification_email_requires_non_empty_string(self):
        self.assertIsNone(notification_email(StaticSettings()))
        self.assertIsNone(notification_email(StaticSettings({'notificationEmail': '   '})))
        self.assertIsNone(notification_email(StaticSettings({'notificationEmail': 42})))
        self.assertEqual(
            notification_email(StaticSettings({'notificationEmail': ' admin@example.org '})),
            'admin@example.org',
        )

    def test_store_failure_is_not_raised(self):
        self.assertTrue(notifications_enabled(BrokenSettings()))
        self.assertIsNone(notification_email(BrokenSettings()))


class OrganizationConfigTests(TestCase):
    def test_defaults_when_nothing_configured(self):
        self.assertEqual(get_organization_config(StaticSettings()), DEFAULT_ORGANIZATION)

    def test_organization_config_overrides_legacy_keys(self):
        store = StaticSettings({
            'organizationConfig': {'name': 'Yayasan Test', 'taxExemptionRef': 'LHDN.01/35/42/51/179-6.7', 'address': 'Line 1\nLine 2'},
            'siteName': 'Legacy Name',
            'contactEmail': 'legacy@example.org',
        })
        config = get_organization_config(store)
        self.assertEqual(config.name, 'Yayasan Test')
        self.assertEqual(config.email, 'legacy@example.org')
        self.assertEqual(config.tax_exemption_ref, 'LHDN.01/35/42/51/179-6.7')
        self.assertEqual(config.address, ['Line 1', 'Line 2'])
        self.assertEqual(config.registration_number, DEFAULT_ORGANIZATION.registration_number)

    def test_store_failure_returns_defaults(self):
        with self.assertLogs('website.organization', level='ERROR'):
            config = get_organization_config(BrokenSettings())
        self.assertEqual(config, DEFAULT_ORGANIZATION)

    def test_website_url_adds_scheme(self):
        self.assertEqual(DEFAULT_ORGANIZATION.website_url, 'https://www.insanprihatin.org')


@override_settings(RESEND_API_KEY='re_test', EMAIL_FROM='YIP <noreply@insanprihatin.org>')
class MailerTests(TestCase):
    @mock.patch('website.mailer.requests.post')
    def test_deliver_success_returns_message_id(self, mock_post):
        mock_post.return_value = resend_response(200, {'id': 'em_abc'})
        result = deliver('donor@example.org', 'Hello', '<p>Hi</p>', reply_to='me@example.org')
        self.assertTrue(result.success)
        self.assertEqual(result.message_id, 'em_abc')
        kwargs = mock_post.call_args.kwargs
        self.assertEqual(kwargs['json']['to'], ['donor@example.org'])
        self.assertEqual(kwargs['json']['reply_to'], 'me@example.org')
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer re_test')
        self.assertIn('timeout', kwargs)

    @mock.patch('website.mailer.requests.post')
    def test_provider_error_message_is_returned(self, mock_post):
        mock_post.return_value = resend_response(422, {'message': 'Invalid `to` field', 'name': 'validation_error'})
        result = deliver('bad', 'Hello', '<p>Hi</p>')
        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Invalid `to` field')
        self.assertIsNone(result.reason)

    @mock.patch('website.mailer.requests.post', side_effect=requests.ConnectionError('connection refused'))
    def test_transport_error_does_not_raise(self, mock_post):
        result = deliver('donor@example.org', 'Hello', '<p>Hi</p>')
        self.assertFalse(result.success)
        self.assertIn('connection refused', result.error)

    @mock.patch('website.mailer.requests.post')
    def test_send_test_email(self, mock_post):
        mock_post.return_value = resend_response(200, {'id': 'em_test'})
        result = send_test_email(' admin@example.org ')
        self.assertEqual(result.message_id, 'em_test')
        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['to'], ['admin@example.org'])
        self.assertEqual(payload['subject'], 'Test Email from Yayasan Insan Prihatin')
        self.assertIn('email configuration is working', payload['html'])

    @override_settings(RESEND_API_KEY='')
    @mock.patch('website.mailer.requests.post')
    def test_send_test_email_without_key(self, mock_post):
        result = send_test_email('admin@example.org')
        self.assertEqual(result.reason, EmailReason.NO_API_KEY)
        mock_post.assert_not_called()


class NotificationEmailTests(TestCase):
    def setUp(self):
        self.contact = ContactMessage.objects.create(
            name='Aminah <b>Binti</b>',
            email='aminah@example.org',
            subject='volunteer',
            message='I would like to help at the next food drive.',
        )

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_no_recipient_skips_without_network(self, mock_post):
        result = send_contact_notification_email(self.contact, store=StaticSettings())
        self.assertFalse(result.success)
        self.assertEqual(result.reason, EmailReason.NO_RECIPIENT)
        mock_post.assert_not_called()

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_disabled_wins_over_recipient(self, mock_post):
        store = StaticSettings({'emailNotificationsEnabled': False, 'notificationEmail': 'admin@example.org'})
        result = send_contact_notification_email(self.contact, store=store)
        self.assertEqual(result.reason, EmailReason.DISABLED)
        mock_post.assert_not_called()

    @override_settings(RESEND_API_KEY='')
    @mock.patch('website.mailer.requests.post')
    def test_missing_api_key(self, mock_post):
        store = StaticSettings({'notificationEmail': 'admin@example.org'})
        result = send_contact_notification_email(self.contact, store=store)
        self.assertEqual(result.reason, EmailReason.NO_API_KEY)
        self.assertEqual(result.as_dict(), {'success': False, 'reason': 'no_api_key'})
        mock_post.assert_not_called()

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_contact_email_is_escaped_and_replies_to_sender(self, mock_post):
        mock_post.return_value = resend_response()
        store = StaticSettings({'notificationEmail': 'admin@example.org'})
        result = send_contact_notification_email(self.contact, store=store)
        self.assertTrue(result.success)
        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['to'], ['admin@example.org'])
        self.assertEqual(payload['reply_to'], 'aminah@example.org')
        self.assertEqual(payload['subject'], 'New Contact Form Submission: Volunteering')
        self.assertIn('Aminah &lt;b&gt;Binti&lt;/b&gt;', payload['html'])
        self.assertNotIn('<b>Binti</b>', payload['html'])

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_form_override_recipient(self, mock_post):
        mock_post.return_value = resend_response()
        notification = FormNotification(
            form_title='Volunteer Sign-up',
            fields=[{'id': 'name', 'type': 'text', 'label': 'Name'}],
            data={'name': 'Hafiz'},
            notification_email='volunteers@example.org',
        )
        result = send_form_notification_email(notification, store=StaticSettings())
        self.assertTrue(result.success)
        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['to'], ['volunteers@example.org'])
        self.assertEqual(payload['subject'], 'New Form Submission: Volunteer Sign-up')

    def test_form_rows_join_checkbox_options(self):
        notification = FormNotification(
            form_title='Survey',
            fields=[
                {'id': 'days', 'type': 'checkbox', 'label': 'Days', 'options': ['Mon', 'Tue', 'Wed']},
                {'id': 'none', 'type': 'checkbox', 'label': 'Extras', 'options': ['A']},
                {'id': 'note', 'type': 'textarea', 'label': 'Note'},
            ],
            data={'days_0': True, 'days_2': True, 'note': ''},
        )
        self.assertEqual(form_rows(notification), [
            ('Days', 'Mon, Wed'),
            ('Extras', 'None selected'),
            ('Note', '-'),
        ])


@override_settings(RESEND_API_KEY='')
class ContactApiTests(TestCase):
    def test_contact_submission_creates_message_and_notification(self):
        client = Client()
        resp = client.post(reverse('website:contact'), {
            'name': 'Alice Tan',
            'email': 'alice@example.com',
            'phone': '+60123456789',
            'subject': 'donation',
            'message': 'How do I get a receipt for my donation?',
        }, content_type='application/json')
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['email']['reason'], 'no_recipient')
        self.assertTrue(ContactMessage.objects.filter(email='alice@example.com').exists())
        notification = AdminNotification.objects.get()
        self.assertEqual(notification.type, AdminNotification.Type.CONTACT_MESSAGE)

    def test_invalid_contact_returns_errors(self):
        resp = Client().post(reverse('website:contact'), {
            'name': 'A', 'email': 'not-an-email', 'message': 'short',
        }, content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('email', resp.json()['errors'])
        self.assertFalse(ContactMessage.objects.exists())

    def test_malformed_json(self):
        resp = Client().post(reverse('website:contact'), '{not json', content_type='application/json')
        self.assertEqual(resp.status_code, 400)


@override_settings(RESEND_API_KEY='')
class FormSubmitTests(TestCase):
    def setUp(self):
        self.form = Form.objects.create(
            name='volunteer',
            title='Volunteer Sign-up',
            fields=[
                {'id': 'name', 'type': 'text', 'label': 'Name', 'required': True},
                {'id': 'days', 'type': 'checkbox', 'label': 'Days', 'options': ['Sat', 'Sun'], 'required': True},
            ],
        )

    def test_submission_is_stored_and_notified(self):
        resp = Client().post(reverse('website:form_submit', args=['volunteer']), {
            'data': {'name': 'Hafiz', 'days_1': True},
            'sourceUrl': 'https://insanprihatin.org/projects/food-bank',
            'sourceContentTitle': 'Food Bank',
        }, content_type='application/json')
        self.assertEqual(resp.status_code, 201)
        submission = FormSubmission.objects.get()
        self.assertEqual(submission.data['name'], 'Hafiz')
        self.assertEqual(submission.source_content_title, 'Food Bank')
        self.assertEqual(resp.json()['email']['reason'], 'no_recipient')
        self.assertTrue(AdminNotification.objects.filter(type=AdminNotification.Type.FORM_SUBMISSION).exists())

    def test_missing_required_fields(self):
        resp = Client().post(reverse('website:form_submit', args=['volunteer']),
                             {'data': {'name': ''}}, content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['fields'], ['Name', 'Days'])

    def test_source_url_must_be_http(self):
        url = reverse('website:form_submit', args=['volunteer'])
        for source_url in ('javascript:alert(1)', 'data:text/html,hi', 'not a url'):
            resp = Client().post(url, {
                'data': {'name': 'Hafiz', 'days_0': True},
                'sourceUrl': source_url,
            }, content_type='application/json')
            self.assertEqual(resp.status_code, 201)
            self.assertEqual(FormSubmission.objects.get(pk=resp.json()['id']).source_url, '')

    def test_inactive_form_is_not_found(self):
        self.form.is_active = False
        self.form.save()
        resp = Client().post(reverse('website:form_submit', args=['volunteer']),
                             {'data': {}}, content_type='application/json')
        self.assertEqual(resp.status_code, 404)


class StaffClientMixin:
    def setUp(self):
        super().setUp()
        self.staff = get_user_model().objects.create_user('staff', password='pw', is_staff=True)
        self.client = Client()
        self.client.force_login(self.staff)


class NotificationFeedTests(StaffClientMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.first = AdminNotification.objects.create(type='system', title='One', message='first')
        self.second = AdminNotification.objects.create(type='system', title='Two', message='second')
        AdminNotification.objects.create(
            type='system', title='Old', message='expired',
            expires_at=timezone.now() - timezone.timedelta(days=1),
        )

    def test_requires_staff(self):
        resp = Client().get(reverse('website:notifications'))
        self.assertEqual(resp.status_code, 302)

    def test_list_excludes_expired(self):
        body = self.client.get(reverse('website:notifications')).json()
        self.assertEqual([n['title'] for n in body['notifications']], ['Two', 'One'])
        self.assertEqual(body['unreadCount'], 2)

    def test_mark_read_and_count(self):
        resp = self.client.post(reverse('website:notification_read', args=[self.first.pk]))
        self.assertEqual(resp.status_code, 200)
        self.first.refresh_from_db()
        self.assertTrue(self.first.is_read)
        self.assertIsNotNone(self.first.read_at)
        count = self.client.get(reverse('website:notifications_unread_count')).json()['count']
        self.assertEqual(count, 1)

    def test_read_all_and_dismiss(self):
        self.assertEqual(self.client.post(reverse('website:notifications_read_all')).json()['updated'], 2)
        self.client.post(reverse('website:notification_dismiss', args=[self.second.pk]))
        body = self.client.get(reverse('website:notifications')).json()
        self.assertEqual([n['title'] for n in body['notifications']], ['One'])

    def test_dismiss_all(self):
        resp = self.client.post(reverse('website:notifications_dismiss_all'))
        self.assertEqual(resp.json(), {'success': True, 'dismissed': 3})
        body = self.client.get(reverse('website:notifications')).json()
        self.assertEqual(body['notifications'], [])
        self.assertEqual(dismiss_all_notifications(), 0)

    def test_cleanup_removes_only_expired(self):
        resp = self.client.post(reverse('website:notifications_cleanup'))
        self.assertEqual(resp.json(), {'success': True, 'deleted': 1})
        self.assertEqual(
            sorted(AdminNotification.objects.values_list('title', flat=True)),
            ['One', 'Two'],
        )
        self.assertEqual(cleanup_expired_notifications(), 0)
        self.assertEqual(Client().post(reverse('website:notifications_cleanup')).status_code, 302)


class TestEmailViewTests(StaffClientMixin, TestCase):
    def post(self, data):
        return self.client.post(reverse('website:test_email'), data, content_type='application/json')

    def test_requires_staff(self):
        self.assertEqual(Client().post(reverse('website:test_email')).status_code, 302)

    def test_address_is_validated(self):
        self.assertEqual(self.post({}).status_code, 400)
        self.assertEqual(self.post({'email': 'not-an-address'}).status_code, 400)

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_sends(self, mock_post):
        mock_post.return_value = resend_response(200, {'id': 'em_test'})
        resp = self.post({'email': 'admin@example.org'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {
            'success': True,
            'message': 'Test email sent successfully',
            'messageId': 'em_test',
        })

    @override_settings(RESEND_API_KEY='re_test')
    @mock.patch('website.mailer.requests.post')
    def test_provider_failure(self, mock_post):
        mock_post.return_value = resend_response(403, {'message': 'Domain not verified'})
        resp = self.post({'email': 'admin@example.org'})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()['error'], 'Domain not verified')

    @override_settings(RESEND_API_KEY='')
    def test_missing_api_key(self):
        resp = self.post({'email': 'admin@example.org'})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()['reason'], 'no_api_key')


class SettingsViewTests(StaffClientMixin, TestCase):
    def test_organization_settings_round_trip(self):
        resp = self.client.post(reverse('website:organization_settings'), {
            'name': 'Yayasan Insan Prihatin',
            'registrationNumber': 'PPAB-23/2025',
            'taxExemptionRef': 'LHDN.01/35/42/51/179-6.7',
            'address': ['D-G-05 Jalan PKAK 2', '75450 Ayer Keroh'],
            'email': 'info@insanprihatin.org',
        }, content_type='application/json')
        self.assertEqual(resp.status_code, 200)
        config = get_organization_config()
        self.assertEqual(config.tax_exemption_ref, 'LHDN.01/35/42/51/179-6.7')
        self.assertEqual(config.address, ['D-G-05 Jalan PKAK 2', '75450 Ayer Keroh'])
        self.assertEqual(self.client.get(reverse('website:organization_settings')).json()['registrationNumber'], 'PPAB-23/2025')

    def test_organization_settings_validation(self):
        resp = self.client.post(reverse('website:organization_settings'), {'name': ''}, content_type='application/json')
        self.assertEqual(resp.status_code, 400)

    def test_notification_settings(self):
        resp = self.client.post(reverse('website:notification_settings'), {
            'notificationEmail': 'admin@example.org',
            'emailNotificationsEnabled': False,
        }, content_type='application/json')
        self.assertEqual(resp.json(), {'notificationEmail': 'admin@example.org', 'emailNotificationsEnabled': False})
        store = DatabaseSettings()
        self.assertIs(store.get('emailNotificationsEnabled'), False)


__all__ = [
    'ProjectModelTests',
    'SettingsStoreTests',
    'OrganizationConfigTests',
    'MailerTests',
    'NotificationEmailTests',
    'ContactApiTests',
    'FormSubmitTests',
    'NotificationFeedTests',
    'SettingsViewTests',
    'TestEmailViewTests',
]
