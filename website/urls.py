from django.urls import path
from . import views

app_name = 'website'

urlpatterns = [
    path('api/contact/', views.contact, name='contact'),
    path('api/forms/<slug:slug>/submit/', views.form_submit, name='form_submit'),
    # Dashboard feed, polled by the staff UI
    path('api/notifications/', views.notifications_list, name='notifications'),
    path('api/notifications/unread-count/', views.notifications_unread_count, name='notifications_unread_count'),
    path('api/notifications/read-all/', views.notifications_read_all, name='notifications_read_all'),
    path('api/notifications/dismiss-all/', views.notifications_dismiss_all, name='notifications_dismiss_all'),
    path('api/notifications/cleanup/', views.notifications_cleanup, name='notifications_cleanup'),
    path('api/notifications/<int:pk>/read/', views.notification_read, name='notification_read'),
    path('api/notifications/<int:pk>/dismiss/', views.notification_dismiss, name='notification_dismiss'),
    path('api/settings/organization/', views.organization_settings, name='organization_settings'),
    path('api/settings/notifications/', views.notification_settings, name='notification_settings'),
    path('api/settings/test-email/', views.settings_test_email, name='test_email'),
]
