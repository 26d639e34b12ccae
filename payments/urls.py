from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('api/donations/', views.create_donation, name='create'),
    path('api/donations/webhook/', views.webhook, name='webhook'),
    path('api/donations/mark-expired/', views.mark_expired, name='mark_expired'),
    path('api/donations/receipt/<str:reference>/', views.receipt_download, name='receipt'),
    path('api/donations/receipt/<str:reference>/resend/', views.receipt_resend, name='receipt_resend'),
]
