# marketplace/urls.py
from django.urls import path
from . import views

urlpatterns = [
    # --- Donations ---
    path('api/donations/', views.donations, name='donations'),
    path('api/donations/<int:donation_id>/', views.donation_detail, name='donation_detail'),
    path('api/donations/<int:donation_id>/accept/', views.accept_donation, name='accept_donation'),
    path('api/donations/<int:donation_id>/reject/', views.reject_donation, name='reject_donation'),
    path('api/donations/<int:donation_id>/verify/', views.verify_donation, name='verify_donation'),

    # --- Stats & Leaderboards ---
    path('api/stats/me/', views.my_stats, name='my_stats'),
    path('api/leaderboard/<str:category>/', views.leaderboard, name='leaderboard'),
    path('api/analytics/ngo/', views.ngo_analytics, name='ngo_analytics'),
    path('api/analytics/platform/', views.platform_analytics, name='platform_analytics'),

    # --- Notifications ---
    path('api/notifications/', views.notifications, name='notifications'),
    path('api/notifications/read-all/', views.notifications_read_all, name='notifications_read_all'),
    path('api/notifications/<int:notification_id>/read/', views.notification_read, name='notification_read'),

    # --- NGO Directory & Disaster Alerts ---
    path('api/ngos/', views.ngo_directory, name='ngo_directory'),
    path('api/disasters/', views.disasters, name='disasters'),
    path('api/disasters/<int:report_id>/resolve/', views.resolve_disaster_report, name='resolve_disaster'),
]
