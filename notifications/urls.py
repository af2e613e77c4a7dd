from django.urls import path
from .views import (
    AnalyticsView, FeedEntryView, FeedView, MarkAllReadView, MarkReadView, NotificationAnalyticsView,
    NotificationCancelView, NotificationDetailView, NotificationListCreateView, NotificationSendView,
    NotificationTemplateDetailView, NotificationTemplateListCreateView, NotificationTriggerDetailView,
    NotificationTriggerListCreateView, TemplatePreviewView, UnreadCountView,
)

app_name = 'notifications'

urlpatterns = [
    # Admin
    path('admin/notifications/', NotificationListCreateView.as_view(), name='admin-notification-list'),
    path('admin/notifications/<uuid:pk>/', NotificationDetailView.as_view(), name='admin-notification-detail'),
    path('admin/notifications/<uuid:pk>/send/', NotificationSendView.as_view(), name='admin-notification-send'),
    path('admin/notifications/<uuid:pk>/resend/', NotificationSendView.as_view(resend=True), name='admin-notification-resend'),
    path('admin/notifications/<uuid:pk>/cancel/', NotificationCancelView.as_view(), name='admin-notification-cancel'),
    path('admin/notifications/<uuid:pk>/analytics/', NotificationAnalyticsView.as_view(), name='admin-notification-analytics'),
    path('admin/templates/', NotificationTemplateListCreateView.as_view(), name='admin-template-list'),
    path('admin/templates/preview/', TemplatePreviewView.as_view(), name='admin-template-preview'),
    path('admin/templates/<uuid:pk>/', NotificationTemplateDetailView.as_view(), name='admin-template-detail'),
    path('admin/triggers/', NotificationTriggerListCreateView.as_view(), name='admin-trigger-list'),
    path('admin/triggers/<uuid:pk>/', NotificationTriggerDetailView.as_view(), name='admin-trigger-detail'),
    path('admin/analytics/', AnalyticsView.as_view(), name='admin-analytics'),

    # Recipient feed
    path('notifications/', FeedView.as_view(), name='feed'),
    path('notifications/unread-count/', UnreadCountView.as_view(), name='unread-count'),
    path('notifications/read-all/', MarkAllReadView.as_view(), name='read-all'),
    path('notifications/<uuid:pk>/', FeedEntryView.as_view(), name='feed-entry'),
    path('notifications/<uuid:pk>/read/', MarkReadView.as_view(), name='mark-read'),
]
