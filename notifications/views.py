from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.pagination import PageNumberPagination
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.filters import SearchFilter
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from notifications.models import DeliveryRecord, Notification, NotificationTemplate, NotificationTrigger
from notifications.serializers import (
    FeedEntrySerializer, NotificationSerializer, NotificationTemplateSerializer,
    NotificationTriggerSerializer, TemplatePreviewSerializer,
)
from notifications.permissions import IsAdminRole
from notifications.services import notification_service
from notifications.utils.exceptions import (
    DirectoryUnavailableError, NotificationAlreadySentError, NotificationLockedError, ScheduleInPastError,
)
import logging

logger = logging.getLogger('notifications.api')

ERROR_STATUS = {
    ScheduleInPastError: status.HTTP_400_BAD_REQUEST,
    NotificationAlreadySentError: status.HTTP_409_CONFLICT,
    NotificationLockedError: status.HTTP_409_CONFLICT,
    DirectoryUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(exc):
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.warning(f"Request rejected ({code}): {str(exc)}")
    return Response({'error': str(exc)}, status=code)


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


# ======================== Admin: notifications ========================

class NotificationListCreateView(generics.ListCreateAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [IsAdminRole]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter]
    filterset_fields = ['status', 'kind', 'level']
    search_fields = ['title', 'body']
    queryset = Notification.objects.all()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        common = {
            'kind': data.get('kind'),
            'payload': data.get('payload'),
            'level': data.get('level'),
            'action_url': data.get('action_url', ''),
            'action_text': data.get('action_text', ''),
            'image_url': data.get('image_url', ''),
            'scheduled_at': data.get('scheduled_at'),
            'created_by': request.user_id,
            'send_now': data.get('send_now', False),
        }
        try:
            if data.get('template_name'):
                if 'kind' not in request.data:
                    common.pop('kind')
                notification = notification_service.create_from_template(
                    data['template_name'], data.get('values') or {}, data['targeting'], data['channels'], **common
                )
            else:
                notification = notification_service.create_notification(
                    data['title'], data['body'], data['targeting'], data['channels'], **common
                )
        except (ScheduleInPastError, NotificationAlreadySentError, DirectoryUnavailableError, ValueError) as e:
            return error_response(e)

        logger.info(f"Notification {notification.id} created by {request.user_id} ({notification.status})")
        return Response(self.get_serializer(notification).data, status=status.HTTP_201_CREATED)


class NotificationDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [IsAdminRole]
    queryset = Notification.objects.all()

    def update(self, request, *args, **kwargs):
        instance = self.get_object()
        if instance.is_locked:
            return error_response(NotificationLockedError(
                f"Notification {instance.id} is {instance.status} and can no longer be edited"
            ))
        serializer = self.get_serializer(instance, data=request.data, partial=kwargs.pop('partial', False))
        serializer.is_valid(raise_exception=True)
        changes = {
            key: value for key, value in serializer.validated_data.items()
            if key not in ('template_name', 'values', 'send_now')
        }
        try:
            notification = notification_service.update_notification(instance, user_id=request.user_id, **changes)
        except (NotificationLockedError, ScheduleInPastError, NotificationAlreadySentError, ValueError) as e:
            return error_response(e)
        return Response(self.get_serializer(notification).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        try:
            notification_service.delete_notification(instance, user_id=request.user_id)
        except NotificationLockedError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class NotificationSendView(APIView):
    permission_classes = [IsAdminRole]
    resend = False

    def post(self, request, pk):
        notification = get_object_or_404(Notification, pk=pk)
        try:
            queued = notification_service.send_notification(notification, resend=self.resend, user_id=request.user_id)
        except (NotificationAlreadySentError, DirectoryUnavailableError, ValueError) as e:
            return error_response(e)
        notification.refresh_from_db()
        return Response({
            'id': str(notification.id),
            'status': notification.status,
            'queued': len(queued),
        }, status=status.HTTP_202_ACCEPTED)


class NotificationCancelView(APIView):
    permission_classes = [IsAdminRole]

    def post(self, request, pk):
        notification = get_object_or_404(Notification, pk=pk)
        try:
            notification_service.cancel_scheduled(notification, user_id=request.user_id)
        except NotificationLockedError as e:
            return error_response(e)
        return Response(NotificationSerializer(notification).data)


class NotificationAnalyticsView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request, pk):
        notification = get_object_or_404(Notification, pk=pk)
        return Response(notification_service.notification_analytics(notification))


class AnalyticsView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        try:
            period_days = int(request.query_params.get('days', 30))
        except ValueError:
            return Response({'error': 'days must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(notification_service.overall_analytics(period_days))


# ======================== Admin: templates and triggers ========================

class NotificationTemplateListCreateView(generics.ListCreateAPIView):
    serializer_class = NotificationTemplateSerializer
    permission_classes = [IsAdminRole]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, SearchFilter]
    filterset_fields = ['category', 'is_active']
    search_fields = ['name', 'title']

    def get_queryset(self):
        return NotificationTemplate.objects.all().order_by('name')


class NotificationTemplateDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = NotificationTemplateSerializer
    permission_classes = [IsAdminRole]

    def get_queryset(self):
        return NotificationTemplate.objects.all()

    def perform_destroy(self, instance):
        instance.is_deleted = True
        instance.deleted_at = timezone.now()
        instance.save(update_fields=['is_deleted', 'deleted_at'])
        logger.info(f"Template {instance.name} soft deleted by {self.request.user_id}")


class TemplatePreviewView(APIView):
    permission_classes = [IsAdminRole]

    def post(self, request):
        serializer = TemplatePreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(TemplatePreviewSerializer(serializer.validated_data).data)


class NotificationTriggerListCreateView(generics.ListCreateAPIView):
    serializer_class = NotificationTriggerSerializer
    permission_classes = [IsAdminRole]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['event', 'is_active']
    queryset = NotificationTrigger.objects.select_related('template')

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user_id)


class NotificationTriggerDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = NotificationTriggerSerializer
    permission_classes = [IsAdminRole]
    queryset = NotificationTrigger.objects.select_related('template')


# ======================== Recipient feed ========================

class FeedView(APIView):
    """
    The signed-in recipient's notifications.

    Without ``since`` every visible entry is returned; with it, every entry changed
    at or after the cursor, deleted ones included as tombstones.
    """

    def get(self, request):
        since = request.query_params.get('since')
        if since:
            since = parse_datetime(since)
            if since is None:
                return Response({'error': 'since must be an ISO-8601 timestamp'}, status=status.HTTP_400_BAD_REQUEST)
        records, cursor = notification_service.feed_for_recipient(request.user_id, since=since or None)
        return Response({
            'results': FeedEntrySerializer(records, many=True).data,
            'cursor': cursor.isoformat(),
            'unread_count': notification_service.unread_count(request.user_id),
        })


class UnreadCountView(APIView):

    def get(self, request):
        return Response({'unread_count': notification_service.unread_count(request.user_id)})


class FeedEntryView(APIView):

    def delete(self, request, pk):
        try:
            notification_service.hide_for_recipient(pk, request.user_id)
        except DeliveryRecord.DoesNotExist:
            return Response({'error': 'Notification not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)


class MarkReadView(APIView):

    def post(self, request, pk):
        try:
            record = notification_service.mark_read(pk, request.user_id)
        except DeliveryRecord.DoesNotExist:
            return Response({'error': 'Notification not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(FeedEntrySerializer(record).data)


class MarkAllReadView(APIView):

    def post(self, request):
        marked = notification_service.mark_all_read(request.user_id)
        return Response({'marked': marked, 'unread_count': notification_service.unread_count(request.user_id)})
