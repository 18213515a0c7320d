# marketplace/views/notification_views.py
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from ..decorators import user_type_required
from ..models import Notification
from ..services.notifications import list_notifications, mark_all_read, mark_read, unread_count
from .helpers import serialize_notification


@user_type_required('RESTAURANT', 'NGO', 'ADMIN')
@require_GET
def notifications(request):
    unread_only = request.GET.get('unread') in ('1', 'true', 'yes')
    items = list_notifications(request.user, unread_only=unread_only)[:50]
    return JsonResponse({
        'success': True,
        'unread_count': unread_count(request.user),
        'notifications': [serialize_notification(notification) for notification in items],
    })


@user_type_required('RESTAURANT', 'NGO', 'ADMIN')
@require_POST
def notification_read(request, notification_id):
    try:
        notification = mark_read(notification_id, request.user)
    except Notification.DoesNotExist:
        return JsonResponse({'success': False, 'message': 'Notification not found.'}, status=404)
    return JsonResponse({'success': True, 'notification': serialize_notification(notification)})


@user_type_required('RESTAURANT', 'NGO', 'ADMIN')
@require_POST
def notifications_read_all(request):
    updated = mark_all_read(request.user)
    return JsonResponse({'success': True, 'message': f'{updated} notifications marked as read.'})
