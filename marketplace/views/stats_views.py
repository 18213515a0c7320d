# marketplace/views/stats_views.py
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from ..decorators import user_type_required
from ..exceptions import DonationError
from ..services.analytics import ngo_overview, platform_overview
from ..services.stats import get_actor_stats, list_top_actors
from ..utils.ranking import rank
from .helpers import error_response, int_param, serialize_donation, serialize_stats


@user_type_required('RESTAURANT', 'NGO')
@require_GET
def my_stats(request):
    stats = get_actor_stats(request.user)
    return JsonResponse({'success': True, 'stats': serialize_stats(stats)})


@user_type_required('RESTAURANT', 'NGO', 'ADMIN')
@require_GET
def leaderboard(request, category):
    try:
        limit = int_param(request.GET, 'limit', minimum=1)
        entries = list_top_actors(category, limit=limit)
    except DonationError as e:
        return error_response(e)

    return JsonResponse({
        'success': True,
        'category': category,
        'leaderboard': [
            dict(serialize_stats(ranked.entry), position=ranked.position) for ranked in rank(entries)
        ],
    })


@user_type_required('NGO')
@require_GET
def ngo_analytics(request):
    try:
        months = int_param(request.GET, 'months', default=6, minimum=1)
        overview = ngo_overview(request.user, months=months)
    except DonationError as e:
        return error_response(e)
    return JsonResponse({'success': True, 'analytics': overview})


@user_type_required('ADMIN')
@require_GET
def platform_analytics(request):
    try:
        months = int_param(request.GET, 'months', default=6, minimum=1)
        overview = platform_overview(months=months)
    except DonationError as e:
        return error_response(e)
    overview['recent_donations'] = [
        serialize_donation(donation, request.user) for donation in overview['recent_donations']
    ]
    return JsonResponse({'success': True, 'analytics': overview})
