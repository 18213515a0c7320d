# marketplace/views/ngo_views.py
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from ..decorators import user_type_required
from ..exceptions import DonationError
from ..forms import DisasterReportForm
from ..services.alerts import active_disasters, report_disaster, resolve_disaster
from ..services.directory import nearby_ngos
from .helpers import parse_body, error_response, form_error_response, float_param, int_param


def _serialize_report(report):
    return {
        'id': report.pk,
        'ngo': {'id': report.ngo_id, 'name': report.ngo.name},
        'title': report.title,
        'description': report.description,
        'location': report.location,
        'estimated_people': report.estimated_people,
        'urgency': report.urgency,
        'contact_number': report.contact_number,
        'status': report.status,
        'created_at': report.created_at.isoformat(),
    }


@user_type_required('RESTAURANT')
@require_http_methods(['GET'])
def ngo_directory(request):
    try:
        radius = float_param(request.GET, 'radius')
        limit = int_param(request.GET, 'limit', minimum=1)
    except DonationError as e:
        return error_response(e)

    results = nearby_ngos(request.user, radius_km=radius, limit=limit)
    return JsonResponse({
        'success': True,
        'ngos': [
            {
                'id': entry.ngo.pk,
                'name': entry.ngo.name,
                'address': entry.ngo.address,
                'contact_number': entry.ngo.contact_number,
                'distance_km': round(entry.distance_km, 2) if entry.distance_km is not None else None,
            }
            for entry in results
        ],
    })


@user_type_required('RESTAURANT', 'NGO', 'ADMIN')
@require_http_methods(['GET', 'POST'])
def disasters(request):
    if request.method == 'GET':
        return JsonResponse({
            'success': True,
            'disasters': [_serialize_report(report) for report in active_disasters()],
        })

    if not request.user.is_ngo:
        return JsonResponse({'success': False, 'message': 'Unauthorized request.'}, status=403)
    try:
        form = DisasterReportForm(parse_body(request))
        if not form.is_valid():
            return form_error_response(form)
        report = report_disaster(request.user, **form.cleaned_data)
    except DonationError as e:
        return error_response(e)

    return JsonResponse(
        {'success': True, 'message': 'Disaster reported. Restaurants have been alerted.',
         'disaster': _serialize_report(report)},
        status=201,
    )


@user_type_required('NGO')
@require_POST
def resolve_disaster_report(request, report_id):
    try:
        report = resolve_disaster(report_id, request.user)
    except DonationError as e:
        return error_response(e)
    return JsonResponse({'success': True, 'message': 'Disaster marked as resolved.', 'disaster': _serialize_report(report)})
