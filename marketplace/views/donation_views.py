# marketplace/views/donation_views.py
import json

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from ..decorators import user_type_required
from ..exceptions import DonationError, ValidationError
from ..forms import DonationForm, FoodItemForm
from ..models import User
from ..services.lifecycle import Action, create_donation, get_donation, list_donations_for, transition_donation
from .helpers import parse_body, error_response, form_error_response, serialize_donation

ANY_ACTOR = (User.UserType.RESTAURANT, User.UserType.NGO, User.UserType.ADMIN)


def _food_items(data):
    items = data.get('food_items')
    if isinstance(items, str):
        try:
            items = json.loads(items)
        except json.JSONDecodeError:
            raise ValidationError('food_items must be a JSON list.')
    if not isinstance(items, list) or not items:
        raise ValidationError('A donation needs at least one food item.')
    return items


def _create(request):
    if not request.user.is_restaurant:
        return JsonResponse({'success': False, 'message': 'Unauthorized request.'}, status=403)

    data = parse_body(request)
    form = DonationForm(data)
    if not form.is_valid():
        return form_error_response(form)

    items = []
    for index, raw_item in enumerate(_food_items(data), start=1):
        item_form = FoodItemForm(raw_item if isinstance(raw_item, dict) else {})
        if not item_form.is_valid():
            return form_error_response(item_form, message=f'Invalid food item {index}.')
        items.append(item_form.cleaned_data)

    donation = create_donation(
        request.user,
        form.cleaned_data['ngo_id'],
        items,
        form.cleaned_data['declared_value'],
        pickup_address=form.cleaned_data['pickup_address'],
    )
    return JsonResponse(
        {'success': True, 'message': 'Donation request sent to the NGO.',
         'donation': serialize_donation(get_donation(donation.pk), request.user)},
        status=201,
    )


@user_type_required(*ANY_ACTOR)
@require_http_methods(['GET', 'POST'])
def donations(request):
    try:
        if request.method == 'POST':
            return _create(request)
        results = list_donations_for(
            request.user,
            role_filter=request.GET.get('role') or None,
            status=request.GET.get('status') or None,
        )
        return JsonResponse({
            'success': True,
            'donations': [serialize_donation(donation, request.user) for donation in results],
        })
    except DonationError as e:
        return error_response(e)


@user_type_required(*ANY_ACTOR)
@require_http_methods(['GET'])
def donation_detail(request, donation_id):
    try:
        donation = get_donation(donation_id)
    except DonationError as e:
        return error_response(e)

    user = request.user
    if user.user_type != User.UserType.ADMIN and user.pk not in (donation.restaurant_id, donation.ngo_id):
        return JsonResponse({'success': False, 'message': 'Unauthorized request.'}, status=403)
    return JsonResponse({'success': True, 'donation': serialize_donation(donation, user)})


def _transition(request, donation_id, action, message):
    try:
        payload = parse_body(request)
        transition_donation(donation_id, request.user, action, payload=payload)
        donation = get_donation(donation_id)
    except DonationError as e:
        return error_response(e)
    return JsonResponse({'success': True, 'message': message, 'donation': serialize_donation(donation, request.user)})


@user_type_required('NGO')
@require_POST
def accept_donation(request, donation_id):
    return _transition(request, donation_id, Action.ACCEPT, 'Donation accepted. Share the verification code at pickup.')


@user_type_required('NGO')
@require_POST
def reject_donation(request, donation_id):
    return _transition(request, donation_id, Action.REJECT, 'Donation rejected.')


@user_type_required('RESTAURANT')
@require_POST
def verify_donation(request, donation_id):
    return _transition(request, donation_id, Action.VERIFY, 'Donation verified and marked as completed.')
