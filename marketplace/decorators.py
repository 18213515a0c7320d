# marketplace/decorators.py
from functools import wraps

from django.http import JsonResponse


def user_type_required(*user_types):
    """Allow the view only for signed-in users whose user_type is one of ``user_types``."""
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return JsonResponse({'success': False, 'message': 'Authentication required.'}, status=401)
            if request.user.user_type not in user_types:
                return JsonResponse({'success': False, 'message': 'Unauthorized request.'}, status=403)
            return view_func(request, *args, **kwargs)
        return _wrapped_view
    return decorator
