# marketplace/views/__init__.py

# Import all views from the separated files
from .donation_views import *
from .stats_views import *
from .notification_views import *
from .ngo_views import *
