# marketplace/services/directory.py
"""
NGO directory used when a restaurant picks who to donate to.

Distances are straight-line geodesic kilometres between stored coordinates;
no address lookup is done.
"""

from collections import namedtuple

from geopy.distance import geodesic

from ..models import User

NearbyNGO = namedtuple('NearbyNGO', ['ngo', 'distance_km'])


def distance_km(origin, target):
    """Geodesic distance between two users, or None if either has no coordinates."""
    if not (origin.has_location and target.has_location):
        return None
    return geodesic((origin.latitude, origin.longitude), (target.latitude, target.longitude)).km


def nearby_ngos(restaurant, radius_km=None, limit=None):
    """
    NGOs ordered by distance from ``restaurant``, nearest first.

    NGOs without coordinates (or when the restaurant has none) are listed
    after the located ones, by name. ``radius_km`` drops located NGOs farther
    away than the radius, along with every unlocated NGO.
    """
    located, unlocated = [], []
    for ngo in User.objects.filter(user_type=User.UserType.NGO, is_active=True):
        distance = distance_km(restaurant, ngo)
        if distance is None:
            unlocated.append(NearbyNGO(ngo, None))
        elif radius_km is None or distance <= radius_km:
            located.append(NearbyNGO(ngo, distance))

    located.sort(key=lambda entry: entry.distance_km)
    unlocated.sort(key=lambda entry: entry.ngo.name.lower())
    results = located if radius_km is not None else located + unlocated
    if limit is not None:
        results = results[:limit]
    return results
