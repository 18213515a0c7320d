# marketplace/utils/ranking.py
from collections import namedtuple

from django.db.models.query import QuerySet

RankedEntry = namedtuple('RankedEntry', ['position', 'entry'])


def _points(entry):
    if isinstance(entry, dict):
        return entry.get('total_points', 0) or 0
    return getattr(entry, 'total_points', 0) or 0


class Ranking:
    """
    Leaderboard ordering over already-aggregated stats.

    Entries are sorted by points, highest first. Entries with equal points keep
    the order they were given in. The ordering is recomputed every time the
    ranking is iterated, so a ranking built from a queryset always reflects the
    current rows.
    """

    def __init__(self, entries):
        self._entries = entries

    def _source(self):
        if isinstance(self._entries, QuerySet):
            return self._entries.all()
        return self._entries

    def __iter__(self):
        ordered = sorted(self._source(), key=_points, reverse=True)
        for index, entry in enumerate(ordered, start=1):
            yield RankedEntry(index, entry)


def rank(entries):
    return Ranking(entries)
