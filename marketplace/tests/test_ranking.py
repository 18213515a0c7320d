from django.test import SimpleTestCase

from marketplace.utils.ranking import rank


class RankingTests(SimpleTestCase):
    def test_sorted_by_points_descending(self):
        entries = [{'id': 1, 'total_points': 10}, {'id': 2, 'total_points': 30}, {'id': 3, 'total_points': 20}]
        ranked = list(rank(entries))
        self.assertEqual([r.entry['id'] for r in ranked], [2, 3, 1])
        self.assertEqual([r.position for r in ranked], [1, 2, 3])

    def test_ties_keep_input_order(self):
        entries = [{'id': 5, 'total_points': 10}, {'id': 1, 'total_points': 10}, {'id': 3, 'total_points': 10}]
        self.assertEqual([r.entry['id'] for r in rank(entries)], [5, 1, 3])

    def test_empty_input(self):
        self.assertEqual(list(rank([])), [])

    def test_order_is_recomputed_on_each_iteration(self):
        entries = [{'id': 1, 'total_points': 10}, {'id': 2, 'total_points': 5}]
        ranking = rank(entries)
        self.assertEqual(next(iter(ranking)).entry['id'], 1)
        entries[1]['total_points'] = 50
        self.assertEqual(next(iter(ranking)).entry['id'], 2)
