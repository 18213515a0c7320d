import threading
import unittest
from decimal import Decimal
from functools import partial
from unittest.mock import patch, Mock

from django.db import DatabaseError, connection, connections
from django.test import TestCase, TransactionTestCase, override_settings

from marketplace import signals
from marketplace.exceptions import (
    ValidationError,
    DonationNotFound,
    InvalidStateTransition,
    InvalidVerificationCode,
    VerificationAttemptsExceeded,
    ConcurrencyConflict,
    CollaboratorUnavailable,
)
from marketplace.models import ActorStats, Donation, FoodItem, Notification, StatsCredit
from marketplace.services import lifecycle
from marketplace.services.lifecycle import create_donation, transition_donation, get_donation, list_donations_for
from .factories import make_restaurant, make_ngo, make_admin, RICE

Status = Donation.DonationStatus


class CreateDonationTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant(address='12 MG Road')
        self.ngo = make_ngo()

    def test_creates_pending_donation_with_normalized_weight(self):
        donation = create_donation(self.restaurant, self.ngo.pk, RICE, 500)

        self.assertEqual(donation.status, Status.PENDING)
        self.assertEqual(donation.total_kg, Decimal('2.0000'))
        self.assertEqual(donation.declared_value, Decimal('500'))
        self.assertIsNone(donation.verification_code)
        self.assertEqual(donation.pickup_address, '12 MG Road')
        item = FoodItem.objects.get(donation=donation)
        self.assertEqual((item.name, item.quantity, item.unit), ('Rice', Decimal('2000'), 'g'))

    def test_notifies_the_ngo(self):
        donation = create_donation(self.restaurant, self.ngo.pk, RICE, 500)

        notification = Notification.objects.get(recipient=self.ngo)
        self.assertEqual(notification.kind, Notification.Kind.DONATION_REQUEST)
        self.assertEqual(notification.donation, donation)
        self.assertIn('Rice', notification.message)
        self.assertEqual(notification.payload['total_kg'], '2.0000')
        self.assertFalse(Notification.objects.filter(recipient=self.restaurant).exists())

    def test_does_not_touch_stats(self):
        create_donation(self.restaurant, self.ngo.pk, RICE, 500)
        self.assertFalse(ActorStats.objects.exists())

    def test_only_restaurants_can_donate(self):
        other_ngo = make_ngo('helping_hands')
        with self.assertRaises(InvalidStateTransition):
            create_donation(other_ngo, self.ngo.pk, RICE, 500)

    def test_recipient_must_be_an_ngo(self):
        other_restaurant = make_restaurant('curry_house')
        for recipient_id in (other_restaurant.pk, 999999, 'abc'):
            with self.subTest(recipient_id=recipient_id):
                with self.assertRaises(ValidationError):
                    create_donation(self.restaurant, recipient_id, RICE, 500)
        self.assertFalse(Donation.objects.exists())

    def test_invalid_items_are_rejected(self):
        bad_item_lists = [
            [],
            [{'name': '', 'quantity': 1, 'unit': 'kg'}],
            [{'name': 'Rice', 'quantity': 0, 'unit': 'kg'}],
            [{'name': 'Rice', 'quantity': -2, 'unit': 'kg'}],
            [{'name': 'Rice', 'quantity': 2, 'unit': 'stone'}],
            [{'name': 'Rice', 'unit': 'kg'}],
        ]
        for items in bad_item_lists:
            with self.subTest(items=items):
                with self.assertRaises(ValidationError):
                    create_donation(self.restaurant, self.ngo.pk, items, 500)
        self.assertFalse(Donation.objects.exists())
        self.assertFalse(Notification.objects.exists())

    def test_declared_value_must_be_positive(self):
        for value in (0, -10, None, 'free'):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    create_donation(self.restaurant, self.ngo.pk, RICE, value)

    def test_weights_too_large_to_store_are_rejected(self):
        too_heavy = [
            [{'name': 'Rice', 'quantity': '999999999.999', 'unit': 'kg'}],
            [{'name': 'Rice', 'quantity': '1000000000', 'unit': 'kg'}],
            [{'name': 'Rice', 'quantity': '60000000', 'unit': 'kg'},
             {'name': 'Dal', 'quantity': '60000000', 'unit': 'kg'}],
        ]
        for items in too_heavy:
            with self.subTest(items=items):
                with self.assertRaises(ValidationError):
                    create_donation(self.restaurant, self.ngo.pk, items, 500)
        self.assertFalse(Donation.objects.exists())
        self.assertFalse(Notification.objects.exists())

    def test_heaviest_storable_donation_is_accepted(self):
        donation = create_donation(
            self.restaurant, self.ngo.pk, [{'name': 'Rice', 'quantity': '99999999.999', 'unit': 'kg'}], 500
        )
        self.assertEqual(get_donation(donation.pk).total_kg, Decimal('99999999.999'))

    def test_quantities_with_too_many_decimal_places_are_rejected(self):
        for quantity in ('0.0004', '1.2345'):
            with self.subTest(quantity=quantity):
                with self.assertRaises(ValidationError):
                    create_donation(self.restaurant, self.ngo.pk, [{'name': 'Salt', 'quantity': quantity, 'unit': 'kg'}], 50)
        self.assertFalse(Donation.objects.exists())

    def test_declared_value_must_fit_its_column(self):
        for value in ('10.005', '10000000000'):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    create_donation(self.restaurant, self.ngo.pk, RICE, value)
        self.assertFalse(Donation.objects.exists())

    def test_units_are_normalized_before_storage(self):
        donation = create_donation(
            self.restaurant, self.ngo.pk, [{'name': 'Milk', 'quantity': 2, 'unit': ' Liter '}], 100
        )
        self.assertEqual(donation.food_items.get().unit, 'liter')
        self.assertEqual(donation.total_kg, Decimal('2.0000'))

    def test_created_signal_fires_after_commit(self):
        handler = Mock()
        signals.donation_created.connect(handler, sender=Donation, weak=False)
        self.addCleanup(signals.donation_created.disconnect, handler, sender=Donation)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            donation = create_donation(self.restaurant, self.ngo.pk, RICE, 500)
            handler.assert_not_called()

        self.assertEqual(len(callbacks), 1)
        handler.assert_called_once()
        self.assertEqual(handler.call_args.kwargs['donation'], donation)
        self.assertEqual(handler.call_args.kwargs['actor'], self.restaurant)


class TransitionTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.ngo = make_ngo()
        self.donation = create_donation(self.restaurant, self.ngo.pk, RICE, 500)

    def accept(self, code='4821'):
        with patch('marketplace.services.lifecycle.generate_verification_code', return_value=code):
            return transition_donation(self.donation.pk, self.ngo, 'accept')

    def test_accept_mints_code_and_credits_both_parties(self):
        donation = self.accept()

        self.assertEqual(donation.status, Status.ACCEPTED)
        self.assertEqual(donation.verification_code, '4821')
        self.assertIsNotNone(donation.accepted_at)
        ngo_stats = ActorStats.objects.get(actor=self.ngo)
        self.assertEqual(ngo_stats.total_points, 10)
        self.assertEqual(ngo_stats.total_donations, 1)
        self.assertEqual(ngo_stats.total_kg, Decimal('2.0000'))
        self.assertEqual(ngo_stats.total_value, Decimal('500.00'))
        self.assertEqual(ActorStats.objects.get(actor=self.restaurant).total_points, 10)

    def test_accept_notifies_the_restaurant(self):
        self.accept()
        notification = Notification.objects.get(recipient=self.restaurant)
        self.assertEqual(notification.kind, Notification.Kind.DONATION_ACCEPTED)
        self.assertEqual(notification.donation_id, self.donation.pk)

    def test_real_codes_are_four_digits(self):
        donation = transition_donation(self.donation.pk, self.ngo, 'accept')
        self.assertRegex(donation.verification_code, r'^[1-9]\d{3}$')

    def test_action_is_case_insensitive(self):
        donation = transition_donation(self.donation.pk, self.ngo, 'ACCEPT')
        self.assertEqual(donation.status, Status.ACCEPTED)

    def test_unknown_action(self):
        with self.assertRaises(ValidationError):
            transition_donation(self.donation.pk, self.ngo, 'cancel')

    def test_verify_with_correct_code_completes_without_changing_stats(self):
        self.accept()
        donation = transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '4821'})

        self.assertEqual(donation.status, Status.COMPLETED)
        self.assertIsNotNone(donation.completed_at)
        self.assertEqual(ActorStats.objects.get(actor=self.ngo).total_points, 10)
        self.assertEqual(ActorStats.objects.get(actor=self.restaurant).total_donations, 1)
        completed = Notification.objects.get(recipient=self.ngo, kind=Notification.Kind.DONATION_COMPLETED)
        self.assertEqual(completed.donation_id, self.donation.pk)

    def test_wrong_code_leaves_donation_unchanged(self):
        self.accept()
        with self.assertRaises(InvalidVerificationCode):
            transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '1111'})

        donation = Donation.objects.get(pk=self.donation.pk)
        self.assertEqual(donation.status, Status.ACCEPTED)
        self.assertEqual(donation.verification_code, '4821')
        self.assertEqual(donation.verification_attempts, 1)
        self.assertIsNone(donation.completed_at)
        self.assertFalse(Notification.objects.filter(kind=Notification.Kind.DONATION_COMPLETED).exists())

    def test_unlimited_retries_by_default(self):
        self.accept()
        for _ in range(5):
            with self.assertRaises(InvalidVerificationCode):
                transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '0000'})
        donation = transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '4821'})
        self.assertEqual(donation.status, Status.COMPLETED)

    @override_settings(DONATION_VERIFICATION_MAX_ATTEMPTS=2)
    def test_verification_locks_after_configured_failures(self):
        self.accept()
        for _ in range(2):
            with self.assertRaises(InvalidVerificationCode):
                transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '0000'})

        with self.assertRaises(VerificationAttemptsExceeded):
            transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '4821'})
        self.assertEqual(Donation.objects.get(pk=self.donation.pk).status, Status.ACCEPTED)

    def test_verify_requires_a_code(self):
        self.accept()
        for payload in (None, {}, {'code': ''}):
            with self.subTest(payload=payload):
                with self.assertRaises(ValidationError):
                    transition_donation(self.donation.pk, self.restaurant, 'verify', payload)
        self.assertEqual(Donation.objects.get(pk=self.donation.pk).verification_attempts, 0)

    def test_reject_notifies_once_and_credits_nothing(self):
        donation = transition_donation(self.donation.pk, self.ngo, 'reject')

        self.assertEqual(donation.status, Status.REJECTED)
        self.assertIsNotNone(donation.rejected_at)
        self.assertIsNone(donation.verification_code)
        notifications = Notification.objects.filter(recipient=self.restaurant)
        self.assertEqual(notifications.count(), 1)
        self.assertEqual(notifications.get().kind, Notification.Kind.DONATION_REJECTED)
        self.assertFalse(ActorStats.objects.exists())
        self.assertFalse(StatsCredit.objects.exists())

    def test_only_the_receiving_ngo_can_accept_or_reject(self):
        other_ngo = make_ngo('helping_hands')
        for actor in (other_ngo, self.restaurant):
            for action in ('accept', 'reject'):
                with self.subTest(actor=actor.username, action=action):
                    with self.assertRaises(InvalidStateTransition) as ctx:
                        transition_donation(self.donation.pk, actor, action)
                    self.assertEqual(ctx.exception.prior_state, Status.PENDING)
        self.assertEqual(Donation.objects.get(pk=self.donation.pk).status, Status.PENDING)

    def test_only_the_donating_restaurant_can_verify(self):
        self.accept()
        other_restaurant = make_restaurant('curry_house')
        for actor in (other_restaurant, self.ngo):
            with self.subTest(actor=actor.username):
                with self.assertRaises(InvalidStateTransition):
                    transition_donation(self.donation.pk, actor, 'verify', {'code': '4821'})

    def test_verify_before_accept_is_invalid(self):
        with self.assertRaises(InvalidStateTransition):
            transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '4821'})

    def test_terminal_states_cannot_change(self):
        transition_donation(self.donation.pk, self.ngo, 'reject')
        for action in ('accept', 'reject'):
            with self.subTest(action=action):
                with self.assertRaises(InvalidStateTransition) as ctx:
                    transition_donation(self.donation.pk, self.ngo, action)
                self.assertEqual(ctx.exception.prior_state, Status.REJECTED)
                self.assertEqual(ctx.exception.action, action)

    def test_completed_donation_cannot_be_verified_again(self):
        self.accept()
        transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '4821'})
        with self.assertRaises(InvalidStateTransition):
            transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '4821'})
        with self.assertRaises(InvalidStateTransition):
            transition_donation(self.donation.pk, self.ngo, 'accept')

    def test_accepting_twice_credits_once(self):
        self.accept()
        with self.assertRaises(InvalidStateTransition):
            self.accept()
        self.assertEqual(ActorStats.objects.get(actor=self.ngo).total_points, 10)
        self.assertEqual(StatsCredit.objects.filter(donation=self.donation).count(), 2)

    def test_missing_donation(self):
        with self.assertRaises(DonationNotFound):
            transition_donation(999999, self.ngo, 'accept')

    def test_lost_race_is_retried_against_fresh_state(self):
        stale = Donation.objects.get(pk=self.donation.pk)
        # A competing reject lands between our read and our write.
        Donation.objects.filter(pk=self.donation.pk).update(status=Status.REJECTED)
        real_lock = lifecycle._lock_donation
        reads = []

        def stale_then_fresh(donation_id, actor, action):
            reads.append(action)
            if len(reads) == 1:
                return stale
            return real_lock(donation_id, actor, action)

        with patch.object(lifecycle, '_lock_donation', side_effect=stale_then_fresh):
            with self.assertRaises(InvalidStateTransition) as ctx:
                transition_donation(self.donation.pk, self.ngo, 'accept')

        self.assertEqual(len(reads), 2)
        self.assertEqual(ctx.exception.prior_state, Status.REJECTED)
        self.assertFalse(ActorStats.objects.exists())
        self.assertFalse(Notification.objects.filter(recipient=self.restaurant).exists())

    def test_lost_race_without_retry_reports_conflict(self):
        stale = Donation.objects.get(pk=self.donation.pk)
        Donation.objects.filter(pk=self.donation.pk).update(status=Status.REJECTED)

        with patch.object(lifecycle, '_lock_donation', return_value=stale):
            with self.assertRaises(ConcurrencyConflict) as ctx:
                transition_donation(self.donation.pk, self.ngo, 'accept', retry_on_conflict=False)

        self.assertEqual(ctx.exception.donation_id, self.donation.pk)
        self.assertEqual(Donation.objects.get(pk=self.donation.pk).status, Status.REJECTED)
        self.assertFalse(StatsCredit.objects.exists())

    def test_database_failure_is_reported_as_unavailable(self):
        with patch.object(lifecycle, '_lock_donation', side_effect=DatabaseError('connection lost')):
            with self.assertRaises(CollaboratorUnavailable) as ctx:
                transition_donation(self.donation.pk, self.ngo, 'accept')
        self.assertEqual(ctx.exception.action, 'accept')
        self.assertEqual(Donation.objects.get(pk=self.donation.pk).status, Status.PENDING)

    def test_signals_fire_only_for_committed_transitions(self):
        accepted, completed = Mock(), Mock()
        signals.donation_accepted.connect(accepted, sender=Donation, weak=False)
        signals.donation_completed.connect(completed, sender=Donation, weak=False)
        self.addCleanup(signals.donation_accepted.disconnect, accepted, sender=Donation)
        self.addCleanup(signals.donation_completed.disconnect, completed, sender=Donation)

        with self.captureOnCommitCallbacks(execute=True):
            self.accept()
        accepted.assert_called_once()
        self.assertEqual(accepted.call_args.kwargs['actor'], self.ngo)

        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(InvalidVerificationCode):
                transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '0000'})
        completed.assert_not_called()

        with self.captureOnCommitCallbacks(execute=True):
            transition_donation(self.donation.pk, self.restaurant, 'verify', {'code': '4821'})
        completed.assert_called_once()


class QueryTests(TestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.ngo = make_ngo()
        self.other_ngo = make_ngo('helping_hands')
        self.first = create_donation(self.restaurant, self.ngo.pk, RICE, 500)
        self.second = create_donation(self.restaurant, self.other_ngo.pk, RICE, 200)
        transition_donation(self.second.pk, self.other_ngo, 'reject')

    def test_get_donation(self):
        donation = get_donation(self.first.pk)
        self.assertEqual(donation.restaurant, self.restaurant)
        self.assertEqual(len(donation.food_items.all()), 1)

    def test_get_missing_donation(self):
        with self.assertRaises(DonationNotFound):
            get_donation(999999)

    def test_default_views_by_role(self):
        self.assertEqual(set(list_donations_for(self.restaurant)), {self.first, self.second})
        self.assertEqual(list(list_donations_for(self.ngo)), [self.first])
        self.assertEqual(list(list_donations_for(self.other_ngo)), [self.second])

    def test_explicit_role_filter(self):
        self.assertEqual(list(list_donations_for(self.ngo, role_filter='donor')), [])

    def test_status_filter(self):
        self.assertEqual(list(list_donations_for(self.restaurant, status='rejected')), [self.second])
        with self.assertRaises(ValidationError):
            list_donations_for(self.restaurant, status='LOST')

    def test_unknown_role_filter(self):
        with self.assertRaises(ValidationError):
            list_donations_for(self.restaurant, role_filter='courier')

    def test_admin_sees_everything(self):
        admin = make_admin()
        self.assertEqual(list_donations_for(admin).count(), 2)


@unittest.skipIf(connection.vendor == 'sqlite', 'needs a database with row locking')
class ConcurrentTransitionTests(TransactionTestCase):
    def setUp(self):
        self.restaurant = make_restaurant()
        self.ngo = make_ngo()

    def run_concurrently(self, *targets):
        """Start every target at once; return (results, errors) in completion order."""
        barrier = threading.Barrier(len(targets))
        results, errors = [], []

        def run(target):
            try:
                barrier.wait()
                results.append(target())
            except Exception as e:  # inspected by the caller
                errors.append(e)
            finally:
                connections.close_all()

        threads = [threading.Thread(target=run, args=(target,)) for target in targets]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def test_parallel_accepts_for_one_ngo_credit_exact_totals(self):
        donations = [create_donation(self.restaurant, self.ngo.pk, RICE, 100) for _ in range(6)]

        results, errors = self.run_concurrently(
            *[partial(transition_donation, donation.pk, self.ngo, 'accept') for donation in donations]
        )

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 6)
        self.assertEqual(Donation.objects.filter(status=Status.ACCEPTED).count(), 6)
        for actor in (self.ngo, self.restaurant):
            stats = ActorStats.objects.get(actor=actor)
            self.assertEqual(stats.total_donations, 6)
            self.assertEqual(stats.total_points, 60)
            self.assertEqual(stats.total_kg, Decimal('12'))
            self.assertEqual(stats.total_value, Decimal('600'))
        self.assertEqual(StatsCredit.objects.count(), 12)

    def test_racing_accepts_of_one_donation_succeed_once(self):
        donation = create_donation(self.restaurant, self.ngo.pk, RICE, 100)
        accept = partial(transition_donation, donation.pk, self.ngo, 'accept')

        results, errors = self.run_concurrently(accept, accept)

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], InvalidStateTransition)
        self.assertEqual(Donation.objects.get(pk=donation.pk).status, Status.ACCEPTED)
        self.assertEqual(ActorStats.objects.get(actor=self.ngo).total_points, 10)
        self.assertEqual(StatsCredit.objects.count(), 2)
