"""
Tests for offer eligibility evaluation.
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase

from apps.offers.eligibility import EligibilityContext, EligibilityEvaluator
from apps.offers.errors import OfferErrorKind
from apps.offers.models import Offer
from tests.factories.offer_factories import create_claim, create_offer, create_one_time_offer, create_usage, fixed_now


class EligibilityEvaluatorTests(TestCase):
    """Test EligibilityEvaluator."""

    def setUp(self):
        self.now = fixed_now()
        self.ctx = EligibilityContext(
            now=self.now,
            user_id="user-1",
            device_id="device-1",
            platform="web",
            delivery_type="delivery",
            subtotal=Decimal("50.00"),
        )

    def evaluate(self, offer, **changes):
        ctx = replace(self.ctx, **changes)
        return EligibilityEvaluator.evaluate(Offer.objects.get(pk=offer.pk), ctx)

    def test_valid_offer_is_eligible(self):
        result = self.evaluate(create_offer(now=self.now))
        self.assertTrue(result.eligible)
        self.assertIsNone(result.reason)

    def test_inactive_offer(self):
        result = self.evaluate(create_offer(now=self.now, is_active=False))
        self.assertFalse(result.eligible)
        self.assertEqual(result.reason, OfferErrorKind.EXPIRED_OR_INACTIVE)

    def test_outside_window(self):
        expired = create_offer(start_date=self.now - timedelta(days=10), end_date=self.now - timedelta(seconds=1))
        upcoming = create_offer(start_date=self.now + timedelta(seconds=1), end_date=self.now + timedelta(days=1))
        self.assertEqual(self.evaluate(expired).reason, OfferErrorKind.EXPIRED_OR_INACTIVE)
        self.assertEqual(self.evaluate(upcoming).reason, OfferErrorKind.EXPIRED_OR_INACTIVE)

    def test_window_edges_to_the_microsecond(self):
        offer = create_offer(start_date=self.now - timedelta(days=1), end_date=self.now + timedelta(days=1))
        tick = timedelta(microseconds=1)

        self.assertEqual(self.evaluate(offer, now=offer.end_date + tick).reason, OfferErrorKind.EXPIRED_OR_INACTIVE)
        self.assertEqual(self.evaluate(offer, now=offer.start_date - tick).reason, OfferErrorKind.EXPIRED_OR_INACTIVE)
        self.assertTrue(self.evaluate(offer, now=offer.end_date).eligible)
        self.assertTrue(self.evaluate(offer, now=offer.start_date).eligible)

    def test_window_is_inclusive(self):
        ends_now = create_offer(start_date=self.now - timedelta(days=1), end_date=self.now)
        starts_now = create_offer(start_date=self.now, end_date=self.now + timedelta(days=1))
        self.assertTrue(self.evaluate(ends_now).eligible)
        self.assertTrue(self.evaluate(starts_now).eligible)

    def test_global_limit_reached(self):
        offer = create_offer(now=self.now, usage_limit=3, usage_count=3)
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.USAGE_LIMIT_EXCEEDED)

    def test_user_limit_reached(self):
        offer = create_offer(now=self.now, user_usage_limit=2)
        create_usage(offer, user_id="user-1", order_id="o-1")
        self.assertTrue(self.evaluate(offer).eligible)

        create_usage(offer, user_id="user-1", order_id="o-2")
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.USER_LIMIT_EXCEEDED)
        self.assertTrue(self.evaluate(offer, user_id="user-2").eligible)

    def test_anonymous_user_has_no_prior_usage(self):
        offer = create_offer(now=self.now)
        create_usage(offer, user_id="user-1")
        self.assertTrue(self.evaluate(offer, user_id=None).eligible)

    def test_device_already_claimed(self):
        offer = create_one_time_offer(now=self.now)
        create_claim(offer, device_id="device-1")
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.ALREADY_CLAIMED)
        self.assertTrue(self.evaluate(offer, device_id="device-2").eligible)

    def test_platform_mismatch(self):
        offer = create_offer(now=self.now, platforms=["mobile"])
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.PLATFORM_MISMATCH)
        self.assertTrue(self.evaluate(offer, platform="mobile").eligible)

    def test_platform_all_matches_everything(self):
        offer = create_offer(now=self.now, platforms=["all"])
        self.assertTrue(self.evaluate(offer, platform="mobile").eligible)
        self.assertTrue(self.evaluate(offer, platform="web").eligible)

    def test_delivery_type_mismatch(self):
        offer = create_offer(now=self.now, delivery_types=["pickup"])
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.DELIVERY_TYPE_MISMATCH)
        self.assertTrue(self.evaluate(offer, delivery_type="pickup").eligible)

    def test_empty_delivery_types_unrestricted(self):
        offer = create_offer(now=self.now, delivery_types=[])
        self.assertTrue(self.evaluate(offer, delivery_type="pickup").eligible)

    def test_min_order_not_met(self):
        offer = create_offer(now=self.now, min_order_amount=Decimal("60.00"))
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.MIN_ORDER_NOT_MET)
        self.assertTrue(self.evaluate(offer, subtotal=Decimal("60.00")).eligible)

    def test_first_failing_check_is_reported(self):
        offer = create_one_time_offer(
            now=self.now,
            is_active=False,
            platforms=["mobile"],
            min_order_amount=Decimal("999"),
        )
        create_claim(offer, device_id="device-1")
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.EXPIRED_OR_INACTIVE)

        offer.is_active = True
        offer.save()
        self.assertEqual(self.evaluate(offer).reason, OfferErrorKind.ALREADY_CLAIMED)

    def test_evaluation_never_writes(self):
        offer = create_one_time_offer(now=self.now, usage_limit=5)
        self.evaluate(offer)
        offer.refresh_from_db()
        self.assertEqual(offer.usage_count, 0)
        self.assertFalse(offer.claims.exists())

    def test_filter_eligible_preserves_order(self):
        first = create_offer(now=self.now, title="First")
        create_offer(now=self.now, title="Skipped", platforms=["mobile"])
        last = create_offer(now=self.now, title="Last")
        offers = list(Offer.objects.filter(pk__in=[first.pk, last.pk]).order_by("title"))
        offers.insert(1, Offer.objects.get(title="Skipped"))

        eligible = EligibilityEvaluator.filter_eligible(offers, self.ctx)

        self.assertEqual([o.title for o in eligible], ["First", "Last"])
