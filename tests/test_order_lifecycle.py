"""
Tests for placing, accepting and completing orders.

Covers the accept cascade (competing orders cancelled, pending offers
rejected) and checks that a failure part way through leaves every row as
it was.
"""

from unittest.mock import patch

from django.test import TestCase

from core.exceptions import ForbiddenError, InvalidOperationError, NotFoundError
from core.models import Listing, Offer, Order
from core.repositories import Repository
from core.services import MarketplaceService

from factories import MarketplaceFixtureMixin, make_listing, make_offer, make_order, principal_for


class OrderCreationTests(MarketplaceFixtureMixin, TestCase):
    """Test MarketplaceService.create_order."""

    def setUp(self):
        self.create_marketplace()
        self.service = MarketplaceService()

    def test_buyer_places_pending_order(self):
        order = self.service.create_order(principal_for(self.buyer), self.listing.id)

        self.assertEqual(order.status, Order.PENDING)
        self.assertEqual(order.buyer_id, self.buyer.id)
        self.assertTrue(Order.objects.filter(pk=order.pk).exists())

    def test_order_on_own_listing_is_rejected(self):
        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_order(principal_for(self.seller), self.listing.id)

        self.assertEqual(ctx.exception.code, 'own_listing')

    def test_order_on_sold_listing_is_rejected(self):
        self.listing.is_sold = True
        self.listing.save()

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_order(principal_for(self.buyer), self.listing.id)

        self.assertEqual(ctx.exception.code, 'listing_sold')

    def test_order_on_missing_listing_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.service.create_order(principal_for(self.buyer), 9999)


class OrderFromOfferTests(MarketplaceFixtureMixin, TestCase):
    """Test converting an accepted offer into an order."""

    def setUp(self):
        self.create_marketplace()
        self.service = MarketplaceService()
        self.offer = make_offer(self.listing, self.buyer, status=Offer.ACCEPTED)

    def test_accepted_offer_becomes_pending_order(self):
        order = self.service.create_order_from_offer(principal_for(self.buyer), self.offer.id)

        self.assertEqual(order.status, Order.PENDING)
        self.assertEqual(order.listing_id, self.listing.id)
        self.assertEqual(order.buyer_id, self.buyer.id)

    def test_missing_offer_is_not_found(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.service.create_order_from_offer(principal_for(self.buyer), 9999)

        self.assertEqual(ctx.exception.code, 'offer_not_found')

    def test_other_buyer_cannot_convert(self):
        with self.assertRaises(ForbiddenError) as ctx:
            self.service.create_order_from_offer(principal_for(self.other_buyer), self.offer.id)

        self.assertEqual(ctx.exception.code, 'not_offer_buyer')

    def test_admin_cannot_convert_someone_elses_offer(self):
        with self.assertRaises(ForbiddenError):
            self.service.create_order_from_offer(principal_for(self.admin), self.offer.id)

    def test_pending_offer_cannot_be_converted(self):
        pending = make_offer(self.listing, self.other_buyer)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_order_from_offer(principal_for(self.other_buyer), pending.id)

        self.assertEqual(ctx.exception.code, 'offer_not_accepted')

    def test_rejected_offer_cannot_be_converted(self):
        rejected = make_offer(self.listing, self.other_buyer, status=Offer.REJECTED)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_order_from_offer(principal_for(self.other_buyer), rejected.id)

        self.assertEqual(ctx.exception.code, 'offer_not_accepted')

    def test_sold_listing_cannot_be_ordered_from_offer(self):
        Listing.objects.filter(pk=self.listing.pk).update(is_sold=True)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_order_from_offer(principal_for(self.buyer), self.offer.id)

        self.assertEqual(ctx.exception.code, 'listing_sold')

    def test_second_conversion_is_rejected_while_order_active(self):
        self.service.create_order_from_offer(principal_for(self.buyer), self.offer.id)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_order_from_offer(principal_for(self.buyer), self.offer.id)

        self.assertEqual(ctx.exception.code, 'active_order_exists')
        self.assertEqual(Order.objects.count(), 1)

    def test_conversion_allowed_again_after_cancellation(self):
        make_order(self.listing, self.buyer, status=Order.CANCELLED)

        order = self.service.create_order_from_offer(principal_for(self.buyer), self.offer.id)

        self.assertEqual(order.status, Order.PENDING)
        self.assertEqual(Order.objects.count(), 2)


class OrderAcceptTests(MarketplaceFixtureMixin, TestCase):
    """Test MarketplaceService.accept_order and its cascade."""

    def setUp(self):
        self.create_marketplace()
        self.service = MarketplaceService()
        self.order = make_order(self.listing, self.buyer)
        self.competing_order = make_order(self.listing, self.other_buyer)
        self.pending_offer = make_offer(self.listing, self.other_buyer, price='25.00')
        self.accepted_offer = make_offer(self.listing, self.buyer, status=Offer.ACCEPTED)

    def test_accept_cancels_competing_orders_and_rejects_pending_offers(self):
        order = self.service.accept_order(principal_for(self.seller), self.order.id)

        self.assertEqual(order.status, Order.ACCEPTED)
        self.competing_order.refresh_from_db()
        self.pending_offer.refresh_from_db()
        self.accepted_offer.refresh_from_db()
        self.assertEqual(self.competing_order.status, Order.CANCELLED)
        self.assertEqual(self.pending_offer.status, Offer.REJECTED)
        self.assertEqual(self.accepted_offer.status, Offer.ACCEPTED)

    def test_accept_leaves_other_listings_alone(self):
        other_listing = make_listing(self.seller, self.category, title='Refactoring', price='30.00')
        other_order = make_order(other_listing, self.other_buyer)

        self.service.accept_order(principal_for(self.seller), self.order.id)

        other_order.refresh_from_db()
        self.assertEqual(other_order.status, Order.PENDING)

    def test_admin_can_accept(self):
        order = self.service.accept_order(principal_for(self.admin), self.order.id)

        self.assertEqual(order.status, Order.ACCEPTED)

    def test_buyer_cannot_accept_own_order(self):
        with self.assertRaises(ForbiddenError):
            self.service.accept_order(principal_for(self.buyer), self.order.id)

    def test_other_seller_cannot_accept(self):
        with self.assertRaises(ForbiddenError):
            self.service.accept_order(principal_for(self.other_seller), self.order.id)

        self.competing_order.refresh_from_db()
        self.assertEqual(self.competing_order.status, Order.PENDING)

    def test_cancelled_order_cannot_be_accepted(self):
        self.service.accept_order(principal_for(self.seller), self.order.id)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.accept_order(principal_for(self.seller), self.competing_order.id)

        self.assertEqual(ctx.exception.code, 'order_not_pending')

    def test_missing_order_is_not_found(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.service.accept_order(principal_for(self.seller), 9999)

        self.assertEqual(ctx.exception.code, 'order_not_found')

    def test_failure_mid_cascade_rolls_back_everything(self):
        real_flush = Repository._flush_update
        calls = []

        def fail_on_third_update(repository, entity):
            calls.append(entity)
            if len(calls) == 3:
                raise RuntimeError('database went away')
            return real_flush(repository, entity)

        with patch.object(Repository, '_flush_update', autospec=True, side_effect=fail_on_third_update):
            with self.assertRaises(RuntimeError):
                self.service.accept_order(principal_for(self.seller), self.order.id)

        self.assertEqual(len(calls), 3)
        for row in (self.order, self.competing_order, self.pending_offer):
            row.refresh_from_db()
            self.assertEqual(row.version, 1)
        self.assertEqual(self.order.status, Order.PENDING)
        self.assertEqual(self.competing_order.status, Order.PENDING)
        self.assertEqual(self.pending_offer.status, Offer.PENDING)


class OrderCompleteTests(MarketplaceFixtureMixin, TestCase):
    """Test MarketplaceService.complete_order."""

    def setUp(self):
        self.create_marketplace()
        self.service = MarketplaceService()
        self.order = make_order(self.listing, self.buyer, status=Order.ACCEPTED)

    def test_buyer_completes_accepted_order_and_listing_is_sold(self):
        order = self.service.complete_order(principal_for(self.buyer), self.order.id)

        self.assertEqual(order.status, Order.COMPLETED)
        self.listing.refresh_from_db()
        self.assertTrue(self.listing.is_sold)

    def test_admin_can_complete(self):
        self.service.complete_order(principal_for(self.admin), self.order.id)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.COMPLETED)

    def test_other_buyer_cannot_complete(self):
        with self.assertRaises(ForbiddenError):
            self.service.complete_order(principal_for(self.other_buyer), self.order.id)

        self.listing.refresh_from_db()
        self.assertFalse(self.listing.is_sold)

    def test_completing_twice_fails(self):
        self.service.complete_order(principal_for(self.buyer), self.order.id)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.complete_order(principal_for(self.buyer), self.order.id)

        self.assertEqual(ctx.exception.code, 'order_already_completed')

    def test_pending_order_cannot_be_completed(self):
        pending = make_order(self.listing, self.other_buyer)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.complete_order(principal_for(self.other_buyer), pending.id)

        self.assertEqual(ctx.exception.code, 'order_not_accepted')
        self.listing.refresh_from_db()
        self.assertFalse(self.listing.is_sold)

    def test_cancelled_order_cannot_be_completed(self):
        cancelled = make_order(self.listing, self.other_buyer, status=Order.CANCELLED)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.complete_order(principal_for(self.other_buyer), cancelled.id)

        self.assertEqual(ctx.exception.code, 'order_not_accepted')


class OrderQueryTests(MarketplaceFixtureMixin, TestCase):
    """Test order read operations."""

    def setUp(self):
        self.create_marketplace()
        self.service = MarketplaceService()
        self.order = make_order(self.listing, self.buyer)

    def test_visibility(self):
        for user in (self.buyer, self.seller, self.admin):
            self.assertEqual(self.service.get_order(principal_for(user), self.order.id).pk, self.order.pk)

        with self.assertRaises(ForbiddenError):
            self.service.get_order(principal_for(self.other_buyer), self.order.id)

    def test_buyer_and_seller_lists(self):
        self.assertEqual([o.pk for o in self.service.buyer_orders(principal_for(self.buyer))], [self.order.pk])
        self.assertEqual([o.pk for o in self.service.seller_orders(principal_for(self.seller))], [self.order.pk])
        self.assertEqual(self.service.seller_orders(principal_for(self.other_seller)), [])

    def test_all_orders_requires_admin(self):
        self.assertEqual(len(self.service.all_orders(principal_for(self.admin))), 1)

        with self.assertRaises(ForbiddenError):
            self.service.all_orders(principal_for(self.buyer))
