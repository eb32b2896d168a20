"""
End-to-end walk through a sale: offer, acceptance, order, completion, review.
"""

from decimal import Decimal

from django.test import TestCase

from core.exceptions import InvalidOperationError
from core.models import Listing, Offer, Order, Review
from core.services import MarketplaceService

from factories import MarketplaceFixtureMixin, make_order, principal_for


class TextbookSaleScenarioTests(MarketplaceFixtureMixin, TestCase):

    def setUp(self):
        self.create_marketplace()
        self.service = MarketplaceService()

    def test_full_sale_with_competing_order(self):
        buyer = principal_for(self.buyer)
        seller = principal_for(self.seller)
        competing = make_order(self.listing, self.other_buyer)

        offer = self.service.create_offer(buyer, self.listing.id, Decimal('30.00'))
        self.service.accept_offer(seller, offer.id)
        order = self.service.create_order_from_offer(buyer, offer.id)
        self.service.accept_order(seller, order.id)

        competing.refresh_from_db()
        self.assertEqual(competing.status, Order.CANCELLED)

        self.service.complete_order(buyer, order.id)

        self.listing.refresh_from_db()
        self.assertTrue(self.listing.is_sold)
        self.assertEqual(Offer.objects.get(pk=offer.pk).status, Offer.ACCEPTED)
        self.assertEqual(Order.objects.get(pk=order.pk).status, Order.COMPLETED)

        review = self.service.create_review(buyer, order.id, 5, 'Exactly as described')
        self.assertEqual(review.reviewee_id, self.seller.id)

        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_review(buyer, order.id, 4)
        self.assertEqual(ctx.exception.code, 'review_exists')
        self.assertEqual(Review.objects.count(), 1)

        # The sold book is gone from the catalogue and cannot be bought again
        self.assertEqual(self.service.list_listings().paginator.count, 0)
        with self.assertRaises(InvalidOperationError) as ctx:
            self.service.create_offer(principal_for(self.other_buyer), self.listing.id, Decimal('45.00'))
        self.assertEqual(ctx.exception.code, 'listing_sold')
        self.assertTrue(Listing.objects.get(pk=self.listing.pk).is_sold)
