"""
Tests for the ownership rules behind can_act() and the Principal helper.
"""

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase

from core.exceptions import ForbiddenError
from core.models import Order, Review
from core.permissions import Action, Principal, can_act, ensure_can_act

from factories import MarketplaceFixtureMixin, make_offer, make_order, principal_for


class PrincipalTests(SimpleTestCase):

    def test_role_properties(self):
        self.assertTrue(Principal(1, 'admin').is_admin)
        self.assertTrue(Principal(2, 'seller').is_seller)
        self.assertTrue(Principal(3, 'buyer').is_buyer)
        self.assertFalse(Principal(3, 'buyer').is_admin)


class SuperuserPrincipalTests(TestCase):

    def test_superuser_counts_as_admin(self):
        user = get_user_model().objects.create_superuser(
            username='root@test.com', email='root@test.com', password='testpass123'
        )

        self.assertTrue(Principal.from_user(user).is_admin)


class CanActTests(MarketplaceFixtureMixin, TestCase):

    def setUp(self):
        self.create_marketplace()
        self.offer = make_offer(self.listing, self.buyer)
        self.order = make_order(self.listing, self.buyer, status=Order.ACCEPTED)
        self.review = Review.objects.create(
            order=self.order, reviewer=self.buyer, reviewee=self.seller, rating=5
        )

    def test_listing_rules_follow_seller(self):
        for action in (Action.EDIT_LISTING, Action.DELETE_LISTING, Action.VIEW_LISTING_OFFERS):
            self.assertTrue(can_act(principal_for(self.seller), action, self.listing))
            self.assertTrue(can_act(principal_for(self.admin), action, self.listing))
            self.assertFalse(can_act(principal_for(self.other_seller), action, self.listing))
            self.assertFalse(can_act(principal_for(self.buyer), action, self.listing))

    def test_offer_resolution_is_for_listing_seller(self):
        self.assertTrue(can_act(principal_for(self.seller), Action.ACCEPT_OFFER, self.offer))
        self.assertTrue(can_act(principal_for(self.seller), Action.REJECT_OFFER, self.listing))
        self.assertFalse(can_act(principal_for(self.buyer), Action.ACCEPT_OFFER, self.offer))

    def test_viewing_offers_and_orders(self):
        for resource, action in ((self.offer, Action.VIEW_OFFER), (self.order, Action.VIEW_ORDER)):
            self.assertTrue(can_act(principal_for(self.buyer), action, resource))
            self.assertTrue(can_act(principal_for(self.seller), action, resource))
            self.assertTrue(can_act(principal_for(self.admin), action, resource))
            self.assertFalse(can_act(principal_for(self.other_buyer), action, resource))
            self.assertFalse(can_act(principal_for(self.other_seller), action, resource))

    def test_complete_order_is_for_buyer(self):
        self.assertTrue(can_act(principal_for(self.buyer), Action.COMPLETE_ORDER, self.order))
        self.assertTrue(can_act(principal_for(self.admin), Action.COMPLETE_ORDER, self.order))
        self.assertFalse(can_act(principal_for(self.seller), Action.COMPLETE_ORDER, self.order))

    def test_actions_binding_the_buyer_have_no_admin_bypass(self):
        admin = principal_for(self.admin)

        self.assertFalse(can_act(admin, Action.CREATE_ORDER_FROM_OFFER, self.offer))
        self.assertFalse(can_act(admin, Action.CREATE_REVIEW, self.order))
        self.assertFalse(can_act(admin, Action.EDIT_REVIEW, self.review))
        self.assertTrue(can_act(admin, Action.DELETE_REVIEW, self.review))

    def test_review_rules_follow_reviewer(self):
        self.assertTrue(can_act(principal_for(self.buyer), Action.EDIT_REVIEW, self.review))
        self.assertTrue(can_act(principal_for(self.buyer), Action.DELETE_REVIEW, self.review))
        self.assertFalse(can_act(principal_for(self.seller), Action.EDIT_REVIEW, self.review))

    def test_global_actions_are_admin_only(self):
        for action in (Action.MANAGE_CATEGORIES, Action.VIEW_ALL):
            self.assertTrue(can_act(principal_for(self.admin), action))
            self.assertFalse(can_act(principal_for(self.seller), action))
            self.assertFalse(can_act(principal_for(self.buyer), action))

    def test_ensure_can_act_raises_with_rule_code(self):
        with self.assertRaises(ForbiddenError) as ctx:
            ensure_can_act(principal_for(self.other_buyer), Action.CREATE_REVIEW, self.order)
        self.assertEqual(ctx.exception.code, 'not_order_buyer')

        with self.assertRaises(ForbiddenError) as ctx:
            ensure_can_act(principal_for(self.buyer), Action.MANAGE_CATEGORIES)
        self.assertEqual(ctx.exception.code, 'forbidden_manage_categories')

    def test_ensure_can_act_passes_silently(self):
        self.assertIsNone(ensure_can_act(principal_for(self.buyer), Action.VIEW_OFFER, self.offer))
