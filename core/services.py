"""
Marketplace transaction engine.

Every mutating operation takes the caller's Principal, runs inside one
UnitOfWork and commits with a single save_changes() call, so a failure at
any point (including a version conflict) leaves the database untouched.

Offer lifecycle:  pending -> accepted | rejected
Order lifecycle:  pending -> accepted -> completed, pending -> cancelled
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError

from .exceptions import (
    InvalidOperationError,
    NotFoundError,
    UnexpectedError,
    ValidationError,
)
from .models import Category, Listing, Offer, Order, Review
from .permissions import Action, ensure_can_act
from .repositories import UnitOfWork
from .validators import validate_positive_price, validate_rating

logger = logging.getLogger(__name__)


LISTING_EDITABLE_FIELDS = ('title', 'description', 'price', 'condition', 'category_id')


def _validated_price(value, field):
    try:
        validate_positive_price(value)
    except DjangoValidationError as e:
        raise ValidationError({field: e.messages}, code='invalid_price')
    return value


def _validated_rating(value):
    try:
        validate_rating(value)
    except DjangoValidationError as e:
        raise ValidationError({'rating': e.messages}, code='invalid_rating')
    return value


class MarketplaceService:
    """
    Offer, order, review, listing and category operations.

    Args:
        unit_of_work: Factory returning a fresh UnitOfWork per operation
    """

    def __init__(self, unit_of_work=UnitOfWork):
        self.unit_of_work = unit_of_work

    # ========================================================================
    # Shared lookups and guards
    # ========================================================================

    @staticmethod
    def _get_or_404(repository, pk, label, lock=False):
        entity = repository.get(pk, lock=lock)
        if entity is None:
            raise NotFoundError(f'{label} not found.', code=f'{label.lower()}_not_found')
        return entity

    @staticmethod
    def _ensure_listing_available(principal, listing):
        """
        New offers and orders need a listing that is unsold and not the caller's own.

        Raises:
            InvalidOperationError: own_listing or listing_sold
        """
        if listing.seller_id == principal.id:
            logger.warning(
                f"Attempt to buy own listing. Listing ID: {listing.id}, User ID: {principal.id}"
            )
            raise InvalidOperationError(
                'You cannot make an offer on your own listing.',
                code='own_listing'
            )
        if listing.is_sold:
            raise InvalidOperationError(
                'This listing has already been sold and is no longer available.',
                code='listing_sold'
            )

    # ========================================================================
    # Listings
    # ========================================================================

    def list_listings(self, sort_order=None, search=None, page_number=1, page_size=10):
        """
        Public catalogue page of unsold listings.

        Raises:
            django.core.paginator.EmptyPage: If the page does not exist
        """
        uow = self.unit_of_work()
        return uow.listings.get_paged(sort_order, search, page_number, page_size)

    def get_listing(self, listing_id):
        uow = self.unit_of_work()
        return self._get_or_404(uow.listings, listing_id, 'Listing')

    def seller_listings(self, principal):
        return self.unit_of_work().listings.by_seller(principal.id)

    def create_listing(self, principal, title, description, price, category_id,
                       condition=Listing.CONDITION_GOOD):
        """
        Create a listing owned by the caller.

        Raises:
            NotFoundError: If the category does not exist
            ValidationError: If the price is not positive or text fields are blank
        """
        _validated_price(price, 'price')

        with self.unit_of_work() as uow:
            category = self._get_or_404(uow.categories, category_id, 'Category')
            listing = Listing(
                title=title,
                description=description,
                price=price,
                condition=condition or Listing.CONDITION_GOOD,
                category=category,
                seller_id=principal.id,
            )
            uow.listings.add(listing)
            uow.save_changes()

        logger.info(
            f"Listing created. Listing ID: {listing.id}, Seller ID: {principal.id}, "
            f"Title: {listing.title}, Price: {listing.price}"
        )
        return listing

    def update_listing(self, principal, listing_id, **changes):
        """
        Edit title, description, price, condition or category of a listing.

        Only the owning seller or an admin may edit. Unknown keys are rejected.

        Raises:
            NotFoundError: Listing or new category missing
            ForbiddenError: Caller is neither owner nor admin
            ValidationError: Invalid field values
        """
        unknown = set(changes) - set(LISTING_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                {field: ['This field cannot be changed.'] for field in sorted(unknown)},
                code='read_only_field'
            )
        if 'price' in changes:
            _validated_price(changes['price'], 'price')

        with self.unit_of_work() as uow:
            listing = self._get_or_404(uow.listings, listing_id, 'Listing', lock=True)
            ensure_can_act(principal, Action.EDIT_LISTING, listing)

            if 'category_id' in changes and changes['category_id'] != listing.category_id:
                category = self._get_or_404(uow.categories, changes['category_id'], 'Category')
                listing.category = category
                changes = {k: v for k, v in changes.items() if k != 'category_id'}

            for field, value in changes.items():
                setattr(listing, field, value)

            uow.listings.update(listing)
            uow.save_changes()

        logger.info(f"Listing updated. Listing ID: {listing.id}, User ID: {principal.id}")
        return listing

    def delete_listing(self, principal, listing_id):
        """
        Delete a listing together with its offers and orders.

        Reviews go with their orders. Everything is removed in one commit.

        Returns:
            dict: Counts of removed offers and orders
        """
        with self.unit_of_work() as uow:
            listing = self._get_or_404(uow.listings, listing_id, 'Listing', lock=True)
            ensure_can_act(principal, Action.DELETE_LISTING, listing)

            offers = uow.offers.by_listing(listing.id)
            orders = uow.orders.by_listing(listing.id)

            for offer in offers:
                uow.offers.remove(offer)
            for order in orders:
                uow.orders.remove(order)
            uow.listings.remove(listing)
            uow.save_changes()

        logger.info(
            f"Listing deleted. Listing ID: {listing_id}, User ID: {principal.id}, "
            f"Offers removed: {len(offers)}, Orders removed: {len(orders)}"
        )
        return {'offers_removed': len(offers), 'orders_removed': len(orders)}

    # ========================================================================
    # Categories
    # ========================================================================

    def list_categories(self):
        return self.unit_of_work().categories.list()

    def get_category(self, principal, category_id):
        ensure_can_act(principal, Action.MANAGE_CATEGORIES)
        uow = self.unit_of_work()
        category = uow.categories.with_listings(category_id)
        if category is None:
            raise NotFoundError('Category not found.', code='category_not_found')
        return category

    def create_category(self, principal, name, description=''):
        ensure_can_act(principal, Action.MANAGE_CATEGORIES)

        with self.unit_of_work() as uow:
            if name and uow.categories.by_name(name) is not None:
                raise InvalidOperationError(
                    'A category with that name already exists.',
                    code='category_exists'
                )
            category = Category(name=(name or '').strip(), description=description or '')
            uow.categories.add(category)
            uow.save_changes()

        logger.info(f"Category created. Category ID: {category.id}, Name: {category.name}")
        return category

    def update_category(self, principal, category_id, name=None, description=None):
        ensure_can_act(principal, Action.MANAGE_CATEGORIES)

        with self.unit_of_work() as uow:
            category = self._get_or_404(uow.categories, category_id, 'Category', lock=True)

            if name is not None:
                existing = uow.categories.by_name(name) if name.strip() else None
                if existing is not None and existing.pk != category.pk:
                    raise InvalidOperationError(
                        'A category with that name already exists.',
                        code='category_exists'
                    )
                category.name = name.strip()
            if description is not None:
                category.description = description

            uow.categories.update(category)
            uow.save_changes()

        logger.info(f"Category updated. Category ID: {category.id}")
        return category

    def delete_category(self, principal, category_id):
        """
        Raises:
            InvalidOperationError: While listings still reference the category
        """
        ensure_can_act(principal, Action.MANAGE_CATEGORIES)

        with self.unit_of_work() as uow:
            category = self._get_or_404(uow.categories, category_id, 'Category', lock=True)
            if uow.categories.has_listings(category.pk):
                raise InvalidOperationError(
                    'Cannot delete a category that still has listings.',
                    code='category_in_use'
                )
            uow.categories.remove(category)
            uow.save_changes()

        logger.info(f"Category deleted. Category ID: {category_id}")

    # ========================================================================
    # Offers
    # ========================================================================

    def create_offer(self, principal, listing_id, offered_price):
        """
        Make a pending offer on someone else's unsold listing.

        Raises:
            NotFoundError: Listing missing
            InvalidOperationError: Own listing or listing sold
            ValidationError: offered_price <= 0
        """
        with self.unit_of_work() as uow:
            listing = self._get_or_404(uow.listings, listing_id, 'Listing', lock=True)
            self._ensure_listing_available(principal, listing)
            _validated_price(offered_price, 'offered_price')

            offer = Offer(
                listing=listing,
                buyer_id=principal.id,
                offered_price=offered_price,
                status=Offer.PENDING,
            )
            uow.offers.add(offer)
            uow.save_changes()

        logger.info(
            f"Offer created. Offer ID: {offer.id}, Listing ID: {listing.id}, "
            f"Buyer ID: {principal.id}, Price: {offer.offered_price}"
        )
        return offer

    def _resolve_offer(self, principal, offer_id, action, verb):
        with self.unit_of_work() as uow:
            offer = self._get_or_404(uow.offers, offer_id, 'Offer', lock=True)
            listing = uow.listings.get(offer.listing_id)
            if listing is None:
                raise UnexpectedError()
            ensure_can_act(principal, action, listing)

            if offer.status != Offer.PENDING:
                raise InvalidOperationError(
                    f'Only pending offers can be {verb}.',
                    code='offer_not_pending'
                )

            offer.transition_to(Offer.ACCEPTED if action == Action.ACCEPT_OFFER else Offer.REJECTED)
            uow.offers.update(offer)
            uow.save_changes()

        logger.info(
            f"Offer {offer.status}. Offer ID: {offer.id}, Listing ID: {offer.listing_id}, "
            f"User ID: {principal.id}"
        )
        return offer

    def accept_offer(self, principal, offer_id):
        """
        Accept a pending offer. Other offers and orders on the listing are left as they are.
        """
        return self._resolve_offer(principal, offer_id, Action.ACCEPT_OFFER, 'accepted')

    def reject_offer(self, principal, offer_id):
        return self._resolve_offer(principal, offer_id, Action.REJECT_OFFER, 'rejected')

    def get_offer(self, principal, offer_id):
        # Existence is reported before ownership is checked.
        offer = self._get_or_404(self.unit_of_work().offers, offer_id, 'Offer')
        ensure_can_act(principal, Action.VIEW_OFFER, offer)
        return offer

    def offers_for_listing(self, principal, listing_id):
        uow = self.unit_of_work()
        listing = self._get_or_404(uow.listings, listing_id, 'Listing')
        ensure_can_act(principal, Action.VIEW_LISTING_OFFERS, listing)
        return uow.offers.by_listing(listing.id)

    def buyer_offers(self, principal):
        return self.unit_of_work().offers.by_buyer(principal.id)

    def all_offers(self, principal):
        ensure_can_act(principal, Action.VIEW_ALL)
        return self.unit_of_work().offers.list()

    # ========================================================================
    # Orders
    # ========================================================================

    def create_order(self, principal, listing_id):
        """
        Place a pending order directly on a listing.

        Raises:
            NotFoundError: Listing missing
            InvalidOperationError: Own listing or listing sold
        """
        with self.unit_of_work() as uow:
            listing = self._get_or_404(uow.listings, listing_id, 'Listing', lock=True)
            self._ensure_listing_available(principal, listing)

            order = Order(listing=listing, buyer_id=principal.id, status=Order.PENDING)
            uow.orders.add(order)
            uow.save_changes()

        logger.info(
            f"Order created. Order ID: {order.id}, Listing ID: {listing.id}, Buyer ID: {principal.id}"
        )
        return order

    def create_order_from_offer(self, principal, offer_id):
        """
        Turn the caller's accepted offer into a pending order.

        Raises:
            NotFoundError: Offer missing
            ForbiddenError: Offer belongs to another buyer
            InvalidOperationError: Offer not accepted, listing sold, or an
                active order already exists for this buyer and listing
        """
        with self.unit_of_work() as uow:
            offer = self._get_or_404(uow.offers, offer_id, 'Offer')
            ensure_can_act(principal, Action.CREATE_ORDER_FROM_OFFER, offer)

            if offer.status != Offer.ACCEPTED:
                raise InvalidOperationError(
                    'Only accepted offers can be converted to orders.',
                    code='offer_not_accepted'
                )

            listing = self._get_or_404(uow.listings, offer.listing_id, 'Listing', lock=True)
            if listing.is_sold:
                raise InvalidOperationError(
                    'This listing has already been sold and is no longer available.',
                    code='listing_sold'
                )

            if uow.orders.has_active_order(listing.id, principal.id):
                raise InvalidOperationError(
                    'An active order already exists for this listing.',
                    code='active_order_exists'
                )

            order = Order(listing=listing, buyer_id=principal.id, status=Order.PENDING)
            uow.orders.add(order)
            uow.save_changes()

        logger.info(
            f"Order created from offer. Order ID: {order.id}, Offer ID: {offer.id}, "
            f"Listing ID: {listing.id}, Buyer ID: {principal.id}"
        )
        return order

    def accept_order(self, principal, order_id):
        """
        Accept a pending order and close out the competition on its listing.

        Every other pending order on the listing is cancelled and every
        pending offer is rejected. The listing row stays locked for the
        whole operation, so two sellers' clicks on the same listing cannot
        both succeed.

        Raises:
            NotFoundError: Order or listing missing
            ForbiddenError: Caller is neither the listing's seller nor an admin
            InvalidOperationError: Order is not pending
        """
        with self.unit_of_work() as uow:
            order = self._get_or_404(uow.orders, order_id, 'Order')
            listing = self._get_or_404(uow.listings, order.listing_id, 'Listing', lock=True)
            order = self._get_or_404(uow.orders, order_id, 'Order', lock=True)

            ensure_can_act(principal, Action.ACCEPT_ORDER, listing)

            if order.status != Order.PENDING:
                raise InvalidOperationError(
                    'Only pending orders can be accepted.',
                    code='order_not_pending'
                )

            order.transition_to(Order.ACCEPTED)
            uow.orders.update(order)

            cancelled = uow.orders.pending_for_listing(listing.id, exclude_id=order.pk, lock=True)
            for other in cancelled:
                other.transition_to(Order.CANCELLED)
                uow.orders.update(other)

            rejected = uow.offers.pending_for_listing(listing.id, lock=True)
            for offer in rejected:
                offer.transition_to(Offer.REJECTED)
                uow.offers.update(offer)

            uow.save_changes()

        logger.info(
            f"Order accepted. Order ID: {order.id}, Listing ID: {listing.id}, User ID: {principal.id}, "
            f"Orders cancelled: {len(cancelled)}, Offers rejected: {len(rejected)}"
        )
        return order

    def complete_order(self, principal, order_id):
        """
        Complete an accepted order and mark its listing sold.

        Raises:
            NotFoundError: Order or listing missing
            ForbiddenError: Caller is neither the buyer nor an admin
            InvalidOperationError: Already completed, or not yet accepted
        """
        with self.unit_of_work() as uow:
            order = self._get_or_404(uow.orders, order_id, 'Order')
            listing = self._get_or_404(uow.listings, order.listing_id, 'Listing', lock=True)
            order = self._get_or_404(uow.orders, order_id, 'Order', lock=True)
            order.listing = listing

            ensure_can_act(principal, Action.COMPLETE_ORDER, order)

            if order.status == Order.COMPLETED:
                raise InvalidOperationError(
                    'Order is already completed.',
                    code='order_already_completed'
                )
            if order.status != Order.ACCEPTED:
                raise InvalidOperationError(
                    'Order must be accepted by seller before it can be completed.',
                    code='order_not_accepted'
                )

            order.transition_to(Order.COMPLETED)
            listing.is_sold = True
            uow.orders.update(order)
            uow.listings.update(listing)
            uow.save_changes()

        logger.info(
            f"Order completed. Order ID: {order.id}, Listing ID: {listing.id} marked sold, "
            f"User ID: {principal.id}"
        )
        return order

    def get_order(self, principal, order_id):
        # Existence is reported before ownership is checked.
        order = self.unit_of_work().orders.with_review(order_id)
        if order is None:
            raise NotFoundError('Order not found.', code='order_not_found')
        ensure_can_act(principal, Action.VIEW_ORDER, order)
        return order

    def buyer_orders(self, principal):
        return self.unit_of_work().orders.by_buyer(principal.id)

    def seller_orders(self, principal):
        return self.unit_of_work().orders.by_seller(principal.id)

    def all_orders(self, principal):
        ensure_can_act(principal, Action.VIEW_ALL)
        return self.unit_of_work().orders.list()

    # ========================================================================
    # Reviews
    # ========================================================================

    def create_review(self, principal, order_id, rating, comment=''):
        """
        Review the seller of an accepted or completed order.

        Checks run in this order, each with its own error code:
        invalid_rating, order_not_found, not_order_buyer,
        order_not_reviewable, review_exists, self_review.

        Returns:
            Review: With reviewer = caller and reviewee = listing seller
        """
        _validated_rating(rating)

        with self.unit_of_work() as uow:
            order = self._get_or_404(uow.orders, order_id, 'Order', lock=True)
            ensure_can_act(principal, Action.CREATE_REVIEW, order)

            if not order.is_reviewable:
                raise InvalidOperationError(
                    'You can only review orders that have been accepted by the seller.',
                    code='order_not_reviewable'
                )

            if uow.reviews.for_order(order.pk) is not None:
                raise InvalidOperationError(
                    'A review already exists for this order.',
                    code='review_exists'
                )

            listing = uow.listings.get(order.listing_id)
            if listing is None:
                raise UnexpectedError()

            if listing.seller_id == principal.id:
                raise InvalidOperationError('You cannot review yourself.', code='self_review')

            review = Review(
                order=order,
                reviewer_id=principal.id,
                reviewee_id=listing.seller_id,
                rating=rating,
                comment=comment or '',
            )
            uow.reviews.add(review)
            uow.save_changes()

        logger.info(
            f"Review created. Review ID: {review.id}, Order ID: {order.id}, "
            f"Reviewer ID: {principal.id}, Reviewee ID: {review.reviewee_id}, Rating: {rating}"
        )
        return review

    def update_review(self, principal, review_id, rating=None, comment=None):
        with self.unit_of_work() as uow:
            review = self._get_or_404(uow.reviews, review_id, 'Review', lock=True)
            ensure_can_act(principal, Action.EDIT_REVIEW, review)

            if rating is not None:
                review.rating = _validated_rating(rating)
            if comment is not None:
                review.comment = comment

            uow.reviews.update(review)
            uow.save_changes()

        logger.info(f"Review updated. Review ID: {review.id}, User ID: {principal.id}")
        return review

    def delete_review(self, principal, review_id):
        with self.unit_of_work() as uow:
            review = self._get_or_404(uow.reviews, review_id, 'Review', lock=True)
            ensure_can_act(principal, Action.DELETE_REVIEW, review)
            uow.reviews.remove(review)
            uow.save_changes()

        logger.info(f"Review deleted. Review ID: {review_id}, User ID: {principal.id}")

    def get_review(self, review_id):
        return self._get_or_404(self.unit_of_work().reviews, review_id, 'Review')

    def reviews_written(self, principal):
        return self.unit_of_work().reviews.by_reviewer(principal.id)

    def reviews_received(self, user_id):
        uow = self.unit_of_work()
        self._get_or_404(uow.users, user_id, 'User')
        return uow.reviews.for_user(user_id)

    def all_reviews(self, principal):
        ensure_can_act(principal, Action.VIEW_ALL)
        return self.unit_of_work().reviews.list()
