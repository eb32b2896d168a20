"""
Access policy for the Campus Marketplace.

Two layers:
- Role gates on endpoints (DRF permission classes at the bottom of this module)
- Ownership rules evaluated by the transaction engine through can_act()

The engine never reads the request; views build a Principal from the
authenticated user and pass it into every call.
"""

import enum
import logging
from dataclasses import dataclass

from rest_framework import permissions

from .exceptions import ForbiddenError

logger = logging.getLogger(__name__)

ROLE_ADMIN = 'admin'
ROLE_SELLER = 'seller'
ROLE_BUYER = 'buyer'


@dataclass(frozen=True)
class Principal:
    """Identity and role of the caller, as seen by the transaction engine."""

    id: int
    role: str

    @classmethod
    def from_user(cls, user):
        role = ROLE_ADMIN if user.is_superuser else user.role
        return cls(id=user.id, role=role)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_seller(self):
        return self.role == ROLE_SELLER

    @property
    def is_buyer(self):
        return self.role == ROLE_BUYER


class Action(enum.Enum):
    EDIT_LISTING = 'edit_listing'
    DELETE_LISTING = 'delete_listing'
    VIEW_LISTING_OFFERS = 'view_listing_offers'
    VIEW_OFFER = 'view_offer'
    ACCEPT_OFFER = 'accept_offer'
    REJECT_OFFER = 'reject_offer'
    VIEW_ORDER = 'view_order'
    ACCEPT_ORDER = 'accept_order'
    COMPLETE_ORDER = 'complete_order'
    CREATE_ORDER_FROM_OFFER = 'create_order_from_offer'
    CREATE_REVIEW = 'create_review'
    EDIT_REVIEW = 'edit_review'
    DELETE_REVIEW = 'delete_review'
    MANAGE_CATEGORIES = 'manage_categories'
    VIEW_ALL = 'view_all'


def _seller_of(resource):
    # Offers and orders point at a listing; a listing is its own listing.
    listing = getattr(resource, 'listing', resource)
    return listing.seller_id


def _buyer_of(resource):
    return resource.buyer_id


def _reviewer_of(resource):
    return resource.reviewer_id


@dataclass(frozen=True)
class Rule:
    """
    Ownership rule for one action.

    Attributes:
        owners: Callables returning the user ids allowed to act on a resource
        admin_bypass: Whether admins skip the ownership check
        reason: Message reported when the check fails
        code: Error code reported when the check fails
    """

    owners: tuple = ()
    admin_bypass: bool = True
    reason: str = 'You do not have permission to perform this action.'
    code: str = ''


RULES = {
    Action.EDIT_LISTING: Rule(
        owners=(_seller_of,),
        reason='You can only edit your own listings.',
    ),
    Action.DELETE_LISTING: Rule(
        owners=(_seller_of,),
        reason='You can only delete your own listings.',
    ),
    Action.VIEW_LISTING_OFFERS: Rule(
        owners=(_seller_of,),
        reason='You can only view offers on your own listings.',
    ),
    Action.VIEW_OFFER: Rule(
        owners=(_buyer_of, _seller_of),
        reason='You can only view offers you made or received.',
    ),
    Action.ACCEPT_OFFER: Rule(
        owners=(_seller_of,),
        reason='You can only accept offers on your own listings.',
    ),
    Action.REJECT_OFFER: Rule(
        owners=(_seller_of,),
        reason='You can only reject offers on your own listings.',
    ),
    Action.VIEW_ORDER: Rule(
        owners=(_buyer_of, _seller_of),
        reason='You can only view orders you placed or received.',
    ),
    Action.ACCEPT_ORDER: Rule(
        owners=(_seller_of,),
        reason='You can only accept orders on your own listings.',
    ),
    Action.COMPLETE_ORDER: Rule(
        owners=(_buyer_of,),
        reason='You can only complete orders you placed.',
    ),
    # The new record binds the actor to the buyer, so admins get no bypass.
    Action.CREATE_ORDER_FROM_OFFER: Rule(
        owners=(_buyer_of,),
        admin_bypass=False,
        reason='You can only convert your own offers into orders.',
        code='not_offer_buyer',
    ),
    Action.CREATE_REVIEW: Rule(
        owners=(_buyer_of,),
        admin_bypass=False,
        reason='You can only review orders you placed.',
        code='not_order_buyer',
    ),
    Action.EDIT_REVIEW: Rule(
        owners=(_reviewer_of,),
        admin_bypass=False,
        reason='You can only edit your own reviews.',
    ),
    Action.DELETE_REVIEW: Rule(
        owners=(_reviewer_of,),
        reason='You can only delete your own reviews.',
    ),
    Action.MANAGE_CATEGORIES: Rule(reason='Only administrators can manage categories.'),
    Action.VIEW_ALL: Rule(reason='Only administrators can view all records.'),
}


def can_act(principal, action, resource=None):
    """
    Decide whether principal may perform action on resource.

    Args:
        principal: Principal of the caller
        action: Action member
        resource: Model instance the action targets (None for global actions)

    Returns:
        bool: True if allowed
    """
    rule = RULES[action]

    if principal.is_admin and rule.admin_bypass:
        return True

    if resource is None or not rule.owners:
        return False

    return any(owner(resource) == principal.id for owner in rule.owners)


def ensure_can_act(principal, action, resource=None):
    """
    Raise ForbiddenError unless can_act() allows the action.

    Raises:
        ForbiddenError: With the rule's reason as detail
    """
    if can_act(principal, action, resource):
        return

    rule = RULES[action]
    logger.warning(
        f"Access denied. Action: {action.value}, User ID: {principal.id}, "
        f"Role: {principal.role}, Resource: {resource.__class__.__name__ if resource is not None else None} "
        f"(ID: {getattr(resource, 'pk', None)})"
    )
    raise ForbiddenError(rule.reason, code=rule.code or f'forbidden_{action.value}')


# ============================================================================
# Endpoint role gates
# ============================================================================

class HasRole(permissions.BasePermission):
    """
    Permission class that admits authenticated users whose role is in `roles`.

    Superusers count as admins. Returns 403 Forbidden for other roles and
    401 for anonymous requests.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsSellerOrAdmin]
    """

    roles = ()
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        """
        Check if user is authenticated and holds one of the allowed roles.

        Args:
            request: HTTP request object
            view: View being accessed

        Returns:
            bool: True if the role is allowed, False otherwise
        """
        user = request.user
        if not user or not user.is_authenticated:
            return False

        return Principal.from_user(user).role in self.roles


class IsAdminRole(HasRole):
    roles = (ROLE_ADMIN,)
    message = 'You do not have permission to perform this action. Administrator role required.'


class IsSellerOrAdmin(HasRole):
    roles = (ROLE_SELLER, ROLE_ADMIN)
    message = 'You do not have permission to perform this action. Only sellers can manage listings.'


class IsBuyer(HasRole):
    roles = (ROLE_BUYER,)
    message = 'You do not have permission to perform this action. Only buyers can do this.'


class IsBuyerOrAdmin(HasRole):
    roles = (ROLE_BUYER, ROLE_ADMIN)
    message = 'You do not have permission to perform this action. Buyer role required.'
