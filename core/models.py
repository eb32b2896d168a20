"""
Data model for the Campus Marketplace.

Users list textbooks for sale, buyers make offers and place orders, and
buyers review sellers once an order has been accepted.
"""

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .exceptions import InvalidOperationError
from .validators import validate_not_blank, validate_positive_price


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address used to log in
    - role: One of 'admin', 'seller' or 'buyer', assigned at registration
    - profile_picture_url: Optional link to an avatar
    - created_at: Account creation timestamp
    - updated_at: Last update timestamp
    """

    ROLE_ADMIN = 'admin'
    ROLE_SELLER = 'seller'
    ROLE_BUYER = 'buyer'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_SELLER, 'Seller'),
        (ROLE_BUYER, 'Buyer'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=ROLE_CHOICES,
        default=ROLE_BUYER,
        help_text=_('Marketplace role. Determines which operations the user may perform.')
    )

    profile_picture_url = models.URLField(
        _('profile picture URL'),
        max_length=500,
        blank=True,
        default='',
        help_text=_('Optional. Link to a profile picture.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='user_email_idx'),
            models.Index(fields=['role'], name='user_role_idx'),
        ]

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Email is provided and stored lowercase
        - Role is one of the known roles

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if self.role not in dict(self.ROLE_CHOICES):
            raise ValidationError({
                'role': _('Role must be one of: admin, seller, buyer.')
            })

    def save(self, *args, **kwargs):
        """
        Normalize the email and validate updates.

        Creation skips full_clean so concurrent registrations with the same
        email surface as an IntegrityError from the database.
        """
        if self.email:
            self.email = self.email.lower()

        if self.pk is not None:
            self.full_clean()

        super().save(*args, **kwargs)


# ============================================================================
# Category Model
# ============================================================================

class Category(models.Model):
    """
    Subject area a listing belongs to (e.g. Computer Science, Biology).

    Categories cannot be deleted while listings still reference them.
    """

    name = models.CharField(
        _('name'),
        max_length=100,
        unique=True,
        validators=[validate_not_blank],
        error_messages={
            'unique': _('A category with that name already exists.'),
        },
        help_text=_('Unique category name.')
    )

    description = models.TextField(
        _('description'),
        blank=True,
        default='',
        help_text=_('Optional description of the category.')
    )

    class Meta:
        verbose_name = _('category')
        verbose_name_plural = _('categories')
        ordering = ['name']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# ============================================================================
# Listing Model
# ============================================================================

class Listing(models.Model):
    """
    A textbook offered for sale by a seller.

    Fields:
    - title, description: Non-blank text shown to buyers
    - price: Asking price, strictly positive
    - condition: Physical condition of the book
    - is_sold: Set once an order on this listing is completed
    - category: Subject category (restricted delete)
    - seller: User who owns the listing
    - version: Incremented on every update for optimistic concurrency

    A sold listing accepts no new offers or orders.
    """

    CONDITION_NEW = 'new'
    CONDITION_LIKE_NEW = 'like_new'
    CONDITION_VERY_GOOD = 'very_good'
    CONDITION_GOOD = 'good'
    CONDITION_FAIR = 'fair'

    CONDITION_CHOICES = [
        (CONDITION_NEW, 'New'),
        (CONDITION_LIKE_NEW, 'Like New'),
        (CONDITION_VERY_GOOD, 'Very Good'),
        (CONDITION_GOOD, 'Good'),
        (CONDITION_FAIR, 'Fair'),
    ]

    title = models.CharField(
        _('title'),
        max_length=200,
        validators=[validate_not_blank],
        help_text=_('Book title as shown in search results.')
    )

    description = models.TextField(
        _('description'),
        validators=[validate_not_blank],
        help_text=_('Edition, author and any notes about the copy.')
    )

    price = models.DecimalField(
        _('price'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_price],
        help_text=_('Asking price. Must be greater than zero.')
    )

    condition = models.CharField(
        _('condition'),
        max_length=20,
        choices=CONDITION_CHOICES,
        default=CONDITION_GOOD,
        help_text=_('Physical condition of the book.')
    )

    is_sold = models.BooleanField(
        _('sold'),
        default=False,
        help_text=_('Set when an order for this listing is completed.')
    )

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name='listings',
        help_text=_('Subject category of the book')
    )

    seller = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='listings',
        help_text=_('User selling the book')
    )

    version = models.PositiveIntegerField(
        _('version'),
        default=1,
        editable=False,
        help_text=_('Row version used to detect concurrent updates.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the listing was created')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the listing was last updated')
    )

    class Meta:
        verbose_name = _('listing')
        verbose_name_plural = _('listings')
        ordering = ['title']
        indexes = [
            models.Index(fields=['seller'], name='listing_seller_idx'),
            models.Index(fields=['category'], name='listing_category_idx'),
            models.Index(fields=['is_sold'], name='listing_is_sold_idx'),
            models.Index(fields=['price'], name='listing_price_idx'),
        ]

    def __str__(self):
        return f"{self.title} (${self.price})"

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# ============================================================================
# Offer Model
# ============================================================================

class Offer(models.Model):
    """
    A buyer's proposed price for a listing.

    Status transitions:
    - pending -> accepted (seller accepts)
    - pending -> rejected (seller rejects)

    Accepted and rejected offers are terminal.
    """

    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (ACCEPTED, 'Accepted'),
        (REJECTED, 'Rejected'),
    ]

    VALID_TRANSITIONS = {
        PENDING: [ACCEPTED, REJECTED],
        ACCEPTED: [],  # Terminal state
        REJECTED: [],  # Terminal state
    }

    listing = models.ForeignKey(
        Listing,
        on_delete=models.PROTECT,
        related_name='offers',
        help_text=_('Listing the offer is made on')
    )

    buyer = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='offers',
        help_text=_('User making the offer')
    )

    offered_price = models.DecimalField(
        _('offered price'),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_price],
        help_text=_('Price proposed by the buyer.')
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=PENDING,
        help_text=_('Current status of the offer')
    )

    version = models.PositiveIntegerField(
        _('version'),
        default=1,
        editable=False,
        help_text=_('Row version used to detect concurrent updates.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the offer was made')
    )

    class Meta:
        verbose_name = _('offer')
        verbose_name_plural = _('offers')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['listing', 'status'], name='offer_listing_status_idx'),
            models.Index(fields=['buyer'], name='offer_buyer_idx'),
        ]

    def __str__(self):
        return f"Offer #{self.pk}: ${self.offered_price} on listing {self.listing_id} ({self.status})"

    def clean(self):
        """
        Validate the offer against its listing.

        Ensures:
        - The buyer is not the listing's seller
        - New offers are not placed on sold listings

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.listing_id and self.buyer_id:
            listing = self.listing
            if listing.seller_id == self.buyer_id:
                raise ValidationError({
                    'buyer': _('You cannot make an offer on your own listing.')
                })
            if self.pk is None and listing.is_sold:
                raise ValidationError({
                    'listing': _('This listing has already been sold and is no longer available.')
                })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        """
        Check if transition to new status is valid.

        Args:
            new_status: Target offer status

        Returns:
            bool: True if transition is valid, False otherwise
        """
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    def transition_to(self, new_status):
        """
        Move the offer to new_status in memory.

        Raises:
            InvalidOperationError: If the transition is not allowed
        """
        if not self.can_transition_to(new_status):
            raise InvalidOperationError(
                f'Cannot change offer status from {self.status} to {new_status}.',
                code='invalid_transition'
            )
        self.status = new_status


# ============================================================================
# Order Model
# ============================================================================

class Order(models.Model):
    """
    A buyer's commitment to purchase a listing.

    Status transitions:
    - pending -> accepted (seller accepts; competing pending orders are cancelled)
    - pending -> cancelled (another order on the listing was accepted)
    - accepted -> completed (buyer confirms; listing is marked sold)
    """

    PENDING = 'pending'
    ACCEPTED = 'accepted'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (ACCEPTED, 'Accepted'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    VALID_TRANSITIONS = {
        PENDING: [ACCEPTED, CANCELLED],
        ACCEPTED: [COMPLETED],
        COMPLETED: [],  # Terminal state
        CANCELLED: [],  # Terminal state
    }

    REVIEWABLE_STATUSES = (ACCEPTED, COMPLETED)

    listing = models.ForeignKey(
        Listing,
        on_delete=models.PROTECT,
        related_name='orders',
        help_text=_('Listing being purchased')
    )

    buyer = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='orders',
        help_text=_('User placing the order')
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=PENDING,
        help_text=_('Current status of the order')
    )

    version = models.PositiveIntegerField(
        _('version'),
        default=1,
        editable=False,
        help_text=_('Row version used to detect concurrent updates.')
    )

    order_date = models.DateTimeField(
        _('order date'),
        auto_now_add=True,
        help_text=_('Timestamp when the order was placed')
    )

    class Meta:
        verbose_name = _('order')
        verbose_name_plural = _('orders')
        ordering = ['-order_date']
        indexes = [
            models.Index(fields=['listing', 'status'], name='order_listing_status_idx'),
            models.Index(fields=['buyer'], name='order_buyer_idx'),
            models.Index(fields=['order_date'], name='order_date_idx'),
        ]

    def __str__(self):
        return f"Order #{self.pk}: listing {self.listing_id} by buyer {self.buyer_id} ({self.status})"

    def clean(self):
        """
        Validate the order against its listing.

        Ensures:
        - The buyer is not the listing's seller
        - New orders are not placed on sold listings

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.listing_id and self.buyer_id:
            listing = self.listing
            if listing.seller_id == self.buyer_id:
                raise ValidationError({
                    'buyer': _('You cannot order your own listing.')
                })
            if self.pk is None and listing.is_sold:
                raise ValidationError({
                    'listing': _('This listing has already been sold and is no longer available.')
                })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    def transition_to(self, new_status):
        """
        Move the order to new_status in memory.

        Raises:
            InvalidOperationError: If the transition is not allowed
        """
        if not self.can_transition_to(new_status):
            raise InvalidOperationError(
                f'Cannot change order status from {self.status} to {new_status}.',
                code='invalid_transition'
            )
        self.status = new_status

    @property
    def is_reviewable(self):
        return self.status in self.REVIEWABLE_STATUSES


# ============================================================================
# Review Model
# ============================================================================

class Review(models.Model):
    """
    A buyer's rating of the seller after an order was accepted.

    Fields:
    - order: The order being reviewed (one review per order)
    - reviewer: The order's buyer
    - reviewee: The listing's seller, derived from the order
    - rating: Whole stars from 1 to 5
    - comment: Optional free text
    """

    order = models.OneToOneField(
        Order,
        on_delete=models.CASCADE,
        related_name='review',
        error_messages={
            'unique': _('A review already exists for this order.'),
        },
        help_text=_('Order being reviewed')
    )

    reviewer = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='reviews_given',
        help_text=_('User who wrote the review')
    )

    reviewee = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='reviews_received',
        help_text=_('User being reviewed')
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be between 1 and 5.')),
            MaxValueValidator(5, message=_('Rating must be between 1 and 5.'))
        ],
        help_text=_('Rating from 1 to 5 stars')
    )

    comment = models.TextField(
        _('comment'),
        blank=True,
        default='',
        help_text=_('Optional review text')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the review was created')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the review was last updated')
    )

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['reviewer'], name='review_reviewer_idx'),
            models.Index(fields=['reviewee'], name='review_reviewee_idx'),
            models.Index(fields=['rating'], name='review_rating_idx'),
        ]

    def __str__(self):
        return f"Review for order {self.order_id} - {self.rating}★"

    def clean(self):
        """
        Validate the review against its order.

        Ensures:
        - Reviewer and reviewee are different users
        - The reviewer is the order's buyer

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.reviewer_id and self.reviewee_id and self.reviewer_id == self.reviewee_id:
            raise ValidationError({
                'reviewee': _('You cannot review yourself.')
            })

        if self.order_id and self.reviewer_id and self.order.buyer_id != self.reviewer_id:
            raise ValidationError({
                'reviewer': _('Reviewer must be the buyer of the order.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
