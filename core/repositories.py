"""
Persistence gateway: repositories over the Django ORM and a unit of work
that commits their buffered changes in one transaction.

Repositories read straight from the database but never write on their own.
add(), update() and remove() queue an operation on the owning UnitOfWork;
UnitOfWork.save_changes() applies the queue inside transaction.atomic(), so
either every queued change lands or none does.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator
from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.db.models import F, ProtectedError, Q, RestrictedError

from .exceptions import ConflictError, InvalidOperationError, ValidationError
from .models import Category, Listing, Offer, Order, Review, User

logger = logging.getLogger(__name__)


class Repository:
    """
    Generic repository for one model.

    Subclasses set `model` and, optionally, `related` (select_related paths
    loaded on every read) and add entity-specific queries.
    """

    model = None
    related = ()

    def __init__(self, uow, model=None):
        self.uow = uow
        if model is not None:
            self.model = model

    def get_queryset(self):
        queryset = self.model._default_manager.using(self.uow.using)
        if self.related:
            queryset = queryset.select_related(*self.related)
        return queryset

    def get(self, pk, lock=False):
        """
        Fetch one entity by primary key.

        Args:
            pk: Primary key
            lock: Take a row lock (SELECT ... FOR UPDATE) until the unit of work ends

        Returns:
            Model instance or None when no row matches
        """
        if lock:
            queryset = self.model._default_manager.using(self.uow.using).select_for_update()
        else:
            queryset = self.get_queryset()
        return queryset.filter(pk=pk).first()

    def list(self, query=None, **lookups):
        """
        Return entities matching an optional Q object and/or field lookups.
        """
        queryset = self.get_queryset()
        if query is not None:
            queryset = queryset.filter(query)
        if lookups:
            queryset = queryset.filter(**lookups)
        return list(queryset)

    def add(self, entity):
        self.uow.register(self, 'add', entity)
        return entity

    def update(self, entity):
        self.uow.register(self, 'update', entity)
        return entity

    def remove(self, entity):
        self.uow.register(self, 'remove', entity)

    # ------------------------------------------------------------------
    # Flush operations, called by UnitOfWork.save_changes()
    # ------------------------------------------------------------------

    def _flush_add(self, entity):
        entity.save(using=self.uow.using)

    def _flush_update(self, entity):
        """
        Write every concrete field of entity back to its row.

        Versioned models only update the row whose version still matches the
        one that was read, and bump it. No matching row means someone else
        changed it first.

        Raises:
            ConflictError: If the row version moved since it was read
        """
        entity.full_clean()

        values = {}
        versioned = False
        for field in entity._meta.concrete_fields:
            if field.primary_key:
                continue
            if field.name == 'version':
                versioned = True
                continue
            if getattr(field, 'auto_now_add', False):
                continue
            values[field.attname] = field.pre_save(entity, False)

        queryset = self.model._default_manager.using(self.uow.using).filter(pk=entity.pk)
        if versioned:
            queryset = queryset.filter(version=entity.version)
            values['version'] = F('version') + 1

        updated = queryset.update(**values)
        if not updated:
            logger.warning(
                f"Concurrent modification detected. Model: {self.model.__name__}, "
                f"ID: {entity.pk}, Version read: {getattr(entity, 'version', None)}"
            )
            raise ConflictError(
                f'{self.model._meta.verbose_name.capitalize()} {entity.pk} was modified by another request.'
            )

        if versioned:
            entity.version += 1

    def _flush_remove(self, entity):
        entity.delete(using=self.uow.using)


class CategoryRepository(Repository):
    model = Category

    def with_listings(self, pk):
        return self.get_queryset().prefetch_related('listings').filter(pk=pk).first()

    def by_name(self, name):
        return self.get_queryset().filter(name__iexact=name.strip()).first()

    def has_listings(self, pk):
        return Listing.objects.using(self.uow.using).filter(category_id=pk).exists()


class ListingRepository(Repository):
    model = Listing
    related = ('category', 'seller')

    SORT_ORDERS = {
        'title': ('title', 'id'),
        'title_desc': ('-title', '-id'),
        'price': ('price', 'id'),
        'price_desc': ('-price', '-id'),
        'category': ('category__name', 'title'),
        'category_desc': ('-category__name', 'title'),
        'condition': ('condition', 'title'),
        'condition_desc': ('-condition', 'title'),
    }
    DEFAULT_SORT = 'title'

    def by_seller(self, seller_id):
        return list(self.get_queryset().filter(seller_id=seller_id).order_by('-created_at'))

    def search_queryset(self, sort_order=None, search=None):
        """
        Unsold listings, optionally filtered by a search term and sorted.

        The term is matched case-insensitively against title, description and
        category name. Unknown sort orders fall back to title.
        """
        queryset = self.get_queryset().filter(is_sold=False)

        if search and search.strip():
            term = search.strip()
            queryset = queryset.filter(
                Q(title__icontains=term)
                | Q(description__icontains=term)
                | Q(category__name__icontains=term)
            )

        ordering = self.SORT_ORDERS.get(sort_order or self.DEFAULT_SORT, self.SORT_ORDERS[self.DEFAULT_SORT])
        return queryset.order_by(*ordering)

    def get_paged(self, sort_order=None, search=None, page_number=1, page_size=10):
        """
        Return one page of the public catalogue.

        Returns:
            django.core.paginator.Page

        Raises:
            django.core.paginator.EmptyPage: If page_number is past the last page
        """
        paginator = Paginator(self.search_queryset(sort_order, search), page_size)
        return paginator.page(page_number)


class OfferRepository(Repository):
    model = Offer
    related = ('listing', 'listing__seller', 'buyer')

    def by_listing(self, listing_id):
        return list(self.get_queryset().filter(listing_id=listing_id))

    def by_buyer(self, buyer_id):
        return list(self.get_queryset().filter(buyer_id=buyer_id))

    def pending_for_listing(self, listing_id, lock=False):
        queryset = self.model._default_manager.using(self.uow.using)
        if lock:
            queryset = queryset.select_for_update()
        return list(queryset.filter(listing_id=listing_id, status=Offer.PENDING).order_by('pk'))


class OrderRepository(Repository):
    model = Order
    related = ('listing', 'listing__seller', 'buyer')

    def by_buyer(self, buyer_id):
        return list(self.get_queryset().filter(buyer_id=buyer_id))

    def by_seller(self, seller_id):
        return list(self.get_queryset().filter(listing__seller_id=seller_id))

    def by_listing(self, listing_id):
        return list(self.get_queryset().filter(listing_id=listing_id))

    def with_review(self, pk):
        return self.get_queryset().select_related('review').filter(pk=pk).first()

    def pending_for_listing(self, listing_id, exclude_id=None, lock=False):
        queryset = self.model._default_manager.using(self.uow.using)
        if lock:
            queryset = queryset.select_for_update()
        queryset = queryset.filter(listing_id=listing_id, status=Order.PENDING)
        if exclude_id is not None:
            queryset = queryset.exclude(pk=exclude_id)
        return list(queryset.order_by('pk'))

    def has_active_order(self, listing_id, buyer_id):
        """True if the buyer already has a non-cancelled order on the listing."""
        return (
            self.get_queryset()
            .filter(listing_id=listing_id, buyer_id=buyer_id)
            .exclude(status=Order.CANCELLED)
            .exists()
        )


class ReviewRepository(Repository):
    model = Review
    related = ('order', 'order__listing', 'reviewer', 'reviewee')

    def for_user(self, reviewee_id):
        return list(self.get_queryset().filter(reviewee_id=reviewee_id))

    def by_reviewer(self, reviewer_id):
        return list(self.get_queryset().filter(reviewer_id=reviewer_id))

    def for_order(self, order_id):
        return self.get_queryset().filter(order_id=order_id).first()


class UserRepository(Repository):
    model = User

    def by_email(self, email):
        return self.get_queryset().filter(email__iexact=email.strip()).first()


class UnitOfWork:
    """
    Groups repository changes into one atomic commit.

    Usage:
        with UnitOfWork() as uow:
            order = uow.orders.get(order_id, lock=True)
            order.status = Order.ACCEPTED
            uow.orders.update(order)
            uow.save_changes()

    Entering the context opens transaction.atomic(), so locks taken by
    reads are held until the block exits. An exception inside the block
    rolls back everything, including changes already flushed.
    """

    def __init__(self, using=None):
        self.using = using or DEFAULT_DB_ALIAS
        self._operations = []
        self._atomics = []

        self.categories = CategoryRepository(self)
        self.listings = ListingRepository(self)
        self.offers = OfferRepository(self)
        self.orders = OrderRepository(self)
        self.reviews = ReviewRepository(self)
        self.users = UserRepository(self)

    def __enter__(self):
        atomic = transaction.atomic(using=self.using)
        atomic.__enter__()
        self._atomics.append(atomic)
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None:
            self._operations = []
        atomic = self._atomics.pop()
        return atomic.__exit__(exc_type, exc_value, traceback)

    @property
    def has_changes(self):
        return bool(self._operations)

    def register(self, repository, operation, entity):
        self._operations.append((repository, operation, entity))

    def save_changes(self):
        """
        Apply every queued operation, in order, inside one transaction.

        Returns:
            int: Number of operations applied

        Raises:
            ValidationError: If an entity fails model validation
            ConflictError: If a versioned row changed since it was read
            InvalidOperationError: If the database rejects the change
                (unique or restrict constraints)
        """
        operations, self._operations = self._operations, []
        if not operations:
            return 0

        try:
            with transaction.atomic(using=self.using):
                for repository, operation, entity in operations:
                    getattr(repository, f'_flush_{operation}')(entity)
        except DjangoValidationError as e:
            logger.warning(f"Entity validation failed during save: {e}")
            raise ValidationError.from_django(e)
        except (ProtectedError, RestrictedError) as e:
            logger.warning(f"Delete blocked by dependent records: {e}")
            raise InvalidOperationError(
                'This record is still referenced by other records and cannot be deleted.',
                code='delete_restricted'
            )
        except IntegrityError as e:
            logger.warning(f"Integrity error during save: {e}")
            raise InvalidOperationError(
                'The change conflicts with existing data.',
                code='integrity_error'
            )

        return len(operations)
