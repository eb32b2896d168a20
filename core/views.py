"""
API views for the Campus Marketplace.

Views translate HTTP into engine calls: they check the caller's role,
validate the request shape, build a Principal and hand over to
MarketplaceService. Domain errors raised by the engine propagate to
core.exceptions.marketplace_exception_handler, which maps them to
404/403/400/409/500 responses.
"""

import logging

from django.contrib.auth import get_user_model
from django.core.paginator import EmptyPage
from django.db import IntegrityError
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from .exceptions import NotFoundError
from .permissions import IsAdminRole, IsBuyer, IsBuyerOrAdmin, IsSellerOrAdmin, Principal
from .serializers import (
    CategoryDetailSerializer,
    CategorySerializer,
    EmailTokenObtainPairSerializer,
    ListingSerializer,
    ListingWriteSerializer,
    LoginSerializer,
    OfferCreateSerializer,
    OfferSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    ReviewUpdateSerializer,
    UserRegistrationSerializer,
    UserSummarySerializer,
)
from .services import MarketplaceService

User = get_user_model()
logger = logging.getLogger(__name__)

service = MarketplaceService()


def get_client_ip(request):
    """
    Get client IP address from request.
    Handles proxy headers for accurate IP detection.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class MarketplaceAPIView(APIView):
    """Base view exposing the caller as a Principal."""

    def get_principal(self):
        return Principal.from_user(self.request.user)

    def validated(self, serializer_class, partial=False):
        serializer = serializer_class(data=self.request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


# ============================================================================
# Authentication
# ============================================================================

class EmailTokenObtainPairView(TokenObtainPairView):
    """
    Token pair endpoint that takes email and password.
    """
    serializer_class = EmailTokenObtainPairSerializer


class UserRegistrationView(generics.CreateAPIView):
    """
    API endpoint for user registration.

    POST /api/auth/register/
    Request body: {
        "email": "alice@campus.local",
        "password": "...",
        "confirm_password": "...",
        "first_name": "Alice",
        "last_name": "Smith",
        "role": "seller"
    }

    Returns the created user (without password) with status 201.
    Concurrent registrations with the same email return 400.
    """
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]
    authentication_classes = []

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.perform_create(serializer)
        except IntegrityError:
            return Response(
                {'email': ['A user with that email already exists.']},
                status=status.HTTP_400_BAD_REQUEST
            )

        logger.info(
            f"User registered. Email: {serializer.data['email']}, "
            f"Role: {serializer.data['role']}, IP: {get_client_ip(request)}"
        )
        headers = self.get_success_headers(serializer.data)
        return Response(serializer.data, status=status.HTTP_201_CREATED, headers=headers)


class LoginView(APIView):
    """
    API endpoint for user login with JWT token generation.

    Security features:
    - Rate limiting through the 'login' throttle scope
    - Generic error messages to prevent user enumeration
    - Failed login attempts are logged with the client IP
    - Case-insensitive email lookup

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "password123"}

    Success response (200):
    {
        "access": "<jwt_access_token>",
        "refresh": "<jwt_refresh_token>",
        "user": {"id": 1, "email": "user@example.com", "role": "buyer", ...}
    }

    Error response (401): {"detail": "Invalid credentials"}
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        email = serializer.validated_data['email'].lower().strip()
        password = serializer.validated_data['password']
        client_ip = get_client_ip(request)

        user = User.objects.filter(email__iexact=email).first()

        if user is None or not user.check_password(password) or not user.is_active:
            logger.warning(f"Failed login attempt. Email: {email}, IP: {client_ip}")
            return Response(
                {'detail': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        refresh = EmailTokenObtainPairSerializer.get_token(user)

        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")

        return Response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'user': UserSummarySerializer(user).data,
        }, status=status.HTTP_200_OK)


class CurrentUserView(MarketplaceAPIView):
    """
    GET /api/auth/me/ - profile of the authenticated user.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UserSummarySerializer(request.user).data)


# ============================================================================
# Listings
# ============================================================================

class ListingListCreateView(MarketplaceAPIView):
    """
    GET  /api/listings/  - public catalogue of unsold listings
    POST /api/listings/  - create a listing (sellers and admins)

    Query parameters for GET:
    - search: matched against title, description and category name
    - sort: title, title_desc, price, price_desc, category, category_desc,
      condition, condition_desc (default: title)
    - page: 1-based page number (page size 10)
    """

    PAGE_SIZE = 10

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated(), IsSellerOrAdmin()]

    def get(self, request, *args, **kwargs):
        search = request.query_params.get('search')
        sort_order = request.query_params.get('sort')

        try:
            page_number = int(request.query_params.get('page', 1))
            if page_number < 1:
                page_number = 1
        except ValueError:
            page_number = 1

        try:
            page_obj = service.list_listings(sort_order, search, page_number, self.PAGE_SIZE)
        except EmptyPage:
            raise NotFoundError(f'Page {page_number} does not exist.', code='page_not_found')

        serializer = ListingSerializer(page_obj.object_list, many=True)

        response_data = {
            'count': page_obj.paginator.count,
            'num_pages': page_obj.paginator.num_pages,
            'page': page_obj.number,
            'next': None,
            'previous': None,
            'results': serializer.data,
        }

        if page_obj.has_next():
            response_data['next'] = self.page_link(request, page_obj.next_page_number())
        if page_obj.has_previous():
            response_data['previous'] = self.page_link(request, page_obj.previous_page_number())

        return Response(response_data, status=status.HTTP_200_OK)

    @staticmethod
    def page_link(request, page_number):
        # Every other query parameter is carried over; only page changes.
        params = request.query_params.copy()
        params['page'] = page_number
        return request.build_absolute_uri(f"{request.path}?{params.urlencode()}")

    def post(self, request, *args, **kwargs):
        data = self.validated(ListingWriteSerializer)
        listing = service.create_listing(
            self.get_principal(),
            title=data['title'],
            description=data['description'],
            price=data['price'],
            category_id=data['category_id'],
            condition=data.get('condition'),
        )
        return Response(ListingSerializer(listing).data, status=status.HTTP_201_CREATED)


class SellerListingsView(MarketplaceAPIView):
    """GET /api/listings/mine/ - the caller's own listings, sold or not."""
    permission_classes = [IsAuthenticated, IsSellerOrAdmin]

    def get(self, request, *args, **kwargs):
        listings = service.seller_listings(self.get_principal())
        return Response(ListingSerializer(listings, many=True).data)


class ListingDetailView(MarketplaceAPIView):
    """
    GET              /api/listings/<id>/  - public
    PUT/PATCH/DELETE /api/listings/<id>/  - owning seller or admin

    Deleting a listing also removes its offers and orders.
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated(), IsSellerOrAdmin()]

    def get(self, request, pk, *args, **kwargs):
        return Response(ListingSerializer(service.get_listing(pk)).data)

    def put(self, request, pk, *args, **kwargs):
        return self._update(pk, partial=False)

    def patch(self, request, pk, *args, **kwargs):
        return self._update(pk, partial=True)

    def _update(self, pk, partial):
        data = self.validated(ListingWriteSerializer, partial=partial)
        listing = service.update_listing(self.get_principal(), pk, **data)
        return Response(ListingSerializer(listing).data)

    def delete(self, request, pk, *args, **kwargs):
        service.delete_listing(self.get_principal(), pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ListingOffersView(MarketplaceAPIView):
    """GET /api/listings/<id>/offers/ - offers on a listing (its seller or an admin)."""
    permission_classes = [IsAuthenticated, IsSellerOrAdmin]

    def get(self, request, pk, *args, **kwargs):
        offers = service.offers_for_listing(self.get_principal(), pk)
        return Response(OfferSerializer(offers, many=True).data)


# ============================================================================
# Categories
# ============================================================================

class CategoryListCreateView(MarketplaceAPIView):
    """
    GET  /api/categories/ - all categories (any authenticated user)
    POST /api/categories/ - create (admin)
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsAdminRole()]

    def get(self, request, *args, **kwargs):
        return Response(CategorySerializer(service.list_categories(), many=True).data)

    def post(self, request, *args, **kwargs):
        data = self.validated(CategorySerializer)
        category = service.create_category(
            self.get_principal(), data['name'], data.get('description', '')
        )
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


class CategoryDetailView(MarketplaceAPIView):
    """GET/PUT/PATCH/DELETE /api/categories/<id>/ (admin)."""
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request, pk, *args, **kwargs):
        category = service.get_category(self.get_principal(), pk)
        return Response(CategoryDetailSerializer(category).data)

    def put(self, request, pk, *args, **kwargs):
        return self._update(pk, partial=False)

    def patch(self, request, pk, *args, **kwargs):
        return self._update(pk, partial=True)

    def _update(self, pk, partial):
        data = self.validated(CategorySerializer, partial=partial)
        category = service.update_category(
            self.get_principal(), pk,
            name=data.get('name'),
            description=data.get('description'),
        )
        return Response(CategorySerializer(category).data)

    def delete(self, request, pk, *args, **kwargs):
        service.delete_category(self.get_principal(), pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Offers
# ============================================================================

class OfferListCreateView(MarketplaceAPIView):
    """
    GET  /api/offers/ - every offer (admin)
    POST /api/offers/ - make an offer (buyers)

    Request body: {"listing_id": 3, "offered_price": "30.00"}
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [IsAuthenticated(), IsAdminRole()]
        return [IsAuthenticated(), IsBuyer()]

    def get(self, request, *args, **kwargs):
        offers = service.all_offers(self.get_principal())
        return Response(OfferSerializer(offers, many=True).data)

    def post(self, request, *args, **kwargs):
        data = self.validated(OfferCreateSerializer)
        offer = service.create_offer(self.get_principal(), data['listing_id'], data['offered_price'])
        return Response(OfferSerializer(offer).data, status=status.HTTP_201_CREATED)


class BuyerOffersView(MarketplaceAPIView):
    """GET /api/offers/mine/ - offers made by the caller."""
    permission_classes = [IsAuthenticated, IsBuyer]

    def get(self, request, *args, **kwargs):
        offers = service.buyer_offers(self.get_principal())
        return Response(OfferSerializer(offers, many=True).data)


class OfferDetailView(MarketplaceAPIView):
    """GET /api/offers/<id>/ - visible to the buyer, the listing's seller, or an admin."""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        offer = service.get_offer(self.get_principal(), pk)
        return Response(OfferSerializer(offer).data)


class OfferAcceptView(MarketplaceAPIView):
    """POST /api/offers/<id>/accept/ - listing's seller or an admin."""
    permission_classes = [IsAuthenticated, IsSellerOrAdmin]

    def post(self, request, pk, *args, **kwargs):
        offer = service.accept_offer(self.get_principal(), pk)
        return Response(OfferSerializer(offer).data)


class OfferRejectView(MarketplaceAPIView):
    """POST /api/offers/<id>/reject/ - listing's seller or an admin."""
    permission_classes = [IsAuthenticated, IsSellerOrAdmin]

    def post(self, request, pk, *args, **kwargs):
        offer = service.reject_offer(self.get_principal(), pk)
        return Response(OfferSerializer(offer).data)


# ============================================================================
# Orders
# ============================================================================

class OrderListCreateView(MarketplaceAPIView):
    """
    GET  /api/orders/ - every order (admin)
    POST /api/orders/ - order a listing directly (buyers)
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [IsAuthenticated(), IsAdminRole()]
        return [IsAuthenticated(), IsBuyer()]

    def get(self, request, *args, **kwargs):
        orders = service.all_orders(self.get_principal())
        return Response(OrderSerializer(orders, many=True).data)

    def post(self, request, *args, **kwargs):
        data = self.validated(OrderCreateSerializer)
        order = service.create_order(self.get_principal(), data['listing_id'])
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderFromOfferView(MarketplaceAPIView):
    """POST /api/orders/from-offer/<offer_id>/ - convert the caller's accepted offer."""
    permission_classes = [IsAuthenticated, IsBuyer]

    def post(self, request, offer_id, *args, **kwargs):
        order = service.create_order_from_offer(self.get_principal(), offer_id)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class BuyerOrdersView(MarketplaceAPIView):
    """GET /api/orders/mine/ - orders placed by the caller."""
    permission_classes = [IsAuthenticated, IsBuyer]

    def get(self, request, *args, **kwargs):
        orders = service.buyer_orders(self.get_principal())
        return Response(OrderSerializer(orders, many=True).data)


class SellerOrdersView(MarketplaceAPIView):
    """GET /api/orders/selling/ - orders on the caller's listings."""
    permission_classes = [IsAuthenticated, IsSellerOrAdmin]

    def get(self, request, *args, **kwargs):
        orders = service.seller_orders(self.get_principal())
        return Response(OrderSerializer(orders, many=True).data)


class OrderDetailView(MarketplaceAPIView):
    """GET /api/orders/<id>/ - visible to the buyer, the listing's seller, or an admin."""
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        order = service.get_order(self.get_principal(), pk)
        return Response(OrderSerializer(order).data)


class OrderAcceptView(MarketplaceAPIView):
    """
    POST /api/orders/<id>/accept/

    Accepts the order, cancels the listing's other pending orders and rejects
    its pending offers in one transaction. Ownership is checked by the engine.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        order = service.accept_order(self.get_principal(), pk)
        return Response(OrderSerializer(order).data)


class OrderCompleteView(MarketplaceAPIView):
    """POST /api/orders/<id>/complete/ - buyer (or admin) confirms receipt; listing becomes sold."""
    permission_classes = [IsAuthenticated, IsBuyerOrAdmin]

    def post(self, request, pk, *args, **kwargs):
        order = service.complete_order(self.get_principal(), pk)
        return Response(OrderSerializer(order).data)


# ============================================================================
# Reviews
# ============================================================================

class ReviewListCreateView(MarketplaceAPIView):
    """
    GET  /api/reviews/ - every review (admin)
    POST /api/reviews/ - review the seller of an accepted or completed order (buyers)

    Request body: {"order_id": 7, "rating": 5, "comment": "Great condition"}

    Error responses:
    - 400: Rating out of range, order not yet accepted, duplicate review, self-review
    - 403: Order placed by someone else
    - 404: Order not found
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [IsAuthenticated(), IsAdminRole()]
        return [IsAuthenticated(), IsBuyer()]

    def get(self, request, *args, **kwargs):
        reviews = service.all_reviews(self.get_principal())
        return Response(ReviewSerializer(reviews, many=True).data)

    def post(self, request, *args, **kwargs):
        data = self.validated(ReviewCreateSerializer)
        review = service.create_review(
            self.get_principal(), data['order_id'], data['rating'], data.get('comment', '')
        )
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


class MyReviewsView(MarketplaceAPIView):
    """GET /api/reviews/mine/ - reviews written by the caller."""
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        reviews = service.reviews_written(self.get_principal())
        return Response(ReviewSerializer(reviews, many=True).data)


class ReviewDetailView(MarketplaceAPIView):
    """
    GET         /api/reviews/<id>/ - any authenticated user
    PUT/PATCH   /api/reviews/<id>/ - author only
    DELETE      /api/reviews/<id>/ - author or admin
    """

    def get_permissions(self):
        if self.request.method in ('PUT', 'PATCH'):
            return [IsAuthenticated(), IsBuyer()]
        if self.request.method == 'DELETE':
            return [IsAuthenticated(), IsBuyerOrAdmin()]
        return [IsAuthenticated()]

    def get(self, request, pk, *args, **kwargs):
        return Response(ReviewSerializer(service.get_review(pk)).data)

    def put(self, request, pk, *args, **kwargs):
        return self._update(pk, partial=False)

    def patch(self, request, pk, *args, **kwargs):
        return self._update(pk, partial=True)

    def _update(self, pk, partial):
        data = self.validated(ReviewUpdateSerializer, partial=partial)
        review = service.update_review(
            self.get_principal(), pk,
            rating=data.get('rating'),
            comment=data.get('comment'),
        )
        return Response(ReviewSerializer(review).data)

    def delete(self, request, pk, *args, **kwargs):
        service.delete_review(self.get_principal(), pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


class UserReviewsView(MarketplaceAPIView):
    """GET /api/users/<id>/reviews/ - reviews received by a user (public)."""
    permission_classes = [AllowAny]

    def get(self, request, pk, *args, **kwargs):
        reviews = service.reviews_received(pk)
        return Response(ReviewSerializer(reviews, many=True).data)
