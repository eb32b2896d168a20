"""
URL configuration for campus_marketplace project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import (
    TokenBlacklistView,
    TokenRefreshView,
    TokenVerifyView,
)
from core.views import (
    BuyerOffersView,
    BuyerOrdersView,
    CategoryDetailView,
    CategoryListCreateView,
    CurrentUserView,
    EmailTokenObtainPairView,
    ListingDetailView,
    ListingListCreateView,
    ListingOffersView,
    LoginView,
    MyReviewsView,
    OfferAcceptView,
    OfferDetailView,
    OfferListCreateView,
    OfferRejectView,
    OrderAcceptView,
    OrderCompleteView,
    OrderDetailView,
    OrderFromOfferView,
    OrderListCreateView,
    ReviewDetailView,
    ReviewListCreateView,
    SellerListingsView,
    SellerOrdersView,
    UserRegistrationView,
    UserReviewsView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/register/', UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', TokenBlacklistView.as_view(), name='user_logout'),
    path('api/auth/me/', CurrentUserView.as_view(), name='current_user'),

    # Listing endpoints
    path('api/listings/', ListingListCreateView.as_view(), name='listing_list'),
    path('api/listings/mine/', SellerListingsView.as_view(), name='listing_mine'),
    path('api/listings/<int:pk>/', ListingDetailView.as_view(), name='listing_detail'),
    path('api/listings/<int:pk>/offers/', ListingOffersView.as_view(), name='listing_offers'),

    # Category endpoints
    path('api/categories/', CategoryListCreateView.as_view(), name='category_list'),
    path('api/categories/<int:pk>/', CategoryDetailView.as_view(), name='category_detail'),

    # Offer endpoints
    path('api/offers/', OfferListCreateView.as_view(), name='offer_list'),
    path('api/offers/mine/', BuyerOffersView.as_view(), name='offer_mine'),
    path('api/offers/<int:pk>/', OfferDetailView.as_view(), name='offer_detail'),
    path('api/offers/<int:pk>/accept/', OfferAcceptView.as_view(), name='offer_accept'),
    path('api/offers/<int:pk>/reject/', OfferRejectView.as_view(), name='offer_reject'),

    # Order endpoints
    path('api/orders/', OrderListCreateView.as_view(), name='order_list'),
    path('api/orders/mine/', BuyerOrdersView.as_view(), name='order_mine'),
    path('api/orders/selling/', SellerOrdersView.as_view(), name='order_selling'),
    path('api/orders/from-offer/<int:offer_id>/', OrderFromOfferView.as_view(), name='order_from_offer'),
    path('api/orders/<int:pk>/', OrderDetailView.as_view(), name='order_detail'),
    path('api/orders/<int:pk>/accept/', OrderAcceptView.as_view(), name='order_accept'),
    path('api/orders/<int:pk>/complete/', OrderCompleteView.as_view(), name='order_complete'),

    # Review endpoints
    path('api/reviews/', ReviewListCreateView.as_view(), name='review_list'),
    path('api/reviews/mine/', MyReviewsView.as_view(), name='review_mine'),
    path('api/reviews/<int:pk>/', ReviewDetailView.as_view(), name='review_detail'),
    path('api/users/<int:pk>/reviews/', UserReviewsView.as_view(), name='user_reviews'),

    # JWT Authentication endpoints
    path('api/token/', EmailTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/token/verify/', TokenVerifyView.as_view(), name='token_verify'),
    path('api/token/blacklist/', TokenBlacklistView.as_view(), name='token_blacklist'),
]
