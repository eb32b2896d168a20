"""
Serializers for authentication and the marketplace resources.

Read serializers render model instances. Input serializers only validate
request shape; business rules (ownership, state transitions, rating range,
positive prices) are enforced by the transaction engine.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Category, Listing, Offer, Order, Review

User = get_user_model()


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Token pair serializer that authenticates by email and embeds the role.

    Extra claims:
    - email
    - role
    """
    username_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if 'username' in self.fields:
            del self.fields['username']
        if 'email' not in self.fields:
            self.fields['email'] = serializers.EmailField()

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['role'] = user.role
        return token


class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration with comprehensive validation.

    Fields:
    - email: Required, unique (case-insensitive), valid email format
    - password: Required, must pass Django's password validators
    - confirm_password: Required, must match password
    - first_name, last_name: Optional
    - role: 'buyer' (default) or 'seller'; admin cannot be self-assigned
    - profile_picture_url: Optional
    """

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    confirm_password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    role = serializers.CharField(required=False, default=User.ROLE_BUYER)

    class Meta:
        model = User
        fields = ['id', 'email', 'password', 'confirm_password', 'first_name',
                  'last_name', 'role', 'profile_picture_url', 'created_at']
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
        }

    def validate_email(self, value):
        value = value.strip().lower()

        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "A user with that email already exists."
            )

        return value

    def validate_password(self, value):
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))

        return value

    def validate_role(self, value):
        """
        Only buyer and seller can be chosen at registration.
        """
        allowed = [User.ROLE_BUYER, User.ROLE_SELLER]
        value = (value or User.ROLE_BUYER).lower()

        if value not in allowed:
            raise serializers.ValidationError(
                f"Role must be one of: {', '.join(allowed)}."
            )

        return value

    def validate(self, attrs):
        if attrs.get('password') != attrs.get('confirm_password'):
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })

        return attrs

    def create(self, validated_data):
        """
        Create the user with a hashed password.

        The email doubles as the username, as login is by email only.
        """
        validated_data.pop('confirm_password', None)
        validated_data['password'] = make_password(validated_data.pop('password'))

        # Registration never grants staff or superuser rights
        for field in ('is_superuser', 'is_staff', 'is_active', 'groups', 'user_permissions'):
            validated_data.pop(field, None)

        validated_data['username'] = validated_data['email'][:150]

        with transaction.atomic():
            user = User.objects.create(**validated_data)

        return user


class LoginSerializer(serializers.Serializer):
    """
    Serializer for user login with email and password.

    Minimal validation to prevent user enumeration attacks.
    Actual authentication happens in the view.
    """
    email = serializers.EmailField(
        required=True,
        help_text='User email address'
    )
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'},
        help_text='User password'
    )


class UserSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'full_name', 'role',
                  'profile_picture_url']
        read_only_fields = fields


# ============================================================================
# Categories
# ============================================================================

class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'description']
        read_only_fields = ['id']
        # Uniqueness is checked case-insensitively by the engine
        extra_kwargs = {
            'name': {'validators': []},
        }


class CategoryDetailSerializer(serializers.ModelSerializer):
    """Category with the listings filed under it."""
    listings = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'listings']
        read_only_fields = fields

    def get_listings(self, obj):
        return ListingSerializer(obj.listings.all(), many=True).data


# ============================================================================
# Listings
# ============================================================================

class ListingSerializer(serializers.ModelSerializer):
    """
    Read serializer for listings.

    Includes nested category and seller summaries.
    """
    category = CategorySerializer(read_only=True)
    seller = UserSummarySerializer(read_only=True)
    condition_display = serializers.CharField(source='get_condition_display', read_only=True)

    class Meta:
        model = Listing
        fields = ['id', 'title', 'description', 'price', 'condition', 'condition_display',
                  'is_sold', 'category', 'seller', 'created_at', 'updated_at']
        read_only_fields = fields


class ListingWriteSerializer(serializers.Serializer):
    """
    Input for creating or editing a listing.

    Use partial=True for PATCH so only supplied fields are validated.
    """
    title = serializers.CharField(max_length=200)
    description = serializers.CharField()
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    condition = serializers.ChoiceField(choices=Listing.CONDITION_CHOICES, required=False)
    category_id = serializers.IntegerField()

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title cannot be empty.")
        return value

    def validate_description(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Description cannot be empty.")
        return value


# ============================================================================
# Offers
# ============================================================================

class OfferSerializer(serializers.ModelSerializer):
    listing = ListingSerializer(read_only=True)
    buyer = UserSummarySerializer(read_only=True)

    class Meta:
        model = Offer
        fields = ['id', 'listing', 'buyer', 'offered_price', 'status', 'created_at']
        read_only_fields = fields


class OfferCreateSerializer(serializers.Serializer):
    listing_id = serializers.IntegerField()
    offered_price = serializers.DecimalField(max_digits=10, decimal_places=2)


# ============================================================================
# Orders
# ============================================================================

class OrderSerializer(serializers.ModelSerializer):
    listing = ListingSerializer(read_only=True)
    buyer = UserSummarySerializer(read_only=True)
    review_id = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'listing', 'buyer', 'status', 'order_date', 'review_id']
        read_only_fields = fields

    def get_review_id(self, obj):
        try:
            return obj.review.id
        except Review.DoesNotExist:
            return None


class OrderCreateSerializer(serializers.Serializer):
    listing_id = serializers.IntegerField()


# ============================================================================
# Reviews
# ============================================================================

class ReviewSerializer(serializers.ModelSerializer):
    reviewer = UserSummarySerializer(read_only=True)
    reviewee = UserSummarySerializer(read_only=True)
    order_id = serializers.IntegerField(read_only=True)
    listing_title = serializers.CharField(source='order.listing.title', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'order_id', 'listing_title', 'reviewer', 'reviewee', 'rating',
                  'comment', 'created_at', 'updated_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    """
    Input for POST /api/reviews/.

    Rating range is checked by the engine so the response carries the
    'invalid_rating' code.
    """
    order_id = serializers.IntegerField()
    rating = serializers.IntegerField()
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class ReviewUpdateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(required=False)
    comment = serializers.CharField(required=False, allow_blank=True)
