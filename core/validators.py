"""
Custom field validators for marketplace models.
"""

from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError


def validate_positive_price(value):
    """
    Validate that a monetary amount is strictly greater than zero.
    
    Used for listing prices and offered prices. Zero and negative amounts
    are rejected, as are values that cannot be interpreted as decimals.
    
    Args:
        value: Decimal (or decimal-compatible) amount to validate
        
    Raises:
        ValidationError: If the amount is missing, malformed or not positive
    """
    if value is None:
        raise ValidationError('Price is required.', code='price_required')
    
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError('Price must be a valid decimal number.', code='invalid_price')
    
    if amount <= Decimal('0'):
        raise ValidationError('Price must be greater than zero.', code='non_positive_price')


def validate_not_blank(value):
    """
    Reject strings that are empty or contain only whitespace.
    
    Args:
        value: String to validate
        
    Raises:
        ValidationError: If the value is blank
    """
    if value is None or not str(value).strip():
        raise ValidationError('This field cannot be blank.', code='blank')


def validate_rating(value):
    """Ratings are whole stars between 1 and 5 inclusive."""
    if value is None or isinstance(value, bool):
        raise ValidationError('Rating is required.', code='invalid_rating')
    if not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError('Rating must be between 1 and 5.', code='invalid_rating')
