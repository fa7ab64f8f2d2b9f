"""Custom exceptions for the marketplace API."""


class MarketplaceError(Exception):
    """Base exception for all application errors."""
    code = 'INTERNAL_ERROR'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv


class BusinessLogicError(MarketplaceError):
    """Exception raised for business logic violations (bad request)."""
    code = 'BAD_REQUEST'

    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class ValidationError(BusinessLogicError):
    """Raised when request data is malformed."""
    code = 'VALIDATION_ERROR'


class NotFoundError(MarketplaceError):
    """Exception raised when a resource is not found."""
    code = 'NOT_FOUND'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ForbiddenError(MarketplaceError):
    """Raised when a user lacks permission for an action."""
    code = 'FORBIDDEN'

    def __init__(self, message="Forbidden"):
        super().__init__(message, 403)


class ConflictError(MarketplaceError):
    """Raised when the request collides with existing state."""
    code = 'CONFLICT'

    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class UnauthorizedError(MarketplaceError):
    """Raised when no valid bearer token accompanies the request."""
    code = 'UNAUTHORIZED'

    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


# Cart / checkout

class EmptyCartError(BusinessLogicError):
    code = 'EMPTY_CART'

    def __init__(self, message='Cart is empty'):
        super().__init__(message)


class ProductUnavailableError(BusinessLogicError):
    """Raised when a cart line references a product that is no longer active."""
    code = 'PRODUCT_UNAVAILABLE'

    def __init__(self, product_id, product_title=None):
        name = f'"{product_title}"' if product_title else f'#{product_id}'
        super().__init__(
            f'Product {name} is no longer available',
            payload={'product_id': product_id}
        )
        self.product_id = product_id


class InsufficientInventoryError(BusinessLogicError):
    """Raised when a cart write would exceed the available inventory."""
    code = 'INSUFFICIENT_INVENTORY'

    def __init__(self, product_title, requested, available):
        super().__init__(
            f'Insufficient inventory for "{product_title}": requested {requested}, available {available}',
            payload={'requested': requested, 'available': available}
        )


class AddressNotFoundError(NotFoundError):
    code = 'ADDRESS_NOT_FOUND'

    def __init__(self, message='Address not found'):
        super().__init__(message)


# Order status

class InvalidStatusError(BusinessLogicError):
    code = 'INVALID_STATUS'

    def __init__(self, status):
        super().__init__(f'Invalid order status: {status}', payload={'requested_status': status})


class InvalidTransitionError(BusinessLogicError):
    code = 'INVALID_TRANSITION'

    def __init__(self, current, requested):
        super().__init__(
            f'Cannot move order from {current} to {requested}',
            payload={'current_status': current, 'requested_status': requested}
        )


class AlreadyCancelledError(BusinessLogicError):
    code = 'ALREADY_CANCELLED'

    def __init__(self, message='Order is already cancelled'):
        super().__init__(message)


class CannotCancelDeliveredError(BusinessLogicError):
    code = 'CANNOT_CANCEL_DELIVERED'

    def __init__(self, message='Cannot cancel a delivered order'):
        super().__init__(message)


# Reviews

class InvalidRatingError(ValidationError):
    code = 'INVALID_RATING'

    def __init__(self, message='Rating must be between 1 and 5'):
        super().__init__(message)


# Payment gateway

class GatewayError(Exception):
    """Any failure reported by (or while talking to) a payment gateway."""


class GatewayUnavailableError(GatewayError):
    """The configured payment gateway has no credentials or SDK."""
