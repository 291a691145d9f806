"""Custom exceptions for the shopledger application."""

class ShopError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(ShopError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class ValidationError(BusinessLogicError):
    """Raised when input is rejected before any write is attempted."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class NotFoundError(ShopError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available=None):
        if available is None:
            message = f"Not enough stock for {product_name}: {required} requested"
        else:
            message = f"Not enough stock for {product_name}: {required} requested, {available} available"
        super().__init__(message, status_code=409, payload={'product': product_name})
        self.product_name = product_name
        self.required = required
        self.available = available

class UnauthorizedError(ShopError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)
