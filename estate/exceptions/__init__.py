"""Custom exceptions for the estate booking application."""


class EstateError(Exception):
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


class ValidationError(EstateError):
    """Raised when request data does not have the expected shape."""
    def __init__(self, message="Invalid request data", errors=None):
        super().__init__(message, 400, {'errors': errors or []})


class BusinessLogicError(EstateError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class ConflictError(BusinessLogicError):
    """Raised when the request conflicts with the current state of a resource."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class NotFoundError(EstateError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available, status_code=400):
        message = f"Insufficient stock for {product_name}"
        payload = {
            'requestedQuantity': int(required),
            'availableQuantity': int(available) if available is not None else None,
        }
        super().__init__(message, status_code=status_code, payload=payload)


class UnauthorizedError(EstateError):
    """Raised when the caller is not authenticated."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class ForbiddenError(EstateError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Insufficient permissions"):
        super().__init__(message, 403)
