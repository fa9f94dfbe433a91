class StorefrontError(Exception):
    """Base class for errors that map to an error envelope."""

    code = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class ValidationError(StorefrontError):
    code = "validation_error"
    status_code = 400

class AuthenticationError(StorefrontError):
    code = "unauthorized"
    status_code = 401

class PermissionDeniedError(StorefrontError):
    code = "forbidden"
    status_code = 403

class NotFoundError(StorefrontError):
    code = "not_found"
    status_code = 404

class DomainError(StorefrontError):
    code = "domain_error"
    status_code = 409

class PaymentGatewayError(StorefrontError):
    code = "payment_gateway_error"
    status_code = 502

class EmailDeliveryError(StorefrontError):
    code = "email_delivery_error"
    status_code = 502
