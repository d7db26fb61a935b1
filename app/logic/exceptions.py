from typing import Optional

class BaseCustomError(Exception):
    """Base exception class for custom errors"""
    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)

class DatabaseError(BaseCustomError):
    """Raised when a transaction is aborted; nothing from the operation was persisted"""
    def __init__(self, message: str):
        super().__init__(message, "DATABASE_ERROR")

class CompanyNotFoundError(BaseCustomError):
    """Raised when a company is not found"""
    def __init__(self, message: str):
        super().__init__(message, "COMPANY_NOT_FOUND")

class CompanyAlreadyExistsError(BaseCustomError):
    """Raised when trying to create a company that already exists"""
    def __init__(self, message: str):
        super().__init__(message, "COMPANY_ALREADY_EXISTS")

class UserNotFoundError(BaseCustomError):
    """Raised when a user is not found in the caller's company"""
    def __init__(self, message: str):
        super().__init__(message, "USER_NOT_FOUND")

class UserAlreadyExistsError(BaseCustomError):
    """Raised when trying to create a user with an email already in use"""
    def __init__(self, message: str):
        super().__init__(message, "USER_ALREADY_EXISTS")

class ValidationError(BaseCustomError):
    """Raised when validation fails"""
    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR")

class NotFoundOrUnauthorizedError(BaseCustomError):
    """Raised when a record does not exist or is not owned by the caller"""
    def __init__(self, message: str):
        super().__init__(message, "NOT_FOUND_OR_UNAUTHORIZED")

class InvalidActionStateError(BaseCustomError):
    """Raised when acting on an approval request that is no longer pending"""
    def __init__(self, message: str):
        super().__init__(message, "INVALID_ACTION_STATE")

class AuthenticationError(BaseCustomError):
    """Raised when authentication fails"""
    def __init__(self, message: str):
        super().__init__(message, "AUTHENTICATION_ERROR")

class AuthorizationError(BaseCustomError):
    """Raised when authorization fails"""
    def __init__(self, message: str):
        super().__init__(message, "AUTHORIZATION_ERROR")

class CurrencyConversionError(BaseCustomError):
    """Raised when exchange rates cannot be fetched"""
    def __init__(self, message: str):
        super().__init__(message, "CURRENCY_CONVERSION_ERROR")

class NotificationError(BaseCustomError):
    """Raised when an email cannot be delivered"""
    def __init__(self, message: str):
        super().__init__(message, "NOTIFICATION_ERROR")
