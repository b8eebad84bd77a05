from acclms.sdk.auth import AuthService
from acclms.sdk.client import ApiClient, ApiError, AuthTokens, TokenStore
from acclms.sdk.courses import CourseService
from acclms.sdk.enrollments import EnrollmentService
from acclms.sdk.payments import PaymentService
from acclms.sdk.users import UserService

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthService",
    "AuthTokens",
    "CourseService",
    "EnrollmentService",
    "PaymentService",
    "TokenStore",
    "UserService",
]
