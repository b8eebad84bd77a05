from __future__ import annotations


class LmsError(Exception):
    """Base error for the LMS data layer."""


class ProvisioningError(LmsError):
    """Schema/role provisioning could not be planned or applied."""


class ReferenceIntegrityError(LmsError):
    """A cross-schema UUID points at a row that does not exist."""

    def __init__(self, *, source: str, target: str, value: object) -> None:
        self.source = source
        self.target = target
        self.value = value
        super().__init__(f"{source} references missing {target} row {value}")


class InvalidStateTransitionError(LmsError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, *, entity: str, current: str, requested: str) -> None:
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f"{entity} cannot move from {current} to {requested}")


class DuplicateEnrollmentError(LmsError):
    """User is already enrolled in the course."""


class PartitionRoutingError(LmsError):
    """No analytics.events partition covers the event month."""


class UnknownJurisdictionError(LmsError):
    """Jurisdiction code is not recognised by the compliance rules."""


class CourseNotPublishedError(LmsError):
    """Course exists but is not open for enrollment or purchase."""


class InvalidDiscountCodeError(LmsError):
    """Discount code is unknown, inactive, expired, exhausted or below its minimum order."""

    def __init__(self, code: str, reason: str) -> None:
        self.code = code
        self.reason = reason
        super().__init__(f"discount code {code!r} rejected: {reason}")


class ActiveSubscriptionExistsError(LmsError):
    """User already holds an active or trialing subscription."""


class UnsupportedDataRightError(LmsError):
    """Right type is not recognised under the request's jurisdiction."""

    def __init__(self, *, jurisdiction: str, right_type: str) -> None:
        self.jurisdiction = jurisdiction
        self.right_type = right_type
        super().__init__(f"{right_type} is not a valid {jurisdiction} right type")


class QuizAttemptRejectedError(LmsError):
    """Quiz is unpublished or the user has used every allowed attempt."""

    def __init__(self, quiz_id: object, reason: str) -> None:
        self.quiz_id = quiz_id
        self.reason = reason
        super().__init__(f"quiz {quiz_id} attempt rejected: {reason}")


class AccessTokenRejectedError(LmsError):
    """Content access token is unknown, expired, used up or of the wrong type."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"access token rejected: {reason}")
