from __future__ import annotations

from dataclasses import dataclass, field

from acclms.core.errors import InvalidStateTransitionError


@dataclass(frozen=True)
class StateMachine:
    """Finite status set plus the transitions the application allows.

    ``statuses`` is the source for the database CHECK/ENUM definitions, so the
    schema and the transition guard can never disagree on what a status is.
    """

    entity: str
    statuses: tuple[str, ...]
    transitions: dict[str, frozenset[str]] = field(default_factory=dict)
    initial: str | None = None

    def __post_init__(self) -> None:
        unknown = set(self.transitions) - set(self.statuses)
        for targets in self.transitions.values():
            unknown |= set(targets) - set(self.statuses)
        if unknown:
            raise ValueError(f"{self.entity} transitions reference unknown statuses: {sorted(unknown)}")

    def is_valid(self, status: str) -> bool:
        return status in self.statuses

    def is_terminal(self, status: str) -> bool:
        return not self.transitions.get(status)

    def can_transition(self, current: str, requested: str) -> bool:
        return requested in self.transitions.get(current, frozenset())

    def require_transition(self, current: str, requested: str) -> str:
        if not self.is_valid(requested) or not self.can_transition(current, requested):
            raise InvalidStateTransitionError(entity=self.entity, current=current, requested=requested)
        return requested

    def check_sql(self, column: str = "status") -> str:
        # Render the CHECK body used by migrations for VARCHAR status columns.
        values = ", ".join(f"'{status}'" for status in self.statuses)
        return f"{column} IN ({values})"


def _edges(**edges: tuple[str, ...]) -> dict[str, frozenset[str]]:
    return {source: frozenset(targets) for source, targets in edges.items()}


USER_ROLES = ("student", "instructor", "admin")
COURSE_DIFFICULTIES = ("beginner", "intermediate", "advanced")

ENROLLMENT_STATUS_ACTIVE = "active"
ENROLLMENT_STATUS_COMPLETED = "completed"
ENROLLMENT_STATUS_PAUSED = "paused"
ENROLLMENT_STATUS_REFUNDED = "refunded"
ENROLLMENT_STATUS_EXPIRED = "expired"

ENROLLMENT = StateMachine(
    entity="enrollment",
    statuses=("active", "completed", "paused", "refunded", "expired"),
    transitions=_edges(
        active=("completed", "paused", "refunded", "expired"),
        paused=("active", "refunded", "expired"),
        completed=("refunded",),
    ),
    initial=ENROLLMENT_STATUS_ACTIVE,
)

LESSON_PROGRESS = StateMachine(
    entity="lesson_progress",
    statuses=("not_started", "in_progress", "completed"),
    transitions=_edges(
        not_started=("in_progress", "completed"),
        in_progress=("completed",),
    ),
    initial="not_started",
)

QUIZ_SUBMISSION = StateMachine(
    entity="quiz_submission",
    statuses=("in_progress", "submitted", "graded"),
    transitions=_edges(
        in_progress=("submitted",),
        submitted=("graded",),
    ),
    initial="in_progress",
)

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PROCESSING = "processing"
ORDER_STATUS_PAID = "paid"
ORDER_STATUS_FAILED = "failed"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_REFUNDED = "refunded"

ORDER = StateMachine(
    entity="order",
    statuses=("pending", "processing", "paid", "failed", "cancelled", "refunded"),
    transitions=_edges(
        pending=("processing", "cancelled", "failed"),
        processing=("paid", "failed", "cancelled"),
        paid=("refunded",),
    ),
    initial=ORDER_STATUS_PENDING,
)

TRANSACTION_TYPES = ("payment", "refund", "chargeback")
TRANSACTION_STATUSES = ("pending", "completed", "failed")
DISCOUNT_TYPES = ("percentage", "fixed_amount")

SUBSCRIPTION = StateMachine(
    entity="subscription",
    statuses=(
        "pending",
        "trialing",
        "active",
        "past_due",
        "cancelled",
        "expired",
        "suspended",
        "incomplete",
    ),
    transitions=_edges(
        pending=("trialing", "active", "incomplete", "cancelled"),
        incomplete=("active", "cancelled", "expired"),
        trialing=("active", "past_due", "cancelled", "expired"),
        active=("past_due", "cancelled", "suspended", "expired"),
        past_due=("active", "cancelled", "suspended", "expired"),
        suspended=("active", "cancelled", "expired"),
        # Reactivation before the paid period ends; the period check lives in the service.
        cancelled=("active",),
    ),
    initial="pending",
)

INVOICE = StateMachine(
    entity="invoice",
    statuses=("draft", "pending", "open", "paid", "void", "uncollectible"),
    transitions=_edges(
        draft=("pending", "open", "void"),
        pending=("open", "paid", "void"),
        open=("paid", "void", "uncollectible"),
        uncollectible=("paid", "void"),
    ),
    initial="draft",
)

BILLING_INTERVALS = ("daily", "weekly", "monthly", "quarterly", "semi_annual", "annual", "lifetime")
PLAN_TIERS = ("free", "basic", "professional", "enterprise", "custom")

NOTIFICATION_TYPES = ("email", "push", "in_app")
NOTIFICATION_STATUSES = ("pending", "sent", "failed", "read")

JURISDICTIONS = ("colombia", "gdpr", "ccpa", "lgpd", "general")
DATA_RIGHT_TYPES = (
    "access",
    "rectification",
    "erasure",
    "objection",
    "restriction",
    "portability",
    "automated_decision",
    "opt_out_sale",
    "opt_out_sharing",
    "limit_sensitive",
    "confirmation",
    "anonymization",
    "revoke_consent",
)
CONSENT_TYPES = (
    "terms_of_service",
    "privacy_policy",
    "cookies_functional",
    "cookies_analytics",
    "cookies_marketing",
    "newsletter",
    "third_party_sharing",
    "profiling",
    "international_transfer",
    "data_sale",
)

DATA_RIGHTS_REQUEST = StateMachine(
    entity="data_rights_request",
    statuses=(
        "received",
        "identity_pending",
        "in_progress",
        "awaiting_info",
        "resolved",
        "denied",
        "appealed",
        "expired",
    ),
    transitions=_edges(
        received=("identity_pending", "in_progress", "denied", "expired"),
        identity_pending=("in_progress", "denied", "expired"),
        in_progress=("awaiting_info", "resolved", "denied", "expired"),
        awaiting_info=("in_progress", "denied", "expired"),
        resolved=("appealed",),
        denied=("appealed",),
        appealed=("in_progress", "resolved", "denied"),
    ),
    initial="received",
)

ANALYTICS_EVENT_TYPES = (
    "page_view",
    "click",
    "form_submit",
    "course_enroll",
    "course_complete",
    "lesson_start",
    "lesson_complete",
    "quiz_start",
    "quiz_complete",
    "assignment_submit",
    "video_play",
    "video_pause",
    "video_complete",
    "search",
    "download",
    "login",
    "logout",
    "error",
    "custom",
)
ANALYTICS_PLATFORMS = ("web", "android", "ios", "desktop", "api", "unknown")

QUESTION_TYPES = ("single_choice", "multiple_choice", "true_false", "short_answer", "essay", "code")
# Graded by comparing answer_data with correct_answers; the rest wait for an instructor.
AUTO_GRADED_QUESTION_TYPES = ("single_choice", "multiple_choice", "true_false", "short_answer")

ASSET_TYPES = ("video", "image", "document", "audio", "subtitle", "attachment")

CONTENT_ASSET = StateMachine(
    entity="content_asset",
    statuses=("pending", "uploading", "processing", "transcoding", "ready", "failed", "deleted"),
    transitions=_edges(
        pending=("uploading", "processing", "failed", "deleted"),
        uploading=("processing", "ready", "failed", "deleted"),
        processing=("transcoding", "ready", "failed", "deleted"),
        transcoding=("ready", "failed", "deleted"),
        ready=("processing", "deleted"),
        failed=("processing", "deleted"),
    ),
    initial="pending",
)

ACCESS_TOKEN_TYPES = ("stream", "download")
USAGE_PERIOD_TYPES = ("daily", "monthly")

KB_CONTENT_TYPES = ("markdown", "html", "rich_text")
KB_VISIBILITIES = ("public", "authenticated", "restricted", "internal")

KB_ARTICLE = StateMachine(
    entity="kb_article",
    statuses=("draft", "in_review", "published", "archived"),
    transitions=_edges(
        draft=("in_review", "published", "archived"),
        in_review=("draft", "published", "archived"),
        published=("draft", "archived"),
        archived=("draft",),
    ),
    initial="draft",
)
