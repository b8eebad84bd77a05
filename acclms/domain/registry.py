"""Bounded contexts of the LMS database.

Each context lives in its own PostgreSQL schema owned by a dedicated
``<schema>_svc`` role. ``reads`` lists the foreign schemas a role may SELECT
from; that access exists only so the service can validate the bare UUID
references it stores, never to write across the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass


SERVICE_ROLE_SUFFIX = "_svc"


@dataclass(frozen=True)
class ServiceSchema:
    name: str
    description: str
    reads: tuple[str, ...] = ()
    # Functions the role EXECUTEs, as schema.name(argtypes); PUBLIC loses its default EXECUTE.
    functions: tuple[str, ...] = ()

    @property
    def role(self) -> str:
        return f"{self.name}{SERVICE_ROLE_SUFFIX}"


SCHEMAS: tuple[ServiceSchema, ...] = (
    ServiceSchema("auth", "Authentication domain: users, tokens, sessions"),
    ServiceSchema(
        "users",
        "Users domain: profiles, preferences, statistics",
        reads=("auth", "enrollments"),
    ),
    ServiceSchema("courses", "Courses domain: course content, sections, lessons", reads=("auth",)),
    ServiceSchema(
        "enrollments",
        "Enrollments domain: student enrollments, lesson progress",
        reads=("auth", "courses"),
    ),
    ServiceSchema(
        "assessments",
        "Assessments domain: quizzes, questions, submissions, grades",
        reads=("auth", "courses", "enrollments"),
    ),
    ServiceSchema(
        "payments",
        "Payments domain: orders, transactions, discounts, reviews",
        reads=("auth", "courses"),
        functions=("payments.generate_order_number()",),
    ),
    ServiceSchema("ai", "AI domain: embeddings, conversations, AI-powered features", reads=("courses",)),
    ServiceSchema("notifications", "Notifications domain: templates, delivery queue", reads=("auth",)),
    ServiceSchema(
        "analytics",
        "Analytics domain: partitioned events, sessions, aggregated metrics",
        reads=("auth", "courses"),
        functions=("analytics.create_event_partition(date)",),
    ),
    ServiceSchema("chatbot", "Chatbot domain: conversations, intents, feedback", reads=("auth",)),
    ServiceSchema(
        "content",
        "Content domain: media assets and storage metadata",
        reads=("auth", "courses"),
    ),
    ServiceSchema(
        "compliance",
        "Compliance domain: data rights requests, consents, legal deadlines",
        reads=("auth",),
    ),
    ServiceSchema("kb", "Knowledge base domain: articles, categories, search", reads=("auth",)),
    ServiceSchema(
        "subscriptions",
        "Subscriptions domain: plans, subscriptions, invoices, usage",
        reads=("auth",),
    ),
)

_BY_NAME = {schema.name: schema for schema in SCHEMAS}


def get_schema(name: str) -> ServiceSchema:
    try:
        return _BY_NAME[name]
    except KeyError as exc:
        raise KeyError(f"unknown service schema: {name}") from exc


def schema_names() -> tuple[str, ...]:
    return tuple(schema.name for schema in SCHEMAS)


def may_read(reader: str, target: str) -> bool:
    # A role always reads its own schema; foreign reads must be declared.
    if reader == target:
        return True
    return target in get_schema(reader).reads
