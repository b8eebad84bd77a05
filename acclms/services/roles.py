from __future__ import annotations

from acclms.domain.states import USER_ROLES


# Higher ranks satisfy every lower requirement, so admin passes all checks.
ROLE_ORDER: dict[str, int] = {role: rank for rank, role in enumerate(USER_ROLES, start=1)}


def normalize_role(role: str) -> str:
    # Enforce a stable, lowercased role vocabulary for RBAC checks.
    normalized = role.strip().lower()
    if normalized not in ROLE_ORDER:
        raise ValueError(f"Unsupported role: {role}")
    return normalized


def role_allows(*, role: str, minimum_role: str) -> bool:
    return ROLE_ORDER.get(role, 0) >= ROLE_ORDER.get(minimum_role, 0)
