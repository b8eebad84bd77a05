"""Media asset metadata, access tokens and usage counters.

Bytes live in object storage; this module only tracks where they are, how far
processing got and who may fetch them. Access tokens are stored as SHA-256
digests and the raw value is returned once at issue time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import hashlib
import logging
import secrets
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.config import get_settings
from acclms.core.errors import AccessTokenRejectedError, InvalidStateTransitionError
from acclms.domain import states
from acclms.domain.models import AssetAccessToken, ContentAsset
from acclms.persistence.repos import content as content_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

TOKEN_PREFIX = "acct_"


@dataclass(frozen=True)
class IssuedToken:
    token: AssetAccessToken
    raw_token: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def hash_access_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_access_token() -> tuple[str, str]:
    raw_token = f"{TOKEN_PREFIX}{secrets.token_urlsafe(32)}"
    return raw_token, hash_access_token(raw_token)


def storage_key_for(owner_id: UUID, asset_id: UUID, filename: str) -> str:
    # Keys are unique per asset, so re-uploading a filename never overwrites another asset.
    safe_name = filename.replace("/", "_").replace("\\", "_").strip() or "file"
    return f"{owner_id}/{asset_id}/{safe_name}"


async def register_asset(
    session: AsyncSession,
    *,
    owner_id: UUID,
    filename: str,
    content_type: str,
    size_bytes: int,
    asset_type: str,
    course_id: UUID | None = None,
    lesson_id: UUID | None = None,
    checksum: str | None = None,
    tenant_id: UUID | None = None,
) -> ContentAsset:
    if asset_type not in states.ASSET_TYPES:
        raise ValueError(f"unknown asset type: {asset_type}")
    if size_bytes <= 0:
        raise ValueError("asset size must be positive")
    await ensure_reference(session, "auth.users", owner_id, source="content.assets.owner_id")
    await ensure_reference(session, "courses.courses", course_id, source="content.assets.course_id")
    await ensure_reference(session, "courses.lessons", lesson_id, source="content.assets.lesson_id")
    asset_id = uuid4()
    asset = ContentAsset(
        asset_id=asset_id,
        owner_id=owner_id,
        tenant_id=tenant_id,
        course_id=course_id,
        lesson_id=lesson_id,
        filename=filename,
        original_filename=filename,
        content_type=content_type,
        size_bytes=size_bytes,
        checksum=checksum,
        storage_key=storage_key_for(owner_id, asset_id, filename),
        storage_backend=get_settings().content_storage_backend,
        asset_type=asset_type,
        status=states.CONTENT_ASSET.initial,
        metadata_json={},
    )
    await content_repo.add_asset(session, asset)
    logger.info("content_asset_registered asset_id=%s type=%s size=%s", asset.asset_id, asset_type, size_bytes)
    return asset


async def transition_asset(
    session: AsyncSession, asset: ContentAsset, status: str, *, error: str | None = None
) -> ContentAsset:
    asset.status = states.CONTENT_ASSET.require_transition(asset.status, status)
    now = _now()
    if status == "processing":
        asset.processing_started_at = now
        asset.processing_completed_at = None
        asset.processing_error = None
    elif status == "ready":
        asset.processing_completed_at = now
    elif status == "failed":
        asset.processing_completed_at = now
        asset.processing_error = error
    elif status == "deleted":
        asset.deleted_at = now
    await session.flush()
    logger.info("content_asset_status asset_id=%s status=%s", asset.asset_id, status)
    return asset


async def issue_access_token(
    session: AsyncSession,
    asset: ContentAsset,
    *,
    token_type: str,
    user_id: UUID | None = None,
    max_uses: int = 1,
    ttl: timedelta | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> IssuedToken:
    if token_type not in states.ACCESS_TOKEN_TYPES:
        raise ValueError(f"unknown access token type: {token_type}")
    if max_uses < 1:
        raise ValueError("max_uses must be at least 1")
    if asset.status != "ready":
        raise InvalidStateTransitionError(entity="content_asset", current=asset.status, requested=token_type)
    await ensure_reference(session, "auth.users", user_id, source="content.access_tokens.user_id")
    raw_token, token_hash = generate_access_token()
    ttl = ttl or timedelta(seconds=get_settings().content_access_token_ttl_seconds)
    token = await content_repo.add_access_token(
        session,
        AssetAccessToken(
            asset_id=asset.asset_id,
            user_id=user_id,
            token_hash=token_hash,
            token_type=token_type,
            expires_at=_now() + ttl,
            max_uses=max_uses,
            use_count=0,
            ip_address=ip_address,
            user_agent=user_agent,
        ),
    )
    return IssuedToken(token=token, raw_token=raw_token)


def token_rejection(token: AssetAccessToken, token_type: str, now: datetime | None = None) -> str | None:
    now = now or _now()
    if token.token_type != token_type:
        return "wrong_type"
    if token.expires_at <= now:
        return "expired"
    if token.use_count >= token.max_uses:
        return "used_up"
    return None


async def redeem_access_token(session: AsyncSession, raw_token: str, *, token_type: str) -> ContentAsset:
    """Spend one use of a token and return the asset it unlocks.

    The redemption is counted in the asset's daily and monthly usage stats.
    """
    token = await content_repo.get_access_token_for_update(session, hash_access_token(raw_token))
    if token is None:
        raise AccessTokenRejectedError("unknown")
    reason = token_rejection(token, token_type)
    if reason is not None:
        raise AccessTokenRejectedError(reason)
    asset = await content_repo.get_asset(session, token.asset_id)
    if asset is None or asset.status != "ready":
        raise AccessTokenRejectedError("asset_unavailable")
    token.use_count += 1
    token.last_used_at = _now()
    await record_usage(
        session,
        asset.asset_id,
        streams=1 if token_type == "stream" else 0,
        downloads=1 if token_type == "download" else 0,
        bytes_transferred=asset.size_bytes if token_type == "download" else 0,
        day=token.last_used_at.date(),
    )
    await session.flush()
    return asset


async def record_usage(
    session: AsyncSession,
    asset_id: UUID,
    *,
    views: int = 0,
    downloads: int = 0,
    streams: int = 0,
    bytes_transferred: int = 0,
    day: date | None = None,
) -> None:
    day = day or _now().date()
    for period_type, period_start in (("daily", day), ("monthly", day.replace(day=1))):
        await content_repo.increment_usage(
            session,
            asset_id=asset_id,
            period_start=period_start,
            period_type=period_type,
            views=views,
            downloads=downloads,
            streams=streams,
            bytes_transferred=bytes_transferred,
        )
