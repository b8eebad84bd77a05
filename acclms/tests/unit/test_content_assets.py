from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from acclms.core.errors import AccessTokenRejectedError, InvalidStateTransitionError
from acclms.domain.models import AssetAccessToken, ContentAsset
from acclms.services import content as content_service
from acclms.services.content import (
    generate_access_token,
    hash_access_token,
    storage_key_for,
    token_rejection,
)


NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


class _Session:
    def __init__(self) -> None:
        self.flushes = 0

    async def flush(self) -> None:
        self.flushes += 1


def _asset(status: str = "ready") -> ContentAsset:
    return ContentAsset(
        asset_id=uuid4(),
        owner_id=uuid4(),
        filename="intro.mp4",
        original_filename="intro.mp4",
        content_type="video/mp4",
        size_bytes=2048,
        storage_key="k",
        asset_type="video",
        status=status,
    )


def _token(asset: ContentAsset, **fields: object) -> AssetAccessToken:
    values = {
        "asset_id": asset.asset_id,
        "token_hash": "x" * 64,
        "token_type": "download",
        "expires_at": NOW + timedelta(hours=1),
        "max_uses": 1,
        "use_count": 0,
    }
    values.update(fields)
    return AssetAccessToken(**values)


def test_only_the_digest_is_derivable_from_a_token() -> None:
    raw, digest = generate_access_token()
    assert raw.startswith("acct_")
    assert digest == hash_access_token(raw)
    assert len(digest) == 64
    assert raw not in digest


def test_storage_keys_are_scoped_per_asset() -> None:
    owner, asset = uuid4(), uuid4()
    assert storage_key_for(owner, asset, "../notes/a.pdf") == f"{owner}/{asset}/.._notes_a.pdf"


def test_token_rejection_reasons() -> None:
    asset = _asset()
    assert token_rejection(_token(asset), "download", NOW) is None
    assert token_rejection(_token(asset), "stream", NOW) == "wrong_type"
    assert token_rejection(_token(asset, expires_at=NOW), "download", NOW) == "expired"
    assert token_rejection(_token(asset, use_count=1), "download", NOW) == "used_up"


@pytest.mark.asyncio
async def test_processing_lifecycle_stamps_times() -> None:
    asset = _asset(status="pending")
    session = _Session()
    await content_service.transition_asset(session, asset, "processing")  # type: ignore[arg-type]
    assert asset.processing_started_at is not None
    await content_service.transition_asset(session, asset, "failed", error="codec")  # type: ignore[arg-type]
    assert asset.processing_error == "codec"
    await content_service.transition_asset(session, asset, "processing")  # type: ignore[arg-type]
    assert asset.processing_error is None
    await content_service.transition_asset(session, asset, "ready")  # type: ignore[arg-type]
    assert asset.processing_completed_at is not None
    with pytest.raises(InvalidStateTransitionError):
        await content_service.transition_asset(session, asset, "uploading")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_tokens_are_only_issued_for_ready_assets() -> None:
    with pytest.raises(InvalidStateTransitionError):
        await content_service.issue_access_token(
            _Session(), _asset(status="processing"), token_type="stream"  # type: ignore[arg-type]
        )


@pytest.mark.asyncio
async def test_redeeming_spends_a_use_and_counts_usage(monkeypatch) -> None:
    asset = _asset()
    raw, digest = generate_access_token()
    token = _token(asset, token_hash=digest, expires_at=datetime.now(timezone.utc) + timedelta(minutes=5))
    usage: list[tuple[str, date, int, int]] = []

    async def _lookup(session, token_hash):
        return token if token_hash == digest else None

    async def _get_asset(session, asset_id):
        return asset

    async def _increment(session, *, asset_id, period_start, period_type, downloads, bytes_transferred, **_):
        usage.append((period_type, period_start, downloads, bytes_transferred))

    monkeypatch.setattr(content_service.content_repo, "get_access_token_for_update", _lookup)
    monkeypatch.setattr(content_service.content_repo, "get_asset", _get_asset)
    monkeypatch.setattr(content_service.content_repo, "increment_usage", _increment)

    session = _Session()
    unlocked = await content_service.redeem_access_token(session, raw, token_type="download")  # type: ignore[arg-type]
    assert unlocked is asset
    assert token.use_count == 1
    today = token.last_used_at.date()
    assert usage == [("daily", today, 1, 2048), ("monthly", today.replace(day=1), 1, 2048)]

    with pytest.raises(AccessTokenRejectedError) as excinfo:
        await content_service.redeem_access_token(session, raw, token_type="download")  # type: ignore[arg-type]
    assert excinfo.value.reason == "used_up"

    with pytest.raises(AccessTokenRejectedError) as excinfo:
        await content_service.redeem_access_token(
            session, "acct_forged", token_type="download"  # type: ignore[arg-type]
        )
    assert excinfo.value.reason == "unknown"
