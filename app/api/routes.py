"""
HTTP API handlers.

Thin reads and writes over the Mirror Store for the admin panel.
"""

from typing import Any, TypeVar

from aiohttp import web
from loguru import logger
from pydantic import BaseModel, ValidationError

from app.api.schemas import (
    EventCreateRequest,
    PackageCreateRequest,
    PackageUpdateRequest,
    UserCreateRequest,
    UserPackageStatsRequest,
)
from app.api.serializers import (
    decimal_str,
    page_payload,
    serialize_event,
    serialize_package,
    serialize_package_stats,
    serialize_sync_state,
    serialize_user,
)
from app.config.constants import (
    API_DEFAULT_EVENTS_LIMIT,
    API_DEFAULT_USERS_LIMIT,
    API_MAX_PAGE_LIMIT,
)
from app.services.event_processor.types import EventRecordData
from app.services.mirror_store import MirrorStore
from app.services.package_sync_service import PackageSyncService
from app.services.sync_coordinator import SyncCoordinator
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import PersistenceError, RpcUnavailable
from app.utils.security import mask_address
from app.validators import validate_page_params, validate_wallet_address

STORE_KEY = web.AppKey("store", MirrorStore)
COORDINATOR_KEY = web.AppKey("coordinator", SyncCoordinator)
PACKAGE_SYNC_KEY = web.AppKey("package_sync", PackageSyncService)

RequestT = TypeVar("RequestT", bound=BaseModel)


def _error(message: str, status: int, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


def _store(request: web.Request) -> MirrorStore:
    return request.app[STORE_KEY]


def _coordinator(request: web.Request) -> SyncCoordinator | None:
    return request.app.get(COORDINATOR_KEY)


def _page(request: web.Request, default_limit: int) -> tuple[int, int]:
    ok, values, error = validate_page_params(
        request.query.get("page"),
        request.query.get("limit"),
        default_limit,
        API_MAX_PAGE_LIMIT,
    )
    if not ok:
        raise web.HTTPBadRequest(reason=error)
    return values


def _address(request: web.Request, name: str = "address") -> str:
    ok, address, error = validate_wallet_address(request.match_info[name])
    if not ok:
        raise web.HTTPBadRequest(reason=error)
    return address


def _int_param(request: web.Request, name: str) -> int:
    try:
        return int(request.match_info[name])
    except ValueError:
        raise web.HTTPBadRequest(reason=f"{name} must be an integer") from None


async def _body(request: web.Request, model: type[RequestT]) -> RequestT:
    try:
        data = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(reason="Request body must be JSON") from None
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(reason="Request body must be a JSON object")
    return model.model_validate(data)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def list_users(request: web.Request) -> web.Response:
    page, limit = _page(request, API_DEFAULT_USERS_LIMIT)
    users, total = await _store(request).list_users(page, limit)
    return web.json_response(
        page_payload("users", [serialize_user(u) for u in users], page, limit, total)
    )


async def get_user(request: web.Request) -> web.Response:
    found = await _store(request).get_user(_address(request))
    if found is None:
        return _error("User not found", 404)
    user, stats = found
    return web.json_response({
        **serialize_user(user),
        "packageStats": [serialize_package_stats(s) for s in stats],
    })


async def create_user(request: web.Request) -> web.Response:
    body = await _body(request, UserCreateRequest)
    user = await _store(request).upsert_user(body.address, **body.changes())
    logger.info(f"[API] Upserted user {mask_address(user.address)}")
    return web.json_response(serialize_user(user), status=201)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


async def list_events(request: web.Request) -> web.Response:
    page, limit = _page(request, API_DEFAULT_EVENTS_LIMIT)
    event_type = request.query.get("eventType") or None
    events, total = await _store(request).list_events(page, limit, event_type=event_type)
    return web.json_response(
        page_payload("events", [serialize_event(e) for e in events], page, limit, total)
    )


async def list_user_events(request: web.Request) -> web.Response:
    address = _address(request)
    page, limit = _page(request, API_DEFAULT_EVENTS_LIMIT)
    events, total = await _store(request).events_by_user(address, page, limit)
    return web.json_response(
        page_payload("events", [serialize_event(e) for e in events], page, limit, total)
    )


async def events_summary(request: web.Request) -> web.Response:
    return web.json_response(await _store(request).events_summary())


async def create_event(request: web.Request) -> web.Response:
    """Append an event and apply its aggregate effect, idempotently."""
    body = await _body(request, EventCreateRequest)
    record = EventRecordData(
        event_type=body.event_type,
        user_address=body.user_address,
        transaction_hash=body.transaction_hash,
        block_number=body.block_number,
        log_index=body.log_index,
        timestamp=body.timestamp or utc_now(),
        amount=body.amount,
        package_id=body.package_id,
        referrer_address=body.referrer_address,
        payload=body.event_data,
    )
    created = await _store(request).apply_record(record)
    return web.json_response(
        {
            "created": created,
            "eventType": record.event_type,
            "transactionHash": record.transaction_hash,
            "blockNumber": record.block_number,
            "logIndex": record.log_index,
        },
        status=201 if created else 200,
    )


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


async def list_packages(request: web.Request) -> web.Response:
    packages = await _store(request).list_packages()
    return web.json_response({"packages": [serialize_package(p) for p in packages]})


async def get_package(request: web.Request) -> web.Response:
    package = await _store(request).get_package(_int_param(request, "id"))
    if package is None:
        return _error("Package not found", 404)
    return web.json_response({"package": serialize_package(package)})


async def create_package(request: web.Request) -> web.Response:
    body = await _body(request, PackageCreateRequest)
    package = await _store(request).upsert_package(body.package_id, **body.changes())
    return web.json_response({"package": serialize_package(package)}, status=201)


async def update_package(request: web.Request) -> web.Response:
    package_id = _int_param(request, "id")
    body = await _body(request, PackageUpdateRequest)
    store = _store(request)
    if await store.get_package(package_id) is None:
        return _error("Package not found", 404)
    package = await store.upsert_package(package_id, **body.changes())
    return web.json_response({"package": serialize_package(package)})


async def sync_packages(request: web.Request) -> web.Response:
    service = request.app.get(PACKAGE_SYNC_KEY)
    if service is None:
        return _error("Package sync not available", 503)
    try:
        result = await service.sync_packages()
    except RpcUnavailable as e:
        logger.error(f"[API] Package sync failed: {e}")
        return _error("Chain unavailable", 502, details=str(e))
    return web.json_response(result)


# ---------------------------------------------------------------------------
# User package stats
# ---------------------------------------------------------------------------


async def list_user_stats(request: web.Request) -> web.Response:
    address = None
    if "address" in request.match_info:
        address = _address(request)
    elif request.query.get("address"):
        ok, address, error = validate_wallet_address(request.query["address"])
        if not ok:
            raise web.HTTPBadRequest(reason=error)

    rows = await _store(request).list_user_package_stats(address)
    if address is not None and not rows and await _store(request).get_user(address) is None:
        return _error("User not found", 404)
    return web.json_response({
        "stats": [serialize_package_stats(stats, user_address) for user_address, stats in rows]
    })


async def upsert_user_stats(request: web.Request) -> web.Response:
    body = await _body(request, UserPackageStatsRequest)
    stats = await _store(request).upsert_user_package_stats(
        body.user_address, body.package_id, **body.changes()
    )
    return web.json_response(
        {"stats": serialize_package_stats(stats, body.user_address)}, status=201
    )


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


async def monthly_analytics(request: web.Request) -> web.Response:
    return web.json_response(await _store(request).monthly_analytics())


async def package_ascension_analytics(request: web.Request) -> web.Response:
    totals = await _store(request).package_ascension_analytics(
        _int_param(request, "packageId")
    )
    return web.json_response({
        "packageId": totals["package_id"],
        "totalReferrals": totals["total_referrals"],
        "totalRewards": decimal_str(totals["total_rewards"]),
        "ascensionBonusReferrals": totals["ascension_bonus_referrals"],
        "ascensionBonusSalesTotal": decimal_str(totals["ascension_bonus_sales_total"]),
        "ascensionBonusRewardsClaimed": decimal_str(totals["ascension_bonus_rewards_claimed"]),
    })


# ---------------------------------------------------------------------------
# Sync control and health
# ---------------------------------------------------------------------------


async def hard_refresh(request: web.Request) -> web.Response:
    """Clear the mirror and resync from genesis in the background."""
    coordinator = _coordinator(request)
    if coordinator is None:
        return web.json_response(
            {"success": False, "error": "Sync coordinator not running"}, status=503
        )

    coordinator.request_hard_refresh()
    logger.warning("[API] Hard refresh requested")
    return web.json_response({
        "success": True,
        "message": "Hard refresh initiated - mirror will be cleared and resynced from genesis in background",
        "timestamp": utc_now().isoformat(),
    })


async def sync_status(request: web.Request) -> web.Response:
    coordinator = _coordinator(request)
    state = await _store(request).get_sync_state()
    return web.json_response({
        "coordinator": coordinator.status() if coordinator else None,
        "rpc": coordinator.ctx.chain.get_stats() if coordinator else None,
        "checkpoint": serialize_sync_state(state),
    })


async def health(request: web.Request) -> web.Response:
    coordinator = _coordinator(request)
    return web.json_response({
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "phase": coordinator.phase.value if coordinator else None,
        "checkpoint": coordinator.checkpoint if coordinator else None,
    })


# ---------------------------------------------------------------------------
# Middleware and routing
# ---------------------------------------------------------------------------


@web.middleware
async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    """Map validation and storage failures to JSON errors."""
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status >= 400 and e.content_type != "application/json":
            return _error(e.reason, e.status)
        raise
    except ValidationError as e:
        return _error(
            "Invalid request body",
            400,
            details=e.errors(include_url=False, include_context=False, include_input=False),
        )
    except ValueError as e:
        return _error(str(e), 400)
    except PersistenceError as e:
        logger.error(f"[API] {request.method} {request.path} storage failure: {e}")
        return _error("Storage unavailable", 503)
    except Exception as e:
        logger.exception(f"[API] {request.method} {request.path} failed: {e}")
        return _error("Internal server error", 500)


def setup_routes(app: web.Application, prefix: str) -> None:
    """Register every endpoint under the API prefix."""
    router = app.router
    router.add_get(f"{prefix}/users", list_users)
    router.add_post(f"{prefix}/users", create_user)
    router.add_get(f"{prefix}/users/{{address}}", get_user)

    router.add_get(f"{prefix}/events", list_events)
    router.add_post(f"{prefix}/events", create_event)
    router.add_get(f"{prefix}/events/summary", events_summary)
    router.add_get(f"{prefix}/events/user/{{address}}", list_user_events)

    router.add_get(f"{prefix}/packages", list_packages)
    router.add_post(f"{prefix}/packages", create_package)
    router.add_post(f"{prefix}/packages/sync", sync_packages)
    router.add_get(f"{prefix}/packages/{{id}}", get_package)
    router.add_put(f"{prefix}/packages/{{id}}", update_package)

    router.add_get(f"{prefix}/user-stats", list_user_stats)
    router.add_post(f"{prefix}/user-stats", upsert_user_stats)
    router.add_get(f"{prefix}/user-stats/{{address}}", list_user_stats)

    router.add_get(f"{prefix}/analytics/monthly", monthly_analytics)
    router.add_get(f"{prefix}/analytics/package/{{packageId}}/ascension", package_ascension_analytics)

    router.add_post(f"{prefix}/hard-refresh", hard_refresh)
    router.add_get(f"{prefix}/sync/status", sync_status)
    router.add_get(f"{prefix}/health", health)
