"""
Admin HTTP API (aiohttp).

Endpoints:
- POST /send          send to one chat or broadcast to all subscribers
- GET  /admin/buses   list the roster
- POST /admin/buses   add a bus (duplicate ids are rejected with 409)
- GET  /health        liveness check, no token required

Every endpoint except /health requires the shared admin token, passed as the
``X-Admin-Token`` header, an ``adminToken`` query parameter, or (for /send)
an ``adminToken`` field in the JSON body.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import DeliveryFailure, DuplicateVehicle, Unauthorized
from .models import Vehicle
from .notifier import Notifier
from .storage import SubscriberStore, VehicleStore

logger = logging.getLogger(__name__)

VEHICLES_KEY = web.AppKey("vehicles", VehicleStore)
SUBSCRIBERS_KEY = web.AppKey("subscribers", SubscriberStore)
NOTIFIER_KEY = web.AppKey("notifier", object)
TOKEN_KEY = web.AppKey("admin_token", str)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


class SendRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str = Field(min_length=1)
    chat_id: Optional[int] = None
    broadcast: bool = False


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _json_body(request: web.Request) -> Dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _check_token(request: web.Request, body: Optional[Dict[str, Any]] = None) -> None:
    supplied = (
        request.headers.get("X-Admin-Token")
        or request.query.get("adminToken")
        or (body or {}).get("adminToken")
    )
    expected = request.app[TOKEN_KEY]
    if not isinstance(supplied, str) or not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise Unauthorized()


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except Unauthorized as e:
        logger.warning("Rejected admin request to %s from %s", request.path, request.remote)
        return _error(401, e.message)


async def send(request: web.Request) -> web.Response:
    body = await _json_body(request)
    _check_token(request, body)

    if not body.get("text"):
        return _error(400, "text is required")
    try:
        payload = SendRequest.model_validate(body)
    except ValidationError as e:
        return _error(400, e.errors(include_url=False)[0]["msg"])

    notifier: Notifier = request.app[NOTIFIER_KEY]  # type: ignore[assignment]
    if payload.broadcast:
        targets = request.app[SUBSCRIBERS_KEY].all()
        logger.info("Broadcasting to %s subscribers", len(targets))
        results = await notifier.broadcast(targets, payload.text)
        return web.json_response({"broadcast": True, "results": [r.as_dict() for r in results]})

    if payload.chat_id is None:
        return _error(400, "chatId required when broadcast is false")
    try:
        await notifier.send_text(payload.chat_id, payload.text)
    except DeliveryFailure as e:
        logger.warning("Admin send to %s failed: %s", payload.chat_id, e.message)
        return _error(502, e.message)
    return web.json_response({"ok": True})


async def list_buses(request: web.Request) -> web.Response:
    _check_token(request)
    buses = [v.model_dump(mode="json", by_alias=True) for v in request.app[VEHICLES_KEY].all()]
    return web.json_response({"buses": buses})


async def add_bus(request: web.Request) -> web.Response:
    _check_token(request)
    body = await _json_body(request)
    if not body.get("id"):
        return _error(400, "bus object with id required")
    try:
        vehicle = Vehicle.model_validate(body)
    except ValidationError as e:
        return _error(400, str(e))
    try:
        request.app[VEHICLES_KEY].add(vehicle)
    except DuplicateVehicle as e:
        return _error(409, f"bus {e.vehicle_id} already exists")
    return web.json_response({"ok": True, "bus": vehicle.model_dump(mode="json", by_alias=True)})


async def health(request: web.Request) -> web.Response:
    return web.json_response({"ok": True})


def create_admin_app(
    vehicles: VehicleStore,
    subscribers: SubscriberStore,
    notifier: Notifier,
    admin_token: str,
) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[VEHICLES_KEY] = vehicles
    app[SUBSCRIBERS_KEY] = subscribers
    app[NOTIFIER_KEY] = notifier
    app[TOKEN_KEY] = admin_token
    app.router.add_post("/send", send)
    app.router.add_get("/admin/buses", list_buses)
    app.router.add_post("/admin/buses", add_bus)
    app.router.add_get("/health", health)
    return app


__all__ = ["create_admin_app", "SendRequest"]
