"""HTTP print server for POSPRINT.

Endpoints:
  POST /print   - Print receipt
  GET  /status  - Server status
  GET  /config  - Get store profile
  POST /config  - Update store profile

Every response is a small JSON body; browsers on other origins may call
the server directly (CORS is open).
"""

import logging
from datetime import datetime
from typing import Any, Dict

from aiohttp import web

from posprint import __version__
from posprint.errors import RenderSurfaceFailure, StructuralParseFailure
from posprint.models import StoreProfile
from posprint.parsing.extractor import Record, parse
from posprint.printing.service import PrintService

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("service", PrintService)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# JSON name -> StoreProfile field
CONFIG_FIELDS = {
    "storeName": "store_name",
    "address": "address",
    "phone": "phone",
    "email": "email",
    "logoPath": "logo_path",
    "printerName": "printer_name",
    "currency": "currency",
    "enableCashDrawer": "enable_cash_drawer",
    "pageWidth": "page_width",
}


def error_response(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def read_body(request: web.Request) -> str:
    """Request body as text; undecodable bytes become U+FFFD."""
    data = await request.read()
    try:
        return data.decode(request.charset or "utf-8", errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")


def profile_to_json(profile: StoreProfile) -> Dict[str, Any]:
    return {name: getattr(profile, field) for name, field in CONFIG_FIELDS.items()}


def config_changes(body: Record) -> Dict[str, Any]:
    """Profile fields present in a config update body.

    Values of the wrong type are ignored like any other bad field.
    """
    changes: Dict[str, Any] = {}
    for name, field in CONFIG_FIELDS.items():
        if field == "enable_cash_drawer":
            value = body.get_bool(name)
        elif field == "page_width":
            value = body.get_int(name)
            if value is not None and value <= 0:
                value = None
        else:
            value = body.get(name)
        if value is not None:
            changes[field] = value
    return changes


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflight requests and add CORS headers to every response."""
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response(status=200)
    else:
        try:
            response = await handler(request)
        except web.HTTPNotFound:
            response = error_response("Endpoint not found", 404)
        except web.HTTPMethodNotAllowed:
            response = error_response("Method not allowed", 405)
        except web.HTTPException as e:
            response = error_response(e.reason, e.status)
        except Exception:
            logger.exception(f"Unhandled error on {request.method} {request.path}")
            response = error_response("Internal server error", 500)

    response.headers.update(CORS_HEADERS)
    logger.info(f"{datetime.now():%H:%M:%S} {request.method} {request.path} - {response.status}")
    return response


async def handle_print(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    body = await read_body(request)
    if not body.strip():
        return error_response("Request body is empty", 400)

    try:
        result = await service.print_payload(body)
    except StructuralParseFailure as e:
        logger.warning(f"Rejected print payload: {e}")
        return error_response("Invalid JSON format", 400)
    except RenderSurfaceFailure as e:
        logger.error(f"Error printing receipt: {e}")
        return error_response("Failed to print receipt", 500)

    return web.json_response({
        "success": True,
        "message": "Receipt printed successfully",
        "orderId": result.order_id,
        "drawerOpened": result.drawer_opened,
    })


async def handle_status(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    profile = service.store.current()
    return web.json_response({
        "status": "running",
        "storeName": profile.store_name,
        "version": __version__,
        "printer": await service.printer_status(),
    })


async def handle_get_config(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    return web.json_response(profile_to_json(service.store.current()))


async def handle_update_config(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    body = await read_body(request)
    logger.debug(f"Received config update: {body}")

    try:
        changes = config_changes(parse(body))
    except StructuralParseFailure as e:
        logger.warning(f"Rejected config update: {e}")
        return error_response("Invalid JSON format", 400)

    try:
        profile = service.store.update_fields(**changes)
    except OSError as e:
        logger.error(f"Config update error: {e}")
        return error_response("Failed to save configuration", 500)

    return web.json_response({
        "success": True,
        "message": "Configuration updated successfully",
        "config": profile_to_json(profile),
    })


async def _close_service(app: web.Application) -> None:
    await app[SERVICE_KEY].close()


def create_app(service: PrintService) -> web.Application:
    """Build the aiohttp application around a print service."""
    app = web.Application(middlewares=[cors_middleware])
    app[SERVICE_KEY] = service
    app.router.add_post("/print", handle_print)
    app.router.add_get("/status", handle_status)
    app.router.add_get("/config", handle_get_config)
    app.router.add_post("/config", handle_update_config)
    app.on_cleanup.append(_close_service)
    return app
