"""
Flyer Studio - HTTP API Routes
aiohttp routes that drive a wizard session step by step
"""

import asyncio
from urllib.parse import quote

from aiohttp import web

from .config_loader import Settings, load_settings, load_template_catalog
from .errors import ValidationError, AssetConversionError
from .gemini_client import GeminiClient
from .image_utils import file_to_data_uri, image_data_uri
from .studio import SessionStore, FlyerStudioSession
from .wizard import SlotKind

STORE_KEY = web.AppKey("session_store", SessionStore)
SETTINGS_KEY = web.AppKey("settings", Settings)

routes = web.RouteTableDef()


def _error(message: str, status: int = 400) -> web.Response:
    return web.json_response({"status": "error", "message": message}, status=status)


def _success(session: FlyerStudioSession, status: int = 200, **extra) -> web.Response:
    body = {"status": "success", "session": session.snapshot()}
    body.update(extra)
    return web.json_response(body, status=status)


def _get_session(request: web.Request) -> FlyerStudioSession:
    session = request.app[STORE_KEY].get(request.match_info["session_id"])
    if session is None:
        raise web.HTTPNotFound(
            text='{"status": "error", "message": "Session not found"}',
            content_type="application/json",
        )
    return session


def _get_slot(request: web.Request) -> SlotKind:
    try:
        return SlotKind(request.match_info["slot"])
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"status": "error", "message": "Unknown image slot"}',
            content_type="application/json",
        ) from None


async def _json_body(request: web.Request) -> dict:
    if not request.can_read_body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"status": "error", "message": "Invalid JSON body"}',
            content_type="application/json",
        ) from None
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(
            text='{"status": "error", "message": "JSON body must be an object"}',
            content_type="application/json",
        )
    return data


@routes.post("/sessions")
async def create_session(request):
    session = request.app[STORE_KEY].create()
    return _success(session, status=201)


@routes.get("/sessions/{session_id}")
async def get_session(request):
    return _success(_get_session(request))


@routes.delete("/sessions/{session_id}")
async def discard_session(request):
    _get_session(request)
    request.app[STORE_KEY].discard(request.match_info["session_id"])
    return web.json_response({"status": "success"})


@routes.post("/sessions/{session_id}/advance")
async def advance(request):
    session = _get_session(request)
    try:
        session.wizard.advance()
    except ValidationError as e:
        return _error(e.message)
    return _success(session)


@routes.post("/sessions/{session_id}/retreat")
async def retreat(request):
    session = _get_session(request)
    session.wizard.retreat()
    return _success(session)


@routes.post(r"/sessions/{session_id}/goto/{step:\d+}")
async def go_to_step(request):
    session = _get_session(request)
    try:
        session.wizard.go_to(int(request.match_info["step"]))
    except ValidationError as e:
        return _error(e.message)
    return _success(session)


@routes.patch("/sessions/{session_id}/draft")
async def update_draft(request):
    session = _get_session(request)
    data = await _json_body(request)
    try:
        session.wizard.update_fields(data)
    except ValidationError as e:
        return _error(e.message)
    return _success(session)


@routes.post("/sessions/{session_id}/images/{slot}")
async def upload_image(request):
    """Multipart upload (`file` field) or JSON `{"data_uri": ...}`"""
    session = _get_session(request)
    slot = _get_slot(request)

    max_bytes = session.wizard.max_image_bytes

    try:
        if request.content_type.startswith("multipart/"):
            post = await request.post()
            upload = post.get("file")
            if not isinstance(upload, web.FileField):
                return _error("Missing 'file' field")
            ref = await asyncio.to_thread(
                file_to_data_uri, upload.file, mime_type=upload.content_type, max_bytes=max_bytes
            )
        else:
            data = await _json_body(request)
            data_uri = data.get("data_uri", "")
            if not isinstance(data_uri, str) or not data_uri.startswith("data:"):
                return _error("Expected a multipart upload or a data URI")
            ref = await asyncio.to_thread(image_data_uri, data_uri, max_bytes=max_bytes)
    except AssetConversionError as e:
        session.logger.add_warning(f"Upload rejected: {e}")
        return _error("No se pudo procesar la imagen. Sube un archivo de imagen válido.")

    # Slot changes stay on the loop thread, the logo listener schedules tasks on it
    session.wizard.add_images(slot, [ref])
    return _success(session)


@routes.delete(r"/sessions/{session_id}/images/{slot}/{index:\d+}")
async def remove_image(request):
    session = _get_session(request)
    slot = _get_slot(request)
    try:
        session.wizard.remove_image(slot, int(request.match_info["index"]))
    except ValidationError as e:
        return _error(e.message)
    return _success(session)


@routes.post("/sessions/{session_id}/template")
async def select_template(request):
    session = _get_session(request)
    data = await _json_body(request)
    url = data.get("url", "")
    if url not in session.wizard.template_catalog:
        return _error("Plantilla no disponible.")
    session.wizard.select_template(url)
    return _success(session)


@routes.delete("/sessions/{session_id}/template")
async def clear_template(request):
    session = _get_session(request)
    session.wizard.clear_template()
    return _success(session)


@routes.post("/sessions/{session_id}/generate")
async def generate(request):
    session = _get_session(request)
    data = await _json_body(request)

    if session.orchestrator.is_generating:
        return _error("Ya estamos diseñando tu flyer.", status=409)

    try:
        flyer = await session.orchestrator.generate(data.get("aspect_ratio"))
    except ValidationError as e:
        return _error(e.message)

    if flyer is None:
        return web.json_response(
            {
                "status": "error",
                "message": session.orchestrator.state.message,
                "session": session.snapshot(),
            },
            status=502,
        )
    return _success(session)


@routes.get("/sessions/{session_id}/flyer")
async def download_flyer(request):
    session = _get_session(request)
    exported = session.export()
    if exported is None:
        return _error("Todavía no hay un flyer generado.", status=404)

    filename, data = exported
    return web.Response(
        body=data,
        content_type=session.orchestrator.flyer.image.mime_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@routes.get("/sessions/{session_id}/log")
async def session_log(request):
    session = _get_session(request)
    return web.json_response({
        "status": "success",
        "summary": session.logger.get_summary(),
        "log": session.logger.to_dict(),
    })


@routes.get("/templates")
async def list_templates(request):
    templates = request.app[STORE_KEY].template_catalog or []
    return web.json_response({"status": "success", "templates": templates})


@routes.post("/verify_api")
async def verify_api_key(request):
    data = await _json_body(request)
    api_key = str(data.get("api_key", "")).strip()

    if not api_key:
        return web.json_response({"status": "error", "message": "API Key Missing"})

    client = GeminiClient(api_key=api_key, settings=request.app[SETTINGS_KEY])
    valid, message = await client.verify_api_key()
    return web.json_response({"status": "success" if valid else "error", "message": message})


def create_app(settings=None, client_factory=None, template_catalog=None) -> web.Application:
    """
    Build the aiohttp application

    Args:
        settings: Runtime settings, loaded from configs/settings.json and the environment when omitted
        client_factory: Callable(settings) -> GeminiClient used for every new session
        template_catalog: Reference template URLs, loaded from configs/templates.json when omitted
    """
    if settings is None:
        settings, settings_error = load_settings()
        if settings_error:
            print(f"[FlyerStudio] [WARN] {settings_error}")
    if template_catalog is None:
        template_catalog, catalog_error = load_template_catalog()
        if catalog_error:
            print(f"[FlyerStudio] [WARN] {catalog_error}")

    app = web.Application()
    app[SETTINGS_KEY] = settings
    app[STORE_KEY] = SessionStore(settings, template_catalog=template_catalog, client_factory=client_factory)
    app.add_routes(routes)
    return app
