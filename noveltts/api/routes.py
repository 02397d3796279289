import logging
from pathlib import Path

import yaml
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from ..controller import ReaderController
from ..core.dispatch import Dispatcher
from ..core.errors import DocumentOpenError
from ..library.catalog import CatalogEntry
from ..library.preferences import PreferencesStore
from ..playback.base import SpeechSynthesizer
from ..reader.pdf_handler import PDFHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def load_config(config_path: str = "config.yaml") -> dict:
    path = Path(config_path)
    if path.exists():
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}
    return {}


def init_synthesizer(config: dict) -> SpeechSynthesizer:
    from ..playback.pyttsx3_provider import Pyttsx3Synthesizer

    speech_cfg = config.get("speech", {})
    synth = Pyttsx3Synthesizer(
        voice=speech_cfg.get("voice"),
        locale=speech_cfg.get("locale"),
        rate=speech_cfg.get("rate", 180),
        volume=speech_cfg.get("volume", 1.0),
    )
    logger.info("Speech initialized: rate=%s locale=%s", synth.rate, synth.locale)
    return synth


def init_controller(config: dict, dispatcher: Dispatcher,
                    synthesizer: SpeechSynthesizer | None = None) -> ReaderController:
    data_dir = Path(config.get("storage", {}).get("data_dir", "data"))
    reader_cfg = config.get("reader", {})
    controller = ReaderController(
        prefs=PreferencesStore(db_path=data_dir / "preferences.db"),
        source=PDFHandler(),
        synthesizer=synthesizer or init_synthesizer(config),
        dispatcher=dispatcher,
        library_dir=reader_cfg.get("library_dir", data_dir / "library"),
        default_dark_mode=config.get("display", {}).get("dark_mode", False),
    )
    logger.info("Reader ready: %d documents in catalog", len(controller.catalog.entries))
    return controller


def get_controller(request: Request) -> ReaderController:
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(503, "Reader not initialized.")
    return controller


def get_config(request: Request) -> dict:
    return getattr(request.app.state, "config", {})


# ── Request/Response models ────────────────────────────────────────────────

class AddDocumentRequest(BaseModel):
    path: str

class JumpRequest(BaseModel):
    page: str

class SettingsUpdate(BaseModel):
    dark_mode: bool

class CatalogItem(BaseModel):
    id: str
    title: str
    location_ref: str


def _item(entry: CatalogEntry) -> CatalogItem:
    return CatalogItem(id=entry.id, title=entry.title, location_ref=entry.location_ref)


def _open(controller: ReaderController, ref: str) -> None:
    try:
        controller.open_document(ref)
    except DocumentOpenError as e:
        logger.warning("Open failed: %s", e)
        raise HTTPException(422, f"Unable to open {Path(ref).name}. The file may be damaged or not a PDF.")


# ── Catalog ────────────────────────────────────────────────────────────────

@router.get("/catalog")
async def list_catalog(controller: ReaderController = Depends(get_controller)) -> list[CatalogItem]:
    return [_item(e) for e in controller.catalog.entries]


@router.post("/catalog")
async def add_document(req: AddDocumentRequest,
                       controller: ReaderController = Depends(get_controller)) -> CatalogItem:
    return _item(controller.add_document(req.path))


@router.post("/catalog/upload")
async def upload_pdf(file: UploadFile = File(...),
                     controller: ReaderController = Depends(get_controller),
                     config: dict = Depends(get_config)) -> dict:
    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise HTTPException(400, "Only PDF files are supported.")

    max_mb = config.get("reader", {}).get("max_upload_mb", 50)
    data = await file.read()
    if len(data) > max_mb * 1024 * 1024:
        raise HTTPException(413, f"File too large (max {max_mb}MB).")

    try:
        entry = controller.import_document(file.filename, data)
    except DocumentOpenError as e:
        logger.warning("Imported file could not be opened: %s", e)
        raise HTTPException(422, f"Unable to open {file.filename}. The file may be damaged or not a PDF.")
    return {"entry": _item(entry).model_dump(), **controller.snapshot()}


@router.post("/catalog/{entry_id}/open")
async def open_entry(entry_id: str, controller: ReaderController = Depends(get_controller)) -> dict:
    entry = controller.catalog.get(entry_id)
    if entry is None:
        raise HTTPException(404, "Document not found.")
    _open(controller, entry.location_ref)
    return controller.snapshot()


@router.delete("/catalog/{entry_id}")
async def remove_entry(entry_id: str, controller: ReaderController = Depends(get_controller)) -> dict:
    controller.remove_entry(entry_id)
    return {"status": "ok"}


# ── Session / pages ────────────────────────────────────────────────────────

@router.get("/session")
async def get_session(controller: ReaderController = Depends(get_controller)) -> dict:
    return controller.snapshot()


@router.post("/session/close")
async def close_session(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.close_document()
    return controller.snapshot()


@router.post("/page/next")
async def next_page(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.session.next()
    return controller.snapshot()


@router.post("/page/previous")
async def previous_page(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.session.previous()
    return controller.snapshot()


@router.post("/page/jump")
async def jump_to_page(req: JumpRequest, controller: ReaderController = Depends(get_controller)) -> dict:
    controller.jump_to_page(req.page)
    return controller.snapshot()


@router.get("/page/thumbnail")
async def page_thumbnail(controller: ReaderController = Depends(get_controller)) -> Response:
    png = controller.session.thumbnail()
    if png is None:
        raise HTTPException(404, "No document open.")
    return Response(content=png, media_type="image/png")


# ── Playback ───────────────────────────────────────────────────────────────

@router.get("/playback")
async def get_playback(controller: ReaderController = Depends(get_controller)) -> dict:
    return controller.engine.to_dict()


@router.post("/playback/toggle")
async def toggle_playback(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.toggle_play_pause()
    return controller.engine.to_dict()


@router.post("/playback/pause")
async def pause_playback(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.engine.pause()
    return controller.engine.to_dict()


@router.post("/playback/resume")
async def resume_playback(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.engine.resume()
    return controller.engine.to_dict()


@router.post("/playback/stop")
async def stop_playback(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.engine.stop()
    return controller.engine.to_dict()


# ── Now playing / remote commands ──────────────────────────────────────────

@router.get("/now-playing")
async def now_playing(controller: ReaderController = Depends(get_controller)) -> dict:
    return controller.now_playing.to_dict()


@router.get("/now-playing/artwork")
async def now_playing_artwork(controller: ReaderController = Depends(get_controller)) -> Response:
    info = controller.now_playing.info
    if info is None or info.artwork is None:
        raise HTTPException(404, "No artwork.")
    return Response(content=info.artwork, media_type="image/png")


@router.post("/remote/play")
async def remote_play(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.now_playing.play()
    return controller.now_playing.to_dict()


@router.post("/remote/pause")
async def remote_pause(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.now_playing.pause()
    return controller.now_playing.to_dict()


# ── Settings ───────────────────────────────────────────────────────────────

@router.get("/settings")
async def get_settings(controller: ReaderController = Depends(get_controller)) -> dict:
    return controller.settings.to_dict()


@router.put("/settings")
async def update_settings(req: SettingsUpdate, controller: ReaderController = Depends(get_controller)) -> dict:
    controller.settings.dark_mode = req.dark_mode
    return controller.settings.to_dict()


@router.post("/settings/reset")
async def factory_reset(controller: ReaderController = Depends(get_controller)) -> dict:
    controller.factory_reset()
    return controller.settings.to_dict()


@router.get("/health")
async def health(controller: ReaderController = Depends(get_controller)) -> dict:
    return {
        "status": "ok",
        "session_active": controller.session.has_document,
        "catalog_size": len(controller.catalog.entries),
        "keep_alive_leases": controller.background.active,
    }
