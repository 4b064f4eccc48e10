"""
FastAPI application for the Book Builder.

Exposes the book tree (books, parts, chapters, sections, blocks and notes)
with create/read/update/delete, move and reorder operations, plus the AI
writing helpers. The caller is identified by the X-User-Id header.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

# Only load .env file in development (not on Vercel)
# Vercel sets environment variables directly
if os.getenv("VERCEL") != "1":
    from dotenv import load_dotenv
    load_dotenv(override=True)

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from assistant import AssistantError, get_assistant, reset_assistant
from config import get_config, load_config, validate_config_on_startup
from connection import connections, health_check as connection_health_check
from errors import InvalidArgumentError, NotFoundError, StoreFailure
from logger import bind_request_id, get_logger, release_request_id
from models import (
    AnalyzeRequest, AnalyzeResponse, Block, BlockCreate, BlockUpdate, Book, BookCreate, BookUpdate,
    BookView, ChapterCreate, ChapterUpdate, ChapterView, GenerateRequest, GenerateResponse, Level,
    MoveRequest, Note, NoteCreate, NoteUpdate, PartCreate, PartUpdate, PartView, ReorderRequest,
    ScaffoldRequest, ScaffoldResponse, SectionCreate, SectionUpdate, SectionView
)
from store.base import DocumentStore
from structure import StructuralMutator, TreeNavigator, TreePath

logger = get_logger(__name__)

# Check if running in serverless environment
IS_SERVERLESS = os.getenv("VERCEL") == "1" or os.getenv("AWS_LAMBDA_FUNCTION_NAME") is not None

API_VERSION = "1.0.0"


def install_store(app: FastAPI, store: DocumentStore) -> None:
    """Bind the structure core to a document store."""
    navigator = TreeNavigator(store)
    app.state.store = store
    app.state.navigator = navigator
    app.state.mutator = StructuralMutator(store, navigator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan with graceful error handling for serverless.

    A configuration error or an unreachable store leaves the app running in
    degraded mode; /health reports the reason.
    """
    logger.info("=" * 60)
    logger.info(f"Starting Book Builder API (Serverless: {IS_SERVERLESS})")
    logger.info("=" * 60)

    app.state.store_status = {"healthy": False, "error": None}

    try:
        validate_config_on_startup()
        logger.info("Configuration validated")
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        app.state.store_status = {"healthy": False, "error": f"Configuration error: {str(e)}"}
        yield
        return

    try:
        install_store(app, connections.get_store())
        result = connections.test_store_connection()
        app.state.store_status = {
            "healthy": result.get("success", False),
            "error": result.get("exception_message"),
            "backend": result.get("backend"),
        }
        if not result.get("success"):
            logger.warning("[STARTUP] Starting in DEGRADED MODE - store operations will fail!")
    except Exception as e:
        logger.error(f"[STARTUP] Store setup failed: {type(e).__name__}: {e}", exc_info=True)
        app.state.store_status = {"healthy": False, "error": f"{type(e).__name__}: {e}"}
        # In serverless, we don't crash - we just note the error
        if not IS_SERVERLESS:
            raise

    logger.info(f"[STARTUP] Final status: store healthy={app.state.store_status['healthy']}")

    yield

    # Shutdown
    logger.info("Shutting down")
    try:
        reset_assistant()
        connections.reset()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


# Initialize FastAPI app with lifespan
app = FastAPI(
    title="Book Builder API",
    description="Hierarchical book structure with ordering, moves and AI writing helpers",
    version=API_VERSION,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=load_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(error: str, detail: Optional[str], status_code: int) -> dict:
    return {"error": error, "detail": detail, "status_code": status_code}


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.info(f"Not found: {exc}", path=request.url.path, document=exc.path)
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_body("Not found", str(exc), 404))


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    logger.warning(f"Invalid argument: {exc}", path=request.url.path)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body("Invalid argument", str(exc), 400))


@app.exception_handler(StoreFailure)
async def store_failure_handler(request: Request, exc: StoreFailure):
    logger.error(f"Store failure: {exc}", path=request.url.path, method=request.method)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=_error_body("Store failure", str(exc), 502))


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        path=request.url.path,
        method=request.method,
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "Internal server error",
            str(exc) if load_config().debug else None,
            500
        )
    )


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())[:8]
    token = bind_request_id(request_id)

    logger.debug("Request started", method=request.method, path=request.url.path)

    try:
        response = await call_next(request)
    except Exception as e:
        duration = (time.time() - start_time) * 1000
        logger.error(
            f"Request failed: {str(e)}",
            method=request.method,
            path=request.url.path,
            duration_ms=duration
        )
        raise
    finally:
        release_request_id(token)

    duration = (time.time() - start_time) * 1000
    logger.request(
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=duration,
        request_id=request_id
    )
    response.headers["X-Request-Id"] = request_id
    return response


# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------

def get_uid(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Owner of the tree being addressed."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-User-Id header is required")
    return x_user_id.strip()


def _ensure_structure(request: Request) -> None:
    # Lifespan does not run under every ASGI adapter.
    if getattr(request.app.state, "mutator", None) is None:
        install_store(request.app, connections.get_store())


def get_navigator(request: Request) -> TreeNavigator:
    _ensure_structure(request)
    return request.app.state.navigator


def get_mutator(request: Request) -> StructuralMutator:
    _ensure_structure(request)
    return request.app.state.mutator


def _move_target(path: TreePath, body: MoveRequest) -> TreePath:
    """Current path with the requested destination ids swapped in."""
    ids = {
        "book_id": body.target_book_id,
        "part_id": body.target_part_id,
        "chapter_id": body.target_chapter_id,
        "section_id": body.target_section_id,
    }
    return path.with_ids(**{field: value for field, value in ids.items() if value})


def _created(entity_id: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"id": entity_id})


def _deleted(mutator: StructuralMutator, level: Level, path: TreePath, cascade: bool,
             entity_id: Optional[str] = None) -> dict:
    if cascade:
        return {"deleted": mutator.delete_with_descendants(level, path, entity_id), "cascade": True}
    mutator.delete(level, path, entity_id)
    return {"deleted": 1, "cascade": False}


# ----------------------------------------------------------------------
# Service
# ----------------------------------------------------------------------

@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Book Builder API",
        "version": API_VERSION,
        "status": "running",
        "serverless": IS_SERVERLESS,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check - startup status plus a live check of every service."""
    startup_status = getattr(request.app.state, "store_status", {
        "healthy": False,
        "error": "Status not initialized"
    })
    try:
        services = connection_health_check()
        all_healthy = all(s.get("healthy", False) for s in services.values())
        return {
            "status": "healthy" if all_healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "serverless": IS_SERVERLESS,
            "startup_validation": startup_status,
            "live_check": services,
        }
    except Exception as e:
        return {
            "status": "error",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "serverless": IS_SERVERLESS,
            "exception_type": type(e).__name__,
            "exception_message": str(e),
        }


# ----------------------------------------------------------------------
# Books
# ----------------------------------------------------------------------

@app.get("/books", response_model=List[Book])
def list_books(uid: str = Depends(get_uid), navigator: TreeNavigator = Depends(get_navigator)):
    return navigator.list_books(uid)


@app.post("/books", status_code=status.HTTP_201_CREATED)
def create_book(body: BookCreate, uid: str = Depends(get_uid),
                mutator: StructuralMutator = Depends(get_mutator)):
    return _created(mutator.create(Level.BOOK, TreePath(uid), body))


@app.put("/books/order")
def reorder_books(body: ReorderRequest, uid: str = Depends(get_uid),
                  mutator: StructuralMutator = Depends(get_mutator)):
    mutator.reorder_siblings(Level.BOOK, TreePath(uid), body.ordered_ids)
    return {"reordered": len(body.ordered_ids)}


@app.get("/books/{book_id}", response_model=BookView)
def get_book(book_id: str, uid: str = Depends(get_uid), navigator: TreeNavigator = Depends(get_navigator)):
    return navigator.get_book_view(uid, book_id)


@app.get("/books/{book_id}/outline")
def get_outline(book_id: str, uid: str = Depends(get_uid), navigator: TreeNavigator = Depends(get_navigator)):
    """
    Book view with sections, plus a display label for every part, chapter
    and section (I, II ... / 1, 2 ... / A, B ...).
    """
    view = navigator.get_book_view(uid, book_id, include_sections=True)
    labels: Dict[str, str] = {}
    for part_view in view.parts:
        labels[part_view.part.id] = navigator.sibling_label(
            Level.PART, part_view.part.id, [p.part for p in view.parts]
        )
        for chapter in part_view.chapters:
            labels[chapter.id] = navigator.sibling_label(Level.CHAPTER, chapter.id, part_view.chapters)
            sections = (part_view.sections or {}).get(chapter.id, [])
            for section in sections:
                labels[section.id] = navigator.sibling_label(Level.SECTION, section.id, sections)
    return {"outline": view.model_dump(mode="json"), "labels": labels}


@app.patch("/books/{book_id}", response_model=Book)
def update_book(book_id: str, body: BookUpdate, uid: str = Depends(get_uid),
                mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id=book_id)
    mutator.update(Level.BOOK, path, body)
    return mutator.navigator.get_entity(Level.BOOK, path)


@app.delete("/books/{book_id}")
def delete_book(book_id: str, cascade: bool = Query(False), uid: str = Depends(get_uid),
                mutator: StructuralMutator = Depends(get_mutator)):
    return _deleted(mutator, Level.BOOK, TreePath(uid, book_id=book_id), cascade)


# ----------------------------------------------------------------------
# Parts
# ----------------------------------------------------------------------

@app.post("/books/{book_id}/parts", status_code=status.HTTP_201_CREATED)
def create_part(book_id: str, body: PartCreate, uid: str = Depends(get_uid),
                mutator: StructuralMutator = Depends(get_mutator)):
    return _created(mutator.create(Level.PART, TreePath(uid, book_id=book_id), body))


@app.put("/books/{book_id}/parts/order")
def reorder_parts(book_id: str, body: ReorderRequest, uid: str = Depends(get_uid),
                  mutator: StructuralMutator = Depends(get_mutator)):
    mutator.reorder_siblings(Level.PART, TreePath(uid, book_id=book_id), body.ordered_ids)
    return {"reordered": len(body.ordered_ids)}


@app.get("/books/{book_id}/parts/{part_id}", response_model=PartView)
def get_part(book_id: str, part_id: str, include_sections: bool = Query(False), uid: str = Depends(get_uid),
             navigator: TreeNavigator = Depends(get_navigator)):
    return navigator.get_part_view(TreePath(uid, book_id=book_id, part_id=part_id), include_sections)


@app.patch("/books/{book_id}/parts/{part_id}")
def update_part(book_id: str, part_id: str, body: PartUpdate, uid: str = Depends(get_uid),
                mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id=book_id, part_id=part_id)
    mutator.update(Level.PART, path, body)
    return mutator.navigator.get_entity(Level.PART, path)


@app.delete("/books/{book_id}/parts/{part_id}")
def delete_part(book_id: str, part_id: str, cascade: bool = Query(False), uid: str = Depends(get_uid),
                mutator: StructuralMutator = Depends(get_mutator)):
    return _deleted(mutator, Level.PART, TreePath(uid, book_id=book_id, part_id=part_id), cascade)


@app.post("/books/{book_id}/parts/{part_id}/move")
def move_part(book_id: str, part_id: str, body: MoveRequest, uid: str = Depends(get_uid),
              mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id=book_id)
    moved = mutator.move(Level.PART, part_id, path, _move_target(path, body))
    return {"moved": moved}


# ----------------------------------------------------------------------
# Chapters
# ----------------------------------------------------------------------

@app.post("/books/{book_id}/parts/{part_id}/chapters", status_code=status.HTTP_201_CREATED)
def create_chapter(book_id: str, part_id: str, body: ChapterCreate, uid: str = Depends(get_uid),
                   mutator: StructuralMutator = Depends(get_mutator)):
    return _created(mutator.create(Level.CHAPTER, TreePath(uid, book_id=book_id, part_id=part_id), body))


@app.put("/books/{book_id}/parts/{part_id}/chapters/order")
def reorder_chapters(book_id: str, part_id: str, body: ReorderRequest, uid: str = Depends(get_uid),
                     mutator: StructuralMutator = Depends(get_mutator)):
    mutator.reorder_siblings(Level.CHAPTER, TreePath(uid, book_id=book_id, part_id=part_id), body.ordered_ids)
    return {"reordered": len(body.ordered_ids)}


@app.get("/books/{book_id}/parts/{part_id}/chapters/{chapter_id}", response_model=ChapterView)
def get_chapter(book_id: str, part_id: str, chapter_id: str, uid: str = Depends(get_uid),
                navigator: TreeNavigator = Depends(get_navigator)):
    return navigator.get_chapter_view(TreePath(uid, book_id, part_id, chapter_id))


@app.patch("/books/{book_id}/parts/{part_id}/chapters/{chapter_id}")
def update_chapter(book_id: str, part_id: str, chapter_id: str, body: ChapterUpdate,
                   uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id, part_id, chapter_id)
    mutator.update(Level.CHAPTER, path, body)
    return mutator.navigator.get_entity(Level.CHAPTER, path)


@app.delete("/books/{book_id}/parts/{part_id}/chapters/{chapter_id}")
def delete_chapter(book_id: str, part_id: str, chapter_id: str, cascade: bool = Query(False),
                   uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    return _deleted(mutator, Level.CHAPTER, TreePath(uid, book_id, part_id, chapter_id), cascade)


@app.post("/books/{book_id}/parts/{part_id}/chapters/{chapter_id}/move")
def move_chapter(book_id: str, part_id: str, chapter_id: str, body: MoveRequest,
                 uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id=book_id, part_id=part_id)
    return {"moved": mutator.move(Level.CHAPTER, chapter_id, path, _move_target(path, body))}


@app.post("/books/{book_id}/parts/{part_id}/chapters/{chapter_id}/stage-move")
def stage_chapter_move(book_id: str, part_id: str, chapter_id: str, body: MoveRequest,
                       uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    """Copy the chapter to the target part and leave the original pending deletion."""
    path = TreePath(uid, book_id=book_id, part_id=part_id)
    return {"staged": mutator.stage_chapter_move(chapter_id, path, _move_target(path, body))}


@app.post("/books/{book_id}/parts/{part_id}/chapters/{chapter_id}/confirm-deletion")
def confirm_chapter_deletion(book_id: str, part_id: str, chapter_id: str, uid: str = Depends(get_uid),
                             mutator: StructuralMutator = Depends(get_mutator)):
    return {"deleted": mutator.confirm_deletion(TreePath(uid, book_id, part_id, chapter_id))}


# ----------------------------------------------------------------------
# Sections
# ----------------------------------------------------------------------

SECTIONS = "/books/{book_id}/parts/{part_id}/chapters/{chapter_id}/sections"


@app.post(SECTIONS, status_code=status.HTTP_201_CREATED)
def create_section(book_id: str, part_id: str, chapter_id: str, body: SectionCreate,
                   uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    return _created(mutator.create(Level.SECTION, TreePath(uid, book_id, part_id, chapter_id), body))


@app.put(SECTIONS + "/order")
def reorder_sections(book_id: str, part_id: str, chapter_id: str, body: ReorderRequest,
                     uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    mutator.reorder_siblings(Level.SECTION, TreePath(uid, book_id, part_id, chapter_id), body.ordered_ids)
    return {"reordered": len(body.ordered_ids)}


@app.get(SECTIONS + "/{section_id}", response_model=SectionView)
def get_section(book_id: str, part_id: str, chapter_id: str, section_id: str,
                uid: str = Depends(get_uid), navigator: TreeNavigator = Depends(get_navigator)):
    return navigator.get_section_view(TreePath(uid, book_id, part_id, chapter_id, section_id))


@app.patch(SECTIONS + "/{section_id}")
def update_section(book_id: str, part_id: str, chapter_id: str, section_id: str, body: SectionUpdate,
                   uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id, part_id, chapter_id, section_id)
    mutator.update(Level.SECTION, path, body)
    return mutator.navigator.get_entity(Level.SECTION, path)


@app.delete(SECTIONS + "/{section_id}")
def delete_section(book_id: str, part_id: str, chapter_id: str, section_id: str,
                   cascade: bool = Query(False), uid: str = Depends(get_uid),
                   mutator: StructuralMutator = Depends(get_mutator)):
    return _deleted(mutator, Level.SECTION, TreePath(uid, book_id, part_id, chapter_id, section_id), cascade)


@app.post(SECTIONS + "/{section_id}/move")
def move_section(book_id: str, part_id: str, chapter_id: str, section_id: str, body: MoveRequest,
                 uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id, part_id, chapter_id)
    return {"moved": mutator.move(Level.SECTION, section_id, path, _move_target(path, body))}


# ----------------------------------------------------------------------
# Blocks
# ----------------------------------------------------------------------

BLOCKS = SECTIONS + "/{section_id}/blocks"


@app.post(BLOCKS, status_code=status.HTTP_201_CREATED)
def create_block(book_id: str, part_id: str, chapter_id: str, section_id: str, body: BlockCreate,
                 uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    return _created(mutator.create(Level.BLOCK, TreePath(uid, book_id, part_id, chapter_id, section_id), body))


@app.put(BLOCKS + "/order")
def reorder_blocks(book_id: str, part_id: str, chapter_id: str, section_id: str, body: ReorderRequest,
                   uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id, part_id, chapter_id, section_id)
    mutator.reorder_siblings(Level.BLOCK, path, body.ordered_ids)
    return {"reordered": len(body.ordered_ids)}


@app.get(BLOCKS + "/{block_id}", response_model=Block)
def get_block(book_id: str, part_id: str, chapter_id: str, section_id: str, block_id: str,
              uid: str = Depends(get_uid), navigator: TreeNavigator = Depends(get_navigator)):
    return navigator.get_entity(Level.BLOCK, TreePath(uid, book_id, part_id, chapter_id, section_id), block_id)


@app.patch(BLOCKS + "/{block_id}", response_model=Block)
def update_block(book_id: str, part_id: str, chapter_id: str, section_id: str, block_id: str,
                 body: BlockUpdate, uid: str = Depends(get_uid),
                 mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id, part_id, chapter_id, section_id)
    mutator.update(Level.BLOCK, path, body, entity_id=block_id)
    return mutator.navigator.get_entity(Level.BLOCK, path, block_id)


@app.delete(BLOCKS + "/{block_id}")
def delete_block(book_id: str, part_id: str, chapter_id: str, section_id: str, block_id: str,
                 uid: str = Depends(get_uid), mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id, part_id, chapter_id, section_id)
    return _deleted(mutator, Level.BLOCK, path, cascade=False, entity_id=block_id)


@app.post(BLOCKS + "/{block_id}/move")
def move_block(book_id: str, part_id: str, chapter_id: str, section_id: str, block_id: str,
               body: MoveRequest, uid: str = Depends(get_uid),
               mutator: StructuralMutator = Depends(get_mutator)):
    path = TreePath(uid, book_id, part_id, chapter_id, section_id)
    return {"moved": mutator.move(Level.BLOCK, block_id, path, _move_target(path, body))}


# ----------------------------------------------------------------------
# Notes
# ----------------------------------------------------------------------

NOTE_OWNER_ROUTES = {
    Level.BOOK: "/books/{book_id}",
    Level.PART: "/books/{book_id}/parts/{part_id}",
    Level.CHAPTER: "/books/{book_id}/parts/{part_id}/chapters/{chapter_id}",
    Level.SECTION: SECTIONS + "/{section_id}",
}


def _owner_path(request: Request, uid: str) -> TreePath:
    params = request.path_params
    return TreePath(
        uid,
        book_id=params.get("book_id"),
        part_id=params.get("part_id"),
        chapter_id=params.get("chapter_id"),
        section_id=params.get("section_id"),
    )


def _register_note_routes(owner_level: Level, prefix: str) -> None:
    """Notes CRUD under one kind of owner; ids come from the matched path."""
    tag = owner_level.value

    def list_notes(request: Request, include_archived: bool = Query(True), uid: str = Depends(get_uid),
                   navigator: TreeNavigator = Depends(get_navigator)) -> List[Note]:
        return navigator.list_notes(owner_level, _owner_path(request, uid), include_archived)

    def create_note(request: Request, body: NoteCreate, uid: str = Depends(get_uid),
                    mutator: StructuralMutator = Depends(get_mutator)):
        return _created(mutator.create_note(owner_level, _owner_path(request, uid), body))

    def update_note(request: Request, note_id: str, body: NoteUpdate, uid: str = Depends(get_uid),
                    mutator: StructuralMutator = Depends(get_mutator)) -> Note:
        path = _owner_path(request, uid)
        mutator.update_note(owner_level, path, note_id, body)
        return mutator.navigator.get_note(owner_level, path, note_id)

    def delete_note(request: Request, note_id: str, uid: str = Depends(get_uid),
                    mutator: StructuralMutator = Depends(get_mutator)):
        mutator.delete_note(owner_level, _owner_path(request, uid), note_id)
        return {"deleted": 1}

    app.add_api_route(prefix + "/notes", list_notes, methods=["GET"], response_model=List[Note],
                      name=f"list_{tag}_notes")
    app.add_api_route(prefix + "/notes", create_note, methods=["POST"], status_code=status.HTTP_201_CREATED,
                      name=f"create_{tag}_note")
    app.add_api_route(prefix + "/notes/{note_id}", update_note, methods=["PATCH"], response_model=Note,
                      name=f"update_{tag}_note")
    app.add_api_route(prefix + "/notes/{note_id}", delete_note, methods=["DELETE"],
                      name=f"delete_{tag}_note")


for _owner_level, _prefix in NOTE_OWNER_ROUTES.items():
    _register_note_routes(_owner_level, _prefix)


# ----------------------------------------------------------------------
# AI writing helpers
# ----------------------------------------------------------------------

@app.post("/ai/generate", response_model=GenerateResponse)
def ai_generate(request: GenerateRequest):
    """Generate a summary for a book, part, chapter or section."""
    logger.info("Summary requested", entity_type=request.entity_type.value, title=request.title[:50])
    try:
        content = get_assistant().generate_summary(
            request.entity_type,
            request.title,
            request.content,
            request.current_summary,
            max_tokens=request.max_tokens,
            temperature=request.temperature
        )
    except AssistantError as e:
        logger.error(f"Summary generation failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=GenerateResponse(success=False, error=str(e)).model_dump(mode="json")
        )
    return GenerateResponse(success=True, content=content)


@app.post("/ai/analyze", response_model=AnalyzeResponse)
def ai_analyze(request: AnalyzeRequest):
    """Summarize a section (when no summary is given) and score its tightness."""
    logger.info("Analysis requested", section_title=request.section_title[:50])
    try:
        summary, results = get_assistant().analyze_section(request.section_title, request.content, request.summary)
    except AssistantError as e:
        logger.error(f"Section analysis failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=AnalyzeResponse(success=False, error=str(e)).model_dump(mode="json")
        )
    return AnalyzeResponse(success=True, summary=summary, tightness_results=results)


@app.post("/ai/scaffold", response_model=ScaffoldResponse)
def ai_scaffold(
    request: ScaffoldRequest,
    http_request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
):
    """
    Split loose content into children of ``child_type``.

    With ``create`` set the children are appended under the parent named by
    book_id/part_id/chapter_id, which requires the X-User-Id header.
    """
    try:
        items = get_assistant().scaffold(
            request.content, request.child_type, request.parent_title, max_tokens=request.max_tokens
        )
    except AssistantError as e:
        logger.error(f"Scaffold failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=ScaffoldResponse(success=False, error=str(e)).model_dump(mode="json")
        )

    created_ids: List[str] = []
    if request.create:
        uid = get_uid(x_user_id)
        parent = TreePath(uid, book_id=request.book_id, part_id=request.part_id, chapter_id=request.chapter_id)
        created_ids = get_mutator(http_request).scaffold_children(request.child_type, parent, items)

    return ScaffoldResponse(success=True, items=items, created_ids=created_ids)


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
