import inspect
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from routes.attachment_route import files_router as attachment_files_router
from routes.attachment_route import router as attachment_router
from routes.chat_route import router as chat_router
from routes.expert_route import router as expert_router
from routes.message_route import router as message_router
from routes.session_route import router as session_router
from services.attachment_store import AttachmentStore
from utils.database_init import AsyncDatabaseInitializer
from utils.log_config import configure_logging

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

load_dotenv()  # DATABASE_DIR, OPENAI_API_KEY, etc. may come from a local .env


async def _close_quietly(client) -> None:
    """Close a client exposing `aclose()` or `close()`, sync or async."""
    close = getattr(client, "aclose", None) or getattr(client, "close", None)
    if close is None:
        return
    try:
        result = close()
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logging.warning(f"Error while closing {type(client).__name__}: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the shared clients and attach them to `app.state`:
      - db_initializer: chat store at DATABASE_DIR/app.db (kept across restarts)
      - attachment_store: bucket directory served under /attachments
      - openai_client: AsyncOpenAI used for chat streaming and expert generation
    """
    configure_logging()

    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    logging.info(f"Chat store ready at {db_initializer.db_path}")

    app.state.attachment_store = AttachmentStore()

    if not os.getenv("OPENAI_API_KEY"):
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")
    try:
        app.state.openai_client = AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc

    try:
        yield
    finally:
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            await _close_quietly(client)


def create_app() -> FastAPI:
    app = FastAPI(title="Expert Chat", lifespan=lifespan)

    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """Serve the chat dashboard, when a build is present in ./public."""
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "ok": True,
            "db_initialized": getattr(state, "db_initializer", None) is not None,
            "openai_available": getattr(state, "openai_client", None) is not None,
        }

    for router in (
        chat_router,
        message_router,
        session_router,
        expert_router,
        attachment_router,
        attachment_files_router,
    ):
        app.include_router(router)

    return app


app = create_app()
