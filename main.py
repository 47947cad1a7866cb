import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from dal.message_dal import MessageDAL
from routes.conversation_route import router as conversation_router
from routes.conversation_ws import router as conversation_ws_router
from services.conversation.conversation_store import ConversationStore
from services.conversation.run_poller import DEFAULT_POLL_INTERVAL
from services.openai.assistant_client import AssistantClient, build_openai_client
from utils.database_init import AsyncDatabaseInitializer

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite message log (kept across restarts, at DATABASE_DIR/app.db)
      - the OpenAI async client and the assistant client built on it
      - the registry of open conversations
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    app.state.message_log = MessageDAL(db_initializer)

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        openai_client = build_openai_client(api_key=openai_api_key, base_url=os.getenv("OPENAI_BASE_URL") or None)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc

    assistant_client = AssistantClient(openai_client)
    app.state.assistant_client = assistant_client

    assistant_id = os.getenv("OPENAI_ASSISTANT_ID") or None
    if not assistant_id:
        LOGGER.warning("OPENAI_ASSISTANT_ID is not set; conversations must name an assistant")
    app.state.conversation_store = ConversationStore(
        assistant_client,
        app.state.message_log,
        default_assistant_id=assistant_id,
        poll_interval=DEFAULT_POLL_INTERVAL,
    )

    try:
        yield
    finally:
        await app.state.conversation_store.close_all()
        try:
            await assistant_client.close()
        except Exception:
            LOGGER.warning("Failed to close OpenAI client", exc_info=True)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports the message log, client and open conversations.
        """
        has_db = getattr(request.app.state, "db_initializer", None) is not None
        has_openai = getattr(request.app.state, "assistant_client", None) is not None
        store = getattr(request.app.state, "conversation_store", None)
        return {
            "ok": True,
            "db_initialized": has_db,
            "openai_available": has_openai,
            "open_conversations": len(store) if store is not None else 0,
        }

    # Register application routers
    app.include_router(conversation_router)
    app.include_router(conversation_ws_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("APP_HOST", "127.0.0.1"),
        port=int(os.getenv("APP_PORT", "8000")),
    )
