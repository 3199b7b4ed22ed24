# FastAPI server which will handle all the backend and GenAI aspects of the chatbot
# uvicorn server:app
# Avoid using --reload flag, because, every reload rebuilds the whole chatbot pipeline.

from fastapi import FastAPI, File, UploadFile, Form, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

import asyncio
from typing import List, Optional
from pydantic import BaseModel, ValidationError
from contextlib import asynccontextmanager

# llm system imports:
from llm_system.chatbot import ChatBot, ChatBotConfig            # Classes
from llm_system.chatbot import NotInitializedError, InitializationError
from llm_system.chains.prompts import PromptSet                   # Class
from llm_system.core.response import ResponseMode                 # Enum
from llm_system.core.database import VectorDB, get_embeddings    # Class, Function
from llm_system.core.ingestion import ingest_file                 # Function
from llm_system import config                                     # Constants

# Helper Modules:
import pg_db
import files

import logger
log = logger.get_logger("rag_server")


# ------------------------------------------------------------------------------
# Chatbot construction:
# ------------------------------------------------------------------------------

def build_chatbot(settings: Optional[dict] = None) -> ChatBot:
    """Build an uninitialized chatbot from one `bot_settings` row, or from the defaults."""

    mode = ResponseMode(config.RESPONSE_MODE)
    if not settings:
        log.info("No active chatbot settings, using the default prompts and collection.")
        return ChatBot(ChatBotConfig(), PromptSet.for_mode(mode))

    log.info(f"Building chatbot from settings '{settings['name']}' (ID {settings['setting_id']})")
    prompts = PromptSet.from_settings(
        retriever_prompt=settings["retriever_prompt"],
        system_prompt=settings["system_prompt"],
        mode=mode,
    )
    return ChatBot(ChatBotConfig(collection_name=settings["collection_name"]), prompts)


async def start_chatbot(settings: Optional[dict] = None) -> ChatBot:
    """Build and initialize a chatbot off the event loop.
    A failed bot is returned as is, it answers every message with `NotInitializedError`.
    """

    bot = build_chatbot(settings)
    try:
        await asyncio.to_thread(bot.initialize)
    except InitializationError as e:
        log.error(f"Chatbot failed to start, chat requests will be refused: {e}")
    return bot


# ------------------------------------------------------------------------------
# FastAPI Startup:
# ------------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Define the lifespan context manager for startup/shutdown"""

    # [ Startup ]
    log.info("[LifeSpan] Starting the server components.")

    active_settings = []
    try:
        pg_db.create_tables()
        active_settings = pg_db.get_active_settings()
    except Exception as e:
        log.exception(f"[LifeSpan] Database unavailable, continuing with default settings: {e}")

    # Files
    files.check_create_uploads_folder()

    active = active_settings[0] if active_settings else None
    app.state.chatbot = await start_chatbot(active)
    app.state.active_setting_id = active["setting_id"] if active and app.state.chatbot.is_ready else None
    log.info(f"[LifeSpan] Chatbot state: {app.state.chatbot.state.value}")

    # [ Lifespan ]
    yield

    # [ Shutdown ]
    log.info("[LifeSpan] Shutting down RAG server...")


# Make one FastAPI app instance with the lifespan context manager
app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:8501",
        "http://127.0.0.1:8501",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"]
)


def get_chatbot(request: Request) -> Optional[ChatBot]:
    return getattr(request.app.state, "chatbot", None)


# ------------------------------------------------------------------------------
# Basic API Endpoints:
# ------------------------------------------------------------------------------

@app.get("/")
async def root(request: Request):
    """Root endpoint to check if the server is running."""
    bot = get_chatbot(request)
    return {
        "message": "RAG Chatbot Server is running!",
        "chatbot": bot.state.value if bot else "uninitialized",
    }


# ------------------------------------------------------------------------------
# Chat Endpoint:
# ------------------------------------------------------------------------------

class ConversationTurn(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    messages: List[ConversationTurn]


@app.post("/api/chat")
async def chat(request: Request):
    """Endpoint to answer the latest message of a conversation.
    - Post request expects JSON `{"messages": [{"role": "user"|"assistant", "content": ""}, ...]}`.
    - The last message is the question, the whole list is the chat history.
    - Return JSON with `{"text": ""}` or `{"error": "message"}` structure.
    """

    client = request.client.host if request.client else "unknown"

    try:
        chat_request = ChatRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        log.warning(f"/api/chat Malformed body from '{client}': {e}")
        return JSONResponse(status_code=400, content={"error": "Body must be {\"messages\": [{\"role\", \"content\"}, ...]}"})

    if not chat_request.messages:
        log.warning(f"/api/chat Empty conversation from '{client}'")
        return JSONResponse(status_code=400, content={"error": "At least one message is required"})

    bot = get_chatbot(request)
    if bot is None:
        log.error(f"/api/chat Chatbot not started, refusing '{client}'")
        return JSONResponse(status_code=503, content={"error": "Chatbot is not initialized"})

    messages = [turn.model_dump() for turn in chat_request.messages]
    log.info(f"/api/chat Requested by '{client}' with {len(messages)} messages")

    try:
        text = await bot.process_message(messages[-1]["content"], messages)

    except NotInitializedError as e:
        log.error(f"/api/chat Chatbot unavailable for '{client}': {e}")
        return JSONResponse(status_code=503, content={"error": "Chatbot is not initialized"})

    except asyncio.TimeoutError:
        log.error(f"/api/chat Timed out for '{client}'")
        return JSONResponse(status_code=504, content={"error": "The chatbot took too long to answer"})

    except Exception as e:
        log.exception(f"/api/chat Error {e} for '{client}'")
        return JSONResponse(status_code=500, content={"error": "Failed to generate an answer"})

    log.info(f"/api/chat Response generated for '{client}'")
    return {"text": text}


# ------------------------------------------------------------------------------
# Chatbot Settings Endpoints:
# ------------------------------------------------------------------------------

@app.get("/api/chatbot/fetch-settings")
async def fetch_active_settings():
    """Endpoint to get the active chatbot settings.
    - Return JSON list of settings rows (normally one).
    """
    log.info("/api/chatbot/fetch-settings Requested")
    return pg_db.get_active_settings()


@app.get("/api/chatbot/settings")
async def fetch_settings():
    """Endpoint to get every chatbot settings row."""
    log.info("/api/chatbot/settings Requested")
    return pg_db.get_settings()


def get_vector_db(request: Request, collection_name: str) -> VectorDB:
    """Vector store of `collection_name`, reusing the running chatbot's when it matches."""

    bot = get_chatbot(request)
    if bot is not None and bot.is_ready and bot.config.collection_name == collection_name:
        return bot.vector_db

    return VectorDB(
        embeddings=get_embeddings(
            model_name=config.EMB_MODEL_NAME,
            provider=config.LLM_PROVIDER,
            api_key=config.GEMINI_API_KEY,
            base_url=config.OLLAMA_BASE_URL,
        ),
        qdrant_url=config.QDRANT_URL,
        collection_name=collection_name,
        retriever_num_docs=config.RETRIEVER_K,
    )


async def store_context_file(request: Request, collection_name: str,
                             context_file: UploadFile) -> tuple[bool, str]:
    """Save an uploaded context file and ingest it into the collection.
    Returns the stored file name, or the error message."""

    status, file_name = files.save_file(
        collection_name=collection_name,
        file_value_binary=await context_file.read(),
        file_name=context_file.filename or "context.txt",
    )
    if not status:
        return False, file_name

    try:
        vector_db = await asyncio.to_thread(get_vector_db, request, collection_name)
    except Exception as e:
        log.exception(f"Could not open collection '{collection_name}' for ingestion: {e}")
        files.delete_file(collection_name=collection_name, file_name=file_name)
        return False, f"Could not open collection '{collection_name}'"

    status, doc_ids, message = await asyncio.to_thread(
        ingest_file, files.get_file_path(collection_name, file_name), vector_db
    )
    if not status:
        files.delete_file(collection_name=collection_name, file_name=file_name)
        return False, message

    log.info(f"Context file '{file_name}' ingested into '{collection_name}' as {len(doc_ids)} chunks")
    return True, file_name


async def reload_chatbot(request: Request, settings: dict) -> bool:
    """Swap in a chatbot built from freshly activated settings. The old one stays on failure."""

    bot = await start_chatbot(settings)
    if not bot.is_ready:
        log.error(f"Kept the running chatbot, settings ID {settings['setting_id']} failed to start")
        return False

    request.app.state.chatbot = bot
    request.app.state.active_setting_id = settings["setting_id"]
    log.info(f"Chatbot reloaded from settings ID {settings['setting_id']}")
    return True


async def activate(request: Request, setting_id: int) -> bool:
    active = [row for row in pg_db.get_active_settings() if row["setting_id"] == setting_id]
    if not active:
        return False
    return await reload_chatbot(request, active[0])


def invalid_collection_response(collection_name: str) -> Optional[JSONResponse]:
    if files.is_valid_collection_name(collection_name):
        return None
    log.warning(f"/api/chatbot/settings Rejected collection name: {collection_name!r}")
    return JSONResponse(
        status_code=400,
        content={"error": "Collection name may only contain letters, digits, '_' and '-'"},
    )


@app.post("/api/chatbot/settings")
async def add_settings(
    request: Request,
    name: str = Form(...),
    retriever_prompt: str = Form(...),
    system_prompt: str = Form(...),
    collection_name: str = Form(config.QDRANT_COLLECTION_NAME),
    is_active: bool = Form(False),
    context_file: Optional[UploadFile] = File(None),
):
    """Endpoint to create a chatbot settings row.
    - Post request expects form data, with an optional `context_file` upload.
    - The context file is ingested into `collection_name` before the row is stored.
    - Return JSON with `{"status": "success", "setting_id": id, "reloaded": T/F}` or `{"error": "message"}`.
    """

    log.info(f"/api/chatbot/settings POST for '{name}' (collection '{collection_name}')")

    rejected = invalid_collection_response(collection_name)
    if rejected is not None:
        return rejected

    stored_file = None
    if context_file is not None and context_file.filename:
        status, message = await store_context_file(request, collection_name, context_file)
        if not status:
            log.error(f"/api/chatbot/settings Context file rejected for '{name}': {message}")
            return JSONResponse(status_code=500, content={"error": message})
        stored_file = message

    setting_id = pg_db.add_settings(
        name=name, retriever_prompt=retriever_prompt, system_prompt=system_prompt,
        collection_name=collection_name, context_file=stored_file, is_active=is_active,
    )
    if setting_id == -1:
        return JSONResponse(status_code=500, content={"error": "Failed to store chatbot settings"})

    reloaded = await activate(request, setting_id) if is_active else False
    return {"status": "success", "setting_id": setting_id, "reloaded": reloaded}


@app.put("/api/chatbot/settings")
async def update_settings(
    request: Request,
    setting_id: int = Form(...),
    name: str = Form(...),
    retriever_prompt: str = Form(...),
    system_prompt: str = Form(...),
    collection_name: str = Form(config.QDRANT_COLLECTION_NAME),
    is_active: bool = Form(False),
    context_file: Optional[UploadFile] = File(None),
):
    """Endpoint to update the chatbot settings row with `setting_id`.
    - Same form as the POST endpoint, plus `setting_id`.
    - A missing row is inserted under a new ID, returned as `setting_id`.
    - Without a new context file, the stored one is kept.
    - Deactivating the running row does not stop the running chatbot.
    """

    log.info(f"/api/chatbot/settings PUT for ID {setting_id} ('{name}')")

    rejected = invalid_collection_response(collection_name)
    if rejected is not None:
        return rejected

    stored_file = None
    if context_file is not None and context_file.filename:
        status, message = await store_context_file(request, collection_name, context_file)
        if not status:
            log.error(f"/api/chatbot/settings Context file rejected for ID {setting_id}: {message}")
            return JSONResponse(status_code=500, content={"error": message})
        stored_file = message

    saved_id = pg_db.upsert_settings(
        setting_id=setting_id, name=name, retriever_prompt=retriever_prompt,
        system_prompt=system_prompt, collection_name=collection_name,
        context_file=stored_file, is_active=is_active,
    )
    if saved_id == -1:
        return JSONResponse(status_code=500, content={"error": "Failed to store chatbot settings"})

    if not is_active and getattr(request.app.state, "active_setting_id", None) == saved_id:
        log.warning(f"/api/chatbot/settings ID {saved_id} deactivated, the running chatbot keeps "
                    "its settings until restart or another activation")

    reloaded = await activate(request, saved_id) if is_active else False
    return {"status": "success", "setting_id": saved_id, "reloaded": reloaded}


# ------------------------------------------------------------------------------
# Logging Endpoints:
# ------------------------------------------------------------------------------

class ApiLogRequest(BaseModel):
    method: str
    endpoint: str
    status: int
    timestamp: Optional[str] = None
    ip: Optional[str] = None


@app.post("/api/logging/api-log")
async def api_log(log_request: ApiLogRequest):
    """Endpoint to record an API call made by a client.
    - Post request expects JSON `{"method", "endpoint", "status", "timestamp"?, "ip"?}`.
    - The logging call itself is recorded too.
    """

    status = pg_db.add_api_log(
        method=log_request.method, endpoint=log_request.endpoint, status=log_request.status,
        timestamp=log_request.timestamp, ip=log_request.ip,
    )
    if not status:
        return JSONResponse(status_code=500, content={"error": "Failed to store API log"})

    pg_db.add_api_log(method="POST", endpoint="/api/logging/api-log", status=200)
    return {"status": "success"}


class EventLogRequest(BaseModel):
    severity: str
    text_payload: str
    source: str
    timestamp: Optional[str] = None


@app.post("/api/logging/event-log")
async def event_log(event_request: EventLogRequest):
    """Endpoint to record an application event.
    - Return JSON with `{"status": "success", "event_id": ""}` or `{"error": "message"}`.
    """

    event_id = pg_db.add_event_log(
        severity=event_request.severity, text_payload=event_request.text_payload,
        source=event_request.source, timestamp=event_request.timestamp,
    )
    if event_id is None:
        return JSONResponse(status_code=500, content={"error": "Failed to store event log"})
    return {"status": "success", "event_id": event_id}


@app.get("/api/logging/fetch-logs")
async def fetch_logs():
    """Endpoint to get the API logs, without caller addresses."""
    log.info("/api/logging/fetch-logs Requested")
    return {"logs": pg_db.get_api_logs()}


# ------------------------------------------------------------------------------
# User Endpoints:
# ------------------------------------------------------------------------------

@app.get("/api/auth/user-actions/fetch")
async def fetch_users():
    """Endpoint to list the admin users."""
    log.info("/api/auth/user-actions/fetch Requested")
    return {"users": pg_db.get_users()}
