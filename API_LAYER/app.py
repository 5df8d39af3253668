# app.py
import logging
import json
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from asyncio import Lock

from configurations.config import DATABASE_URL, DEBUG, PORT

from agents.completion_agent import CompletionClient
from executors.chat import ChatExecutor
from models.conversation import ChatReply, ChatRequest, Message
from services.sanitizer import sanitize_chat_message
from services.turn_orchestrator import TurnOrchestrator


# -----------------------------
# Structured Logging Setup
# -----------------------------
class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            {
                "time": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "name": record.name,
                "message": record.getMessage(),
                "exception": record.exc_text,
            }
        )


logger = logging.getLogger("finance_chat_api")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
handler.setFormatter(JSONFormatter())
if not logger.handlers:
    logger.addHandler(handler)

# -----------------------------
# FastAPI App
# -----------------------------
app = FastAPI(title="Finance Chat API", version="1.0")

# -----------------------------
# Prisma + Executor (Lifecycle managed)
# -----------------------------
db = None
chat_executor: Optional[ChatExecutor] = None

DB_CONNECTED: bool = False
DB_ERROR: Optional[str] = None

# -----------------------------
# Metrics
# -----------------------------
metrics_lock = Lock()
request_counters = {
    "total": 0,
    "replies": 0,
    "upgrade_required": 0,
    "records_created": 0,
    "errors": 0,
}

ERROR_TYPES = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    500: "internal_error",
    503: "service_unavailable",
    504: "upstream_timeout",
}


def error_envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"type": ERROR_TYPES.get(status_code, "http_error"), "message": message}},
    )


# -----------------------------
# Exception Handlers
# -----------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_envelope(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg', 'invalid request')}" if where else first.get("msg", "invalid request")
    return error_envelope(400, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"[UNHANDLED] path={request.url.path} exception={exc}")
    return error_envelope(500, str(exc) if DEBUG else "An unexpected error occurred")


# -----------------------------
# Startup / Shutdown Events
# -----------------------------
def _build_executor(database) -> ChatExecutor:
    orchestrator = TurnOrchestrator(database, CompletionClient())
    return ChatExecutor(orchestrator)


@app.on_event("startup")
async def startup():
    global db, DB_CONNECTED, DB_ERROR, chat_executor

    if not DATABASE_URL:
        logger.warning("DATABASE_URL not set; chat completion disabled.")
        DB_CONNECTED = False
        DB_ERROR = "DATABASE_URL not set"
        return

    try:
        from prisma import Prisma

        db = Prisma()
        await db.connect()
        DB_CONNECTED = True
        DB_ERROR = None
        logger.info("✅ Prisma DB connected")

        # Executor is created ONLY after DB is ready
        chat_executor = _build_executor(db)

    except Exception as e:
        DB_CONNECTED = False
        DB_ERROR = str(e)
        logger.exception("❌ Failed to connect Prisma DB")
        if DEBUG:
            raise


@app.on_event("shutdown")
async def shutdown():
    global DB_CONNECTED
    if DB_CONNECTED and db is not None:
        await db.disconnect()
        DB_CONNECTED = False
        logger.info("✅ Prisma DB disconnected")


# -----------------------------
# Helpers
# -----------------------------
def sanitize_request(request: ChatRequest) -> ChatRequest:
    """Clean every message; messages with nothing left are dropped."""
    cleaned: List[Message] = []
    for message in request.messages:
        content = sanitize_chat_message(message.content)
        if content:
            cleaned.append(Message(role=message.role, content=content))
    if not any(m.role == "user" for m in cleaned):
        raise HTTPException(status_code=400, detail="messages must contain a non-empty user message")
    return request.model_copy(update={"messages": cleaned})


# -----------------------------
# API Endpoints
# -----------------------------
@app.get("/")
async def root():
    return {"message": "Finance Chat API is running."}


@app.get("/health")
async def health() -> Dict[str, Any]:
    info = {"status": "ok", "db_connected": DB_CONNECTED}
    if DB_ERROR:
        info["db_error"] = DB_ERROR
    return info


@app.get("/metrics")
async def metrics() -> Dict[str, Any]:
    async with metrics_lock:
        return request_counters.copy()


@app.post("/chat-completion", response_model=ChatReply)
async def chat_completion(request: ChatRequest):
    async with metrics_lock:
        request_counters["total"] += 1

    try:
        logger.info(
            f"[REQUEST_START] user_id={request.userId}, conversation_id={request.conversationId}, "
            f"messages={len(request.messages)}, last_length={len(request.messages[-1].content)}"
        )

        if chat_executor is None:
            raise HTTPException(status_code=503, detail="Chat completion unavailable")

        clean_request = sanitize_request(request)
        reply: ChatReply = await chat_executor.execute(clean_request)

        async with metrics_lock:
            request_counters["replies"] += 1
            if reply.requiresUpgrade:
                request_counters["upgrade_required"] += 1
            request_counters["records_created"] += len(reply.createdRecordIds)

        logger.info(
            f"[REQUEST_END] user_id={request.userId}, requires_upgrade={reply.requiresUpgrade}, "
            f"records={len(reply.createdRecordIds)}, reply_length={len(reply.replyText)}"
        )
        return reply

    except HTTPException as e:
        async with metrics_lock:
            request_counters["errors"] += 1
        logger.warning(f"[ERROR] user_id={request.userId}, status={e.status_code}, detail={e.detail}")
        raise

    except Exception as e:
        async with metrics_lock:
            request_counters["errors"] += 1

        logger.exception(
            f"[ERROR] user_id={request.userId}, exception={e}"
        )

        raise HTTPException(
            status_code=500,
            detail=str(e) if DEBUG else "An unexpected error occurred",
        )


# -----------------------------
# Entrypoint
# -----------------------------
import uvicorn

if __name__ == "__main__":
    uvicorn.run("API_LAYER.app:app", host="0.0.0.0", port=PORT, workers=1)
