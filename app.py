#!/usr/bin/env python3
import json
import logging
from contextlib import asynccontextmanager
from typing import Dict, Type, TypeVar
from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from database import DatabaseManager, timestamp
from exceptions import BoardError
from models import (ThreadCreate, ThreadTarget, ThreadDelete, ReplyCreate, ReplyTarget, ReplyDelete,
                    BoardRequest, MessageResponse, ErrorResponse)
from replies import ReplyRepository
from security import CredentialVerifier
from threads import ThreadRepository
from config import DB_PATH, HTTP_BAD_REQUEST, HTTP_INTERNAL_SERVER_ERROR

logger = logging.getLogger(__name__)

Input = TypeVar("Input", bound=BaseModel)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-DNS-Prefetch-Control"] = "off"
        response.headers["Referrer-Policy"] = "same-origin"
        response.headers["Cache-Control"] = "no-store"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'self';"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.init_schema()
    yield


app = FastAPI(title="Message Board API", description="Anonymous threads and replies", version="1.0.0",
              lifespan=lifespan)

db = DatabaseManager(DB_PATH)
verifier = CredentialVerifier()
thread_repository = ThreadRepository(db, verifier)
reply_repository = ReplyRepository(db, verifier)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"]
)


def get_threads() -> ThreadRepository:
    return thread_repository

def get_replies() -> ReplyRepository:
    return reply_repository


async def request_fields(request: Request) -> Dict[str, str]:
    """
    Collect string fields from the body, then the query string, then the path.
    Later sources win, so path > query > body. Empty values never override.
    """
    fields: Dict[str, str] = {}
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise HTTPException(HTTP_BAD_REQUEST, "malformed JSON body")
        if isinstance(body, dict):
            fields.update({k: v for k, v in body.items() if isinstance(v, str)})
    elif content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields.update({k: v for k, v in form.items() if isinstance(v, str)})

    fields.update({k: v for k, v in request.query_params.items() if v})
    fields.update({k: v for k, v in request.path_params.items() if v})
    return fields

def parse_input(model: Type[Input], fields: Dict[str, str]) -> Input:
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise HTTPException(HTTP_BAD_REQUEST, f"{field}: {error['msg']}")


@app.get("/api/threads/{board}")
async def list_threads(request: Request, threads: ThreadRepository = Depends(get_threads)):
    data = parse_input(BoardRequest, await request_fields(request))
    summaries = await threads.list_recent(data.board)
    return {"success": True, "threads": [summary.model_dump(by_alias=True) for summary in summaries]}

@app.post("/api/threads/{board}")
async def create_thread(request: Request, threads: ThreadRepository = Depends(get_threads)):
    data = parse_input(ThreadCreate, await request_fields(request))
    thread_id = await threads.create(data.board, data.text, data.delete_password)
    return RedirectResponse(f"/b/{data.board}", status_code=302, headers={"x-new-id": thread_id})

@app.put("/api/threads/{board}", response_model=MessageResponse)
async def report_thread(request: Request, threads: ThreadRepository = Depends(get_threads)):
    data = parse_input(ThreadTarget, await request_fields(request))
    await threads.flag(data.board, data.thread_id)
    return MessageResponse()

@app.delete("/api/threads/{board}", response_model=MessageResponse)
async def delete_thread(request: Request, threads: ThreadRepository = Depends(get_threads)):
    data = parse_input(ThreadDelete, await request_fields(request))
    await threads.delete(data.board, data.thread_id, data.delete_password)
    return MessageResponse()

@app.get("/api/replies/{board}")
async def get_full_thread(request: Request, replies: ReplyRepository = Depends(get_replies)):
    data = parse_input(ThreadTarget, await request_fields(request))
    thread = await replies.get_full_thread(data.board, data.thread_id)
    return {"success": True, "thread": thread.model_dump(by_alias=True) if thread else None}

@app.post("/api/replies/{board}")
async def create_reply(request: Request, replies: ReplyRepository = Depends(get_replies)):
    data = parse_input(ReplyCreate, await request_fields(request))
    reply_id = await replies.create(data.board, data.thread_id, data.text, data.delete_password)
    return RedirectResponse(f"/b/{data.board}/{data.thread_id}", status_code=302, headers={"x-new-id": reply_id})

@app.put("/api/replies/{board}", response_model=MessageResponse)
async def report_reply(request: Request, replies: ReplyRepository = Depends(get_replies)):
    data = parse_input(ReplyTarget, await request_fields(request))
    await replies.flag(data.thread_id, data.reply_id)
    return MessageResponse()

@app.delete("/api/replies/{board}", response_model=MessageResponse)
async def delete_reply(request: Request, replies: ReplyRepository = Depends(get_replies)):
    data = parse_input(ReplyDelete, await request_fields(request))
    await replies.delete(data.thread_id, data.reply_id, data.delete_password)
    return MessageResponse()

@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": timestamp()}

@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError):
    logger.info("error: %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc)).model_dump()
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump()
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="An unexpected error occurred").model_dump()
    )
