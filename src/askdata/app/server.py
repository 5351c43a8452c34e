"""HTTP surface: start a chat and stream turns."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from askdata.app.service import ChatService
from askdata.errors import SessionNotFoundError, TurnFailedError


class StartResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(..., alias="chatId")


class SendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(..., alias="chatId")
    message: str = Field(..., min_length=1)


def create_app(service: ChatService) -> FastAPI:
    """Create the FastAPI app bound to one process-wide ``ChatService``."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await service.aclose()

    app = FastAPI(title="askdata", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.service = service

    @app.post("/api/start", response_model=StartResponse, response_model_by_alias=True)
    async def start(request: Request) -> StartResponse:
        chat_id = _service(request).start_session()
        return StartResponse(chat_id=chat_id)

    @app.post("/api/send")
    async def send(body: SendRequest, request: Request) -> Response:
        try:
            stream = await _service(request).send_turn(body.chat_id, body.message)
        except SessionNotFoundError:
            return JSONResponse(status_code=404, content={"error": "Chat not found"})

        # Pull the first fragment before committing to a 200 so early failures stay structured.
        try:
            first = await anext(stream)
        except StopAsyncIteration:
            first = ""
        except SessionNotFoundError:
            return JSONResponse(status_code=404, content={"error": "Chat not found"})
        except TurnFailedError:
            logger.exception("server.send.error chat_id={}", body.chat_id)
            return JSONResponse(status_code=500, content={"error": "Error processing request"})

        async def body_iterator() -> AsyncIterator[str]:
            async with aclosing(stream):
                if first:
                    yield first
                async for fragment in stream:
                    yield fragment

        return StreamingResponse(body_iterator(), media_type="text/plain; charset=utf-8")

    return app


def _service(request: Request) -> ChatService:
    return request.app.state.service
