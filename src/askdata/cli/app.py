"""Typer commands for askdata."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import Any

import typer
from loguru import logger

from askdata.app.service import ChatService, build_service
from askdata.cli.render import Renderer
from askdata.config.settings import Settings
from askdata.errors import AskDataError, ConfigurationError
from askdata.logging_utils import configure_logging

QUIT_COMMANDS = frozenset({"quit", "exit", "q"})
NEW_SESSION_COMMANDS = frozenset({"new", "reset"})

app = typer.Typer(
    name="askdata",
    help="Ask business questions, get answers and liveboards.",
    add_completion=False,
    rich_markup_mode="rich",
)


def _load_settings(provider: str | None, model: str | None) -> Settings:
    overrides: dict[str, Any] = {}
    if provider:
        overrides["provider"] = provider
    if model:
        overrides["model"] = model
    return Settings(**overrides)


def _build(provider: str | None, model: str | None, demo: bool) -> tuple[Settings, ChatService]:
    settings = _load_settings(provider, model)
    return settings, build_service(settings, demo=demo)


async def _answer(service: ChatService, session_id: str, text: str, renderer: Renderer) -> None:
    stream = await service.send_turn(session_id, text)
    renderer.begin_answer()
    try:
        async with aclosing(stream):
            async for fragment in stream:
                renderer.fragment(fragment)
    finally:
        renderer.end_answer()


async def _chat_loop(service: ChatService, renderer: Renderer) -> None:
    session_id = service.start_session()
    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(renderer.get_user_input)).strip()
            except (KeyboardInterrupt, EOFError):
                renderer.info("\nGoodbye!")
                return
            if not user_input:
                continue
            command = user_input.casefold()
            if command in QUIT_COMMANDS:
                renderer.info("Goodbye!")
                return
            if command in NEW_SESSION_COMMANDS:
                session_id = service.start_session()
                renderer.info("[dim]Started a new conversation.[/dim]")
                continue
            try:
                await _answer(service, session_id, user_input, renderer)
            except AskDataError as exc:
                # The session survives a failed turn; keep the loop going.
                renderer.error(str(exc))
    finally:
        await service.aclose()


@app.command()
def chat(
    demo: bool = typer.Option(False, "--demo", help="Use the canned demo backend"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="anthropic or openai"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name"),
) -> None:
    """Start an interactive conversation."""
    configure_logging(profile="chat")
    renderer = Renderer()
    try:
        settings, service = _build(provider, model, demo)
    except ConfigurationError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    renderer.welcome(settings.resolved_model, demo)
    asyncio.run(_chat_loop(service, renderer))


@app.command()
def ask(
    message: str = typer.Argument(..., help="Question to ask"),
    demo: bool = typer.Option(False, "--demo", help="Use the canned demo backend"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="anthropic or openai"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name"),
) -> None:
    """Ask one question and print the streamed answer."""
    configure_logging(profile="chat")
    renderer = Renderer()
    try:
        _, service = _build(provider, model, demo)
    except ConfigurationError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc

    async def _run() -> None:
        try:
            await _answer(service, service.start_session(), message, renderer)
        finally:
            await service.aclose()

    try:
        asyncio.run(_run())
    except AskDataError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind host"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
    demo: bool = typer.Option(False, "--demo", help="Use the canned demo backend"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="anthropic or openai"),
    model: str | None = typer.Option(None, "--model", "-m", help="Model name"),
) -> None:
    """Serve the chat API over HTTP."""
    import uvicorn

    from askdata.app.server import create_app

    configure_logging()
    try:
        settings, service = _build(provider, model, demo)
    except ConfigurationError as exc:
        logger.error("serve.config.error {}", exc)
        raise typer.Exit(1) from exc
    uvicorn.run(create_app(service), host=host or settings.host, port=port or settings.port)
