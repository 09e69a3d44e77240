"""
FastAPI Application — HTTP ingress for the Panel Bot.

Provides:
- Health and stats endpoints
- Inbound message webhook that feeds the message router
- Session inspection for the dialog engine
- Outbox inspection when running on the in-memory gateway
- Manual trigger for the message deleter sweep
"""
from __future__ import annotations

import structlog
from datetime import datetime, timezone
from typing import Any, Optional
from contextlib import asynccontextmanager

# Load .env before any config is read
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Query, Request

from channels.base import MessagingGateway
from channels.memory_gateway import InMemoryGateway
from config.logging import configure_logging
from config.settings import Settings, get_settings
from core.app import BotApplication
from models.schemas import ChatMessage, dump_payload

logger = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[MessagingGateway] = None,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        configure_logging(resolved.logging)

        bot = BotApplication(resolved, gateway=gateway)
        await bot.start()
        app.state.bot = bot
        yield

        await bot.stop()

    app = FastAPI(
        title="Panel Bot API",
        description="Conversational onboarding bot with batched message deletion",
        version="1.0.0",
        lifespan=lifespan,
    )
    _register_routes(app)
    return app


def _bot(request: Request) -> BotApplication:
    return request.app.state.bot


def _register_routes(app: FastAPI):

    # ══════════════════════════════════════════════════════════
    #  HEALTH & DIAGNOSTICS
    # ══════════════════════════════════════════════════════════

    @app.get("/health")
    async def health(request: Request):
        bot = _bot(request)
        return {
            "status": "healthy" if bot.started else "starting",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "app": bot.settings.app_name,
            "auto_deleter": bot.deleter.is_running,
        }

    @app.get("/stats")
    async def stats(request: Request):
        return _bot(request).stats()

    # ══════════════════════════════════════════════════════════
    #  INBOUND MESSAGES
    # ══════════════════════════════════════════════════════════

    @app.post("/messages")
    async def receive_message(
        message: ChatMessage,
        request: Request,
        wait: bool = Query(False, description="Return only after the dialog has settled"),
    ):
        bot = _bot(request)
        if isinstance(bot.gateway, InMemoryGateway):
            bot.gateway.record_inbound(message)

        outcome = await bot.handle_message(message)
        session_id = bot.router.session_for(message.user_id)
        if wait and session_id is not None:
            await bot.engine.join(session_id)

        result: dict[str, Any] = {"outcome": outcome.value, "session_id": session_id}
        if session_id is not None:
            result["state"] = bot.engine.get_session(session_id).to_dict()["state"]
        return result

    # ══════════════════════════════════════════════════════════
    #  SESSIONS
    # ══════════════════════════════════════════════════════════

    @app.get("/sessions")
    async def list_sessions(request: Request):
        bot = _bot(request)
        owners = {sid: uid for uid, sid in bot.router.active_flows.items()}
        return [
            {**session.to_dict(), "user_id": owners.get(session.session_id)}
            for session in bot.engine.sessions()
        ]

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str, request: Request):
        bot = _bot(request)
        if not bot.engine.has_session(session_id):
            raise HTTPException(404, "Session not found")
        return bot.engine.get_session(session_id).to_dict()

    # ══════════════════════════════════════════════════════════
    #  OUTBOX (in-memory gateway)
    # ══════════════════════════════════════════════════════════

    @app.get("/outbox/{chat_id}")
    async def outbox(chat_id: str, request: Request):
        gateway = _bot(request).gateway
        if not isinstance(gateway, InMemoryGateway):
            raise HTTPException(404, "Outbox is only kept by the in-memory gateway")
        return {
            "chat_id": chat_id,
            "messages": [dump_payload(content) for content in gateway.outbox(chat_id)],
        }

    # ══════════════════════════════════════════════════════════
    #  MESSAGE DELETER
    # ══════════════════════════════════════════════════════════

    @app.post("/deleter/run")
    async def run_deleter(request: Request):
        deleter = _bot(request).deleter
        deleted = await deleter.run_cycle()
        return {
            "deleted": deleted,
            "multiplier": deleter.multiplier,
            "next_interval": deleter.next_interval,
        }


app = create_app()


# ══════════════════════════════════════════════════════════════
#  Entry Point
# ══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
