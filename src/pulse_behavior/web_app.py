from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from pulse_behavior.behavior_packs import MODE_LABELS, Energy, label_for_mode, mode_from_label
from pulse_behavior.config import Settings, load_settings
from pulse_behavior.db import FallbackStateStore, SqliteStateStore, StateStore
from pulse_behavior.engine import BehaviorEngine
from pulse_behavior.logging_setup import setup_logging
from pulse_behavior.models import MOOD_MAX, MOOD_MIN
from pulse_behavior.state_codec import state_to_dict
from pulse_behavior.time_utils import now_local

_KNOWN_MODE_NAMES = {label.lower() for label in MODE_LABELS.values()} | {mode.value for mode in MODE_LABELS}


def _require_auth(request: Request, token: str | None) -> None:
    if not token:
        return
    header = request.headers.get("x-api-token")
    query = request.query_params.get("token")
    if header == token or query == token:
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


class ModeRequest(BaseModel):
    mode: str


class CheckInRequest(BaseModel):
    mood: int = Field(ge=MOOD_MIN, le=MOOD_MAX)
    energy: Energy


class FocusRequest(BaseModel):
    minutes: int = Field(default=0, ge=0)


def build_web_app(
    store: StateStore,
    settings: Settings,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    app = FastAPI(title="Pulse Behavior API", version="1.0.0")
    shared_store = FallbackStateStore(store)
    clock = clock or (lambda: now_local(settings.tz))

    def engine_for(user_key: str) -> BehaviorEngine:
        # fresh per request: the jobs process writes the same rows
        engine = BehaviorEngine(shared_store, key=f"{settings.state_key}:{user_key}", clock=clock)
        engine.roll_streak_if_needed()
        return engine

    def status_payload(engine: BehaviorEngine) -> dict[str, Any]:
        return engine.status().to_dict()

    @app.get("/api/{user_key}/state")
    async def api_state(user_key: str, request: Request) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        engine = engine_for(user_key)
        state = engine.get_state()
        return {"state": state_to_dict(state), "label": label_for_mode(state.mode)}

    @app.get("/api/{user_key}/policy")
    async def api_policy(user_key: str, request: Request) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        return engine_for(user_key).compute().to_dict()

    @app.get("/api/{user_key}/status")
    async def api_status(user_key: str, request: Request) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        return status_payload(engine_for(user_key))

    @app.post("/api/{user_key}/mode")
    async def api_set_mode(user_key: str, request: Request, payload: ModeRequest) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        if payload.mode.strip().lower() not in _KNOWN_MODE_NAMES:
            raise HTTPException(status_code=422, detail=f"Unknown mode '{payload.mode}'")
        engine = engine_for(user_key)
        engine.set_mode(mode_from_label(payload.mode))
        return status_payload(engine)

    @app.post("/api/{user_key}/checkin")
    async def api_check_in(user_key: str, request: Request, payload: CheckInRequest) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        engine = engine_for(user_key)
        engine.apply_check_in(payload.mood, payload.energy)
        return status_payload(engine)

    @app.post("/api/{user_key}/focus")
    async def api_focus(user_key: str, request: Request, payload: FocusRequest) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        engine = engine_for(user_key)
        engine.record_focus_session(payload.minutes)
        return status_payload(engine)

    @app.post("/api/{user_key}/completion")
    async def api_completion(user_key: str, request: Request) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        engine = engine_for(user_key)
        engine.record_completion()
        return status_payload(engine)

    @app.post("/api/{user_key}/roll")
    async def api_roll(user_key: str, request: Request) -> dict[str, Any]:
        _require_auth(request, settings.api_token)
        engine = engine_for(user_key)
        engine.roll_streak_if_needed()
        return status_payload(engine)

    return app


def run_web() -> None:
    settings = load_settings(require_telegram_token=False)
    setup_logging(settings.log_level)
    store = SqliteStateStore(settings.database_path)
    app = build_web_app(store, settings)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
