"""Local HTTP surface for the Deckster builder session."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from pydantic import BaseModel, Field

from src.deckster.runtime.service import get_runtime_service

app = FastAPI(title="Deckster Builder")


class OpenSessionRequest(BaseModel):
    session_id: str


class DirectorEventRequest(BaseModel):
    event: dict[str, Any] = Field(default_factory=dict)


class SendMessageRequest(BaseModel):
    text: str


class AnswerActionRequest(BaseModel):
    action_request_id: str
    label: str


class TransportStateRequest(BaseModel):
    connected: bool = True


@app.on_event("startup")
def _init_runtime() -> None:
    get_runtime_service().start(source="app")


@app.on_event("shutdown")
def _stop_runtime() -> None:
    get_runtime_service().stop(source="app")


@app.get("/health")
def health() -> dict:
    return get_runtime_service().health()


@app.post("/api/session/open")
def open_session(req: OpenSessionRequest) -> dict:
    return get_runtime_service().open_session(session_id=req.session_id)


@app.post("/api/session/new")
def new_session() -> dict:
    return get_runtime_service().new_session()


@app.post("/api/events")
def receive_event(req: DirectorEventRequest) -> dict:
    return get_runtime_service().receive_event(event=req.event)


@app.post("/api/messages")
def send_message(req: SendMessageRequest) -> dict:
    return get_runtime_service().send_message(text=req.text)


@app.post("/api/actions/answer")
def answer_action(req: AnswerActionRequest) -> dict:
    return get_runtime_service().answer_action(action_request_id=req.action_request_id, label=req.label)


@app.get("/api/transcript")
def transcript() -> dict:
    return get_runtime_service().transcript()


@app.post("/api/outbox/drain")
def drain_outbox() -> dict:
    return get_runtime_service().drain_outbox()


@app.post("/api/transport")
def set_transport_state(req: TransportStateRequest) -> dict:
    return get_runtime_service().set_transport_connected(connected=req.connected)
