"""
FastAPI application for the MinuteFlow inbound surface.

Endpoints: GET /health, POST /meetings, POST /ingest/chunk,
POST /meetings/{id}/ingest, GET /meetings/{id}/windows,
POST /meetings/{id}/windows/{index}/close, POST /meetings/{id}/summary,
GET /meetings/{id}/action-items, GET /meetings/{id}/decisions,
GET /events/pending, POST /events/{id}/approve, POST /events/{id}/reject,
POST /events/{id}/dismiss, PUT /events/{id}/parameters.

Every error body is exactly ``{"error": <sanitized message>}``.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from minuteflow.models.transcript import TranscriptChunk
from minuteflow.pipeline import MeetingPipeline
from minuteflow.utils.config import get_settings
from minuteflow.utils.exceptions import (
    AlreadyProcessedError,
    InvalidChunkError,
    InvalidTransitionError,
    MinuteFlowError,
    ValidationError,
)
from minuteflow.utils.logger import get_logger, setup_logging_from_settings
from minuteflow.utils.sanitizer import handle_error, sanitize_error_message

logger = get_logger("api")


class IngestChunkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    meeting_id: str = Field(alias="meetingId")
    speaker: str = Field(default="Unknown")
    text: str
    timestamp: Optional[datetime] = None
    window_index: Optional[int] = Field(default=None, alias="windowIndex", ge=0)

    def to_chunk(self, meeting_id: Optional[str] = None) -> TranscriptChunk:
        return TranscriptChunk(
            meeting_id=meeting_id or self.meeting_id,
            speaker_label=self.speaker,
            text=self.text,
            timestamp=self.timestamp or datetime.now(timezone.utc),
            window_index=self.window_index,
        )


class BatchChunk(IngestChunkRequest):
    meeting_id: str = Field(default="", alias="meetingId")


class IngestBatchRequest(BaseModel):
    chunks: list[BatchChunk]


class CreateMeetingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = "Untitled Meeting"
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    id: Optional[str] = None


class SummaryRequest(BaseModel):
    command: str = "summary"


class ApproveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    edited_parameters: Optional[dict[str, Any]] = Field(
        default=None, alias="editedParameters"
    )


def status_code_for(error: Exception) -> int:
    """Map an error to the HTTP status of its public response."""
    if isinstance(error, (InvalidChunkError, ValidationError)):
        return 400
    if isinstance(error, (AlreadyProcessedError, InvalidTransitionError)):
        return 409
    if isinstance(error, MinuteFlowError) and error.code == "NOT_FOUND":
        return 404
    return 500


def create_app(pipeline: Optional[MeetingPipeline] = None) -> FastAPI:
    """
    Build the FastAPI application around a pipeline.

    Args:
        pipeline: Pipeline to serve. Defaults to one built from settings.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Configure logging and report missing configuration at startup."""
        setup_logging_from_settings()
        missing = get_settings().validate_required()
        if missing:
            logger.warning("Missing configuration: %s", ", ".join(missing))
        logger.info("MinuteFlow API started")
        yield

    app = FastAPI(title="MinuteFlow", lifespan=lifespan)
    app.state.pipeline = pipeline or MeetingPipeline()

    def get_pipeline(request: Request) -> MeetingPipeline:
        return request.app.state.pipeline

    @app.exception_handler(MinuteFlowError)
    async def minuteflow_error_handler(request: Request, exc: MinuteFlowError) -> JSONResponse:
        body = handle_error(exc, f"api {request.method} {request.url.path}")
        return JSONResponse(status_code=status_code_for(exc), content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        logger.info(
            "HTTP %d for %s %s", exc.status_code, request.method, request.url.path
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": sanitize_error_message(str(exc.detail))},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError(
            "Invalid request body",
            constraints=[str(err.get("msg", "")) for err in exc.errors()],
        )
        body = handle_error(error, f"api {request.method} {request.url.path}")
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        body = handle_error(exc, f"api {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=body)

    @app.get("/health")
    def health_check() -> dict[str, str]:
        """Return service health status."""
        return {"status": "ok"}

    @app.post("/meetings", status_code=201)
    def create_meeting(payload: CreateMeetingRequest, request: Request) -> dict[str, Any]:
        meeting = get_pipeline(request).create_meeting(
            title=payload.title,
            start_time=payload.start_time,
            meeting_id=payload.id,
        )
        return meeting.model_dump(mode="json")

    @app.post("/ingest/chunk")
    def ingest_chunk(payload: IngestChunkRequest, request: Request) -> dict[str, Any]:
        """
        Append one transcript chunk to its meeting window.

        Raises:
            400: Empty text
            404: Unknown meeting
        """
        ref = get_pipeline(request).ingest(payload.to_chunk())
        return ref.model_dump(mode="json")

    @app.post("/meetings/{meeting_id}/ingest")
    def ingest_batch(
        meeting_id: str, payload: IngestBatchRequest, request: Request
    ) -> dict[str, Any]:
        """Webhook batch ingestion; stops at the first invalid chunk."""
        refs = get_pipeline(request).ingest_batch(
            meeting_id, [c.to_chunk(meeting_id) for c in payload.chunks]
        )
        return {"windows": [r.model_dump(mode="json") for r in refs]}

    @app.get("/meetings/{meeting_id}/windows")
    def list_windows(meeting_id: str, request: Request) -> dict[str, Any]:
        windows = get_pipeline(request).windows(meeting_id)
        return {"windows": [w.model_dump(mode="json") for w in windows]}

    @app.post("/meetings/{meeting_id}/windows/{window_index}/close")
    def close_window(meeting_id: str, window_index: int, request: Request) -> dict[str, Any]:
        """
        Classify a window and propose automation events.

        Raises:
            404: Unknown meeting or window
        """
        result = get_pipeline(request).close_window(meeting_id, window_index)
        return result.model_dump(mode="json")

    @app.post("/meetings/{meeting_id}/summary")
    def generate_summary(
        meeting_id: str, payload: SummaryRequest, request: Request
    ) -> dict[str, str]:
        summary = get_pipeline(request).generate_summary(meeting_id, payload.command)
        return {"command": payload.command.lstrip("/"), "summary": summary}

    @app.get("/meetings/{meeting_id}/action-items")
    def list_action_items(meeting_id: str, request: Request) -> dict[str, Any]:
        items = get_pipeline(request).action_items(meeting_id)
        return {"action_items": [i.model_dump(mode="json") for i in items]}

    @app.get("/meetings/{meeting_id}/decisions")
    def list_decisions(meeting_id: str, request: Request) -> dict[str, Any]:
        decisions = get_pipeline(request).decisions(meeting_id)
        return {"decisions": [d.model_dump(mode="json") for d in decisions]}

    @app.get("/events/pending")
    def pending_events(request: Request, meeting_id: Optional[str] = None) -> dict[str, Any]:
        events = get_pipeline(request).pending_events(meeting_id)
        return {"events": [e.model_dump(mode="json") for e in events]}

    @app.post("/events/{event_id}/approve")
    def approve_event(
        event_id: str, request: Request, payload: Optional[ApproveRequest] = None
    ) -> dict[str, Any]:
        """
        Approve an event and dispatch it.

        A failed dispatch still returns 200 with the event in ``failed``.

        Raises:
            404: Unknown event
            409: Event already processed
        """
        edits = payload.edited_parameters if payload else None
        event = get_pipeline(request).approve(event_id, edits)
        return event.model_dump(mode="json")

    @app.post("/events/{event_id}/reject")
    def reject_event(event_id: str, request: Request) -> dict[str, Any]:
        return get_pipeline(request).reject(event_id).model_dump(mode="json")

    @app.post("/events/{event_id}/dismiss")
    def dismiss_event(event_id: str, request: Request) -> dict[str, Any]:
        return get_pipeline(request).dismiss(event_id).model_dump(mode="json")

    @app.put("/events/{event_id}/parameters")
    def edit_parameters(
        event_id: str, payload: dict[str, Any], request: Request
    ) -> dict[str, Any]:
        return get_pipeline(request).edit_parameters(event_id, payload).model_dump(mode="json")

    return app


def main() -> None:
    """Run the API with uvicorn using SERVER_* settings."""
    import uvicorn

    from minuteflow.utils.config import get_settings

    settings = get_settings()
    uvicorn.run(create_app(), host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
