from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request

from webcam.session import CommandRejected, RecordingFailed, TranslatorSession

from .logging_utils import RecentLogHandler
from .schemas import (
    ExampleRecordedResponse,
    LogLinesResponse,
    SessionStateResponse,
    StopResponse,
    ToggleResponse,
)

logger = logging.getLogger(__name__)


def create_app(
    session: TranslatorSession,
    log_handler: RecentLogHandler | None = None,
    initialize: bool = True,
) -> FastAPI:
    app = FastAPI(title="Gesture Translator API", version="0.1.0")
    app.state.session = session
    app.state.log_handler = log_handler

    def _session(request: Request) -> TranslatorSession:
        return request.app.state.session

    @app.get("/health", response_model=dict[str, str])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/v1/state", response_model=SessionStateResponse)
    async def session_state(request: Request) -> SessionStateResponse:
        return SessionStateResponse(**_session(request).snapshot())

    @app.post("/v1/examples/{class_index}", response_model=ExampleRecordedResponse)
    async def record_example(class_index: int, request: Request) -> ExampleRecordedResponse:
        current = _session(request)
        if class_index not in current.vocabulary:
            raise HTTPException(status_code=404, detail=f"Unknown gesture class {class_index}")
        try:
            count = await current.start_recording(class_index)
        except CommandRejected as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except RecordingFailed as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return ExampleRecordedResponse(
            class_index=class_index,
            word=current.vocabulary.get(class_index).label,
            example_count=count,
        )

    @app.post("/v1/translation/toggle", response_model=ToggleResponse)
    async def toggle_translation(request: Request) -> ToggleResponse:
        try:
            state = _session(request).toggle_classification()
        except CommandRejected as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return ToggleResponse(state=state.value)

    @app.post("/v1/translation/stop", response_model=StopResponse)
    async def stop_translation(request: Request) -> StopResponse:
        current = _session(request)
        stopped = current.stop_classification()
        return StopResponse(state=current.loop.state.value, stopped=stopped)

    @app.get("/v1/logs", response_model=LogLinesResponse)
    async def recent_logs(request: Request, limit: int = 100) -> LogLinesResponse:
        handler: RecentLogHandler | None = request.app.state.log_handler
        if handler is None:
            return LogLinesResponse(lines=[])
        return LogLinesResponse(lines=handler.lines(max(0, limit)))

    @app.on_event("startup")
    async def _initialize_session() -> None:
        if initialize:
            await session.initialize()
        snapshot = session.snapshot()
        logger.info(
            "Translator API ready words=%s camera_available=%s classifier_ready=%s",
            ",".join(snapshot["words"]),
            snapshot["camera_available"],
            snapshot["classifier_ready"],
        )

    @app.on_event("shutdown")
    async def _close_session() -> None:
        await session.close()

    return app


__all__ = ["create_app"]
