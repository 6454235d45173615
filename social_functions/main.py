import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from .config import settings
from .context import AppContext
from .errors import CallableError, StorageError
from .logging_config import setup_logging
from .scheduler import create_scheduler
from .schemas import DocumentEvent, HandlerOutcome, StorageEvent
from .triggers import TriggerType, document_triggers, get_trigger, triggers_of_type

logger = logging.getLogger(__name__)


class DocumentTriggerRequest(BaseModel):
    """A document write delivered by the trigger runtime"""
    eventType: TriggerType
    path: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class TriggerResponse(BaseModel):
    trigger: str
    outcome: HandlerOutcome


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def create_app(ctx: Optional[AppContext] = None, run_scheduler: bool = True) -> FastAPI:
    """
    Build the HTTP host for the trigger runtime.

    Args:
        ctx: Pre-built context; created from settings on startup when omitted
        run_scheduler: Whether to start the cron scheduler
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_context = app.state.ctx is None
        if owns_context:
            app.state.ctx = AppContext.create(settings)
        scheduler = None
        if run_scheduler:
            scheduler = create_scheduler(app.state.ctx)
            scheduler.start()
            logger.info("Started scheduler for timed triggers")
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            if owns_context:
                app.state.ctx.close()
            logger.info("Social functions host stopped")

    app = FastAPI(title="Social Functions", version="1.0.0", lifespan=lifespan)
    app.state.ctx = ctx

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "healthy", "service": settings.service_name}

    @app.post("/triggers/documents", response_model=List[TriggerResponse], tags=["Triggers"])
    async def document_event(request: DocumentTriggerRequest, ctx: AppContext = Depends(get_context)):
        if request.eventType not in (TriggerType.DOCUMENT_CREATED, TriggerType.DOCUMENT_UPDATED):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Not a document event type")

        responses = []
        for descriptor, params in document_triggers(request.eventType, request.path):
            event = DocumentEvent(path=request.path, params=params, before=request.before, after=request.after)
            logger.info(f"Invoking {descriptor.name} for {request.path}")
            outcome = await descriptor.handler(event, ctx)
            responses.append(TriggerResponse(trigger=descriptor.name, outcome=outcome))

        if not responses:
            logger.info(f"No trigger registered for {request.eventType.value} on {request.path}")
        return responses

    @app.post("/triggers/storage", response_model=List[TriggerResponse], tags=["Triggers"])
    async def storage_event(event: StorageEvent, ctx: AppContext = Depends(get_context)):
        responses = []
        for descriptor in triggers_of_type(TriggerType.OBJECT_FINALIZED):
            outcome = await descriptor.handler(event, ctx)
            responses.append(TriggerResponse(trigger=descriptor.name, outcome=outcome))
        return responses

    @app.get("/media/{object_key:path}", tags=["Media"])
    async def get_media(object_key: str, ctx: AppContext = Depends(get_context)):
        """
        Resolve a persisted media link to a short-lived presigned URL.

        Persisted media links point here when no CDN base is configured.
        """
        try:
            return RedirectResponse(url=ctx.storage.generate_read_url(object_key))
        except StorageError as e:
            logger.error(f"Error generating media URL for {object_key}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to resolve media"
            )

    @app.post("/callable/{name}", tags=["Callable"])
    async def callable_function(name: str, request: Request, ctx: AppContext = Depends(get_context)):
        descriptor = get_trigger(name)
        if descriptor is None or descriptor.type != TriggerType.CALLABLE:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown function {name}")

        try:
            body = await request.json()
        except ValueError:
            body = None
        payload = body.get("data", body) if isinstance(body, dict) else body

        try:
            result = await descriptor.handler(payload, ctx)
        except CallableError as e:
            return JSONResponse(
                status_code=e.http_status,
                content={"error": {"status": e.status, "message": e.message}},
            )
        return {"result": result}

    return app


def run() -> None:
    import uvicorn

    setup_logging(settings)
    logger.info(f"Starting social functions host in {settings.environment} environment")
    uvicorn.run(create_app(), host="0.0.0.0", port=8080)


if __name__ == "__main__":
    run()
