"""FastAPI application for Gitee webhook handling and bulletin publishing."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from defect_manager import __version__
from defect_manager.server.api import router as defect_router
from defect_manager.server.config import get_settings
from defect_manager.server.context import AppContext, build_context, refresh_committers_daily
from defect_manager.server.webhooks import handle_webhook, verify_webhook_token


logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(context: AppContext | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        context: Prebuilt collaborators; built from settings on startup if omitted

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        ctx = context
        if ctx is None:
            settings = get_settings()
            configure_logging(settings.log_level)
            logger.info(f"Starting defect-manager on {settings.host}:{settings.port}")
            logger.info(f"Maintained versions: {settings.maintain_version}")
            ctx = await run_in_threadpool(build_context, settings)

        app.state.context = ctx
        refresher = asyncio.create_task(refresh_committers_daily(ctx.committers))
        try:
            yield
        finally:
            refresher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresher
            if context is None:
                ctx.close()
            logger.info("Shutting down defect-manager")

    app = FastAPI(
        title="defect-manager",
        description="Defect issue workflow and bulletin publishing for openEuler",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/")
    async def root():
        """Root endpoint with app info."""
        return {
            "name": "defect-manager",
            "version": __version__,
            "status": "running",
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.post("/webhook")
    async def webhook(request: Request, background_tasks: BackgroundTasks):
        """Gitee webhook endpoint."""
        ctx: AppContext = request.app.state.context

        verify_webhook_token(request, ctx.settings.gitee_webhook_secret)

        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        event_type = request.headers.get("X-Gitee-Event", "")
        if not event_type:
            raise HTTPException(status_code=400, detail="Missing X-Gitee-Event header")

        background_tasks.add_task(process_webhook_async, ctx, event_type, payload)

        return {
            "status": "accepted",
            "event": event_type,
            "action": payload.get("action", "") if isinstance(payload, dict) else "",
        }

    app.include_router(defect_router)

    if context is not None:
        app.state.context = context

    return app


async def process_webhook_async(context: AppContext, event_type: str, payload: dict):
    """Process webhook off the event loop.

    Args:
        context: Application collaborators
        event_type: Gitee event type
        payload: Webhook payload
    """
    try:
        result = await run_in_threadpool(handle_webhook, context, event_type, payload)
        logger.info(f"Webhook processed: {result}")
    except Exception as e:
        logger.exception(f"Error processing webhook: {e}")
