# ai_bridge/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import Optional
from dotenv import load_dotenv
load_dotenv()

from .settings import settings, Settings
from .chat.endpoints import chat_router
from .core.components import BridgeComponents
from .error_handlers import register_exception_handlers

# Configure logging based on debug mode setting
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level="DEBUG" if settings.debug_mode else settings.log_level.upper(),
        format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
    )

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    components: Optional[BridgeComponents] = None
) -> FastAPI:
    """
    Build the bridge application.

    ``components`` may be supplied pre-built (tests inject components wired to
    mock transports); otherwise they are built from settings at startup.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def bridge_app_lifespan(app_instance: FastAPI):
        logger.info("Application startup initiated.")
        bridge_components = components
        if bridge_components is None:
            # Missing MCP_SERVER_URL or provider key stops the process here
            app_settings.validate_startup_requirements()
            bridge_components = BridgeComponents.from_settings(app_settings)

        app_instance.state.settings = app_settings
        app_instance.state.components = bridge_components
        await bridge_components.start(app_settings.sweep_interval_seconds)

        logger.info(
            f"{app_settings.app_name} ready. Salesforce auth "
            f"{'required' if app_settings.require_salesforce_auth else 'optional'}, "
            f"rate limit {app_settings.user_rate_limit_per_minute}/min per user."
        )
        try:
            yield
        finally:
            logger.info("Application shutdown initiated.")
            await bridge_components.shutdown()
            logger.info("Application shutdown complete.")

    app = FastAPI(
        title=app_settings.app_name,
        debug=app_settings.debug_mode,
        version="1.0.0",
        lifespan=bridge_app_lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health")
    async def health_api():
        """Liveness plus tool-server connectivity and the active model backend."""
        bridge_components: BridgeComponents = app.state.components
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mcpConnected": bridge_components.mcp_client.is_connected(),
            "aiProvider": bridge_components.ai_service.get_provider_name(),
            "aiModel": bridge_components.ai_service.get_model_name(),
        }

    app.include_router(chat_router)
    return app


app = create_app()

logger.info(f"{settings.app_name} initialized. AI provider: {settings.ai_provider}. Routers mounted.")
