import uvicorn
from dotenv import load_dotenv
import os
from pathlib import Path
import logging

# Configure logging before any application imports to ensure visibility
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s RUN_DEV.PY - [%(levelname)s] - %(message)s'
)
logger = logging.getLogger("run_dev_script")

if __name__ == "__main__":
    project_root = Path(__file__).parent.resolve()
    dotenv_path_explicit = project_root / ".env"

    logger.info(f"Current working directory: {os.getcwd()}")
    logger.info(f"Expected .env path for load_dotenv: {dotenv_path_explicit}")

    if dotenv_path_explicit.exists():
        logger.info(f".env file FOUND at: {dotenv_path_explicit}")
        load_dotenv(dotenv_path=dotenv_path_explicit, override=True)
    else:
        logger.warning(f".env file NOT FOUND at: {dotenv_path_explicit}. "
                      "Will rely on OS environment variables or pydantic-settings defaults.")

    # Log key environment variables for verification, secrets masked
    ai_provider = os.getenv("AI_PROVIDER", "openrouter").lower()
    _provider_key = os.getenv(f"{ai_provider.upper()}_API_KEY")
    logger.info(f"AI_PROVIDER: {ai_provider}")
    logger.info(f"{ai_provider.upper()}_API_KEY: {'********' if _provider_key else 'None'}")
    logger.info(f"MCP_SERVER_URL: {os.getenv('MCP_SERVER_URL')}")
    logger.info(f"REQUIRE_SALESFORCE_AUTH: {os.getenv('REQUIRE_SALESFORCE_AUTH')}")
    logger.info(f"DEBUG_MODE: {os.getenv('DEBUG_MODE')}")

    host = os.getenv("DEV_SERVER_HOST", "127.0.0.1")
    port = int(os.getenv("PORT", os.getenv("DEV_SERVER_PORT", "3001")))
    uvicorn_log_level = os.getenv("DEV_SERVER_LOG_LEVEL", "info").lower()

    debug_mode_env_val = os.getenv("DEBUG_MODE", "False").lower()
    debug_mode_bool_for_reload = debug_mode_env_val in ["true", "1", "yes", "on", "t"]
    reload_env_val = os.getenv("DEV_SERVER_RELOAD", str(debug_mode_bool_for_reload)).lower()
    reload_bool = reload_env_val in ["true", "1", "yes", "on", "t"]

    logger.info(f"Starting Uvicorn server on {host}:{port} (reload: {reload_bool})")
    logger.info("App module: ai_bridge.main:app")

    uvicorn.run(
        "ai_bridge.main:app",
        host=host,
        port=port,
        log_level=uvicorn_log_level,
        reload=reload_bool
    )
