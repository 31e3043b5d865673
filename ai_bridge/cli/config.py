# ai_bridge/cli/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

# This cli/config.py file is at <project>/ai_bridge/cli/config.py
# Three .parent calls navigate to the project root directory
project_root = Path(__file__).parent.parent.parent.resolve()

load_dotenv(dotenv_path=project_root / '.env', override=True)

# Base URL of a running bridge
BRIDGE_CLI_API_BASE_URL = os.getenv("BRIDGE_CLI_API_BASE_URL", "http://127.0.0.1:3001")

# Optional Salesforce credentials sent with chat, history and clear commands
BRIDGE_CLI_SALESFORCE_ACCESS_TOKEN = os.getenv("BRIDGE_CLI_SALESFORCE_ACCESS_TOKEN")
BRIDGE_CLI_SALESFORCE_INSTANCE_URL = os.getenv("BRIDGE_CLI_SALESFORCE_INSTANCE_URL")
