"""
StreamShortcut MCP Server - Configuration.

All configuration values are loaded from environment variables with sensible defaults.
This allows deployment-specific configuration without code changes.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file (SHORTCUT_API_TOKEN, MCP_SERVER_NAME, etc.)
load_dotenv()

# Server metadata reported to MCP clients and on the health endpoint
SERVER_VERSION = "1.0.0"

# Name used to identify this server to MCP clients
# Can be customized per deployment (e.g., "streamshortcut-staging")
MCP_SERVER_NAME = os.getenv("MCP_SERVER_NAME", "streamshortcut")

# Shortcut REST API v3 base URL
SHORTCUT_API_BASE = os.getenv("SHORTCUT_API_BASE", "https://api.app.shortcut.com/api/v3").rstrip("/")

# Shortcut API token, sent as the Shortcut-Token header
# Get one from Shortcut → Settings → API Tokens
SHORTCUT_API_TOKEN = os.getenv("SHORTCUT_API_TOKEN")

# Seconds before an outbound API request is abandoned
SHORTCUT_TIMEOUT = float(os.getenv("SHORTCUT_TIMEOUT", "30"))

# Options: DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Optional file logging, a date is inserted before the .log extension
LOG_FILE = os.getenv("LOG_FILE")

# Values that show up when a template .env or client config was never filled in
TOKEN_PLACEHOLDERS = [
    '$SHORTCUT_API_TOKEN', '${SHORTCUT_API_TOKEN}', '<api_token>',
    'YOUR_API_TOKEN', 'your-api-token-here'
]
