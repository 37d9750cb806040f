#!/usr/bin/env python3
"""
StreamShortcut MCP Server - Exposes the Shortcut API via Model Context Protocol.

A lightweight Shortcut integration: one tool (`shortcut`), eight actions.
Assistants pass human-friendly values (sc-704, story URLs, "in progress",
"me") and the server resolves them to the IDs the Shortcut API requires.

Supports two transport modes:
1. STDIO: For local integration with MCP clients (direct stdin/stdout communication)
2. SSE: For remote deployment via Server-Sent Events over HTTP/HTTPS
"""

# Import FastMCP for building MCP-compliant servers with tool definitions
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

# Import Starlette for ASGI web application (used for SSE transport)
from starlette.applications import Starlette
from starlette.routing import Mount, Route
from starlette.responses import JSONResponse

# Import uvicorn for serving the ASGI app in SSE mode
import uvicorn

# Import standard libraries
import os
import sys
import logging
import argparse
from datetime import datetime
from typing import Any, Dict, Optional, Union
from pydantic import Field, ValidationError

import config
from handlers import HELP_TEXT, run_action
from models import ACTIONS, ShortcutParams
from shortcut_client import ShortcutClient

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================
# Handlers are attached to the root logger so every module's
# logging.getLogger(__name__) shares the same output. The console handler
# writes to stderr; stdout is reserved for the STDIO transport.

logger = logging.getLogger(__name__)

root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

# Format: 2024-01-27 10:30:45 - handlers - INFO - Message here
log_formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

console_handler = logging.StreamHandler(sys.stderr)
console_handler.setLevel(logging.DEBUG)
console_handler.setFormatter(log_formatter)
root_logger.addHandler(console_handler)

if config.LOG_FILE:
    # Generate date-based log filename: streamshortcut.yyyy-mm-dd.log
    log_date = datetime.now().strftime("%Y-%m-%d")
    log_dir = os.path.dirname(config.LOG_FILE)
    log_basename = os.path.basename(config.LOG_FILE)

    if log_basename.endswith('.log'):
        dated_log_file = os.path.join(log_dir, f"{log_basename[:-4]}.{log_date}.log")
    else:
        dated_log_file = f"{config.LOG_FILE}.{log_date}.log"

    file_handler = logging.FileHandler(dated_log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(log_formatter)
    root_logger.addHandler(file_handler)
    logger.info(f"File logging enabled: {dated_log_file}")

# IMPORTANT: requests/urllib3 log full request details at DEBUG level,
# which would include the Shortcut-Token header
logging.getLogger("requests").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)

logger.info(f"Logging initialized at {config.LOG_LEVEL} level")
logger.info(f"MCP Server: {config.MCP_SERVER_NAME}")

# FastMCP provides the MCP protocol implementation and tool registration
mcp = FastMCP(config.MCP_SERVER_NAME)

# ============================================================================
# SSE TRANSPORT CONFIGURATION
# ============================================================================

def health_payload() -> dict:
    return {
        "status": "healthy",
        "server": config.MCP_SERVER_NAME,
        "version": config.SERVER_VERSION,
        "description": "StreamShortcut MCP - Lightweight Shortcut integration",
        "api_base": config.SHORTCUT_API_BASE,
        "endpoints": {
            "health": "/health",
            "sse": "/sse"
        },
        "tool": {
            "name": "shortcut",
            "actions": list(ACTIONS)
        }
    }


async def health_check(request):
    """
    Health check endpoint for monitoring server status.

    Used by load balancers, monitoring tools, and manual testing.
    """
    return JSONResponse(health_payload(), headers={"Access-Control-Allow-Origin": "*"})


app = Starlette(
    routes=[
        Route("/", health_check),
        Route("/health", health_check),

        # FastMCP's SSE app handles the MCP protocol over Server-Sent Events
        Mount("/", app=mcp.http_app(transport="sse"))
    ]
)


# ============================================================================
# API TOKEN VALIDATION
# ============================================================================

def validate_api_token(token: Optional[str]) -> dict:
    """
    Check that a usable Shortcut API token is configured.

    This is a local check only (no API call); a revoked token surfaces as a
    401 from the first real request.

    Returns:
        dict: {'valid': True} or {'valid': False, 'error': 'error message'}
    """
    if not token or not token.strip():
        return {'valid': False, 'error': 'SHORTCUT_API_TOKEN not configured'}

    if any(pattern in token for pattern in config.TOKEN_PLACEHOLDERS):
        return {
            'valid': False,
            'error': 'SHORTCUT_API_TOKEN still holds a placeholder value. '
                     'Create a token in Shortcut → Settings → API Tokens.'
        }

    return {'valid': True}


# ============================================================================
# SHORTCUT TOOL
# ============================================================================

@mcp.tool(
    name = "shortcut",
    description = "Shortcut project tracking: search, get, update, comment on and create stories, view epics, or call the raw REST API. IDs accept 704, sc-704 or story/epic URLs; states accept free text like 'done' or 'wip'; owners accept a name, mention handle or 'me'. Use action='help' for examples."
)
def shortcut(
    action: str = Field(description="One of: search, get, update, comment, create, epic, api, help"),
    query: Optional[Union[str, Dict[str, Any]]] = Field(default=None, description="search: text query or filters {owner, state, epic, iteration, type, archived}; api: JSON body"),
    id: Optional[Union[int, str]] = Field(default=None, description="Story or epic reference: 704, sc-704 or a full URL"),
    state: Optional[str] = Field(default=None, description="Workflow state name, e.g. 'Done', 'in progress', 'wip'"),
    estimate: Optional[int] = Field(default=None, description="Story point estimate"),
    owner: Optional[str] = Field(default=None, description="Owner: name, mention handle or 'me'. On update, 'none' (reserved) clears owners"),
    type: Optional[str] = Field(default=None, description="Story type: feature, bug or chore"),
    name: Optional[str] = Field(default=None, description="Story name (create) or new name (update)"),
    body: Optional[str] = Field(default=None, description="Comment text"),
    epic: Optional[int] = Field(default=None, description="Epic ID for a new story"),
    method: Optional[str] = Field(default=None, description="HTTP method for action='api'"),
    path: Optional[str] = Field(default=None, description="API path for action='api', e.g. /workflows")
) -> str:
    """
    Single entry point for every Shortcut action.

    Returns Markdown text. Failures (bad IDs, missing parameters, API errors)
    are raised as ToolError so MCP clients see them as error results.
    """
    return invoke_shortcut({
        "action": action, "query": query, "id": id, "state": state,
        "estimate": estimate, "owner": owner, "type": type, "name": name,
        "body": body, "epic": epic, "method": method, "path": path
    }, config.SHORTCUT_API_TOKEN)


def invoke_shortcut(arguments: dict, token: Optional[str]) -> str:
    """Validate token and arguments, run the action, raise ToolError on failure."""
    validation = validate_api_token(token)
    if not validation['valid']:
        raise ToolError(f"Error: {validation['error']}")

    # Unset arguments are dropped so ShortcutParams can tell "not given" apart
    try:
        params = ShortcutParams.model_validate({k: v for k, v in arguments.items() if v is not None})
    except ValidationError as e:
        logger.warning(f"invoke_shortcut: Invalid parameters - {e.error_count()} errors")
        raise ToolError(f"Error: Invalid parameters: {e}")

    result = run_action(params, ShortcutClient(token))
    if result.is_error:
        raise ToolError(result.text)
    return result.text


# ============================================================================
# MCP RESOURCES
# ============================================================================

@mcp.resource("shortcut://docs/actions")
def get_actions_guide() -> str:
    """Usage guide for the shortcut tool"""
    return HELP_TEXT


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main():
    """
    Run the MCP server with either STDIO or SSE transport.

    Transport Modes:
    1. STDIO (default): MCP client spawns this as a subprocess
    2. SSE: Runs as a web service with uvicorn, behind a reverse proxy for HTTPS
    """
    parser = argparse.ArgumentParser(description='StreamShortcut MCP Server')

    parser.add_argument('--transport', choices=['stdio', 'sse'], default='stdio',
                        help='Transport type: stdio (local dev) or sse (production)')

    # SSE-specific arguments (ignored in stdio mode)
    parser.add_argument('--host', default='0.0.0.0',
                        help='Host to bind to for SSE (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=8000,
                        help='Port to bind to for SSE (default: 8000)')

    args = parser.parse_args()

    logger.info("=" * 60)
    logger.info("StreamShortcut MCP Server Starting")
    logger.info(f"API Base URL: {config.SHORTCUT_API_BASE}")
    logger.info(f"Transport Mode: {args.transport}")
    logger.info(f"Log Level: {config.LOG_LEVEL}")
    logger.info("=" * 60)

    if not validate_api_token(config.SHORTCUT_API_TOKEN)['valid']:
        logger.warning("SHORTCUT_API_TOKEN is not configured; tool calls will fail until it is set")

    # stdout is reserved for STDIO communication
    print(f"StreamShortcut MCP Server | API: {config.SHORTCUT_API_BASE} | Transport: {args.transport}", file=sys.stderr)

    if args.transport == 'sse':
        logger.info(f"Starting SSE server on {args.host}:{args.port}")
        try:
            uvicorn.run(
                app,
                host=args.host,
                port=args.port,
                log_level="info"
            )
        except Exception as e:
            logger.critical(f"Failed to start SSE server: {e}", exc_info=True)
            sys.exit(1)
    else:
        logger.info("Starting STDIO server (stdin/stdout communication)")
        try:
            mcp.run(transport='stdio')
        except KeyboardInterrupt:
            logger.info("Server stopped by user (Ctrl+C)")
        except Exception as e:
            logger.critical(f"Failed to start STDIO server: {e}", exc_info=True)
            sys.exit(1)


if __name__ == "__main__":
    main()
