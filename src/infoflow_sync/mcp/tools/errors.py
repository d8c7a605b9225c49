"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an AI agent can
recover without human intervention (fix the API key, pick another path...).
"""

import mcp.types as types

from ...core.client import InfoFlowAPIError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, auth_error, validation_error,
            filesystem_error, server_error, unknown_tool)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Document not found: a.md", "Use infoflow_sync_status to check the vault.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_api_error(error: InfoFlowAPIError) -> types.CallToolResult:
    """Translate an InfoFlow API error to a structured error response.

    Args:
        error: The API error raised by the client

    Returns:
        CallToolResult with isError=True and corrective action
    """
    match error.status_code:
        case 401 | 403:
            return build_error_response(
                "auth_error",
                str(error),
                "Check the InfoFlow API key (INFOFLOW_API_KEY or the apiKey setting).",
            )
        case 404:
            return build_error_response(
                "not_found",
                str(error),
                "Check the InfoFlow endpoint (INFOFLOW_ENDPOINT or the endpoint setting).",
            )
        case None:
            return build_error_response(
                "connection_error",
                str(error),
                "Check network connectivity to InfoFlow and retry.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "InfoFlow returned an error; retry later.",
            )
