"""Convenience exports for service layer."""
from .assistant_client import AssistantChatSession, AssistantErrorKind, AssistantRequestError, classify_error
from .assistant_service import AIGatewayClient, SYSTEM_PROMPT, build_upstream_messages, get_gateway_client
from .auth_service import decode_access_token, get_current_user_id
from .errors import AssistantProxyError, AuthenticationRequired, RateLimited, UpstreamUnavailable
from .origin_policy import allowed_origins, cors_headers, is_origin_allowed
from .presence import ConversationPresence, OnlineUsers, PresenceRecord, PresenceView, open_presence
from .presence_hub import (
    LocalPresenceChannel,
    PresenceChannel,
    PresenceChannelError,
    PresenceEvent,
    PresenceHub,
    get_presence_hub,
    presence_hub,
)
from .sse_stream import ParserState, SSEChatParser, apply_assistant_content
from .usage_service import (
    UsageCleanupError,
    count_recent_usage,
    enforce_rate_limit,
    prune_usage_records,
    record_usage,
    run_usage_cleanup,
)

__all__ = [
    "AIGatewayClient",
    "SYSTEM_PROMPT",
    "build_upstream_messages",
    "get_gateway_client",
    "AssistantChatSession",
    "AssistantErrorKind",
    "AssistantRequestError",
    "classify_error",
    "decode_access_token",
    "get_current_user_id",
    "AssistantProxyError",
    "AuthenticationRequired",
    "RateLimited",
    "UpstreamUnavailable",
    "allowed_origins",
    "cors_headers",
    "is_origin_allowed",
    "ConversationPresence",
    "OnlineUsers",
    "PresenceRecord",
    "PresenceView",
    "open_presence",
    "LocalPresenceChannel",
    "PresenceChannel",
    "PresenceChannelError",
    "PresenceEvent",
    "PresenceHub",
    "get_presence_hub",
    "presence_hub",
    "ParserState",
    "SSEChatParser",
    "apply_assistant_content",
    "UsageCleanupError",
    "count_recent_usage",
    "enforce_rate_limit",
    "prune_usage_records",
    "record_usage",
    "run_usage_cleanup",
]
