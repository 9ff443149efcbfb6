"""
Transport Core.

Authenticated HTTP requests and streaming over httpx, with bearer-token
lifecycle management and pluggable interceptors. Knows nothing about
migration concepts.

Example:
    >>> from switchover.transport import TokenManager, create_rest_client
    >>>
    >>> tokens = TokenManager(identity_provider)
    >>> client = create_rest_client(settings, token_manager=tokens)
    >>> profile = (await client.get("/users/profile")).json()
"""

from switchover.transport.auth import AuthToken, TokenManager, TokenProvider, decode_expiry
from switchover.transport.client import (
    ChunkHandler,
    RequestConfig,
    RequestInterceptor,
    ResponseInterceptor,
    RestClient,
    create_rest_client,
    log_request,
    raise_for_error_status,
)
from switchover.transport.streaming import LineRecordDecoder, StreamChunk, parse_line

__all__ = [
    # Client
    "RestClient",
    "RequestConfig",
    "RequestInterceptor",
    "ResponseInterceptor",
    "ChunkHandler",
    "create_rest_client",
    "log_request",
    "raise_for_error_status",
    # Auth
    "AuthToken",
    "TokenManager",
    "TokenProvider",
    "decode_expiry",
    # Streaming
    "LineRecordDecoder",
    "StreamChunk",
    "parse_line",
]
