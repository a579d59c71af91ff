from .clients import AuthClient, OrdersClient
from .config import ConfigError, SDKConfig
from .errors import (
    ApiError,
    AuthExpiredError,
    AuthInvalidError,
    NetworkUnreachableError,
    RateLimitedError,
    ServerError,
    SessionExpiredError,
    ValidationRejectedError,
)
from .feature_flags import ClientFeatureFlags
from .http_client import HttpClient, RequestSpec
from .models import AuthResponse, NewOrderEvent, OrderUpdateEvent, Role, Session
from .pipeline import PipelineState, RequestPipeline, SessionExpired
from .realtime import (
    ChannelCredential,
    ChannelManager,
    EventType,
    PollScheduler,
    RealtimeOrders,
    Reconciler,
)
from .session import ApiSession
from .session_store import SessionStore

__all__ = [
    "ApiError",
    "ApiSession",
    "AuthClient",
    "AuthExpiredError",
    "AuthInvalidError",
    "AuthResponse",
    "ChannelCredential",
    "ChannelManager",
    "ClientFeatureFlags",
    "ConfigError",
    "EventType",
    "HttpClient",
    "NetworkUnreachableError",
    "NewOrderEvent",
    "OrderUpdateEvent",
    "OrdersClient",
    "PipelineState",
    "PollScheduler",
    "RateLimitedError",
    "RealtimeOrders",
    "Reconciler",
    "RequestPipeline",
    "RequestSpec",
    "Role",
    "SDKConfig",
    "ServerError",
    "Session",
    "SessionExpired",
    "SessionExpiredError",
    "SessionStore",
    "ValidationRejectedError",
]
