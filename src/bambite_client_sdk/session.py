from __future__ import annotations

from dataclasses import dataclass, field

from .clients.auth import AuthClient
from .clients.orders import OrdersClient
from .config import SDKConfig
from .feature_flags import ClientFeatureFlags
from .http_client import HttpClient
from .models import Role
from .pipeline import RequestPipeline
from .realtime.channel import ChannelCredential, ChannelManager, ChannelTransport
from .realtime.orders import RealtimeOrders
from .realtime.reconciler import Reconciler
from .session_store import SessionStore


@dataclass
class ApiSession:
    """Wires the client layer for one role: pipeline, API clients and the shared push channel."""

    config: SDKConfig
    role: Role
    store: SessionStore | None = None
    http: HttpClient | None = None
    channel: ChannelManager | None = None
    flags: ClientFeatureFlags = field(default_factory=ClientFeatureFlags.from_env)
    channel_transport: ChannelTransport | None = None
    pipeline: RequestPipeline = field(init=False)

    def __post_init__(self) -> None:
        self.store = self.store or SessionStore(path=self.config.session_file)
        self.http = self.http or HttpClient(config=self.config)
        self.channel = self.channel or ChannelManager(
            self.config.realtime_url,
            transport=self.channel_transport,
            reconnect_base_delay=self.config.reconnect_base_delay_seconds,
            reconnect_max_delay=self.config.reconnect_max_delay_seconds,
            credential_provider=self.channel_credential,
        )
        self.pipeline = RequestPipeline(
            self.http,
            self.store,
            self.role,
            renewal_timeout=self.config.renewal_timeout_seconds,
        )

    def auth_client(self) -> AuthClient:
        return AuthClient(pipeline=self.pipeline)

    def orders_client(self) -> OrdersClient:
        return OrdersClient(pipeline=self.pipeline)

    def channel_credential(self) -> ChannelCredential:
        session = self.store.get(self.role)
        return ChannelCredential(token=session.access_token if session else None)

    def realtime_orders(self, reconciler: Reconciler | None = None) -> RealtimeOrders:
        return RealtimeOrders(
            self.channel,
            reconciler or Reconciler(),
            self.orders_client().admin_snapshot,
            flags=self.flags,
            poll_interval=self.config.poll_interval_seconds,
            poll_grace=self.config.poll_grace_seconds,
        )

    def is_authenticated(self) -> bool:
        return self.store.get(self.role) is not None

    async def aclose(self) -> None:
        await self.pipeline.aclose()
        await self.channel.disconnect()
        await self.http.aclose()
