import logging
import socket
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.util import connection

logger = logging.getLogger(__name__)


class Resolver:
    """
    IPv4-only name resolution.

    When the lookup fails the fallback address is returned instead of
    raising. An empty fallback lets the lookup error propagate.
    """

    def __init__(self, fallback="127.0.0.1"):
        self.fallback = fallback

    def resolve(self, hostname, port=None):
        try:
            infos = socket.getaddrinfo(hostname, port, socket.AF_INET, socket.SOCK_STREAM)
        except socket.gaierror as e:
            if not self.fallback:
                raise
            logger.warning(f"IPv4 lookup for {hostname} failed ({e}), using {self.fallback}")
            return self.fallback
        address = infos[0][4][0]
        logger.debug(f"Resolved {hostname} -> {address}")
        return address


class _ResolvingConnectionMixin:
    resolver = None

    def _new_conn(self):
        # TLS still verifies against self.host; only the dialled address changes.
        address = self.resolver.resolve(self.host, self.port)
        return connection.create_connection(
            (address, self.port),
            self.timeout,
            source_address=self.source_address,
            socket_options=self.socket_options,
        )


def _bind_pool(pool_cls, connection_cls, resolver):
    bound = type(
        connection_cls.__name__,
        (_ResolvingConnectionMixin, connection_cls),
        {"resolver": resolver},
    )
    return type(pool_cls.__name__, (pool_cls,), {"ConnectionCls": bound})


class IPv4Adapter(HTTPAdapter):
    """Transport adapter whose connections dial addresses picked by a Resolver."""

    def __init__(self, resolver, **kwargs):
        self.resolver = resolver
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _bind_pool(HTTPConnectionPool, HTTPConnection, self.resolver),
            "https": _bind_pool(HTTPSConnectionPool, HTTPSConnection, self.resolver),
        }


class RelaySession(requests.Session):
    """Session that drops the pinned Host header when a redirect leaves the host."""

    def rebuild_auth(self, prepared_request, response):
        super().rebuild_auth(prepared_request, response)
        previous = urlparse(response.request.url).hostname
        if urlparse(prepared_request.url).hostname != previous:
            prepared_request.headers.pop("Host", None)


def build_session(config):
    resolver = Resolver(fallback=config.resolver_fallback)
    session = RelaySession()
    adapter = IPv4Adapter(resolver)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
