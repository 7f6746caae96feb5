"""Remote resource service implementations."""

from ledgersync.providers.remote_service import RemoteResourceService
from ledgersync.providers.http_service import HttpRemoteService
from ledgersync.providers.stub_service import InMemoryLoanService

__all__ = [
    "RemoteResourceService",
    "HttpRemoteService",
    "InMemoryLoanService",
]
