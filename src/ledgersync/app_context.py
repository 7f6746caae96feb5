"""Application context for in-process service management.

Wires settings, the remote resource service, the response cache, the loan
services and the local preference store together. Everything is created
lazily on first access.
"""

from pathlib import Path
from typing import Optional

from ledgersync.cache import TtlCacheStore
from ledgersync.config.settings import Settings, get_settings, set_settings
from ledgersync.core.timezone import Clock
from ledgersync.providers import HttpRemoteService, InMemoryLoanService, RemoteResourceService
from ledgersync.repositories.sqlalchemy import (
    SqlAlchemyPreferenceRepository,
    get_session,
    init_db,
    init_db_with_path,
    reset_database,
)
from ledgersync.services import (
    LoanMutationOrchestrator,
    LoanResourceService,
    PreferenceService,
)
from ledgersync.services.mutation_orchestrator import Notifier


class AppContext:
    """
    Application context providing in-process access to all services.

    Pass `remote` to use a specific remote service; `offline=True` uses the
    in-memory service instead of HTTP.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        remote: Optional[RemoteResourceService] = None,
        clock: Optional[Clock] = None,
        notify: Optional[Notifier] = None,
        offline: bool = False,
    ):
        if settings is not None:
            set_settings(settings)
        self._remote = remote
        self._clock = clock
        self._notify = notify
        self._offline = offline
        self._session = None
        self._db_ready = False

        # Service instances (lazy initialized)
        self._cache: Optional[TtlCacheStore] = None
        self._loan_resources: Optional[LoanResourceService] = None
        self._orchestrator: Optional[LoanMutationOrchestrator] = None
        self._preferences: Optional[PreferenceService] = None

    @property
    def settings(self) -> Settings:
        return get_settings()

    @property
    def data_dir(self) -> Path:
        """Get the current data directory."""
        return self.settings.get_data_dir()

    @property
    def remote(self) -> RemoteResourceService:
        """Get the remote resource service."""
        if self._remote is None:
            if self._offline:
                self._remote = InMemoryLoanService(clock=self._clock)
            else:
                settings = self.settings
                self._remote = HttpRemoteService(
                    base_url=settings.api_base_url,
                    token=settings.api_token,
                    timeout=settings.request_timeout_seconds,
                )
        return self._remote

    @property
    def cache(self) -> TtlCacheStore:
        """Get the session response cache."""
        if self._cache is None:
            self._cache = TtlCacheStore(clock=self._clock)
        return self._cache

    @property
    def loans(self) -> LoanResourceService:
        """Get the LoanResourceService instance."""
        if self._loan_resources is None:
            settings = self.settings
            self._loan_resources = LoanResourceService(
                remote=self.remote,
                store=self.cache,
                loan_ttl_seconds=settings.loan_cache_ttl_seconds,
                payment_method_ttl_seconds=settings.payment_method_cache_ttl_seconds,
                analytics_ttl_seconds=settings.analytics_cache_ttl_seconds,
            )
        return self._loan_resources

    @property
    def orchestrator(self) -> LoanMutationOrchestrator:
        """Get the LoanMutationOrchestrator instance."""
        if self._orchestrator is None:
            self._orchestrator = LoanMutationOrchestrator(self.loans, notify=self._notify)
        return self._orchestrator

    @property
    def preferences(self) -> PreferenceService:
        """Get the PreferenceService instance."""
        if self._preferences is None:
            self._preferences = PreferenceService(SqlAlchemyPreferenceRepository(self._get_session()))
        return self._preferences

    def _get_session(self):
        """Get or create the preference database session."""
        if not self._db_ready:
            settings = self.settings
            if settings.database_url:
                reset_database()
                init_db()
            else:
                init_db_with_path(settings.get_data_dir() / "preferences.db")
            self._db_ready = True
        if self._session is None:
            self._session = get_session()
        return self._session

    def clear_cache(self) -> None:
        """Drop every cached response (used on logout)."""
        if self._cache is not None:
            self._cache.clear()

    def close(self) -> None:
        """Release the preference database session."""
        if self._session:
            self._session.close()
            self._session = None
        self._preferences = None

    async def aclose(self) -> None:
        """Release the HTTP client and the database session."""
        if self._remote is not None:
            await self._remote.aclose()
        self.close()
