"""Wire one client instance: transport, services, stores and controller."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from src.api.auth import AuthService
from src.api.client import ApiClient
from src.api.presets import PresetService
from src.api.records import RecordsService
from src.api.users import UserService
from src.controller.view import ViewController
from src.core.config import Settings
from src.pipeline.filters import FilterEngine
from src.records.cache import RecordCache
from src.session.store import Sleep, SessionStore
from src.session.storage import TokenStorage


@asynccontextmanager
async def open_controller(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Sleep | None = None,
) -> AsyncIterator[ViewController]:
    """Yield a ViewController whose HTTP client is closed on exit.

    Usage::

        async with open_controller(settings) as view:
            await view.mount()
    """
    async with ApiClient(settings.api, transport=transport) as client:
        auth = AuthService(client)
        records = RecordsService(client)
        storage = TokenStorage(settings.storage.resolved_path)
        if sleep is None:
            session = SessionStore(auth, storage, settings.login)
        else:
            session = SessionStore(auth, storage, settings.login, sleep=sleep)
        cache = RecordCache(records)
        yield ViewController(
            session,
            cache,
            FilterEngine(cache),
            records,
            auth,
            PresetService(client),
            users=UserService(client),
            export_dir=settings.export.directory,
        )

