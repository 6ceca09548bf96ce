# deps/store.py
from app.rotation.store import TontineStore, build_store
from settings import settings

_store: TontineStore | None = None


def get_store() -> TontineStore:
    """
    Process-wide store selected by STORE_BACKEND. Tests swap it through
    app.dependency_overrides.
    """
    global _store
    if _store is None:
        _store = build_store(settings.STORE_BACKEND)
    return _store


def reset_store() -> None:
    global _store
    _store = None
