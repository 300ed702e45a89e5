"""
Optional collaborator lookups.

Repository aliases and platform hooks are optional: candidates are tried in
rank order, the first available one is used, and the caller proceeds with
None when none is present.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from migration_manager.repositories.base import RecordRepository, Storage

logger = logging.getLogger(__name__)

Hook = Callable[..., Awaitable[Any] | Any]


def first_repository(storage: Storage, names: Iterable[str]) -> RecordRepository | None:
    """Return the first repository registered under one of names, in order."""
    for name in names:
        if storage.has_repository(name):
            return storage.get_repository(name)
        logger.debug(f"Repository alias '{name}' not available")
    return None


async def call_hook(hook: Hook | None, *args: Any, label: str) -> bool:
    """
    Invoke an optional platform hook.

    Returns:
        True if the hook ran, False if it is absent or raised
    """
    if hook is None:
        logger.debug(f"Platform hook '{label}' not configured, skipping")
        return False
    try:
        outcome = hook(*args)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as e:
        logger.warning(f"Platform hook '{label}' failed: {e}")
        return False
    return True
