from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import UpstreamDataError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def store_operation(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Roll back and re-raise database failures as ``UpstreamDataError``.

    Wrapped methods take the ``AsyncSession`` as their first argument after
    ``self``.
    """

    @functools.wraps(func)
    async def wrapper(self: Any, session: AsyncSession, *args: Any, **kwargs: Any) -> T:
        try:
            return await func(self, session, *args, **kwargs)
        except SQLAlchemyError as exc:
            LOGGER.warning("%s failed: %s", func.__qualname__, exc)
            await session.rollback()
            raise UpstreamDataError(f"{func.__qualname__} failed") from exc

    return wrapper
