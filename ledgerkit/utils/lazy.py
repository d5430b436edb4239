"""
Deferred, re-runnable async pipelines.

A `LazyPipe` wraps a zero-argument coroutine function plus a list of
transformations. Nothing happens until `run()` is awaited, and every `run()`
starts again from the source: the pipe is a recipe, not a cache.

    pipe = LazyPipe.make(fetch_accounts).map(lambda acc: acc.public_key)
    keys = await pipe.run()
    keys_again = await pipe          # re-issues the fetch
"""

from __future__ import annotations

import inspect
from typing import (Any, Awaitable, Callable, Generator, Generic, Iterable,
                    List, Tuple, TypeVar, Union)

__all__ = ["LazyPipe"]

T = TypeVar("T")
U = TypeVar("U")

_Step = Callable[[Any], Union[Any, Awaitable[Any]]]


class LazyPipe(Generic[T]):
    """A deferred source plus an ordered tuple of transformation steps."""

    __slots__ = ("_source", "_steps")

    def __init__(
        self,
        source: Callable[[], Awaitable[Any]],
        steps: Tuple[_Step, ...] = (),
    ) -> None:
        self._source = source
        self._steps = steps

    @classmethod
    def make(cls, source: Callable[[], Awaitable[T]]) -> "LazyPipe[T]":
        return cls(source)

    def pipe(self, fn: Callable[[T], Union[U, Awaitable[U]]]) -> "LazyPipe[U]":
        """Transform the whole value. Returns a new pipe; `self` is unchanged."""
        return LazyPipe(self._source, self._steps + (fn,))

    def map(self, fn: Callable[[Any], U]) -> "LazyPipe[List[U]]":
        """Apply `fn` to each element of an iterable value, keeping order."""

        def _map_each(items: Iterable[Any]) -> List[U]:
            return [fn(item) for item in items]

        return self.pipe(_map_each)

    async def run(self) -> T:
        value = await self._source()
        for step in self._steps:
            value = step(value)
            if inspect.isawaitable(value):
                value = await value
        return value

    def __await__(self) -> Generator[Any, None, T]:
        return self.run().__await__()
