from functools import wraps
from typing import Callable


def cached(key_builder: Callable[..., str]):
    """
    Decorator for async client reads. key_builder receives the same
    args/kwargs as the method (including ``self``).
    Example:
      @cached(lambda self, task_id: f"/tasks/{task_id}")
      async def get_task(self, task_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = key_builder(self, *args, **kwargs)

            # loader closure calls the wrapped method
            async def loader():
                return await fn(self, *args, **kwargs)

            return await self.cache.get(key, loader=loader)

        return wrapper

    return decorator


def invalidates(*prefixes: str):
    """Drop every cache key under ``prefixes`` once the mutation succeeded."""

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            result = await fn(self, *args, **kwargs)
            for prefix in prefixes:
                self.cache.invalidate_prefix(prefix)
            return result

        return wrapper

    return decorator
