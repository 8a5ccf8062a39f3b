import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable

# Блокирующие вызовы MinIO SDK и рендеринг превью идут в разные ограниченные пулы:
# медленный PDF не должен занимать потоки загрузок и скачиваний.
BLOB_IO = "blob-io"
RENDER = "render"
_POOL_SIZES = {BLOB_IO: 16, RENDER: 2}
_executors: dict[str, ThreadPoolExecutor] = {}


def _get_executor(pool: str) -> ThreadPoolExecutor:
    executor = _executors.get(pool)
    if executor is None:
        executor = ThreadPoolExecutor(max_workers=_POOL_SIZES[pool], thread_name_prefix=pool)
        _executors[pool] = executor
    return executor


async def run_io_bound(func: Callable[..., Any], *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_get_executor(BLOB_IO), partial(func, *args, **kwargs))


async def run_render(func: Callable[..., Any], *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_get_executor(RENDER), partial(func, *args, **kwargs))


def shutdown_pools(wait: bool = True) -> None:
    """Останавливает пулы. При следующем вызове run_* они создаются заново."""
    while _executors:
        _, executor = _executors.popitem()
        executor.shutdown(wait=wait)
