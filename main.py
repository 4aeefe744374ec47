import os

import anyio
import uvicorn
from anyio.to_thread import current_default_thread_limiter
from loguru import logger

from gatekeeper.core.config import settings


async def monitor_thread_limiter():
    limiter = current_default_thread_limiter()
    threads_in_use = limiter.borrowed_tokens
    while True:
        if threads_in_use != limiter.borrowed_tokens:
            logger.debug(f"Threads in use: {limiter.borrowed_tokens}")
            threads_in_use = limiter.borrowed_tokens
        await anyio.sleep(0.1)


def main():
    if settings.workers_count > 1:
        logger.warning(
            f"Running {settings.workers_count} workers: request counters are per process, "
            f"so each client may make up to {settings.workers_count}x the configured limit"
        )

    if settings.debug:
        os.environ["PYTHONASYNCIODEBUG"] = "1"
        config = uvicorn.Config(
            app="gatekeeper.main:app",
            host=settings.backend_host,
            port=settings.backend_port,
            reload=settings.reload_uvicorn,
            workers=settings.workers_count,
        )
        server = uvicorn.Server(config)

        async def main_monitor():
            async with anyio.create_task_group() as tg:
                tg.start_soon(monitor_thread_limiter)
                await server.serve()
                tg.cancel_scope.cancel()

        anyio.run(main_monitor)
    else:
        uvicorn.run(
            app="gatekeeper.main:app",
            host=settings.backend_host,
            port=settings.backend_port,
            reload=settings.reload_uvicorn,
            workers=settings.workers_count,
        )


if __name__ == "__main__":
    main()
