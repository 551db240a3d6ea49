from __future__ import annotations

import logging
from typing import Any

from arq import create_pool
from arq.connections import RedisSettings
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.worker.worker_settings import redis_dsn

logger = logging.getLogger(__name__)


async def enqueue_job(function: str, *args: Any) -> bool:
    """
    Enfileira um job no Arq sem bloquear a request.

    Notificações são best-effort: se o Redis estiver indisponível o erro é apenas
    logado e a operação principal (venda, OS, estoque) segue normalmente.
    """
    dsn = redis_dsn()
    settings = RedisSettings.from_dsn(dsn)
    settings.conn_retries = 1
    try:
        redis = await create_pool(settings)
    except (RedisTimeoutError, RedisConnectionError, OSError) as e:
        logger.warning(f"Redis indisponível (REDIS_URL={dsn}); job {function}{args} não enfileirado: {e}")
        return False
    try:
        await redis.enqueue_job(function, *args)
        return True
    except (RedisTimeoutError, RedisConnectionError) as e:
        logger.warning(f"Falha ao enfileirar job {function}{args}: {e}")
        return False
    finally:
        await redis.aclose()
