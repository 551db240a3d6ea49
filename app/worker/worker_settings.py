import os


def redis_dsn() -> str:
    return os.environ.get("REDIS_URL", "redis://localhost:6379/0")


class WorkerSettings:
    # Arq procura estes atributos na classe de settings
    from arq.connections import RedisSettings
    from arq.cron import cron

    from app.worker.job import (
        expire_invitations_job,
        low_stock_alert_job,
        sale_confirmation_job,
        send_invoice_job,
        service_order_update_job,
    )

    redis_settings = RedisSettings.from_dsn(redis_dsn())
    functions = [sale_confirmation_job, service_order_update_job, low_stock_alert_job, send_invoice_job]
    cron_jobs = [
        cron(expire_invitations_job, minute={0, 30}),
    ]

    @staticmethod
    def redis_dsn() -> str:
        return redis_dsn()
