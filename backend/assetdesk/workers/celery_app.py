"""Celery application for background CSV imports."""

import ssl

from celery import Celery

from assetdesk.core.config import get_settings

settings = get_settings()


def _with_ssl(url: str) -> tuple[str, bool]:
    """Switch hosted Redis to rediss:// and disable cert checks on TLS URLs."""
    if ".upstash.io" in url and url.startswith("redis://"):
        url = url.replace("redis://", "rediss://", 1)
    if not url.startswith("rediss://"):
        return url, False
    if "ssl_cert_reqs" not in url:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}ssl_cert_reqs=none"
    return url, True


broker_url, broker_ssl = _with_ssl(settings.celery_broker_url or settings.redis_url)
backend_url, backend_ssl = _with_ssl(settings.celery_result_url or settings.redis_url)

celery_app = Celery(
    "assetdesk",
    broker=broker_url,
    backend=backend_url,
    include=["assetdesk.workers.tasks.import_records"],
)

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "task_acks_late": True,  # Acknowledge after task completion
    "task_reject_on_worker_lost": True,  # Re-queue if worker dies
    "worker_prefetch_multiplier": 1,  # Fair task distribution
    "task_time_limit": 3600,
    "task_soft_time_limit": 3300,
    "result_expires": 3600,
    "broker_connection_retry_on_startup": True,
    "worker_hijack_root_logger": False,
    "task_routes": {"assetdesk.workers.tasks.import_records": {"queue": "imports"}},
    "task_default_queue": "imports",
}

if broker_ssl or backend_ssl:
    ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery_config.update(
        {
            "broker_use_ssl": ssl_dict,
            "redis_backend_use_ssl": ssl_dict,
            "broker_transport_options": ssl_dict.copy(),
            "result_backend_transport_options": ssl_dict.copy(),
        }
    )

celery_app.conf.update(celery_config)
