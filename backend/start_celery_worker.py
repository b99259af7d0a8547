#!/usr/bin/env python3
"""Start the import worker with settings suited to a single-container deploy."""

import sys
import warnings

from celery.bin import worker

# Containers usually run as root
warnings.filterwarnings("ignore", category=UserWarning, message=".*superuser privileges.*")
warnings.filterwarnings("ignore", category=RuntimeWarning, message=".*superuser privileges.*")

from assetdesk.workers.celery_app import celery_app  # noqa: E402

if __name__ == "__main__":
    worker_app = worker.worker(app=celery_app)
    sys.argv = [
        "celery",
        "-A",
        "assetdesk.workers.celery_app.celery_app",
        "worker",
        "--loglevel=info",
        "--queues=imports",
        "--pool=solo",
        "--without-mingle",
        "--without-gossip",
    ] + sys.argv[1:]
    worker_app.run()
