"""
Celery application, queue definitions, and beat schedule.
"""

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue

from civictrack import config

BROKER_URL = config.CELERY_BROKER_URL
RESULT_BACKEND = config.REDIS_URL

app = Celery(
    "civictrack",
    include=[
        "civictrack.tasks.scheduled_tasks",
    ],
)

# ---------------------------------------------------------------------------
# Broker / result backend
# ---------------------------------------------------------------------------
app.conf.broker_url = BROKER_URL
app.conf.result_backend = RESULT_BACKEND

# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
app.conf.accept_content = ["json"]
app.conf.task_serializer = "json"
app.conf.result_serializer = "json"

# ---------------------------------------------------------------------------
# Reliability
# ---------------------------------------------------------------------------
app.conf.task_acks_late = True                 # ACK only after task completes
app.conf.worker_prefetch_multiplier = 1        # One task at a time per process
app.conf.task_reject_on_worker_lost = True     # Re-queue on crash
app.conf.broker_connection_retry_on_startup = True

# ---------------------------------------------------------------------------
# Queue topology
# ---------------------------------------------------------------------------
default_exchange = Exchange("default", type="direct")
maintenance_exchange = Exchange("maintenance", type="direct")

app.conf.task_queues = (
    Queue("default", default_exchange, routing_key="default"),
    Queue("maintenance", maintenance_exchange, routing_key="maintenance"),
)

app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

app.conf.task_routes = {
    "civictrack.tasks.scheduled_tasks.reconcile_open_incidents": {"queue": "maintenance"},
    "civictrack.tasks.scheduled_tasks.scan_duplicate_groups": {"queue": "maintenance"},
}

# ---------------------------------------------------------------------------
# Beat schedule (periodic tasks)
# ---------------------------------------------------------------------------
app.conf.beat_schedule = {
    "reconcile-open-incidents": {
        "task": "civictrack.tasks.scheduled_tasks.reconcile_open_incidents",
        "schedule": crontab(minute="*/15"),  # Every 15 minutes
    },
    "scan-duplicate-groups": {
        "task": "civictrack.tasks.scheduled_tasks.scan_duplicate_groups",
        "schedule": crontab(minute=0),  # Every hour at :00
    },
}
