"""Asynchronous tasks of the core module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int | None = None) -> dict[str, int]:
    """Relay pending outbox rows to the in-process event bus.

    Rows are locked with ``SELECT ... FOR UPDATE SKIP LOCKED`` so two
    workers never relay the same event.  A failing handler marks the row
    ``FAILED``; it is retried on the next run until ``OUTBOX_MAX_RETRIES``.
    """
    batch_size = batch_size or settings.OUTBOX_RELAY_BATCH_SIZE
    published = failed = 0

    with transaction.atomic():
        rows = list(
            OutboxEvent.objects.relayable(settings.OUTBOX_MAX_RETRIES)
            .select_for_update(skip_locked=True)[:batch_size]
        )
        for row in rows:
            log = logger.bind(
                outbox_id=str(row.id),
                event_type=row.event_type,
                aggregate_id=row.aggregate_id,
            )
            try:
                # One savepoint per row: a handler that breaks the
                # transaction only rolls back its own event.
                with transaction.atomic():
                    event = DomainEvent.from_payload(row.event_type, row.payload)
                    event_bus.publish(event)
                    row.mark_as_published()
            except Exception as exc:  # noqa: BLE001 - recorded on the row
                row.mark_as_failed(f"{type(exc).__name__}: {exc}")
                log.warning("outbox.relay_failed", retry_count=row.retry_count)
                failed += 1
                continue
            log.info("outbox.relayed")
            published += 1

    logger.info("outbox.relay_finished", published=published, failed=failed)
    return {"published": published, "failed": failed}
