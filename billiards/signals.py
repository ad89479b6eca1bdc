import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import TableActivityLog
from .utils import broadcast_table_activity

# -----------------------------------------------------------------------------
# Logger
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Notify floor displays via WebSocket (Channels) once the transition commits
# -----------------------------------------------------------------------------
@receiver(post_save, sender=TableActivityLog)
def notify_on_table_activity(sender, instance, created, **kwargs):
    if not created:
        return
    transaction.on_commit(partial(_broadcast, instance))


def _broadcast(log):
    try:
        broadcast_table_activity(log)
    except Exception as exc:
        logger.error(f"Table status broadcast failed for log {log.id}: {exc}", exc_info=True)
