import logging

from celery import shared_task

from .services import DataRoomAccessService

logger = logging.getLogger(__name__)


@shared_task(name="apps.data_rooms.tasks.auto_unblock_expired")
def auto_unblock_expired():
    """Lift temporary email blocks whose unblock time has passed."""
    try:
        released = DataRoomAccessService.auto_unblock_expired()
        logger.info("Data rooms: %s email block(s) lifted", len(released))
        return {"status": "ok", "unblocked": [{"room": block.room_id, "email": block.email} for block in released]}
    except Exception as exc:
        logger.exception("Auto unblock job failed: %s", exc)
        return {"status": "error", "error": str(exc)}
