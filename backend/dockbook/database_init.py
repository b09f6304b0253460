import logging

from .database import Base, engine

logger = logging.getLogger(__name__)


def import_models():
    """Register every mapped class on Base.metadata (relationships use string targets)."""
    from .models import audit, booking, company, slot, user, warehouse  # noqa: F401


def init_db(bind=None):
    import_models()
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ready")
