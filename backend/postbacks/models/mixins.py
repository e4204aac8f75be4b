from sqlalchemy import Column, DateTime, event

from postbacks.core.time import utcnow


class CreatedAtMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)


class TimestampMixin(CreatedAtMixin):
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @staticmethod
    def _touch_updated_at(mapper, connection, target) -> None:
        target.updated_at = utcnow()

    @classmethod
    def __declare_last__(cls) -> None:
        event.listen(cls, "before_update", cls._touch_updated_at)
