from .base import Base, TimestampedModel, utcnow  # noqa: F401
