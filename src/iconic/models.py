"""Tortoise ORM models for iconic settings persistence.

Setting: Key/value row for a persisted configuration key (icon-selection-mode, ...).
DateIcon: A date-specific icon override, day-key to catalog filename.
"""

import time

from tortoise import fields
from tortoise.models import Model


class Setting(Model):
    """A persisted configuration value, stored as text."""

    key = fields.CharField(max_length=64, primary_key=True)
    value = fields.TextField()
    updated = fields.IntField(default=0)  # Epoch seconds of last write

    @classmethod
    async def put(cls, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous value."""
        await cls.update_or_create(key=key, defaults={"value": value, "updated": round(time.time())})

    class Meta(Model.Meta):
        table = "setting"


class DateIcon(Model):
    """Calendar override: the icon shown on one day of every year."""

    day_key = fields.CharField(max_length=5, primary_key=True)  # dd.mm
    filename = fields.CharField(max_length=255)

    class Meta(Model.Meta):
        table = "date_icon"
