"""Serial update payloads."""

from pydantic import BaseModel


class SerialUpdate(BaseModel):
    status: str | None = None
    sticker_status: str | None = None
    sticker_date: str | None = None
    sticker_image_url: str | None = None
    image_url: str | None = None
    notes: str | None = None
    location_id: str | None = None
