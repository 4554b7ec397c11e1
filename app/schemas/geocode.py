from __future__ import annotations

from pydantic import BaseModel


class GeocodeOut(BaseModel):
    display_name: str
    lat: float
    lng: float
