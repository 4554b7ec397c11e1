from __future__ import annotations

from collections.abc import Iterator

from fastapi import Request
from sqlalchemy.orm import Session

from app.db.base import Database
from app.providers.base import Geocoder
from app.services.blob_store import BinaryObjectStore


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    db = get_database(request).session()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_blob_store(request: Request) -> BinaryObjectStore:
    return request.app.state.blob_store


def get_geocoder(request: Request) -> Geocoder:
    return request.app.state.geocoder
