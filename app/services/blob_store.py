"""Chunked large-object storage for listing images.

Objects are laid out the way GridFS lays them out: one ``image_files`` row of
metadata and ``ceil(length / chunk_size)`` rows in ``image_chunks`` holding the
payload. Payloads above the compression threshold are gzip-encoded before they
are chunked; reads undo that transparently, so callers always get the bytes and
content type that were uploaded.
"""

from __future__ import annotations

import gzip
import re
import time
import zlib
from collections.abc import Iterator
from dataclasses import dataclass, field

from sqlalchemy import func, select

from app.core.errors import InvalidInputError, NotFoundError
from app.core.logging import get_logger
from app.core.metrics import record_stored_image
from app.db.base import Database
from app.db.models import ImageChunk, ImageFile, new_object_id

logger = get_logger(__name__)

GZIP_CONTENT_TYPE = "application/gzip"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
OBJECT_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def is_object_id(value: str | None) -> bool:
    return bool(value) and OBJECT_ID_RE.fullmatch(value) is not None


@dataclass
class StoredImage:
    id: str
    filename: str
    content_type: str
    compressed: bool
    size: int
    chunks: Iterator[bytes] = field(repr=False)

    def read(self) -> bytes:
        return b"".join(self.chunks)


class BinaryObjectStore:
    def __init__(
        self,
        database: Database,
        *,
        chunk_size: int = 255 * 1024,
        compress_threshold: int = 1024 * 1024,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._database = database
        self.chunk_size = chunk_size
        self.compress_threshold = compress_threshold

    def should_compress(self, size: int) -> bool:
        return size > self.compress_threshold

    def put(self, name: str, data: bytes, content_type: str | None) -> str:
        """Store ``data`` and return the generated object id."""
        start = time.perf_counter()
        original_content_type = content_type or DEFAULT_CONTENT_TYPE
        compressed = self.should_compress(len(data))
        payload = gzip.compress(data, mtime=0) if compressed else data

        object_id = new_object_id()
        file_row = ImageFile(
            id=object_id,
            filename=name,
            content_type=GZIP_CONTENT_TYPE if compressed else original_content_type,
            original_content_type=original_content_type,
            compressed=compressed,
            size=len(data),
            length=len(payload),
            chunk_size=self.chunk_size,
        )

        with self._database.session() as session, session.begin():
            session.add(file_row)
            session.flush()
            session.add_all(
                ImageChunk(file_id=object_id, n=n, data=payload[offset : offset + self.chunk_size])
                for n, offset in enumerate(range(0, len(payload), self.chunk_size))
            )

        record_stored_image(stored_bytes=len(payload), compressed=compressed)
        logger.info(
            "blob_store.put",
            extra={
                "image_id": object_id,
                "upload_filename": name,
                "size_bytes": len(data),
                "stored_bytes": len(payload),
                "compressed": compressed,
                "chunks": file_row.chunk_count,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return object_id

    def stat(self, object_id: str) -> ImageFile:
        if not is_object_id(object_id):
            raise InvalidInputError("Invalid image ID")

        with self._database.session() as session:
            file_row = session.get(ImageFile, object_id)
        if file_row is None:
            raise NotFoundError("Image not found")
        return file_row

    def get(self, object_id: str) -> StoredImage:
        """Look up ``object_id``; the returned chunk iterator is lazy and already decompressed."""
        file_row = self.stat(object_id)
        stored_chunks = self._count_chunks(file_row.id)
        if stored_chunks != file_row.chunk_count:
            logger.error(
                "blob_store.incomplete",
                extra={"image_id": file_row.id, "expected": file_row.chunk_count, "found": stored_chunks},
            )
            raise NotFoundError("Image data is incomplete")

        chunks = self._iter_chunks(file_row)
        if file_row.compressed:
            chunks = _gunzip(chunks)

        return StoredImage(
            id=file_row.id,
            filename=file_row.filename,
            content_type=file_row.original_content_type,
            compressed=file_row.compressed,
            size=file_row.size,
            chunks=chunks,
        )

    def _count_chunks(self, object_id: str) -> int:
        stmt = select(func.count()).select_from(ImageChunk).where(ImageChunk.file_id == object_id)
        with self._database.session() as session:
            return session.execute(stmt).scalar_one()

    def _iter_chunks(self, file_row: ImageFile) -> Iterator[bytes]:
        stmt = select(ImageChunk.data).where(ImageChunk.file_id == file_row.id)
        with self._database.session() as session:
            for n in range(file_row.chunk_count):
                data = session.execute(stmt.where(ImageChunk.n == n)).scalar_one_or_none()
                if data is None:
                    raise NotFoundError(f"Image {file_row.id} is missing chunk {n}")
                yield bytes(data)


def _gunzip(chunks: Iterator[bytes]) -> Iterator[bytes]:
    decoder = zlib.decompressobj(16 + zlib.MAX_WBITS)
    for chunk in chunks:
        out = decoder.decompress(chunk)
        if out:
            yield out
    tail = decoder.flush()
    if tail:
        yield tail
