"""Deferred request bodies."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator

FILE_CHUNK_SIZE = 2048


class StreamBody:
    """A request body delivered lazily as an iterable of byte chunks.

    Wrap a generator or file iterator in ``StreamBody`` to pass it to
    :meth:`~supafetch.fetcher.Request.with_body` without reading it into
    memory; it is only consumed when the transport sends the request.
    """

    def __init__(self, chunks: Iterable[bytes]):
        self.chunks = chunks

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.chunks)

    def __repr__(self) -> str:
        return f"StreamBody({type(self.chunks).__name__})"


def iter_file(path: str | os.PathLike, chunk_size: int = FILE_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the contents of *path* in *chunk_size* byte chunks.

    The file is opened on first iteration and closed when the generator
    finishes or is closed.
    """
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                return
            yield chunk
