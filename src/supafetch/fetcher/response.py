"""Transport-independent HTTP response model.

Transport adapters hand back whatever their HTTP library produces.
:func:`to_response` (the response adapter) normalizes those native
objects into a :class:`Response` so the rest of the pipeline -- body
decoding, status checks, error parsing -- never sees library types.

Adapters lower-case header names while normalizing, so
:meth:`Response.get_header` can use exact matching.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from functools import singledispatch
from typing import Any, Callable, Optional

import httpx

from supafetch.fetcher.headers import Pairs, find_value


@dataclass(frozen=True)
class Response:
    """A normalized HTTP response.

    Attributes:
        status: HTTP status code.
        headers: Response headers as ``(name, value)`` pairs.
        body: Raw bytes (or a lazy stream) until decoded, then the decoded
            value.
    """

    status: int
    headers: Pairs = field(default_factory=tuple)
    body: Any = None

    @property
    def is_error(self) -> bool:
        """Whether the status denotes a failure (``>= 400``)."""
        return self.status >= 400

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first header named exactly *name*, or *default*."""
        return find_value(self.headers, name, default)

    def decode_body(
        self,
        decoder: Optional[Callable[[Response, Mapping[str, Any]], Any]],
        options: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        """Return a copy of this response with the body run through *decoder*.

        Decoding does not look at the status code; error responses are
        decoded too so error parsers can inspect the decoded body.  A
        ``None`` decoder leaves the body untouched.  Exceptions raised by
        the decoder propagate unchanged.
        """
        if decoder is None:
            return self
        return replace(self, body=decoder(self, dict(options or {})))


@singledispatch
def to_response(native: Any) -> Response:
    """Normalize a transport-native response into a :class:`Response`.

    New transports register their response type with
    ``@to_response.register``.

    Raises:
        TypeError: If no normalization is registered for ``type(native)``.
    """
    raise TypeError(f"Cannot normalize {type(native).__name__!r} into a Response")


@to_response.register
def _(native: Response) -> Response:
    return native


@to_response.register
def _(native: httpx.Response) -> Response:
    headers = tuple((name.lower(), value) for name, value in native.headers.multi_items())
    try:
        body = native.content
    except httpx.ResponseNotRead:
        body = None
    return Response(status=native.status_code, headers=headers, body=body)
