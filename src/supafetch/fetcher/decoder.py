"""Pluggable response body decoders.

A body decoder turns the raw body of a :class:`~supafetch.fetcher.Response`
into something more useful.  Any callable taking ``(response, options)``
and returning the decoded body qualifies; :class:`BodyDecoder` is the
base class for reusable ones.  Decoders signal failure by raising
:class:`~supafetch.exceptions.DecodeError`.

:class:`JSONDecoder` is the default attached to every request.  Requests
that need the raw body attach ``None`` instead.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from supafetch.exceptions import DecodeError

if TYPE_CHECKING:
    from supafetch.fetcher.response import Response


class BodyDecoder(ABC):
    """Base class for reusable body decoders.

    Subclasses implement :meth:`decode`.  Instances are callable with the
    same two arguments, so the pipeline treats them exactly like plain
    decoder functions.
    """

    @abstractmethod
    def decode(self, response: Response, options: Mapping[str, Any]) -> Any:
        """Return the decoded body of *response*.

        Raises:
            DecodeError: If the body cannot be decoded.
        """

    def __call__(self, response: Response, options: Mapping[str, Any]) -> Any:
        return self.decode(response, options)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class JSONDecoder(BodyDecoder):
    """Decode a JSON body into plain Python values with string keys.

    Empty bodies decode to ``None``.  Bodies that are not bytes or text
    (for example an already-decoded value) pass through unchanged.

    Options:
        model: A type to validate the parsed JSON into through a pydantic
            :class:`~pydantic.TypeAdapter` (a ``BaseModel`` subclass,
            ``list[Model]``, a ``TypedDict``...).
        parse_float, parse_int, parse_constant, object_pairs_hook:
            Forwarded to :func:`json.loads`.
    """

    _LOADS_OPTIONS = ("parse_float", "parse_int", "parse_constant", "object_pairs_hook")

    def decode(self, response: Response, options: Mapping[str, Any]) -> Any:
        body = response.body
        if isinstance(body, (bytes, bytearray, memoryview)):
            body = bytes(body)
        elif not isinstance(body, str):
            return body
        if not body.strip():
            return None

        model = options.get("model")
        if model is not None:
            try:
                return TypeAdapter(model).validate_json(body)
            except ValidationError as exc:
                raise DecodeError(f"Response body does not match {model!r}: {exc}") from exc

        loads_kwargs = {k: options[k] for k in self._LOADS_OPTIONS if k in options}
        try:
            return json.loads(body, **loads_kwargs)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Invalid JSON body: {exc}") from exc


class TextDecoder(BodyDecoder):
    """Decode the body as text (``encoding`` option, default UTF-8)."""

    def decode(self, response: Response, options: Mapping[str, Any]) -> Any:
        body = response.body
        if not isinstance(body, (bytes, bytearray, memoryview)):
            return body
        encoding = options.get("encoding", "utf-8")
        try:
            return bytes(body).decode(encoding)
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Body is not valid {encoding}: {exc}") from exc
