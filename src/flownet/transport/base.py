"""Transport interface.

The small contracts the HTTP and XMPP transports have to follow. The REST
and pub/sub clients only ever talk to these.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Mapping, Optional
from xml.etree.ElementTree import Element


class FlowError(Exception):
    """Base class for all flownet errors."""


class TransportError(FlowError):
    """The request or connection never completed."""


class ProtocolDecodeError(FlowError, ValueError):
    """A response body or stanza could not be decoded."""


class ConfigurationError(FlowError):
    """The client cannot be used as configured."""


class HttpTransport(ABC):
    """Minimal contract for sending one HTTP request."""

    @abstractmethod
    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes,
    ) -> bytes:
        """Issue the request and return the response body, read until the
        declared Content-Length is satisfied. Any failure to complete the
        exchange must be raised as :class:`TransportError`.
        """

    def close(self) -> None:
        """Release any pooled connections."""


class XmppTransport(ABC):
    """Minimal contract for one XMPP stream.

    The client installs its handlers as attributes before calling
    :func:`connect`; the transport calls them as the stream changes state.
    """

    on_online: Optional[Callable[[], None]] = None
    on_offline: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None
    on_stanza: Optional[Callable[[Element], None]] = None

    @abstractmethod
    def connect(self, jid: str, password: str, host: str, port: int) -> None:
        """Begin establishing the stream. Completion is signalled through
        :attr:`on_online` or :attr:`on_error`.
        """

    @abstractmethod
    def send(self, stanza: Element) -> None:
        """Send a stanza."""

    @abstractmethod
    def disconnect(self) -> None:
        """Terminate the stream."""


def chunks_until(chunks: Iterable[bytes], length: Optional[int]) -> bytes:
    """Accumulate *chunks* until *length* bytes have arrived, or until the
    stream ends if the length is unknown.
    """

    data = b''

    for chunk in chunks:
        data += chunk
        if length is not None and len(data) >= length:
            break

    return data
