"""Transport layer: the contracts in :mod:`.base`, with the httpx and slixmpp
implementations in :mod:`.http` and :mod:`.xmpp`. slixmpp is only
imported when an XmppClient needs it.
"""

from .base import (
    FlowError,
    TransportError,
    ProtocolDecodeError,
    ConfigurationError,
    HttpTransport,
    XmppTransport,
)
