""" Python client for the Flow content service. This includes the signed
    REST client, the immutable query builder used to describe REST
    requests, and the XMPP client that delivers new drops in real time.
"""

# Utility components.

from . import json
from . import poll
from . import config
from . import events

# Submodules used by multiple other components.

from . import transport
from . import fieldtypes

# Primary public-facing interfaces.

from . import client
from . import query
from . import pubsub

from .transport import TransportError, ProtocolDecodeError, ConfigurationError
from .fieldtypes import Typed
from .client import RestClient, Context, active_client
from .query import Query
from .pubsub import XmppClient

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
