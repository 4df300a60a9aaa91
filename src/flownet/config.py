""" Service endpoints and timing constants. Each value can be overridden
    from the environment before :mod:`flownet` is imported; the names are
    listed in :data:`environment`.
"""

import os

from .transport.base import ConfigurationError


environment = dict()
environment['API_HOST'] = 'FLOW_API_HOST'
environment['API_PORT'] = 'FLOW_API_PORT'
environment['XMPP_HOST'] = 'FLOW_XMPP_HOST'
environment['XMPP_PORT'] = 'FLOW_XMPP_PORT'
environment['XMPP_JID'] = 'FLOW_XMPP_JID'
environment['PRESENCE_INTERVAL'] = 'FLOW_PRESENCE_INTERVAL'


def _setting(name, default, cast=str):
    """ Return the environment override for the setting *name*, cast to the
        type of the *default*, or the default itself.
    """

    variable = environment[name]

    try:
        raw = os.environ[variable]
    except KeyError:
        return default

    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError("%s must be a %s, not %s" % (variable, cast.__name__, repr(raw)))


API_HOST = _setting('API_HOST', 'api.flow.net')
API_PORT = _setting('API_PORT', 80, int)

XMPP_HOST = _setting('XMPP_HOST', 'xmpp.flow.net')
XMPP_PORT = _setting('XMPP_PORT', 5222, int)
XMPP_JID = _setting('XMPP_JID', 'pubsub.xmpp.flow.net')

# A presence stanza is sent this often, in seconds, so that the server does
# not time out an idle pub/sub connection.

PRESENCE_INTERVAL = _setting('PRESENCE_INTERVAL', 10.0, float)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
