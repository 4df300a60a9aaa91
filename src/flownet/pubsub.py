""" Real-time delivery of new drops over XMPP. An :class:`XmppClient` holds
    one connection to the Flow pub/sub service, keeps it alive, answers
    the server's pings, and turns pushed drops into events named
    ``/drop/<flow id>``::

        xmpp = flownet.XmppClient(key, secret, 'mycoolapp')

        def arrived(drop):
            print(drop['elems']['title']['value'])

        xmpp.on('online', lambda: print('connected'))
        xmpp.on('/drop/' + flow_id, arrived)

    Listening for a ``/drop/`` event is what subscribes to that flow: the
    first listener for a flow sends a subscribe request, removing the last
    one sends the matching unsubscribe. Other events ('online', 'offline',
    'error') have no effect on the wire.
"""

import enum
import hashlib
import itertools
import logging
import threading
import time
from xml.etree.ElementTree import Element, SubElement

from . import config
from . import events
from . import fieldtypes
from . import poll
from .transport.base import ConfigurationError

logger = logging.getLogger(__name__)


CLIENT_NS = 'jabber:client'
PUBSUB_NS = 'flow:pubsub'
DROP_PREFIX = '/drop/'


class State(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    ONLINE = 'online'
    OFFLINE = 'offline'
    ERROR = 'error'


class DecodeMode(enum.Enum):
    """ FLAT decoding reduces typed leaves to bare values; TAGGED decoding
        keeps the ``{'type': ..., 'value': ...}`` wrapper around every node.
    """

    FLAT = 'flat'
    TAGGED = 'tagged'


# Stanza identifiers only need to be locally unique and increasing; start
# from the current time in milliseconds so that they also stay unique
# across process restarts.

_id_lock = threading.Lock()
_id_counter = itertools.count(int(time.time() * 1000))


def _id_next():
    with _id_lock:
        return next(_id_counter)



def password(key, secret, identity_id=None):
    """ Return the connection password: the hex SHA-1 of the application
        *key*, *secret*, and the *identity_id* if one is specified.
    """

    shasum = hashlib.sha1()
    shasum.update(key.encode('utf-8'))
    shasum.update(secret.encode('utf-8'))

    if identity_id:
        shasum.update(identity_id.encode('utf-8'))

    return shasum.hexdigest()



def jid(app_name, alias=None, host=None):
    """ Return the connection identity, ``app[#alias]@host``.
    """

    if host is None:
        host = config.XMPP_HOST

    if alias:
        app_name = app_name + '#' + alias

    return app_name + '@' + host



def local_name(tag):
    """ Strip the namespace, if any, from an ElementTree *tag*.
    """

    if tag[:1] == '{':
        return tag.split('}', 1)[1]

    return tag



def find_node(name, parent, depth=-1):
    """ Return the first element named *name* at most *depth* levels below
        *parent*, including *parent* itself. A negative *depth* searches the
        whole tree. Returns None if there is no such element.
    """

    if parent is None:
        return None

    if local_name(parent.tag) == name:
        return parent

    if depth == 0:
        return None

    for child in parent:
        found = find_node(name, child, depth - 1)
        if found is not None:
            return found

    return None



def decode(node, mode=DecodeMode.FLAT):
    """ Decode a stanza element into the value it represents, in the same
        shape as the equivalent REST response. A leaf element is a value of
        the semantic type named by its 'type' attribute; an element with
        children is a dictionary keyed by child name. The children of an
        'elems' element, and everything below a TAGGED node, are decoded
        TAGGED: their values are dynamically typed, so the type travels
        with them.
    """

    children = list(node)

    if children:
        if mode is DecodeMode.TAGGED or local_name(node.tag) == 'elems':
            child_mode = DecodeMode.TAGGED
        else:
            child_mode = DecodeMode.FLAT

        value = dict()
        for child in children:
            value[local_name(child.tag)] = decode(child, child_mode)

    elif node.text is not None:
        value = fieldtypes.coerce(node.get('type'), node.text)

    else:
        value = dict()

    if mode is DecodeMode.TAGGED:
        return {'type': node.get('type'), 'value': value}

    return value



def iq(action, flow_id=None):
    """ Build a ``flow:pubsub`` request stanza for *action* ('subscribe',
        'unsubscribe', or 'pong').
    """

    attributes = dict()
    attributes['type'] = 'set'
    attributes['to'] = config.XMPP_JID
    attributes['id'] = str(_id_next())

    stanza = Element('{%s}iq' % (CLIENT_NS), attributes)
    query = SubElement(stanza, '{%s}query' % (PUBSUB_NS))
    request = SubElement(query, '{%s}%s' % (PUBSUB_NS, action))

    if flow_id is not None:
        request.set('flow', str(flow_id))

    return stanza



def topic(event):
    """ Return the flow id for a ``/drop/<flow id>`` *event*, or None if the
        event is not a topic.
    """

    if isinstance(event, str) and event.startswith(DROP_PREFIX):
        return event[len(DROP_PREFIX):]

    return None



class Subscriptions:
    """ The set of flows subscribed to on the live connection. Subscribing
        or unsubscribing sends the corresponding stanza through *send*, but
        only when the set actually changes.
    """

    def __init__(self, send):
        self.send = send
        self.topics = set()
        self.lock = threading.Lock()


    def __contains__(self, flow_id):
        return flow_id in self.topics


    def __iter__(self):
        with self.lock:
            return iter(sorted(self.topics))


    def __len__(self):
        return len(self.topics)


    def subscribe_topic(self, flow_id):
        """ Subscribe to *flow_id*. Returns False if already subscribed.
        """

        with self.lock:
            if flow_id in self.topics:
                return False
            self.topics.add(flow_id)

        logger.debug("subscribing to flow %s", flow_id)
        self.send(iq('subscribe', flow_id))
        return True


    def unsubscribe_topic(self, flow_id):
        """ Unsubscribe from *flow_id*. Returns False if not subscribed.
        """

        with self.lock:
            if flow_id in self.topics:
                self.topics.remove(flow_id)
            else:
                return False

        logger.debug("unsubscribing from flow %s", flow_id)
        self.send(iq('unsubscribe', flow_id))
        return True


    def resubscribe(self):
        """ Send a subscribe request for every tracked flow, for example
            after reconnecting.
        """

        for flow_id in self:
            self.send(iq('subscribe', flow_id))


# end of class Subscriptions



def _default_transport():

    try:
        from .transport.xmpp import SlixmppTransport
    except ImportError as e:
        raise ConfigurationError('slixmpp is required for XmppClient') from e

    return SlixmppTransport()



class XmppClient:
    """ Connect to the Flow pub/sub service as the application *app_name*,
        authenticating with the application *key* and *secret*. To act as a
        specific identity, specify its *identity_id* and *identity_alias*.

        The *transport* is a :class:`flownet.transport.XmppTransport`; the
        default is built on slixmpp, and a :class:`flownet.ConfigurationError`
        is raised here if slixmpp is not available. The connection is
        started immediately unless *connect* is False.

        :ivar state: The current :class:`State` of the connection.
        :ivar subscriptions: The :class:`Subscriptions` for this connection.
    """

    def __init__(self, key, secret, app_name, identity_id=None, identity_alias=None, transport=None, connect=True):

        if transport is None:
            transport = _default_transport()

        self.jid = jid(app_name, identity_alias)
        self.password = password(key, secret, identity_id)
        self.state = State.DISCONNECTED

        self.events = events.Emitter()
        self.subscriptions = Subscriptions(self.send)

        transport.on_online = self._online
        transport.on_offline = self._offline
        transport.on_error = self._error
        transport.on_stanza = self._stanza
        self.transport = transport

        if connect:
            self.connect()


    def connect(self):
        """ Establish the connection. This is also how a client reconnects
            after going offline; subscriptions are not reissued
            automatically, see :func:`resubscribe`.
        """

        if self.state in (State.CONNECTING, State.ONLINE):
            logger.debug("%s: connect() ignored while %s", self.jid, self.state.value)
            return self

        self._transition(State.CONNECTING)
        self.transport.connect(self.jid, self.password, config.XMPP_HOST, config.XMPP_PORT)
        return self


    def disconnect(self):
        """ Close the connection. No unsubscribe requests are sent; the
            server drops subscriptions along with the connection.
        """

        poll.stop(self.keep_alive)
        self.transport.disconnect()
        return self


    def send(self, stanza):
        self.transport.send(stanza)


    def keep_alive(self):
        """ Send the presence stanza that keeps an idle connection open.
        """

        presence = Element('{%s}presence' % (CLIENT_NS), {'to': config.XMPP_JID})
        self.send(presence)


    def resubscribe(self):
        self.subscriptions.resubscribe()
        return self


    def on(self, event, listener):
        """ Register *listener* for *event*. The first listener for a
            ``/drop/<flow id>`` event subscribes to that flow.
        """

        self.events.on(event, listener)

        flow_id = topic(event)
        if flow_id is not None:
            self.subscriptions.subscribe_topic(flow_id)

        return self

    add_listener = on


    def once(self, event, listener):
        return self.on(event, events.Once(self, event, listener))


    def remove_listener(self, event, listener):
        """ Remove *listener* from *event*. Removing the last listener for a
            ``/drop/<flow id>`` event unsubscribes from that flow.
        """

        self.events.remove_listener(event, listener)

        flow_id = topic(event)
        if flow_id is not None and self.events.listener_count(event) == 0:
            self.subscriptions.unsubscribe_topic(flow_id)

        return self


    def remove_all_listeners(self, event=None):
        """ Remove every listener for *event*, or for all events, and
            unsubscribe from the affected flows.
        """

        self.events.remove_all_listeners(event)

        if event is None:
            for flow_id in self.subscriptions:
                self.subscriptions.unsubscribe_topic(flow_id)
        else:
            flow_id = topic(event)
            if flow_id is not None:
                self.subscriptions.unsubscribe_topic(flow_id)

        return self


    def listeners(self, event):
        return self.events.listeners(event)


    def _transition(self, state):
        logger.debug("%s: %s -> %s", self.jid, self.state.value, state.value)
        self.state = state


    def _online(self):

        self._transition(State.ONLINE)

        # poll.start() on a method that is already polled only resets the
        # period, so a reconnect never leaves two keep-alive timers running.

        poll.start(self.keep_alive, config.PRESENCE_INTERVAL)
        self.events.emit('online')


    def _offline(self):

        poll.stop(self.keep_alive)
        self._transition(State.OFFLINE)
        self.events.emit('offline')


    def _error(self, error):

        poll.stop(self.keep_alive)
        self._transition(State.ERROR)

        if self.events.emit('error', error):
            pass
        else:
            logger.error("%s: %s", self.jid, error)


    def _stanza(self, stanza):

        stanza_type = stanza.get('type')

        if stanza_type == 'get':
            if find_node('ping', stanza, 2) is not None:
                self.send(iq('pong'))

        elif stanza_type == 'result':
            node = find_node('drop', stanza, 2)
            if node is None:
                return

            drop = decode(node)

            try:
                flow_id = drop['flowId']
            except (KeyError, TypeError):
                logger.warning("%s: drop without a flowId ignored", self.jid)
                return

            self.events.emit(DROP_PREFIX + str(flow_id), drop)


# end of class XmppClient


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
