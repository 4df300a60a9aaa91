""" XMPP transport built on slixmpp. slixmpp is asyncio based; the stream
    runs its event loop in a dedicated background thread so that the
    rest of flownet can keep its plain threaded, callback-driven shape.
"""

import asyncio
import logging
import threading

import slixmpp
from slixmpp.xmlstream.handler import Callback
from slixmpp.xmlstream.matcher import MatchXPath

from . import base

logger = logging.getLogger(__name__)


class SlixmppTransport(base.XmppTransport):
    """ Establish one XMPP client stream. Every call to :func:`connect`
        builds a fresh :class:`slixmpp.ClientXMPP` and event loop, after
        shutting down the previous ones. Events from a stream that has
        been replaced, or that failed, are not reported.
    """

    def __init__(self):

        self.stream = None
        self.loop = None
        self.thread = None


    def connect(self, jid, password, host, port):

        self._teardown()

        loop = asyncio.new_event_loop()

        stream = slixmpp.ClientXMPP(jid, password)
        stream.loop = loop

        def session_start(event):
            self._session_start(stream)

        def disconnected(event):
            self._disconnected(stream, loop)

        def failed(event):
            self._failed(stream, loop, event)

        def incoming(stanza):
            self._incoming(stream, stanza)

        stream.add_event_handler('session_start', session_start)
        stream.add_event_handler('disconnected', disconnected)
        stream.add_event_handler('connection_failed', failed)
        stream.add_event_handler('failed_auth', failed)

        matcher = MatchXPath('{%s}iq' % (stream.default_ns))
        stream.register_handler(Callback('flownet iq', matcher, incoming))

        self.loop = loop
        self.stream = stream

        self.thread = threading.Thread(target=self.run, args=(stream, loop, host, port))
        self.thread.daemon = True
        self.thread.start()


    def run(self, stream, loop, host, port):

        asyncio.set_event_loop(loop)
        stream.connect(host, port)

        try:
            loop.run_forever()
        finally:
            loop.close()


    def send(self, stanza):

        if self.stream is None:
            raise base.TransportError('not connected')

        # slixmpp is not thread-safe; all writes happen on the loop thread.

        self.loop.call_soon_threadsafe(self.stream.send_xml, stanza)


    def disconnect(self):

        if self.stream is None:
            return

        self.loop.call_soon_threadsafe(self.stream.disconnect)


    def _teardown(self):
        """ Abandon the current stream, if any, and stop its event loop.
        """

        stream = self.stream
        loop = self.loop

        self.stream = None
        self.loop = None

        if stream is None:
            return

        try:
            loop.call_soon_threadsafe(self._abandon, stream, loop)
        except RuntimeError:
            logger.debug("event loop for %s already closed", stream.boundjid)


    @staticmethod
    def _abandon(stream, loop):

        stream.cancel_connection_attempt()
        stream.abort()
        loop.stop()


    def _session_start(self, stream):

        if stream is not self.stream:
            return

        logger.debug("session started for %s", stream.boundjid)
        if self.on_online is not None:
            self.on_online()


    def _disconnected(self, stream, loop):

        if stream is self.stream and self.on_offline is not None:
            self.on_offline()

        loop.call_soon(loop.stop)


    def _failed(self, stream, loop, event):

        if stream is not self.stream:
            return

        # slixmpp would otherwise keep retrying, reporting every attempt.

        self.stream = None
        self.loop = None
        self._abandon(stream, loop)

        if self.on_error is not None:
            self.on_error(base.TransportError(str(event)))


    def _incoming(self, stream, stanza):

        if stream is self.stream and self.on_stanza is not None:
            self.on_stanza(stanza.xml)


# end of class SlixmppTransport


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
