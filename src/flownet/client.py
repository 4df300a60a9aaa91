""" Signed REST client for the Flow API. Every request carries freshly
    computed credentials: the acting identity, the application key, a
    millisecond timestamp, and a SHA-1 signature over those three values
    and the application secret.

    Requests are handed to a per-client worker thread; the caller's
    callback, if any, is invoked from that thread once the response has
    been decoded, never from within the call that issued the request::

        api = flownet.RestClient(key, secret, actor)

        def created(error, response, flow):
            if error is None and response['head']['ok']:
                print('created', flow['id'])

        api.post('/flow', {'name': 'My New Flow', 'path': '/me/flow'}, created)
"""

import collections
import hashlib
import logging
import queue
import threading
import time
import urllib.parse

from . import config
from . import json
from .transport.base import ProtocolDecodeError, TransportError
from .transport.http import HttpxTransport

logger = logging.getLogger(__name__)


MIME_JSON = 'application/json'

_accept = {'Accept': MIME_JSON}
_accept_send = {'Accept': MIME_JSON, 'Content-type': MIME_JSON}

DEFAULT_HEADERS = dict()
DEFAULT_HEADERS['GET'] = _accept
DEFAULT_HEADERS['DELETE'] = _accept
DEFAULT_HEADERS['POST'] = _accept_send
DEFAULT_HEADERS['PUT'] = _accept_send
DEFAULT_HEADERS['MGET'] = _accept_send
DEFAULT_HEADERS['MPUT'] = _accept_send

# Type hints are off by default; the decoded JSON already carries what a
# Python caller needs.

DEFAULT_PARAMS = {'hints': 0}

CREDENTIAL_FIELDS = ('X-Actor', 'X-Key', 'X-Timestamp')


class Context:
    """ Registry of the active :class:`RestClient`. A :class:`flownet.Query`
        that is not bound to a specific client is sent with the active client
        of its context. The most recent activation wins.
    """

    def __init__(self):
        self.client = None


    def activate(self, client):
        self.client = client


# end of class Context


default_context = Context()


def active_client(context=None):
    """ Return the active client of *context*, or of the default context if
        no *context* is specified. Returns None if no client is active.
    """

    if context is None:
        context = default_context

    return context.client



def sign(actor, key, timestamp, secret):
    """ Return the lowercase hex SHA-1 signature for a request. The order
        of the hashed fields is part of the wire contract.
    """

    if actor is None:
        actor = ''

    values = (actor, key, timestamp)
    shasum = hashlib.sha1()

    for name, value in zip(CREDENTIAL_FIELDS, values):
        shasum.update((name.lower() + ':' + str(value)).encode('utf-8'))

    shasum.update(secret.encode('utf-8'))
    return shasum.hexdigest()



class Credentials(collections.namedtuple('Credentials', ('actor', 'key', 'timestamp', 'signature'))):
    """ Per-request credentials. Never cached: a new instance is built for
        every request.
    """

    __slots__ = ()

    def headers(self):

        actor = self.actor
        if actor is None:
            actor = ''

        headers = dict()
        headers['X-Actor'] = str(actor)
        headers['X-Key'] = str(self.key)
        headers['X-Timestamp'] = str(self.timestamp)
        headers['X-Signature'] = self.signature
        return headers



PreparedRequest = collections.namedtuple('PreparedRequest', ('method', 'url', 'headers', 'body'))



def merge_headers(*layers):
    """ Merge the header dictionaries in *layers*, later layers taking
        precedence. Header names are compared case-insensitively; the
        spelling from the winning layer is kept.
    """

    merged = dict()
    names = dict()

    for layer in layers:
        if not layer:
            continue

        for name, value in layer.items():
            lowered = name.lower()
            try:
                previous = names[lowered]
            except KeyError:
                pass
            else:
                del merged[previous]

            names[lowered] = name
            merged[name] = value

    return merged



def _param_value(value):

    if value is None:
        return ''
    if value is True:
        return 'true'
    if value is False:
        return 'false'
    if isinstance(value, (dict, list, tuple)):
        return json.dumps_text(value)

    return str(value)



def make_uri(path, params):
    """ Append *params* to the query string of *path*. Structured values
        are serialized as JSON.
    """

    if '?' in path:
        path, existing = path.split('?', 1)
    else:
        existing = ''

    pairs = [(name, _param_value(value)) for name, value in params.items()]
    encoded = urllib.parse.urlencode(pairs, quote_via=urllib.parse.quote)

    if existing and encoded:
        query = existing + '&' + encoded
    else:
        query = existing + encoded

    if query:
        return path + '?' + query

    return path



def encode_body(body):
    """ Serialize a request *body*. Strings and bytes are sent as they are,
        anything else as JSON; None or the empty string is an empty body.
    """

    if body is None or body == '' or body == b'':
        return b''

    if isinstance(body, bytes):
        return body

    if isinstance(body, str):
        return body.encode('utf-8')

    return json.dumps(body)



class Pending:
    """ Handle for a request in flight. :func:`wait` blocks until the request
        is complete.

        :ivar request: The :class:`PreparedRequest` as it was sent.
        :ivar envelope: The decoded response, once complete.
        :ivar error: The failure, if the request did not complete.
    """

    def __init__(self, request):
        self.request = request
        self.envelope = None
        self.error = None
        self.done = threading.Event()


    @property
    def body(self):
        envelope = self.envelope

        if isinstance(envelope, dict):
            return envelope.get('body')

        return None


    def wait(self, timeout=None):
        """ Wait up to *timeout* seconds for the response, and return the
            decoded envelope. The failure, if any, is raised instead.
            Returns None if the request is still outstanding.
        """

        self.done.wait(timeout)

        if self.error is not None:
            raise self.error

        return self.envelope


    def _complete(self, envelope):
        self.envelope = envelope


    def _fail(self, error):
        self.error = error


# end of class Pending



class RestClient:
    """ Sign and send requests to the Flow REST API on behalf of *actor*,
        using the application *key* and *secret*.

        A new client becomes the active client of its *context* (the default
        context if none is given) unless *active* is False; see
        :class:`Context`. The *transport* is an
        :class:`flownet.transport.HttpTransport`; by default an httpx-backed
        transport is created.
    """

    def __init__(self, key, secret, actor=None, active=True, context=None, transport=None):

        if context is None:
            context = default_context

        if transport is None:
            transport = HttpxTransport()

        self.key = key
        self.secret = secret
        self.actor = actor
        self.context = context
        self.transport = transport
        self.options = None
        self.set_options()

        self.queue = queue.SimpleQueue()
        self.worker = None
        self.worker_lock = threading.Lock()

        if active:
            self.activate()


    @classmethod
    def active_client(cls, context=None):
        return active_client(context)


    def activate(self):
        """ Make this the active client of its context.
        """

        self.context.activate(self)
        return self


    def set_actor(self, actor):
        self.actor = actor
        return self


    def set_options(self, headers=None, params=None):
        """ Replace the default *headers* and *params* sent with every request.
            The parameters always start from :data:`DEFAULT_PARAMS`.
        """

        options = dict()
        options['headers'] = dict(headers or ())
        options['params'] = dict(DEFAULT_PARAMS)
        options['params'].update(params or ())

        self.options = options
        return self


    def credentials(self, timestamp=None):
        """ Return a fresh :class:`Credentials` instance. The *timestamp* is
            in milliseconds and defaults to the current time.
        """

        if timestamp is None:
            timestamp = int(time.time() * 1000)

        signature = sign(self.actor, self.key, timestamp, self.secret)
        return Credentials(self.actor, self.key, timestamp, signature)


    def prepare(self, options):
        """ Turn request *options* into a :class:`PreparedRequest`, complete
            with credentials. Recognized options are 'scheme', 'host', 'port',
            'path', 'method', 'body', 'headers', and 'params'.
        """

        merged = dict()
        merged['scheme'] = 'http'
        merged['host'] = config.API_HOST
        merged['port'] = config.API_PORT
        merged['path'] = '/'
        merged['method'] = 'GET'
        merged['body'] = ''
        merged.update(options)

        method = merged['method'].upper()

        try:
            defaults = DEFAULT_HEADERS[method]
        except KeyError:
            defaults = None

        headers = merge_headers(defaults, merged.get('headers'), self.options['headers'], self.credentials().headers())

        params = dict(self.options['params'])
        params.update(merged.get('params') or ())

        path = make_uri(merged['path'], params)
        body = encode_body(merged['body'])

        headers = merge_headers(headers, {'Content-length': str(len(body))})

        url = '%s://%s:%s%s' % (merged['scheme'], merged['host'], merged['port'], path)
        return PreparedRequest(method, url, headers, body)


    def request(self, options, callback=None):
        """ Send a request described by *options* (see :func:`prepare`). The
            *callback*, if given, is invoked from the worker thread as
            ``callback(error, envelope, body)``: *error* is None if the
            request completed, otherwise a
            :class:`flownet.TransportError`, with an empty *envelope* and
            *body*. HTTP-level failures are not errors here; inspect
            ``envelope['head']``.

            Returns a :class:`Pending` instance.
        """

        prepared = self.prepare(options)
        pending = Pending(prepared)

        self._start_worker()
        self.queue.put((pending, callback))
        return pending


    def close(self):
        """ Stop the worker thread once outstanding requests are complete,
            and release the transport.
        """

        with self.worker_lock:
            worker = self.worker
            self.worker = None

        if worker is not None:
            self.queue.put(None)
            worker.join()

        self.transport.close()


    def _start_worker(self):

        with self.worker_lock:
            if self.worker is None:
                self.worker = threading.Thread(target=self._worker_main)
                self.worker.daemon = True
                self.worker.start()


    def _worker_main(self):
        """ Process queued requests one at a time, so that requests issued
            by one client never run in parallel.
        """

        while True:
            dequeued = self.queue.get()

            if dequeued is None:
                break

            pending, callback = dequeued

            try:
                self._dispatch(pending, callback)
            except Exception as e:
                logger.exception("%s %s failed", pending.request.method, pending.request.url)
                if pending.error is None and pending.envelope is None:
                    pending._fail(e)
            finally:
                pending.done.set()


    def _dispatch(self, pending, callback):

        prepared = pending.request
        logger.debug("dispatching %s %s", prepared.method, prepared.url)

        try:
            data = self.transport.send(prepared.method, prepared.url, prepared.headers, prepared.body)
        except TransportError as e:
            pending._fail(e)
            if callback is not None:
                callback(e, dict(), dict())
            return

        try:
            envelope = json.loads(data)
        except json.decode_errors as e:
            raise ProtocolDecodeError("malformed response to %s %s" % (prepared.method, prepared.url)) from e

        pending._complete(envelope)

        if callback is not None:
            callback(None, envelope, pending.body)


    def _resolve(self, target, body, callback):
        """ Normalize the (target, body, callback) calling convention shared
            by all the HTTP verbs. The *target* is a path, an options
            dictionary, or a :class:`flownet.Query`; a callable *body* is
            taken to be the callback.
        """

        if callable(body) and callback is None:
            callback = body
            body = None

        if isinstance(target, str):
            options = {'path': target}
        elif hasattr(target, 'to_object'):
            options = target.to_object()
        else:
            options = dict(target)

        if body is not None:
            options['body'] = body

        return options, callback


    def _verb(self, method, target, body, callback):

        options, callback = self._resolve(target, body, callback)
        options['method'] = method
        return self.request(options, callback)


    def get(self, target, body=None, callback=None):
        """ Retrieve a resource. A *body*, if given, is sent as additional
            query parameters.

                api.get('/flow/%s' % (flow_id), lambda e, response, flow: ...)
        """

        options, callback = self._resolve(target, body, callback)

        try:
            body = options.pop('body')
        except KeyError:
            pass
        else:
            if body:
                params = dict(options.get('params') or ())
                params.update(body)
                options['params'] = params

        options['method'] = 'GET'
        return self.request(options, callback)


    def post(self, target, body=None, callback=None):
        return self._verb('POST', target, body, callback)


    def put(self, target, body=None, callback=None):
        return self._verb('PUT', target, body, callback)


    def delete(self, target, body=None, callback=None):
        return self._verb('DELETE', target, body, callback)


    def mget(self, target, body=None, callback=None):
        return self._verb('MGET', target, body, callback)


    def mput(self, target, body=None, callback=None):
        return self._verb('MPUT', target, body, callback)


# end of class RestClient


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
