""" Immutable, chainable description of a Flow REST request: a resource
    path plus paging, sorting, projection and filter parameters, and any
    extra headers. Every method returns a new :class:`Query`, so a partially
    built query can be reused as a template::

        flows = flownet.Query('flow').limit(20)
        mine = flows.criteria('creatorId', identity)
        recent = flows.sort('creationDate').order('desc')

    A query is sent with one of its terminal verbs (:func:`Query.get`,
    :func:`Query.post`, and so on), using the client it is bound to, or
    the active client of its :class:`flownet.client.Context`.
"""

import collections.abc
import copy
import datetime
import re

from . import client
from . import fieldtypes
from .transport.base import ConfigurationError


_missing = object()
_inline_flags = re.compile(r'^\(\?[aiLmsux]+\)')


def segments_to_path(segments):
    """ Join the path *segments* with slashes, ensuring a leading slash.
    """

    path = '/'.join(str(segment) for segment in segments)

    if path.startswith('/'):
        pass
    else:
        path = '/' + path

    return path



def regex_operand(pattern):
    """ Translate a compiled regular expression into the operand string the
        service expects: the pattern source, prefixed with inline flags when
        any are set. Flag characters are always emitted in the order g, i, m;
        Python has no global flag, so only i and m can appear.
    """

    flags = ''

    if pattern.flags & re.IGNORECASE:
        flags += 'i'
    if pattern.flags & re.MULTILINE:
        flags += 'm'

    source = pattern.pattern
    if isinstance(source, bytes):
        source = source.decode()

    # A source that starts with its own inline flags already carries them.

    if flags and not _inline_flags.match(source):
        source = '(?' + flags + ')' + source

    return source



def _is_sequence(value):

    if isinstance(value, (str, bytes, bytearray)):
        return False

    return isinstance(value, (collections.abc.Sequence, collections.abc.Set))



def _plain(value):
    """ Recursively replace :class:`fieldtypes.Typed` instances with their
        dictionary form.
    """

    if isinstance(value, fieldtypes.Typed):
        return {'type': value.type, 'value': _plain(value.value)}

    if isinstance(value, dict):
        return dict((key, _plain(item)) for key, item in value.items())

    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]

    return copy.deepcopy(value)



class Query:
    """ The *segments* are joined to form the resource path. A query can be
        bound to a specific *client* (a :class:`flownet.RestClient`), or to a
        :class:`flownet.client.Context` whose active client will be used;
        with neither, the process-wide default context applies.
    """

    def __init__(self, *segments, client=None, context=None):

        self._client = client
        self._context = context
        self._query = dict()
        self._query['path'] = segments_to_path(segments)
        self._query['params'] = dict()
        self._query['headers'] = dict()


    def __repr__(self):
        return 'Query(%s)' % (repr(self.to_object()))


    def __eq__(self, other):
        if isinstance(other, Query):
            return self.to_object() == other.to_object()
        return NotImplemented


    def _clone(self):

        clone = Query(client=self._client, context=self._context)
        clone._query = copy.deepcopy(self._query)
        return clone


    def _set_param(self, name, value):

        clone = self._clone()
        clone._query['params'][name] = value
        return clone


    def to_object(self):
        """ Return a plain dictionary with the 'path', 'params', and 'headers'
            of this query. The dictionary is a deep copy; modifying it has no
            effect on the query.
        """

        return _plain(self._query)


    def using(self, client):
        """ Return a copy of this query bound to *client*.
        """

        clone = self._clone()
        clone._client = client
        return clone


    def path(self, *segments):
        clone = self._clone()
        clone._query['path'] = segments_to_path(segments)
        return clone


    def header(self, key, value):
        clone = self._clone()
        clone._query['headers'][key] = value
        return clone


    def only(self, *fields):
        """ Limit the returned resources to the named *fields*.
        """

        return self._set_param('only', ','.join(fields))


    def start(self, start):
        return self._set_param('start', start)


    def limit(self, limit):
        return self._set_param('limit', limit)


    def order(self, order):
        return self._set_param('order', order)


    def sort(self, sort):
        return self._set_param('sort', sort)


    def refs(self, refs):
        return self._set_param('refs', refs)


    def criteria(self, field, operator, operand=_missing):
        """ Filter on *field*. Called with two arguments the second is the
            *operand*, and the filter is an equality test. The operand
            determines the shape of the filter:

            * a list, tuple or set always becomes an 'in' test against each
              member, whatever *operator* was given;
            * a compiled regular expression becomes a 'regex' test;
            * a :class:`datetime.datetime` or :class:`datetime.date` is sent
              as milliseconds since the epoch;
            * anything else is tested with *operator*, if one was given.

            Operands are typed according to *field*, unless they are already
            :class:`flownet.fieldtypes.Typed` instances. Any previous filter
            on the same *field* is replaced.
        """

        if operand is _missing:
            operand = operator
            operator = None

        def wrap(value):
            return fieldtypes.wrap_field(field, value)

        if _is_sequence(operand):
            entry = dict()
            entry['operator'] = 'in'
            entry['operand'] = [wrap(value) for value in operand]

        elif isinstance(operand, re.Pattern):
            entry = dict()
            entry['operator'] = 'regex'
            entry['operand'] = regex_operand(operand)

        else:
            if isinstance(operand, (datetime.datetime, datetime.date)):
                operand = fieldtypes.epoch_milliseconds(operand)

            if operator:
                entry = dict()
                entry['operator'] = operator
                entry['operand'] = wrap(operand)
            else:
                entry = wrap(operand)

        clone = self._clone()
        criteria = clone._query['params'].setdefault('criteria', dict())
        criteria[field] = copy.deepcopy(entry)
        return clone


    def resolve_client(self, client=None):
        """ Return the client this query will be sent with: the explicit
            *client* if given, else the bound client, else the active client
            of the query's context or of the default context.
        """

        if client is not None:
            return client

        if self._client is not None:
            return self._client

        context = self._context
        if context is None:
            context = _default_context()

        if context.client is None:
            raise ConfigurationError('no active client; create a RestClient or bind one with Query.using()')

        return context.client


    def get(self, callback=None, client=None):
        return self.resolve_client(client).get(self.to_object(), callback)


    def post(self, body=None, callback=None, client=None):
        return self.resolve_client(client).post(self.to_object(), body, callback)


    def put(self, body=None, callback=None, client=None):
        return self.resolve_client(client).put(self.to_object(), body, callback)


    def delete(self, body=None, callback=None, client=None):
        """ Either ``delete(callback)`` or ``delete(body, callback)``.
        """

        if callback is None and callable(body):
            callback = body
            body = None

        return self.resolve_client(client).delete(self.to_object(), body, callback)


    def mget(self, body=None, callback=None, client=None):
        return self.resolve_client(client).mget(self.to_object(), body, callback)


    def mput(self, body=None, callback=None, client=None):
        return self.resolve_client(client).mput(self.to_object(), body, callback)


# end of class Query



def _default_context():
    return client.default_context


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
