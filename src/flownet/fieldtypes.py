""" Static knowledge about Flow field types. Every field sent to or received
    from the service carries a semantic type, such as 'id', 'date', or
    'permissions'; this module maps well-known field names to those types,
    and maps each semantic type to the primitive used to represent it.
"""

import copy
import datetime
import email.utils
import re
import types

from .transport.base import ProtocolDecodeError


FIELD_TYPES = types.MappingProxyType({
    'id': 'id',
    'alias': 'string',
    'avatar': 'url',
    'creationDate': 'date',
    'creator': 'map',
    'creatorId': 'id',
    'description': 'string',
    'displayName': 'string',
    'dropId': 'id',
    'dropPermissions': 'permissions',
    'elems': 'map',
    'email': 'string',
    'filter': 'string',
    'filterString': 'string',
    'firstName': 'string',
    'flags': 'flag',
    'flowId': 'id',
    'from': 'path',
    'groupIds': 'set',
    'hasChildren': 'boolean',
    'icon': 'url',
    'identities': 'set',
    'isDiscoverable': 'boolean',
    'isInviteOnly': 'boolean',
    'key': 'string',
    'lastEditDate': 'date',
    'lastEditorId': 'id',
    'lastName': 'string',
    'local': 'boolean',
    'location': 'location',
    'mimeType': 'string',
    'name': 'string',
    'parentId': 'id',
    'path': 'path',
    'permissions': 'permissions',
    'ratings': 'rating',
    'reference': 'url',
    'secret': 'string',
    'size': 'integer',
    'template': 'constraints',
    'text': 'string',
    'to': 'path',
    'topParentId': 'id',
    'transformFunction': 'transform',
    'url': 'url',
    'userId': 'id',
    'weight': 'integer',
})


TYPE_PRIMITIVES = types.MappingProxyType({
    'id': 'string',
    'boolean': 'boolean',
    'constraints': 'array',
    'date': 'date',
    'flag': 'object',
    'float': 'number',
    'integer': 'number',
    'location': 'object',
    'path': 'string',
    'permissions': 'object',
    'rating': 'object',
    'set': 'array',
    'string': 'string',
    'transform': 'object',
    'url': 'string',
})


_epoch_milliseconds = re.compile(r'^\d+$')
_epoch = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


class Typed:
    """ A value that already knows its semantic type. Wrapping a value in
        a :class:`Typed` instance before handing it to :func:`wrap_field`
        (or to :func:`flownet.Query.criteria`) bypasses the lookup by field
        name; this is how an ambiguous field, such as a *description*
        holding structured HTML, gets the type it needs.
    """

    __slots__ = ('type', 'value')

    def __init__(self, type, value):
        object.__setattr__(self, 'type', type)
        object.__setattr__(self, 'value', value)


    def __setattr__(self, name, value):
        raise AttributeError('Typed instances are immutable')


    def __eq__(self, other):
        if isinstance(other, Typed):
            return self.type == other.type and self.value == other.value
        return NotImplemented


    def __hash__(self):
        return hash((self.type, repr(self.value)))


    def __repr__(self):
        return 'Typed(%s, %s)' % (repr(self.type), repr(self.value))


    def __deepcopy__(self, memo):
        return Typed(self.type, copy.deepcopy(self.value, memo))


    def as_dict(self):
        """ Return the on-the-wire representation of this value.
        """

        return {'type': self.type, 'value': self.value}


# end of class Typed



def field_type(name):
    """ Return the semantic type for the field *name*, or None if the field
        is not one of the well-known fields.
    """

    try:
        return FIELD_TYPES[name]
    except KeyError:
        return None



def wrap_field(name, value):
    """ Return *value* as a :class:`Typed` instance. If *value* is already
        a :class:`Typed` instance it is returned unmodified; otherwise the
        type is inferred from the field *name*.
    """

    if isinstance(value, Typed):
        return value

    return Typed(field_type(name), value)



def epoch_milliseconds(value):
    """ Convert a :class:`datetime.datetime` or :class:`datetime.date` to
        integer milliseconds since the UNIX epoch. Naive datetimes are taken
        to be UTC.
    """

    if isinstance(value, datetime.datetime):
        pass
    else:
        value = datetime.datetime(value.year, value.month, value.day)

    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)

    delta = value - _epoch
    return delta // datetime.timedelta(milliseconds=1)



def coerce(semantic_type, value):
    """ Cast *value* to the primitive representation of *semantic_type*.
        A value with an unrecognized semantic type is returned unchanged.
    """

    try:
        primitive = TYPE_PRIMITIVES[semantic_type]
    except KeyError:
        return value

    if primitive == 'string':
        return str(value)

    if primitive == 'number':
        return _to_number(value)

    if primitive == 'date':
        return _to_date(value)

    if primitive == 'array':
        if isinstance(value, (list, tuple)):
            return value
        return [value]

    if primitive == 'boolean':
        if isinstance(value, str) and value == 'false':
            return False
        return bool(value)

    return value



def _to_number(value):

    if isinstance(value, bool):
        return int(value)

    if isinstance(value, (int, float)):
        return value

    text = str(value).strip()

    try:
        return int(text)
    except ValueError:
        pass

    try:
        return float(text)
    except ValueError:
        raise ProtocolDecodeError('not a number: ' + repr(value))



def _to_date(value):

    if isinstance(value, (datetime.datetime, datetime.date)):
        return epoch_milliseconds(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)

    text = str(value).strip()

    if _epoch_milliseconds.match(text):
        return int(text)

    # fromisoformat() only learned about the trailing Z in Python 3.11.

    if text.endswith('Z'):
        text = text[:-1] + '+00:00'

    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        parsed = None

    # RFC 2822, as produced by HTTP Date headers.

    if parsed is None:
        try:
            parsed = email.utils.parsedate_to_datetime(str(value).strip())
        except (TypeError, ValueError):
            raise ProtocolDecodeError('not a date: ' + repr(value))

    return epoch_milliseconds(parsed)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
