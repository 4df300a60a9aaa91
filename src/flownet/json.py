''' Select the fastest available JSON codec for request bodies, structured
    query parameters, and response envelopes. Every :func:`dumps` returns
    bytes, whichever library ends up doing the work; :func:`loads` accepts
    bytes or str.
'''

# orjson is the declared dependency. msgspec is preferred when it happens to
# be installed; the standard library is the last resort for stripped-down
# environments.

msgspec = None
orjson = None
json = None

try:
    import msgspec
except ImportError:
    pass

if msgspec is None:
    try:
        import orjson
    except ImportError:
        pass

if msgspec is None and orjson is None:
    import json


def _stdlib_dumps(value):
    return json.dumps(value, separators=(',', ':')).encode()


if msgspec is not None:
    encoder = msgspec.json.Encoder()
    decoder = msgspec.json.Decoder()
    dumps = encoder.encode
    loads = decoder.decode
    decode_errors = (msgspec.DecodeError, ValueError)
elif orjson is not None:
    dumps = orjson.dumps
    loads = orjson.loads
    decode_errors = (ValueError,)
else:
    dumps = _stdlib_dumps
    loads = json.loads
    decode_errors = (ValueError,)


def dumps_text(value):
    """ Same as :func:`dumps`, but decoded to a str for use in headers and
        query strings.
    """

    return dumps(value).decode('utf-8')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
