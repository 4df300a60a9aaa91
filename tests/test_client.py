import hashlib
import threading
import urllib.parse

import httpx
import pytest

import flownet
from flownet.transport.http import HttpxTransport

from conftest import FakeHttp


def query_params(url):
    query = urllib.parse.urlsplit(url).query
    return dict(urllib.parse.parse_qsl(query, keep_blank_values=True))


def test_signature():
    """ The signature is a SHA-1 over the actor, key, and timestamp, in that
        order, followed by the secret.
    """

    signature = flownet.client.sign('a', 'k', 1300000000000, 's')
    expected = hashlib.sha1(b'x-actor:a' + b'x-key:k' + b'x-timestamp:1300000000000' + b's').hexdigest()

    assert signature == expected
    assert len(signature) == 40
    assert signature == signature.lower()

    assert flownet.client.sign('a', 'k', 1300000000000, 's') == signature
    assert flownet.client.sign('b', 'k', 1300000000000, 's') != signature
    assert flownet.client.sign('a', 'j', 1300000000000, 's') != signature
    assert flownet.client.sign('a', 'k', 1300000000001, 's') != signature
    assert flownet.client.sign('a', 'k', 1300000000000, 't') != signature


def test_credentials(api):

    first = api.credentials(timestamp=1000)
    assert first.actor == 'a'
    assert first.key == 'k'
    assert first.timestamp == 1000
    assert first.signature == flownet.client.sign('a', 'k', 1000, 's')

    headers = first.headers()
    assert headers['X-Actor'] == 'a'
    assert headers['X-Key'] == 'k'
    assert headers['X-Timestamp'] == '1000'
    assert headers['X-Signature'] == first.signature

    api.set_actor(None)
    anonymous = api.credentials(timestamp=1000)
    assert anonymous.headers()['X-Actor'] == ''
    assert anonymous.signature == flownet.client.sign('', 'k', 1000, 's')


def test_get_signed(api, http):

    pending = api.get('/flow/42')
    envelope = pending.wait(5)

    assert envelope['head']['ok'] == True
    assert pending.body == {'id': '42', 'name': 'a flow'}

    method, url, headers, body = http.sent[0]
    assert method == 'GET'
    assert url.startswith('http://%s:%d/flow/42?' % (flownet.config.API_HOST, flownet.config.API_PORT))
    assert headers['X-Key'] == 'k'
    assert headers['X-Actor'] == 'a'
    assert headers['Accept'] == 'application/json'
    assert 'Content-type' not in headers
    assert headers['Content-length'] == '0'
    assert body == b''

    timestamp = headers['X-Timestamp']
    expected = hashlib.sha1(('x-actor:a' + 'x-key:k' + 'x-timestamp:' + timestamp + 's').encode()).hexdigest()
    assert headers['X-Signature'] == expected


def test_post_json(api, http):

    flow = {'name': 'My New Flow', 'path': '/me/flow'}
    api.post('/flow', flow).wait(5)

    method, url, headers, body = http.sent[0]
    assert method == 'POST'
    assert headers['Content-type'] == 'application/json'
    assert headers['Accept'] == 'application/json'
    assert body == flownet.json.dumps(flow)
    assert headers['Content-length'] == str(len(body))
    assert flownet.json.loads(body) == flow


def test_string_body(api, http):

    api.put('/flow/42', '{"name": "été"}').wait(5)

    method, url, headers, body = http.sent[0]
    assert body == '{"name": "été"}'.encode('utf-8')
    assert headers['Content-length'] == str(len(body))


def test_header_precedence(http, context):
    """ Method defaults, then request headers, then client defaults, then
        credentials; credentials cannot be overridden.
    """

    api = flownet.RestClient('k', 's', 'a', context=context, transport=http)
    api.set_options(headers={'X-Client': 'client', 'Accept': 'text/plain'})

    options = dict()
    options['path'] = '/flow'
    options['headers'] = {'X-Client': 'request', 'X-Request': 'request', 'x-key': 'forged', 'accept': 'text/html'}

    api.get(options).wait(5)
    method, url, headers, body = http.sent[0]

    assert headers['X-Client'] == 'client'
    assert headers['X-Request'] == 'request'
    assert headers['Accept'] == 'text/plain'
    assert 'accept' not in headers
    assert headers['X-Key'] == 'k'
    assert 'x-key' not in headers

    api.close()


def test_params(api, http):

    options = dict()
    options['path'] = '/drop?existing=1'
    options['params'] = {'limit': 10, 'refs': True, 'criteria': {'name': {'type': 'string', 'value': 'x y'}}}

    api.get(options).wait(5)
    method, url, headers, body = http.sent[0]

    assert '?existing=1&' in url

    params = query_params(url)
    assert params['existing'] == '1'
    assert params['hints'] == '0'
    assert params['limit'] == '10'
    assert params['refs'] == 'true'
    assert flownet.json.loads(params['criteria']) == {'name': {'type': 'string', 'value': 'x y'}}


def test_default_params(http, context):

    api = flownet.RestClient('k', 's', context=context, transport=http)
    api.set_options(params={'limit': 5})

    api.get('/flow').wait(5)
    api.get({'path': '/flow', 'params': {'limit': 7, 'hints': 1}}).wait(5)

    first = query_params(http.sent[0][1])
    second = query_params(http.sent[1][1])

    assert first == {'hints': '0', 'limit': '5'}
    assert second == {'hints': '1', 'limit': '7'}

    api.close()


def test_get_body_as_params(api, http):

    api.get('/flow', {'limit': 3}).wait(5)
    method, url, headers, body = http.sent[0]

    assert query_params(url)['limit'] == '3'
    assert body == b''


def test_query_target(api, http):

    query = flownet.Query('drop').criteria('flowId', '42').limit(2).header('X-Extra', 'yes')
    api.get(query).wait(5)

    method, url, headers, body = http.sent[0]
    params = query_params(url)

    assert urllib.parse.urlsplit(url).path == '/drop'
    assert params['limit'] == '2'
    assert flownet.json.loads(params['criteria']) == {'flowId': {'type': 'id', 'value': '42'}}
    assert headers['X-Extra'] == 'yes'


def test_callback_deferred(api):

    called = threading.Event()
    results = list()

    def callback(error, envelope, body):
        results.append((error, envelope, body, threading.current_thread()))
        called.set()

    pending = api.get('/flow/42', callback)
    assert called.wait(5)
    pending.wait(5)

    error, envelope, body, thread = results[0]
    assert error is None
    assert envelope['head']['status'] == 200
    assert body == {'id': '42', 'name': 'a flow'}
    assert thread is not threading.current_thread()


def test_transport_error(context):

    failure = flownet.TransportError('connection refused')
    http = FakeHttp(error=failure)
    api = flownet.RestClient('k', 's', context=context, transport=http)

    results = list()
    pending = api.get('/flow', lambda *args: results.append(args))

    with pytest.raises(flownet.TransportError):
        pending.wait(5)

    assert results == [(failure, {}, {})]
    api.close()


def test_decode_error(context):

    http = FakeHttp(raw=b'<html>not json</html>')
    api = flownet.RestClient('k', 's', context=context, transport=http)

    results = list()
    pending = api.get('/flow', lambda *args: results.append(args))

    with pytest.raises(flownet.ProtocolDecodeError):
        pending.wait(5)

    assert results == list()
    api.close()


def test_activation(http):

    context = flownet.Context()
    assert flownet.active_client(context) is None

    first = flownet.RestClient('k', 's', context=context, transport=http)
    assert flownet.active_client(context) is first
    assert flownet.RestClient.active_client(context) is first

    second = flownet.RestClient('k', 's', context=context, transport=http)
    assert context.client is second

    third = flownet.RestClient('k', 's', active=False, context=context, transport=http)
    assert context.client is second

    third.activate()
    assert context.client is third


def test_close(http, context):

    api = flownet.RestClient('k', 's', context=context, transport=http)
    api.get('/flow')
    api.close()

    assert http.closed == True
    assert len(http.sent) == 1


def test_httpx_transport(context):

    seen = list()

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={'head': {'ok': True, 'status': 200}, 'body': [{'id': '1'}]})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    api = flownet.RestClient('k', 's', 'a', context=context, transport=HttpxTransport(client))

    pending = api.mget('/drop', [{'id': '1'}])
    envelope = pending.wait(5)

    assert envelope['body'] == [{'id': '1'}]
    assert pending.body == [{'id': '1'}]

    request = seen[0]
    assert request.method == 'MGET'
    assert request.url.path == '/drop'
    assert request.headers['x-key'] == 'k'
    assert request.headers['content-type'] == 'application/json'
    assert flownet.json.loads(request.content) == [{'id': '1'}]

    api.close()


def test_httpx_transport_error(context):

    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    api = flownet.RestClient('k', 's', context=context, transport=HttpxTransport(client))

    results = list()
    pending = api.get('/flow', lambda *args: results.append(args))

    with pytest.raises(flownet.TransportError):
        pending.wait(5)

    error, envelope, body = results[0]
    assert isinstance(error, flownet.TransportError)
    assert isinstance(error.__cause__, httpx.ConnectError)
    assert envelope == {}
    assert body == {}

    api.close()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
