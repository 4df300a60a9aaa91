import pytest

import flownet


DEFAULT_RESPONSE = {'head': {'ok': True, 'status': 200}, 'body': {'id': '42', 'name': 'a flow'}}


class FakeHttp(flownet.transport.HttpTransport):
    """ Records every request, and answers each one with a canned response,
        raw bytes, or an exception.
    """

    def __init__(self, response=DEFAULT_RESPONSE, raw=None, error=None):
        self.response = response
        self.raw = raw
        self.error = error
        self.sent = list()
        self.closed = False

    def send(self, method, url, headers, body):
        self.sent.append((method, url, headers, body))

        if self.error is not None:
            raise self.error

        if self.raw is not None:
            return self.raw

        return flownet.json.dumps(self.response)

    def close(self):
        self.closed = True


class FakeXmpp(flownet.transport.XmppTransport):
    """ Records connection attempts and outbound stanzas. Tests drive the
        inbound side by calling the handlers the client installs.
    """

    def __init__(self):
        self.sent = list()
        self.connects = list()
        self.disconnects = 0

    def connect(self, jid, password, host, port):
        self.connects.append((jid, password, host, port))

    def send(self, stanza):
        self.sent.append(stanza)

    def disconnect(self):
        self.disconnects += 1

    def requests(self):
        """ Return (action, flow) for every flow:pubsub request sent.
        """

        requests = list()
        local_name = flownet.pubsub.local_name

        for stanza in self.sent:
            if local_name(stanza.tag) != 'iq':
                continue

            action = stanza[0][0]
            requests.append((local_name(action.tag), action.get('flow')))

        return requests

    def presences(self):
        local_name = flownet.pubsub.local_name
        return [stanza for stanza in self.sent if local_name(stanza.tag) == 'presence']


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def context():
    return flownet.Context()


@pytest.fixture
def api(http, context):
    client = flownet.RestClient('k', 's', 'a', context=context, transport=http)
    yield client
    client.close()


@pytest.fixture
def xmpp_transport():
    return FakeXmpp()


@pytest.fixture
def xmpp(xmpp_transport):
    client = flownet.XmppClient('key', 'secret', 'mycoolapp', transport=xmpp_transport)
    yield client
    flownet.poll.stop(client.keep_alive)

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
