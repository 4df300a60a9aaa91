""" HTTP transport built on httpx. One :class:`httpx.Client` is held per
    transport instance so that connections are pooled across requests.
"""

import logging

import httpx

from . import base

logger = logging.getLogger(__name__)


class HttpxTransport(base.HttpTransport):
    """ Send requests through an :class:`httpx.Client`. A preconfigured
        *client* can be supplied, for example one built with a mock
        transport for testing; otherwise a default client is created.
        No timeout is applied unless the supplied client carries one.
    """

    def __init__(self, client=None):

        if client is None:
            client = httpx.Client(timeout=None)

        self.client = client


    def send(self, method, url, headers, body):

        logger.debug("%s %s", method, url)

        try:
            with self.client.stream(method, url, headers=headers, content=body) as response:
                length = response.headers.get('content-length')
                if length is not None:
                    length = int(length)

                data = base.chunks_until(response.iter_bytes(), length)
        except httpx.TransportError as e:
            raise base.TransportError(str(e)) from e

        return data


    def close(self):
        self.client.close()


# end of class HttpxTransport


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
