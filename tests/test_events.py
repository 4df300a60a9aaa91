import logging
import pytest

import flownet


def test_order_and_arguments():

    emitter = flownet.events.Emitter()
    calls = list()

    emitter.on('drop', lambda *args: calls.append(('first', args)))
    emitter.on('drop', lambda *args: calls.append(('second', args)))

    assert emitter.emit('drop', 1, 2) == True
    assert calls == [('first', (1, 2)), ('second', (1, 2))]

    assert emitter.emit('nobody') == False


def test_remove():

    emitter = flownet.events.Emitter()
    calls = list()

    def listener(value):
        calls.append(value)

    emitter.on('x', listener)
    emitter.on('x', listener)
    assert emitter.listener_count('x') == 2

    assert emitter.remove_listener('x', listener) == True
    assert emitter.listener_count('x') == 1

    assert emitter.remove_listener('x', listener) == True
    assert emitter.remove_listener('x', listener) == False
    assert emitter.events() == list()

    emitter.emit('x', 1)
    assert calls == list()


def test_remove_all():

    emitter = flownet.events.Emitter()
    emitter.on('a', print)
    emitter.on('b', print)

    assert emitter.remove_all_listeners('a') == ['a']
    assert emitter.remove_all_listeners('a') == list()
    assert emitter.events() == ['b']

    assert emitter.remove_all_listeners() == ['b']
    assert emitter.events() == list()


def test_once():

    emitter = flownet.events.Emitter()
    calls = list()

    emitter.once('x', calls.append)
    emitter.emit('x', 1)
    emitter.emit('x', 2)

    assert calls == [1]
    assert emitter.listener_count('x') == 0

    # A once listener can be removed by the original callable.

    emitter.once('x', calls.append)
    assert emitter.remove_listener('x', calls.append) == True
    emitter.emit('x', 3)
    assert calls == [1]


def test_not_callable():

    emitter = flownet.events.Emitter()

    with pytest.raises(TypeError):
        emitter.on('x', 'not a function')


def test_listener_exception(caplog):

    emitter = flownet.events.Emitter()
    calls = list()

    def broken(value):
        raise ValueError('broken listener')

    emitter.on('x', broken)
    emitter.on('x', calls.append)

    with caplog.at_level(logging.ERROR, logger='flownet.events'):
        emitter.emit('x', 1)

    assert calls == [1]
    assert 'listener for x raised' in caplog.text

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
