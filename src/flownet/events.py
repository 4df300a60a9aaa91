""" Minimal event emitter. Registering and removing listeners is pure
    bookkeeping here; anything that needs to happen on the wire when the
    first listener arrives or the last one leaves is the business of the
    code wrapping an :class:`Emitter`, see :class:`flownet.XmppClient`.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class Once:
    """ Wrapper for a listener that should be invoked at most once. The
        wrapper removes itself through *owner*, which can be the
        :class:`Emitter` or any object exposing the same
        :func:`Emitter.remove_listener` method.
    """

    def __init__(self, owner, event, listener):
        self.owner = owner
        self.event = event
        self.listener = listener
        self.fired = False


    def __call__(self, *args):

        if self.fired:
            return

        self.fired = True
        self.owner.remove_listener(self.event, self)
        self.listener(*args)


    def __repr__(self):
        return 'Once(%s)' % (repr(self.listener))


# end of class Once



def _matches(registered, listener):

    if registered is listener or registered == listener:
        return True

    if isinstance(registered, Once):
        return registered.listener is listener or registered.listener == listener

    return False



class Emitter:
    """ Keep per-event lists of listeners, and invoke them on :func:`emit`.
        Listeners are held by strong reference, and are invoked in the order
        they were registered. An exception raised by one listener is logged,
        and does not prevent delivery to the others.
    """

    def __init__(self):
        self._listeners = dict()
        self._lock = threading.Lock()


    def on(self, event, listener):
        """ Register *listener* for *event*.
        """

        if callable(listener):
            pass
        else:
            raise TypeError('listener must be callable')

        with self._lock:
            try:
                listeners = self._listeners[event]
            except KeyError:
                listeners = list()
                self._listeners[event] = listeners

            listeners.append(listener)

        return self

    add_listener = on


    def once(self, event, listener):
        return self.on(event, Once(self, event, listener))


    def remove_listener(self, event, listener):
        """ Remove the first registration of *listener* for *event*. Returns
            True if a listener was removed.
        """

        with self._lock:
            try:
                listeners = self._listeners[event]
            except KeyError:
                return False

            for index, registered in enumerate(listeners):
                if _matches(registered, listener):
                    del listeners[index]
                    break
            else:
                return False

            if len(listeners) == 0:
                del self._listeners[event]

        return True


    def remove_all_listeners(self, event=None):
        """ Remove every listener for *event*, or for all events if no *event*
            is specified. Returns the events that had listeners.
        """

        with self._lock:
            if event is None:
                removed = list(self._listeners.keys())
                self._listeners.clear()
            elif event in self._listeners:
                removed = [event]
                del self._listeners[event]
            else:
                removed = list()

        return removed


    def listeners(self, event):
        with self._lock:
            return list(self._listeners.get(event, ()))


    def listener_count(self, event):
        with self._lock:
            return len(self._listeners.get(event, ()))


    def events(self):
        """ Return the events that currently have at least one listener.
        """

        with self._lock:
            return list(self._listeners.keys())


    def emit(self, event, *args):
        """ Invoke every listener for *event* with *args*. Returns True if
            there were any listeners.
        """

        listeners = self.listeners(event)

        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception("listener for %s raised", event)

        return len(listeners) > 0


# end of class Emitter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
