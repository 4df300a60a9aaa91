""" Periodic invocation of a method on a background thread. The pub/sub
    client uses this to send its keep-alive presence while it is online.

    There is at most one poller per method: starting a method that is
    already being polled only changes its period, it never schedules a
    second, independent sequence of calls.
"""

import logging
import threading
import time
import weakref

logger = logging.getLogger(__name__)

active = dict()
active_lock = threading.Lock()


def reference(thing):
    """ Return a weak reference to *thing*, which may be a bound method; a
        plain :func:`weakref.ref` to a bound method dies immediately.
    """

    try:
        thing.__func__
        thing.__self__
    except AttributeError:
        return weakref.ref(thing)
    else:
        return weakref.WeakMethod(thing)



def period(method):
    """ Return the polling period in seconds for *method*, or None if it is
        not being polled.
    """

    try:
        poller = active[_key(method)]
    except KeyError:
        return None

    return poller.interval



def start(method, period):
    """ Call *method* every *period* seconds. A period of None or zero is
        the same as calling :func:`stop`. The first call happens one period
        from now. Only a weak reference to *method* is held; polling ends
        on its own once the method's owner is garbage collected.
    """

    if period is None or period == 0:
        stop(method)
        return

    key = _key(method)

    with active_lock:
        try:
            poller = active[key]
        except KeyError:
            poller = _Poller(method, key)
            active[key] = poller

    poller.period(period)



def stop(method):
    """ Discontinue polling *method*. It is not an error if the method is
        not being polled.
    """

    with active_lock:
        try:
            poller = active.pop(_key(method))
        except KeyError:
            return

    poller.stop()



def _key(method):

    # Bound methods are created anew on every attribute access; the pair of
    # the underlying function and instance is what stays constant.

    try:
        return (id(method.__func__), id(method.__self__))
    except AttributeError:
        return (id(method), None)



class _Poller:
    """ Background thread that invokes one polled method.
    """

    def __init__(self, method, key):

        self.key = key
        self.interval = None
        self.reference = reference(method)
        self.shutdown = False

        self.alarm = threading.Event()
        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()


    def period(self, period):
        self.interval = float(period)
        self.alarm.set()


    def run(self):

        interval = None
        next = None

        while self.shutdown == False:
            if self.alarm.is_set():
                # A new interval restarts the cadence.
                self.alarm.clear()
                interval = self.interval
                next = time.time() + interval

            if next is None:
                self.alarm.wait(1)
                continue

            delay = next - time.time()
            if delay > 0:
                self.alarm.wait(delay)
                continue

            method = self.reference()

            if method is None:
                break

            try:
                method()
            except Exception:
                logger.exception("polled method %s raised", method)

            del method

            # Hold the cadence; a late wakeup does not push later calls back.

            next += interval

        with active_lock:
            if active.get(self.key) is self:
                del active[self.key]


    def stop(self):
        self.shutdown = True
        self.alarm.set()


# end of class _Poller


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
