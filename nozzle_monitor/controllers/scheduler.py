"""Timer-backed scheduler used by the nozzle state machines."""

import threading


class TimerScheduler:
    """
    Runs each callback once on its own daemon threading.Timer.

    Any object exposing the same schedule(delay, callback) -> handle contract,
    where handle has cancel(), can stand in for this one.
    """

    def schedule(self, delay, callback):
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
