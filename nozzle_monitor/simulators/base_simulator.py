"""Base simulator - background thread management shared by all simulators"""

import threading


class BaseSimulator:
    """
    Base class with shared thread lifecycle.
    Subclasses implement run_once(); it is called every `interval` seconds
    until stop().
    """

    TAG = "SIM"

    def __init__(self, interval):
        self.interval = float(interval)
        self.running  = False
        self.threads  = []
        self._stop_event = threading.Event()

    def _loop(self):
        while not self._stop_event.wait(self.interval):
            try:
                self.run_once()
            except Exception as exc:
                print(f"[{self.TAG}] Simulation step failed: {exc!r}")

    def run_once(self):
        raise NotImplementedError("Subclasses must implement run_once()")

    # ========== LIFECYCLE ==========

    def start(self):
        self.running = True
        self._stop_event.clear()
        t = threading.Thread(target=self._loop, daemon=True)
        t.start()
        self.threads.append(t)

    def stop(self):
        self.running = False
        self._stop_event.set()
        for t in self.threads:
            t.join(timeout=1)
        self.threads = []
