"""Demand simulator - customers picking up free nozzles"""

import random

from nozzle_monitor.simulators.base_simulator import BaseSimulator


class DemandSimulator(BaseSimulator):
    """
    Every `interval` seconds each FREE nozzle is lifted with the configured
    probability, leaving it WAITING for an operator AUTHORIZE.
    """

    TAG = "DEMAND"

    def __init__(self, controller, settings, rng=None):
        super().__init__(settings.get("interval", 5.0))
        self.controller  = controller
        self.probability = float(settings.get("probability", 0.1))
        self._rng        = rng or random.Random()

    def run_once(self):
        """Lift a random subset of FREE nozzles; returns the lifted ids."""
        lifted = []
        for record in self.controller.snapshot():
            if record["status"] != "L":
                continue
            if self._rng.random() < self.probability and self.controller.lift(record["id"]):
                lifted.append(record["id"])
        if lifted:
            print(f"[DEMAND] Customers waiting at {', '.join(lifted)}")
        return lifted
