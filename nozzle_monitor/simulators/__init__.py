from nozzle_monitor.simulators.base_simulator import BaseSimulator
from nozzle_monitor.simulators.demand_simulator import DemandSimulator

__all__ = [
    'BaseSimulator',
    'DemandSimulator',
]
