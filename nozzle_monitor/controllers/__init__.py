from nozzle_monitor.controllers.dispenser_controller import DispenserController
from nozzle_monitor.controllers.nozzle_state_machine import (
    STATUS_LABELS,
    Command,
    FuelingData,
    NozzleStateMachine,
)
from nozzle_monitor.controllers.scheduler import TimerScheduler

__all__ = [
    'DispenserController',
    'NozzleStateMachine',
    'FuelingData',
    'Command',
    'STATUS_LABELS',
    'TimerScheduler',
]
