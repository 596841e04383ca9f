"""Dispenser Controller - owns every nozzle state machine of one concentrator"""

import math
import time

from nozzle_monitor.controllers.nozzle_state_machine import (
    STATUS_LABELS,
    Command,
    NozzleStateMachine,
)
from nozzle_monitor.controllers.scheduler import TimerScheduler
from nozzle_monitor.exceptions import InvalidCommandError, NozzleNotFoundError
from nozzle_monitor.mqtt_publisher import MQTTBatchPublisher
from nozzle_monitor.settings import nozzle_ids, validate_engine_settings
from nozzle_monitor.simulators import DemandSimulator


class DispenserController:
    """
    Controller for the fuel concentrator.

    Nozzles are created once, in id order, and never retired. Their status
    and fueling data only change through apply(), lift()/hang_up() and the
    timers each state machine schedules for itself.

    Operations:
    - snapshot() : ordered list of every nozzle record.
    - apply()    : AUTHORIZE / BLOCK / FREE for one nozzle.
    - lift()     : nozzle picked up by a customer (FREE -> WAITING).
    - hang_up()  : nozzle put back before authorization (WAITING -> FREE).
    """

    CONSOLE_COMMANDS = {
        'a': Command.AUTHORIZE,
        'b': Command.BLOCK,
        'f': Command.FREE,
    }

    def __init__(self, settings, scheduler=None, publisher=None):
        self.settings    = settings
        self.device_info = settings.get("device", {})
        engine_cfg       = settings.get("engine", {})
        validate_engine_settings(engine_cfg)

        self.strict_commands = bool(engine_cfg.get("strict_commands", False))
        self.scheduler       = scheduler or TimerScheduler()
        self.publisher       = publisher or MQTTBatchPublisher(
            settings.get("mqtt", {}), self.device_info)
        self.simulator       = None
        self.running         = False

        self.nozzles   = {}
        self._id_width = 2
        self._init_nozzles(engine_cfg)

    # ========== INIT ==========

    def _init_nozzles(self, cfg):
        count          = cfg.get("nozzle_count", 48)
        unit_price     = cfg.get("unit_price", 5.89)
        prices         = cfg.get("prices", {})
        initial_states = cfg.get("initial_states", {})

        ids = nozzle_ids(count)
        self._id_width = len(ids[0])
        for nozzle_id in ids:
            self.nozzles[nozzle_id] = NozzleStateMachine(
                nozzle_id,
                self.scheduler,
                price           = prices.get(nozzle_id, unit_price),
                authorize_delay = cfg.get("authorize_delay", 2.0),
                tick_interval   = cfg.get("tick_interval", 0.5),
                volume_step     = cfg.get("volume_step", 0.5),
                target_volume   = cfg.get("target_volume", 20.0),
                reset_delay     = cfg.get("reset_delay", 3.0),
                initial_state   = initial_states.get(nozzle_id, NozzleStateMachine.FREE),
                on_state_change = self._publish_record,
                log_transitions = cfg.get("log_transitions", True),
            )

        print(f"[ENGINE] {count} nozzles initialized "
              f"({self.device_info.get('protocol', 'Horustech')} @ "
              f"{self.device_info.get('ip', '-')}:{self.device_info.get('port', '-')})")

    # ========== ENGINE API ==========

    def snapshot(self):
        """Return every nozzle record, in id order"""
        return [nozzle.snapshot() for nozzle in self.nozzles.values()]

    def get(self, nozzle_id):
        return self._nozzle(nozzle_id).snapshot()

    def apply(self, nozzle_id, command):
        """
        Apply `command` to one nozzle and return its record right after
        validation. Delayed effects show up later in snapshot().

        Raises NozzleNotFoundError for unknown ids. Unknown commands are a
        logged no-op unless strict_commands is set, then InvalidCommandError.
        """
        nozzle = self._nozzle(nozzle_id)
        if command not in Command.ALL:
            if self.strict_commands:
                raise InvalidCommandError(command, details={"nozzle_id": nozzle_id})
            print(f"[ENGINE] Ignoring unknown command {command!r} for nozzle {nozzle_id}")
            return nozzle.snapshot()
        return nozzle.apply(command)

    def lift(self, nozzle_id):
        return self._nozzle(nozzle_id).lift()

    def hang_up(self, nozzle_id):
        return self._nozzle(nozzle_id).hang_up()

    def set_price(self, nozzle_id, price):
        """Set the unit price for the next fueling episode of one nozzle."""
        value = float(price)
        if not math.isfinite(value) or value <= 0:
            raise ValueError("price must be a positive finite number")
        self._nozzle(nozzle_id).set_price(value)

    def summary(self):
        """Return the number of nozzles per status code"""
        counts = {code: 0 for code in STATUS_LABELS}
        for record in self.snapshot():
            counts[record["status"]] += 1
        return counts

    def _nozzle(self, nozzle_id):
        nozzle = self.nozzles.get(nozzle_id) if isinstance(nozzle_id, str) else None
        if nozzle is None:
            raise NozzleNotFoundError(nozzle_id)
        return nozzle

    def _publish_record(self, record):
        self.publisher.enqueue({
            'device': self.device_info.get('id', 'CONCENTRADOR'),
            'source': 'nozzle',
            'sensor': record['id'],
            'value': record,
            'ts': time.time(),
        })

    # ========== LIFECYCLE ==========

    def start(self):
        """Start publisher and demand simulator"""
        self.running = True
        self.publisher.start()

        demand_cfg = self.settings.get("demand", {})
        if demand_cfg.get("enabled", False):
            self.simulator = DemandSimulator(self, demand_cfg)
            self.simulator.start()

    def stop(self):
        """Stop simulator, pending nozzle timers and publisher"""
        self.running = False
        if self.simulator:
            self.simulator.stop()
            self.simulator = None
        for nozzle in self.nozzles.values():
            nozzle.cancel()
        self.publisher.stop()

    def cleanup(self):
        self.stop()

    # ========== STATUS ==========

    def show_status(self):
        """Print status to console"""
        print("\n" + "=" * 40)
        print("CONCENTRADOR STATUS")
        print("=" * 40)

        for record in self.snapshot():
            line = f"  [{record['id']}] {STATUS_LABELS[record['status']]:<12}"
            fueling = record["fueling"]
            if fueling:
                line += f" {fueling['volume']:6.2f} L  R$ {fueling['total']:8.2f}"
            print(line)

        counts = ", ".join(
            f"{STATUS_LABELS[code]}: {n}" for code, n in self.summary().items() if n)
        print("-" * 40)
        print(f"  {counts}")
        print("=" * 40)

    # ========== COMMANDS ==========

    def handle_command(self, cmd):
        """
        Handle a console command such as 'a 05'. Returns None for unknown
        commands, the affected record otherwise.
        """
        parts = cmd.split()
        if not parts:
            return None

        if parts[0] == 's':
            self.show_status()
            return True

        if len(parts) < 2:
            return None
        action, nozzle_id = parts[0], parts[1].zfill(self._id_width)

        try:
            if action in self.CONSOLE_COMMANDS:
                record = self.apply(nozzle_id, self.CONSOLE_COMMANDS[action])
                print(f"[SIM] {self.CONSOLE_COMMANDS[action]} {nozzle_id} -> "
                      f"{STATUS_LABELS[record['status']]}")
                return record
            if action == 'w':
                moved = self.lift(nozzle_id)
                print(f"[SIM] Nozzle {nozzle_id} lifted" if moved
                      else f"[SIM] Nozzle {nozzle_id} is not free")
                return self.get(nozzle_id)
            if action == 'u':
                moved = self.hang_up(nozzle_id)
                print(f"[SIM] Nozzle {nozzle_id} hung up" if moved
                      else f"[SIM] Nozzle {nozzle_id} is not waiting")
                return self.get(nozzle_id)
            if action == 'p' and len(parts) > 2:
                self.set_price(nozzle_id, float(parts[2]))
                print(f"[SIM] Nozzle {nozzle_id} price -> {float(parts[2]):.2f}")
                return self.get(nozzle_id)
        except NozzleNotFoundError:
            print(f"[ENGINE] Nozzle {nozzle_id} not found")
            return False
        return None
