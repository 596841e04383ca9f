"""
Nozzle State Machine for the dispenser controller.

States (wire codes shown by the dashboard):
  FREE         'L' - nozzle idle, available
  WAITING      'E' - nozzle lifted, waiting for authorization
  BLOCKED      'B' - administratively disabled
  READY        'P' - authorization accepted, fueling not started yet
  AUTHORIZED   'A' - fueling in progress
  COMPLETED    'C' - fueling finished, waiting for reset
  FAILED       'F' - fault
  UNCONFIGURED ' ' - slot without a physical unit

Transitions:
  WAITING/BLOCKED + AUTHORIZE          -> READY      (starts authorize_delay timer)
  READY      + authorize_delay expires -> AUTHORIZED (fueling = 0 L at unit price)
  AUTHORIZED + tick_interval expires   -> AUTHORIZED (volume += volume_step)
  AUTHORIZED + volume >= target_volume -> COMPLETED  (starts reset_delay timer)
  COMPLETED  + reset_delay expires     -> FREE       (fueling cleared)
  any        + BLOCK                   -> BLOCKED    (timer cancelled, fueling cleared)
  any        + FREE                    -> FREE       (timer cancelled, fueling cleared)
  FREE       + lift()                  -> WAITING
  WAITING    + hang_up()               -> FREE
  fault inside a timer callback        -> FAILED
"""

import threading
from decimal import Decimal, ROUND_HALF_UP

from nozzle_monitor.exceptions import InternalFaultError, InvalidCommandError

STATUS_LABELS = {
    'L': 'Livre',
    'A': 'Abastecendo',
    'B': 'Bloqueado',
    'E': 'Espera',
    'P': 'Pronto',
    'F': 'Falha',
    'C': 'Concluiu',
    ' ': 'N/C',
}

_CENT = Decimal('0.01')


def compute_total(volume, price):
    """Amount due for `volume` at `price`, rounded half-up to cents."""
    amount = Decimal(str(volume)) * Decimal(str(price))
    return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))


class Command:
    AUTHORIZE = 'AUTHORIZE'
    BLOCK     = 'BLOCK'
    FREE      = 'FREE'

    ALL = (AUTHORIZE, BLOCK, FREE)


class FuelingData:
    """Immutable reading of one fueling episode."""

    def __init__(self, price, volume=0.0):
        self.price  = float(price)
        self.volume = float(volume)
        self.total  = compute_total(self.volume, self.price)

    def advanced(self, step):
        return FuelingData(self.price, round(self.volume + step, 3))

    def to_dict(self):
        return {'volume': self.volume, 'total': self.total, 'price': self.price}


class NozzleStateMachine:
    """
    Thread-safe state machine for a single nozzle.

    Parameters:
        nozzle_id       (str)      - stable id, e.g. '05'
        scheduler       (object)   - schedule(delay, callback) -> handle with cancel()
        price           (float)    - unit price applied when fueling starts
        authorize_delay (float)    - seconds from READY to AUTHORIZED
        tick_interval   (float)    - seconds between volume increments
        volume_step     (float)    - litres added per tick
        target_volume   (float)    - volume at which the episode completes
        reset_delay     (float)    - seconds from COMPLETED back to FREE
        initial_state   (str)      - starting status code
        on_state_change (callable) - called with the record after a status change
    """

    FREE         = 'L'
    WAITING      = 'E'
    BLOCKED      = 'B'
    READY        = 'P'
    AUTHORIZED   = 'A'
    COMPLETED    = 'C'
    FAILED       = 'F'
    UNCONFIGURED = ' '

    def __init__(self, nozzle_id, scheduler, price,
                 authorize_delay=2.0, tick_interval=0.5, volume_step=0.5,
                 target_volume=20.0, reset_delay=3.0,
                 initial_state=FREE, on_state_change=None, log_transitions=True):
        self.nozzle_id        = nozzle_id
        self._scheduler       = scheduler
        self._price           = float(price)
        self._authorize_delay = float(authorize_delay)
        self._tick_interval   = float(tick_interval)
        self._volume_step     = float(volume_step)
        self._target_volume   = float(target_volume)
        self._reset_delay     = float(reset_delay)
        self._on_state_change = on_state_change
        self._log_transitions = log_transitions

        self._state      = initial_state
        self._fueling    = None      # FuelingData while AUTHORIZED/COMPLETED
        self._lock       = threading.Lock()
        self._timer      = None      # the single pending transition
        self._generation = 0         # bumped on every transition
        self._messages   = []        # log lines, printed once _lock is released

    # ========== PUBLIC API ==========

    def get_state(self):
        """Return current status code"""
        with self._lock:
            return self._state

    def snapshot(self):
        """Return a consistent copy of the nozzle record"""
        with self._lock:
            return self._record_locked()

    def get_price(self):
        with self._lock:
            return self._price

    def set_price(self, price):
        """Change the unit price used by the next fueling episode."""
        with self._lock:
            self._price = float(price)

    def apply(self, command):
        """
        Apply an operator command and return the resulting record.

        AUTHORIZE outside WAITING/BLOCKED is acknowledged without a change.
        On an unexpected error the record is left as it was before the call.
        """
        if command not in Command.ALL:
            raise InvalidCommandError(command)

        fault = None
        with self._lock:
            previous = (self._state, self._fueling)
            try:
                changed = self._dispatch_locked(command)
            except Exception as exc:
                self._state, self._fueling = previous
                self._messages.append(f"Fault applying {command}: {exc!r}")
                fault = exc
            else:
                record = self._record_locked()
            messages = self._take_messages_locked()

        self._emit(messages)
        if fault is not None:
            raise InternalFaultError(self.nozzle_id, command, fault) from fault
        if changed:
            self._notify(record)
        return record

    def lift(self):
        """Nozzle picked up by a customer: FREE -> WAITING. Returns True if it moved."""
        return self._event(self.FREE, self.WAITING)

    def hang_up(self):
        """Nozzle put back before authorization: WAITING -> FREE."""
        return self._event(self.WAITING, self.FREE)

    def cancel(self):
        """Drop the pending transition, if any; the current status is kept."""
        with self._lock:
            self._cancel_timer_locked()
            self._generation += 1

    # ========== INTERNAL TRANSITIONS (called while holding _lock) ==========

    def _dispatch_locked(self, command):
        if command == Command.AUTHORIZE:
            if self._state not in (self.WAITING, self.BLOCKED):
                return False
            return self._transition_locked(
                self.READY, None, self._authorize_delay, self._promote_locked)
        if command == Command.BLOCK:
            return self._transition_locked(self.BLOCKED)
        return self._transition_locked(self.FREE)

    def _promote_locked(self):
        return self._transition_locked(
            self.AUTHORIZED, FuelingData(self._price),
            self._tick_interval, self._tick_locked)

    def _tick_locked(self):
        fueling = self._fueling.advanced(self._volume_step)
        if fueling.volume >= self._target_volume:
            return self._transition_locked(
                self.COMPLETED, fueling, self._reset_delay, self._reset_locked)
        return self._transition_locked(
            self.AUTHORIZED, fueling, self._tick_interval, self._tick_locked)

    def _reset_locked(self):
        return self._transition_locked(self.FREE)

    def _transition_locked(self, state, fueling=None, delay=None, on_fire=None):
        """
        Move to `state`, replacing the pending timer with a new one when
        `delay` is given. The new timer is scheduled before anything is
        mutated so a scheduling failure leaves the record untouched.
        Returns True if the status code changed.
        """
        generation = self._generation + 1
        timer = None
        if delay is not None:
            timer = self._scheduler.schedule(
                delay, lambda: self._timer_fired(state, generation, on_fire))

        self._cancel_timer_locked()
        previous = self._state
        self._state      = state
        self._fueling    = fueling
        self._timer      = timer
        self._generation = generation

        if previous != state and self._log_transitions:
            self._messages.append(f"{STATUS_LABELS[previous]} -> {STATUS_LABELS[state]}")
        return previous != state

    def _timer_fired(self, expected_state, generation, on_fire):
        with self._lock:
            # Stale timer: the nozzle moved on since it was scheduled
            if self._state != expected_state or self._generation != generation:
                return
            try:
                changed = on_fire()
            except Exception as exc:
                self._messages.append(
                    f"Fault in {STATUS_LABELS[expected_state]} timer: {exc!r} "
                    f"-> {STATUS_LABELS[self.FAILED]}")
                self._timer      = None
                self._generation += 1
                self._state      = self.FAILED
                self._fueling    = None
                changed = True
            record = self._record_locked()
            messages = self._take_messages_locked()

        self._emit(messages)
        if changed:
            self._notify(record)

    def _event(self, from_state, to_state):
        with self._lock:
            if self._state != from_state:
                return False
            self._transition_locked(to_state)
            record = self._record_locked()
            messages = self._take_messages_locked()
        self._emit(messages)
        self._notify(record)
        return True

    def _take_messages_locked(self):
        messages, self._messages = self._messages, []
        return messages

    def _emit(self, messages):
        for message in messages:
            try:
                print(f"[NOZZLE {self.nozzle_id}] {message}")
            except (OSError, ValueError):
                # Console gone; the transition is already committed
                return

    def _record_locked(self):
        return {
            'id': self.nozzle_id,
            'status': self._state,
            'fueling': self._fueling.to_dict() if self._fueling is not None else None,
        }

    def _cancel_timer_locked(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify(self, record):
        # Called outside the lock so listeners may read the nozzle again
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(record)
        except Exception as exc:
            print(f"[NOZZLE {self.nozzle_id}] State change listener failed: {exc!r}")
