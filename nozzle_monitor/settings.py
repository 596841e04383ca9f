import json
import math
import os

from nozzle_monitor.exceptions import ConfigurationError

PROTOCOLS = ('Horustech', 'Companytec', 'CBC')

# Codes a nozzle may start in: none of them carries fueling data or a timer
SEEDABLE_STATES = ('L', 'E', 'B', 'F', ' ')

_POSITIVE_ENGINE_KEYS = (
    'unit_price',
    'authorize_delay',
    'tick_interval',
    'volume_step',
    'target_volume',
    'reset_delay',
)


def load_settings(filePath='settings.json'):
    if not os.path.isabs(filePath):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        filePath = os.path.join(base_dir, filePath)
    try:
        with open(filePath, 'r', encoding='utf-8') as f:
            settings = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(filePath, f"invalid JSON: {exc}") from exc
    validate_settings(settings)
    return settings


def nozzle_ids(count):
    """Return the ordered nozzle ids for a dispenser with `count` nozzles."""
    width = max(2, len(str(count)))
    return [str(i + 1).zfill(width) for i in range(count)]


def validate_settings(settings):
    if not isinstance(settings, dict):
        raise ConfigurationError('settings', "top level must be an object")

    validate_engine_settings(settings.get('engine', {}))

    protocol = settings.get('device', {}).get('protocol', 'Horustech')
    if protocol not in PROTOCOLS:
        raise ConfigurationError(
            'device.protocol',
            f"unknown protocol {protocol!r}, expected one of {', '.join(PROTOCOLS)}",
        )

    demand = settings.get('demand', {})
    if float(demand.get('interval', 5.0)) <= 0:
        raise ConfigurationError('demand.interval', "must be positive")
    probability = float(demand.get('probability', 0.1))
    if not 0.0 <= probability <= 1.0:
        raise ConfigurationError('demand.probability', "must be between 0 and 1")


def validate_engine_settings(engine_cfg):
    """Check the `engine` section; raises ConfigurationError on bad values."""
    count = engine_cfg.get('nozzle_count', 48)
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise ConfigurationError('engine.nozzle_count', "must be a positive integer")

    for key in _POSITIVE_ENGINE_KEYS:
        if key in engine_cfg:
            _positive_number(f'engine.{key}', engine_cfg[key])

    ids = set(nozzle_ids(count))

    prices = engine_cfg.get('prices', {})
    if not isinstance(prices, dict):
        raise ConfigurationError('engine.prices', "must map nozzle ids to prices")
    for nozzle_id, price in prices.items():
        if nozzle_id not in ids:
            raise ConfigurationError('engine.prices', f"unknown nozzle {nozzle_id!r}")
        _positive_number('engine.prices', price, f"price for {nozzle_id}")

    initial_states = engine_cfg.get('initial_states', {})
    if not isinstance(initial_states, dict):
        raise ConfigurationError('engine.initial_states', "must map nozzle ids to status codes")
    for nozzle_id, code in initial_states.items():
        if nozzle_id not in ids:
            raise ConfigurationError('engine.initial_states', f"unknown nozzle {nozzle_id!r}")
        if code not in SEEDABLE_STATES:
            raise ConfigurationError(
                'engine.initial_states',
                f"nozzle {nozzle_id} cannot start in status {code!r}",
            )


def _positive_number(config_key, value, what="value"):
    if isinstance(value, bool):
        raise ConfigurationError(config_key, f"{what} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(config_key, f"{what} must be a number") from exc
    if not math.isfinite(number) or number <= 0:
        raise ConfigurationError(config_key, f"{what} must be positive")
    return number
