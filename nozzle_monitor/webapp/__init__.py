from nozzle_monitor.webapp.app import create_app, run_app

__all__ = [
    'create_app',
    'run_app',
]
