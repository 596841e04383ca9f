#!/usr/bin/env python3
"""
Fuel Concentrator - nozzle monitor

Starts the simulated concentrator, serves the dashboard/API in a background
thread and runs an interactive console for operator commands.
"""

import os
import sys
import threading

from nozzle_monitor.controllers import DispenserController
from nozzle_monitor.settings import load_settings
from nozzle_monitor.webapp import create_app, run_app


HELP = """
==================================================
  CONCENTRADOR - NOZZLE MONITOR
==================================================
  s - Status          h - Help            q - Quit

  COMMANDS (nozzle id, e.g. 05):
  a <id> - Authorize  b <id> - Block     f <id> - Free

  SIMULATION:
  w <id> - Lift nozzle (customer waiting)
  u <id> - Hang up nozzle
  p <id> <price> - Set unit price for next fueling
=================================================="""


def run_loop(controller):
    """Interactive command loop. Returns when the user quits."""
    print("\n[SYSTEM] Running...  (press 'h' for help)\n")
    print(HELP)

    while True:
        try:
            cmd = input("\n> ").strip().lower()
        except (KeyboardInterrupt, EOFError):
            print("\n\nExiting...")
            return

        if not cmd:
            continue
        elif cmd == 'q':
            print("\nExiting...")
            return
        elif cmd == 'h':
            print(HELP)
        else:
            try:
                result = controller.handle_command(cmd)
                if result is None:
                    print("Unknown command. Press 'h' for help.")
            except Exception as exc:
                print(f"[ERROR] {exc}")


def main(argv=None):
    """Load settings, start the controller and the web server."""
    argv = sys.argv[1:] if argv is None else argv
    settings = load_settings(os.path.abspath(argv[0])) if argv else load_settings()

    print("\n" + "=" * 50)
    print("  CONCENTRADOR - NOZZLE MONITOR")
    print("=" * 50 + "\n")

    controller = DispenserController(settings)
    controller.start()

    app = create_app(controller, settings)
    web_thread = threading.Thread(target=run_app, args=(app, settings), daemon=True)
    web_thread.start()

    try:
        run_loop(controller)
    finally:
        controller.cleanup()
        print("[SYSTEM] Done.")


if __name__ == "__main__":
    main()
