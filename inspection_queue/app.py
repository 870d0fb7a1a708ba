from __future__ import annotations

# Single-entrypoint runner.
#
# Primary way to run a local site:
#     python -m inspection_queue.app run [--windowed] [--silent]
#
# One subcommand per workstation is kept for running them on separate
# machines (the store, the reception desk, the technician desk and the
# public display).

import argparse
import sys


def main() -> None:
    parser = argparse.ArgumentParser(description="Vehicle inspection queue (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_mqtt_args(p: argparse.ArgumentParser) -> None:
        from .config import DEFAULT_MQTT_HOST, DEFAULT_MQTT_PORT, DEFAULT_NAMESPACE

        p.add_argument("--mqtt-host", default=DEFAULT_MQTT_HOST)
        p.add_argument("--mqtt-port", type=int, default=DEFAULT_MQTT_PORT)
        p.add_argument("--namespace", default=DEFAULT_NAMESPACE)
        p.add_argument("--log-level", default="INFO")

    # ---- Normal operation: one command ----
    p_run = sub.add_parser("run", help="Start store + reception + technician + display")
    add_mqtt_args(p_run)
    p_run.add_argument("--headless-display", action="store_true", help="print panel views instead of a window")
    p_run.add_argument("--silent", action="store_true", help="no voice announcements")
    p_run.add_argument("--windowed", action="store_true", help="display in a window instead of full screen")

    # ---- One workstation per machine ----
    p_store = sub.add_parser("store", help="Start the queue store service")
    add_mqtt_args(p_store)

    p_rec = sub.add_parser("reception", help="Open the reception workstation")
    add_mqtt_args(p_rec)

    p_tech = sub.add_parser("technician", help="Open the technician workstation")
    add_mqtt_args(p_tech)

    p_disp = sub.add_parser("display", help="Open the public display")
    add_mqtt_args(p_disp)
    p_disp.add_argument("--headless", action="store_true")
    p_disp.add_argument("--silent", action="store_true")
    p_disp.add_argument("--windowed", action="store_true")

    args = parser.parse_args()

    run_args = [
        "--mqtt-host",
        args.mqtt_host,
        "--mqtt-port",
        str(args.mqtt_port),
        "--namespace",
        args.namespace,
        "--log-level",
        args.log_level,
    ]

    if args.cmd == "run":
        from .run_all import main as run

        for flag in ("headless_display", "silent", "windowed"):
            if getattr(args, flag):
                run_args.append("--" + flag.replace("_", "-"))
        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "store":
        from .store import main as run

        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "reception":
        from .reception import main as run

        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "technician":
        from .technician import main as run

        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "display":
        from .display import main as run

        for flag in ("headless", "silent", "windowed"):
            if getattr(args, flag):
                run_args.append("--" + flag)
        _dispatch_to_module_main(run, run_args)
        return


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
