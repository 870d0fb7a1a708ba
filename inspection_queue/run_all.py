from __future__ import annotations

# Single-command runner.
#
# This module starts a full local site from one command by spawning child
# processes:
# - store (the only owner of vehicle state)
# - reception workstation
# - technician workstation
# - public display (Tk, or text with --headless-display)
#
# Every workstation is an independent process talking MQTT, exactly as on
# separate machines.

import argparse
import logging
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass

from .config import DEFAULT_MQTT_HOST, DEFAULT_MQTT_PORT, DEFAULT_NAMESPACE

logger = logging.getLogger(__name__)


@dataclass
class Child:
    name: str
    proc: subprocess.Popen


def build_commands(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    headless_display: bool = False,
    silent: bool = False,
    windowed: bool = False,
    log_level: str = "INFO",
) -> list[tuple[str, list[str]]]:
    """(name, argv) for every child process, store first."""
    python = sys.executable
    common = [
        "--mqtt-host",
        mqtt_host,
        "--mqtt-port",
        str(mqtt_port),
        "--namespace",
        namespace,
        "--log-level",
        log_level,
    ]

    display_args = [python, "-m", "inspection_queue.display", *common]
    if headless_display:
        display_args.append("--headless")
    if silent:
        display_args.append("--silent")
    if windowed:
        display_args.append("--windowed")

    return [
        ("store", [python, "-m", "inspection_queue.store", *common]),
        ("reception", [python, "-m", "inspection_queue.reception", *common]),
        ("technician", [python, "-m", "inspection_queue.technician", *common]),
        ("display", display_args),
    ]


def run_all(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    headless_display: bool,
    silent: bool,
    windowed: bool,
    log_level: str = "INFO",
) -> None:
    # Put all children in their own process group so Ctrl+C can stop everything.
    def popen(name: str, args: list[str]) -> Child:
        proc = subprocess.Popen(
            args,
            preexec_fn=os.setsid,
        )
        return Child(name=name, proc=proc)

    children: list[Child] = []
    commands = build_commands(
        mqtt_host=mqtt_host,
        mqtt_port=mqtt_port,
        namespace=namespace,
        headless_display=headless_display,
        silent=silent,
        windowed=windowed,
        log_level=log_level,
    )

    for i, (name, args) in enumerate(commands):
        children.append(popen(name, args))
        if i == 0:
            # Small delay so the store subscribes before workstations send requests.
            time.sleep(0.5)

    print(
        "[run] started: "
        + ", ".join(f"{c.name}(pid={c.proc.pid})" for c in children)
        + "\nPress Ctrl+C to stop all."
    )

    try:
        # Wait until any child exits (closing a workstation window ends the run).
        while True:
            for c in children:
                rc = c.proc.poll()
                if rc is not None:
                    logger.info("%s exited with code %s, stopping", c.name, rc)
                    return
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        _terminate_children(children)


def _terminate_children(children: list[Child]) -> None:
    # Try graceful termination.
    for c in children:
        if c.proc.poll() is None:
            try:
                os.killpg(os.getpgid(c.proc.pid), signal.SIGTERM)
            except ProcessLookupError:
                pass

    # Wait a bit.
    deadline = time.time() + 2.0
    while time.time() < deadline:
        if all(c.proc.poll() is not None for c in children):
            return
        time.sleep(0.1)

    # Force kill.
    for c in children:
        if c.proc.poll() is None:
            try:
                os.killpg(os.getpgid(c.proc.pid), signal.SIGKILL)
            except ProcessLookupError:
                pass


def main() -> None:
    parser = argparse.ArgumentParser(description="Run store + reception + technician + display")
    parser.add_argument("--mqtt-host", default=DEFAULT_MQTT_HOST)
    parser.add_argument("--mqtt-port", type=int, default=DEFAULT_MQTT_PORT)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--headless-display", action="store_true", help="print panel views instead of a window")
    parser.add_argument("--silent", action="store_true", help="no voice announcements")
    parser.add_argument("--windowed", action="store_true", help="display in a window instead of full screen")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    run_all(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        headless_display=args.headless_display,
        silent=args.silent,
        windowed=args.windowed,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
