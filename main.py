# -- coding: utf-8 --

import argparse
import logging
import time

from core.config import ConfigError, load_config, validate_config
from core.runtime import build_service, build_service_config_from_loaded_config
from trigger import FaultListener


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="crash-capture: snapshot, persist, and abort on uncaught faults",
    )
    p.add_argument(
        "--config-dir", default="config", help="Directory containing main_*.yaml"
    )
    p.add_argument("--verbose", action="store_true", help="Debug log")
    p.add_argument(
        "--log-level", default="", help="Override log level (debug/info/warning/error)"
    )
    p.add_argument(
        "--run-s",
        type=float,
        default=0.0,
        help="Stay alive for N seconds (send SIGUSR1 for a heap dump)",
    )
    p.add_argument(
        "--crash", action="store_true", help="Raise a demo fault once armed"
    )
    return p.parse_args(argv)


def setup_logging(verbose: bool, log_level: str = ""):
    if verbose:
        level = logging.DEBUG
    else:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "warn": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(str(log_level or "").strip().lower(), logging.INFO)
    # Use UTC for all %(asctime)s timestamps in logs.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level, format="%(asctime)sZ [%(levelname)s] %(message)s", force=True
    )
    if not verbose:
        logging.getLogger("asyncio").setLevel(logging.WARNING)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_level)
    try:
        cfg = load_config(args.config_dir)
        validate_config(cfg)
    except ConfigError as e:
        logging.error("Config load failed: %s", e)
        raise SystemExit(1)
    # Config-driven log level (unless overridden by CLI).
    if not args.verbose and not args.log_level:
        setup_logging(args.verbose, cfg.capture.log_level)

    service = build_service(build_service_config_from_loaded_config(cfg))
    logging.info(
        "Starting: dir=%s relay=%s timeout=%dms human=%s app=%s",
        service.directory,
        cfg.relay.impl,
        cfg.relay.timeout_ms,
        cfg.capture.human,
        cfg.capture.app_name or "-",
    )
    logging.info("Config files: %s", ", ".join(f"{k}={v}" for k, v in cfg.paths.items()))

    listener = FaultListener(service).listen()
    try:
        deadline = time.monotonic() + max(0.0, args.run_s)
        while time.monotonic() < deadline:
            time.sleep(0.1)
        if args.crash:
            raise RuntimeError("crash-capture demo fault")
        logging.info("Done")
    except KeyboardInterrupt:
        logging.info("Stopped by user (Ctrl+C)")
    listener.close()
    service.close()


if __name__ == "__main__":
    main()
