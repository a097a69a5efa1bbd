from __future__ import annotations

import argparse
import functools
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .config import AgentConfig, StartOptions, load_agent_config
from .errors import AlreadyRunningError, LedgerError, StartError
from .ledger import Ledger
from .lib.download import fetch_and_unpack
from .lib.health import check_health
from .lib.repository import ArtifactRepository
from .logging_utils import configure_logging, log_progress
from .manager import ServiceManager
from .progress import Progress, ProgressConsumer, ProgressQueue

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "services.yaml"


def render_progress(event: Progress) -> None:
    log_progress(event)
    pct = "    " if event.percent is None else f"{event.percent:3d}%"
    print(f"{event.service:<24} {pct} {event.state}", flush=True)


def parse_extra_args(text: Optional[str]) -> Dict[str, List[str]]:
    """Parse ``{"SERVICE": ["-Dfoo=bar", ...]}`` as given to --append-args."""

    if not text:
        return {}
    data = json.loads(text)
    if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
        raise ValueError("--append-args must be a JSON object of service -> list of args")
    return {str(k): [str(a) for a in v] for k, v in data.items()}


def build_manager(cfg: AgentConfig, options: StartOptions, updates: ProgressQueue) -> ServiceManager:
    return ServiceManager(
        services=cfg.services(),
        install_dir_for=cfg.install_dir,
        options=options,
        ledger=Ledger(cfg.ledger_format),
        repository=ArtifactRepository(cfg.repository_url),
        fetcher=functools.partial(fetch_and_unpack, timeout=cfg.download_timeout),
        health_check=functools.partial(check_health, path=cfg.health_path, timeout=cfg.health_timeout),
        updates=updates,
    )


def run_start(cfg: AgentConfig, *, name: str, version: str, options: StartOptions) -> int:
    updates = ProgressQueue()
    consumer = ProgressConsumer(updates, render_progress).start()
    manager = build_manager(cfg, options, updates)

    try:
        state = manager.start_service(name, version)
    except AlreadyRunningError as e:
        logger.info("%s", e)
        return 0
    except StartError as e:
        print(f"error: {e}")
        return 1
    except Exception:
        logger.exception("Start of %s failed unexpectedly", name)
        raise
    finally:
        consumer.stop()

    print(f"{state.service} {state.version} started (pid={state.pid}, port={state.port})")
    return 0


def run_status(cfg: AgentConfig, names: List[str]) -> int:
    """Print the advisory ledger view of each service; the pid may be stale."""

    services = cfg.services()
    ledger = Ledger(cfg.ledger_format)

    for name in names or sorted(services):
        service = services.get(name)
        if service is None:
            print(f"{name:<24} unknown service")
            continue

        install_dir = cfg.install_dir(name)
        try:
            install = ledger.load_install_file(install_dir)
        except (FileNotFoundError, LedgerError):
            print(f"{name:<24} not installed")
            continue

        line = f"{name:<24} {install.version:<12}"
        try:
            state = ledger.load_state_file(install_dir)
            line += f" pid={state.pid} port={state.port}"
            port = state.port
        except (FileNotFoundError, LedgerError):
            line += " never started"
            port = service.default_port

        healthy = check_health(port, path=cfg.health_path, timeout=cfg.health_timeout)
        print(f"{line} {'healthy' if healthy else 'not responding'}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="svc-agent")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to agent config (yaml)")
    p.add_argument("--log", default=None, help="Path to agent log (default: <workspace>/svc-agent.log)")
    p.add_argument("--verbose", action="store_true", help="Also log to the console at DEBUG, including spawned commands")

    sub = p.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Install (if needed) and start a service")
    start.add_argument("name")
    start.add_argument("--version", default="", help="Version to run (default: latest)")
    start.add_argument("--offline", action="store_true", help="Only use what is already installed")
    start.add_argument("--clean", action="store_true", help="Reinstall even if a valid install exists")
    start.add_argument("--port", type=int, default=0, help="Override the service's default port")
    start.add_argument("--append-args", default=None, help='JSON, e.g. {"AUTH": ["-Dfoo=bar"]}')

    status = sub.add_parser("status", help="Show recorded install/runtime state")
    status.add_argument("names", nargs="*")

    args = p.parse_args(argv)

    cfg = load_agent_config(args.config)
    configure_logging(Path(args.log) if args.log else cfg.log_path, verbose=bool(args.verbose))

    if args.command == "status":
        return run_status(cfg, args.names)

    try:
        extra_args = parse_extra_args(args.append_args)
    except ValueError as e:
        p.error(str(e))

    options = StartOptions(
        offline=bool(args.offline),
        clean=bool(args.clean),
        port=args.port,
        extra_args=extra_args,
    )
    return run_start(cfg, name=args.name, version=args.version, options=options)


if __name__ == "__main__":
    raise SystemExit(main())
