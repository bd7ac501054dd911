import argparse
import sys
from pathlib import Path

from sd_autocopy.__version__ import __version__
from sd_autocopy.config import settings
from sd_autocopy.logging import LoggerFactory, setup_logging
from sd_autocopy.services.copier import CopyOrchestrator
from sd_autocopy.services.monitor import DriveMonitor
from sd_autocopy.services.notifications import build_notifier
from sd_autocopy.storage.counter import CounterStore, read_counter
from sd_autocopy.storage.exceptions import ConfigurationError, CounterStoreError
from sd_autocopy.storage.volumes import VolumeSampler


log = LoggerFactory.for_system()


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sd-autocopy",
        description="Copy a folder onto every newly inserted removable drive",
    )
    parser.add_argument("--source", type=Path, help="Folder whose contents are copied")
    parser.add_argument(
        "--interval", type=int, metavar="MS", help="Polling interval in milliseconds"
    )
    parser.add_argument(
        "--exclude",
        nargs="+",
        metavar="VOLUME",
        help="Volumes never treated as copy targets (e.g. C: E:)",
    )
    parser.add_argument(
        "--destination-name", help="Folder created at the root of each volume"
    )
    parser.add_argument(
        "--counter-file", type=Path, help="File holding the successful copy count"
    )
    parser.add_argument(
        "--no-notify", action="store_true", help="Log notifications instead of showing them"
    )
    parser.add_argument(
        "--once", action="store_true", help="Run a single poll after startup and exit"
    )
    parser.add_argument(
        "--show-count", action="store_true", help="Print the persisted copy count and exit"
    )
    parser.add_argument("--log-dir", type=Path, help="Directory for log files")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Log every poll tick")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_overrides(args):
    return {
        "source_folder": args.source,
        "polling_interval_ms": args.interval,
        "excluded_volumes": args.exclude,
        "destination_folder_name": args.destination_name,
        "counter_path": args.counter_file,
        "notifications_enabled": False if args.no_notify else None,
    }


def show_count(config):
    try:
        count = read_counter(config.counter_path)
    except CounterStoreError as error:
        log.warning(f"{error}. Reporting 0.")
        count = 0
    print(count)
    return 0


def build_monitor(config):
    notifier = build_notifier(config.notifications_enabled)
    counter = CounterStore(config.counter_path)
    orchestrator = CopyOrchestrator(
        source=config.source_folder,
        destination_name=config.destination_folder_name,
        counter=counter,
        notifier=notifier,
    )
    sampler = VolumeSampler(excluded=config.excluded_volumes)
    return DriveMonitor(
        config=config,
        sampler=sampler,
        orchestrator=orchestrator,
        counter=counter,
        notifier=notifier,
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(debug=args.debug, trace=args.trace, log_dir=args.log_dir)

    try:
        config = settings.load_config(config_overrides(args))
    except ConfigurationError as error:
        log.critical(f"Invalid configuration: {error}")
        return 1

    if args.show_count:
        return show_count(config)

    log.info(f"Initializing SD autocopy {__version__}")
    monitor = build_monitor(config)
    try:
        monitor.initialize()
    except ConfigurationError as error:
        log.critical(str(error))
        log.critical("Create the folder and place the files to copy inside it.")
        return 1

    try:
        if args.once:
            monitor.poll_once()
            monitor.wait_for_copies()
        else:
            monitor.run()
    except KeyboardInterrupt:
        log.info("Stopping monitor")
    return 0


if __name__ == "__main__":
    sys.exit(main())
