#!/usr/bin/env python3
"""
Fullscreen Dimmer - Dim other monitors while something runs fullscreen
======================================================================

Watches the window manager for a fullscreen window (video, game) and fades
every DDC/CI controllable monitor down to 0, except the one showing that
window. Brightness fades back to each monitor's default when the window
leaves fullscreen.

Usage:
    python main.py [--config PATH] [--ignore-display NAME] [--ignore-app TEXT]
                   [--focused-only] [--fade-time MS] [--poll-interval MS]
                   [--fade-interval MS] [--debug] [--detect]

    Options:
        --config PATH         Read defaults from a YAML file
        --ignore-display NAME Never touch this monitor (repeatable)
        --ignore-app TEXT     Ignore windows whose name contains TEXT (repeatable)
        --focused-only        Only look at the focused window
        --fade-time MS        Fade duration (default 1000)
        --poll-interval MS    Time between window checks (default 500)
        --fade-interval MS    Time between fade steps (default 10)
        --debug               Enable debug logging
        --detect              List controllable monitors and exit
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional


# Set up logging first
def setup_logging(debug: bool = False, log_file: Optional[Path] = None):
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
    )

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = Path.home() / ".local" / "share" / "fullscreen-dimmer" / "fullscreen-dimmer.log"


def detect_screens(config) -> int:
    """List controllable screens and where they sit."""
    from fullscreen_dimmer.context import build_context
    from fullscreen_dimmer.ddc import check_i2c_permissions
    from fullscreen_dimmer.exceptions import DimmerError

    has_perms, msg = check_i2c_permissions()
    if not has_perms:
        print(f"Warning: {msg}")

    print("Detecting monitors...")
    try:
        context = build_context(
            config.ignore_displays,
            config.brightness_overrides,
            retry_count=config.ddc.retry_count,
            sleep_multiplier=config.ddc.sleep_multiplier,
        )
    except DimmerError as e:
        print(f"Error: {e}")
        return 1

    if not context.screens:
        print("No DDC/CI capable monitors found.")
        print("\nTroubleshooting:")
        print("  1. Ensure DDC/CI is enabled in monitor OSD settings")
        print("  2. Try: sudo modprobe i2c-dev")
        print("  3. Check: ls /dev/i2c-*")
        return 1

    print(f"\nFound {len(context.screens)} monitor(s):\n")
    for screen in context.screens:
        print(f"  {screen.name}:")
        print(f"    Identity:   {screen.identity}")
        print(f"    I2C Bus:    {getattr(screen.handle, 'device_path', '?')} ({getattr(screen.handle, 'bus_name', '')})")
        print(f"    Brightness: {screen.current_brightness} (default {screen.default_brightness})")
        if screen.placement:
            print(f"    Monitor:    {screen.placement.name} at {screen.placement.extent}")
        else:
            print("    Monitor:    not found in xrandr layout")
        print()

    return 0


class DimmerApp:
    """
    Main application controller.

    Builds the screen context, the fullscreen detector and the fade controller
    once, then hands control to the poll loop until a signal arrives.
    """

    def __init__(self, config):
        self.config = config
        self.context = None
        self.loop = None

    def start(self) -> bool:
        """Check prerequisites and build all components. False on startup failure."""
        from fullscreen_dimmer.context import build_context
        from fullscreen_dimmer.ddc import check_ddcutil_available, check_i2c_permissions
        from fullscreen_dimmer.exceptions import DimmerError
        from fullscreen_dimmer.fade import FadeController, FadeTiming, WriteFailurePolicy
        from fullscreen_dimmer.poll_loop import PollLoop
        from fullscreen_dimmer.window_monitor import (
            FullscreenDetector, check_window_tools, open_window_manager,
        )

        logger.info("Starting Fullscreen Dimmer...")

        available, msg = check_ddcutil_available()
        if not available:
            logger.error(msg)
            return False
        logger.info(msg)

        has_perms, msg = check_i2c_permissions()
        if not has_perms:
            logger.warning(msg)

        available, msg = check_window_tools()
        if not available:
            logger.error(msg)
            return False
        logger.info(msg)

        try:
            window_manager = open_window_manager()
            self.context = build_context(
                self.config.ignore_displays,
                self.config.brightness_overrides,
                retry_count=self.config.ddc.retry_count,
                sleep_multiplier=self.config.ddc.sleep_multiplier,
            )
        except DimmerError as e:
            logger.error(f"Startup failed: {e}")
            return False

        if not self.context.screens:
            logger.warning("No controllable monitors found, nothing will be dimmed")

        detector = FullscreenDetector(
            window_manager,
            ignore_apps=self.config.ignore_apps,
            focused_only=self.config.focused_only,
        )
        controller = FadeController(
            self.context,
            FadeTiming.from_ms(self.config.fade_time_ms, self.config.fade_interval_ms),
            on_write_failure=WriteFailurePolicy(self.config.on_write_failure),
        )
        self.loop = PollLoop(
            detector,
            controller,
            poll_interval=self.config.poll_interval_ms / 1000.0,
        )

        logger.info("Fullscreen Dimmer started successfully")
        return True

    def stop(self):
        if self.loop:
            self.loop.stop()

    def run(self) -> int:
        """Run the application (blocking)."""
        from fullscreen_dimmer.exceptions import FadeAbortedError

        if not self.start():
            return 1

        # Set up signal handlers
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}")
            self.stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        try:
            self.loop.run()
        except FadeAbortedError as e:
            logger.error(f"{e}, exiting")
            return 1
        except KeyboardInterrupt:
            pass

        logger.info("Fullscreen Dimmer stopped")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fullscreen Dimmer - dim other monitors while a window is fullscreen",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to configuration file'
    )
    parser.add_argument(
        '--ignore-display',
        action='append',
        default=[],
        metavar='NAME',
        help='Monitor product name to leave alone (repeatable)'
    )
    parser.add_argument(
        '--ignore-app',
        action='append',
        default=[],
        metavar='TEXT',
        help='Ignore fullscreen windows whose name contains TEXT (repeatable)'
    )
    parser.add_argument(
        '--focused-only',
        action='store_true',
        help='Only consider the focused window'
    )
    parser.add_argument(
        '--fade-time',
        type=int,
        metavar='MS',
        help='Fade duration in milliseconds (default 1000)'
    )
    parser.add_argument(
        '--poll-interval',
        type=int,
        metavar='MS',
        help='Time between window checks in milliseconds (default 500)'
    )
    parser.add_argument(
        '--fade-interval',
        type=int,
        metavar='MS',
        help='Time between fade steps in milliseconds (default 10)'
    )
    parser.add_argument(
        '--on-write-failure',
        choices=['abort', 'drop'],
        help='On a failed brightness write: exit (abort, default) or stop controlling that monitor (drop)'
    )
    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--log-file',
        type=Path,
        help=f'Log file (default {DEFAULT_LOG_FILE})'
    )
    parser.add_argument(
        '--detect',
        action='store_true',
        help='Detect monitors and exit'
    )
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Setup logging
    log_file = None
    if not args.detect:
        log_file = args.log_file or DEFAULT_LOG_FILE
    setup_logging(args.debug, log_file)

    from fullscreen_dimmer.config import Config

    try:
        config = Config.load(args.config).apply_args(args)
        config.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.detect:
        return detect_screens(config)

    return DimmerApp(config).run()


if __name__ == '__main__':
    sys.exit(main())
