"""CLI entry point for glyphcam.

Provides the ``glyphcam`` console script, which renders a webcam as text in
the terminal.

Usage::

    # Default webcam, dense character set
    glyphcam

    # Simulated camera, block glyphs, colour, half scale
    glyphcam --mode digital_twin --charset blocks --color --scale 0.5

    # Show usable cameras and exit
    glyphcam --list-cameras

Exit codes:
    0  user quit (or --list-cameras finished)
    2  invalid configuration or camera backend unavailable
    130  interrupted with Ctrl+C

Module Structure:
    - ``main()`` - parse arguments, configure logging, run the UI
    - ``parse_args()`` - argparse definition
    - ``config_from_args()`` - Namespace to AppConfig
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from glyphcam.app.config import AppConfig, ConfigError
from glyphcam.drivers.cameras import CameraDriver, DriverInitError
from glyphcam.drivers.cameras.twin import TwinPattern
from glyphcam.drivers.config import DriverFactory
from glyphcam.glyphs.charsets import CharacterSet
from glyphcam.observability import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130
DEFAULT_LOG_FILE = "glyphcam.log"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments without the program name; ``sys.argv[1:]`` if None.

    Returns:
        Namespace whose attributes mirror AppConfig fields plus the logging
        options (log_file, log_level, json_logs) and list_cameras.

    Raises:
        SystemExit: On --help or invalid arguments.
    """
    parser = argparse.ArgumentParser(
        prog="glyphcam",
        description="Render a live camera feed as text glyphs in the terminal",
    )
    parser.add_argument("--camera", type=int, default=0, help="Camera index (default: 0)")
    parser.add_argument("--width", type=int, default=640, help="Capture width (default: 640)")
    parser.add_argument(
        "--height", type=int, default=480, help="Capture height (default: 480)"
    )
    parser.add_argument(
        "--fps", type=float, default=30.0, help="Capture frame rate cap (default: 30)"
    )
    parser.add_argument(
        "--tick-interval",
        type=float,
        default=0.016,
        help="Control loop tick in seconds (default: 0.016)",
    )
    parser.add_argument(
        "--render-interval",
        type=float,
        default=1 / 30,
        help="Minimum seconds between renders (default: 1/30)",
    )
    parser.add_argument(
        "--charset",
        type=str.lower,
        choices=[name.lower() for name in CharacterSet.names()],
        default="dense",
        help="Initial character set (default: dense)",
    )
    parser.add_argument(
        "--scale", type=float, default=1.0, help="Grid scale 0.1-2.0 (default: 1.0)"
    )
    parser.add_argument("--color", action="store_true", help="Start with colour enabled")
    parser.add_argument(
        "--mode",
        type=str,
        choices=["hardware", "digital_twin"],
        default="hardware",
        help=(
            "Driver mode: 'hardware' for real cameras (default), "
            "'digital_twin' for a simulated camera"
        ),
    )
    parser.add_argument(
        "--pattern",
        type=str.lower,
        choices=[p.value for p in TwinPattern],
        default=TwinPattern.GRADIENT.value,
        help="Digital twin test pattern (default: gradient)",
    )
    parser.add_argument(
        "--no-autostart",
        dest="autostart",
        action="store_false",
        help="Wait for SPACE before starting the camera",
    )
    parser.add_argument(
        "--stop-timeout",
        type=float,
        default=2.0,
        help="Longest wait for the camera to stop on exit (default: 2.0)",
    )
    parser.add_argument(
        "--force-stop-retries",
        type=int,
        default=3,
        help="Hardware stop attempts made by a force stop (default: 3)",
    )
    parser.add_argument(
        "--list-cameras", action="store_true", help="List usable cameras and exit"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=DEFAULT_LOG_FILE,
        help=f"Log destination while the UI runs (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Write logs as JSON lines")
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> AppConfig:
    """Build and validate an AppConfig from parsed arguments.

    Raises:
        ConfigError: A value is out of range.
    """
    config = AppConfig(
        camera_index=args.camera,
        width=args.width,
        height=args.height,
        target_fps=args.fps,
        tick_interval_s=args.tick_interval,
        render_interval_s=args.render_interval,
        charset=args.charset,
        scale=args.scale,
        color=args.color,
        stop_timeout_s=args.stop_timeout,
        force_stop_retries=args.force_stop_retries,
        driver_mode=args.mode,
        twin_pattern=args.pattern,
        autostart=args.autostart,
    )
    config.validate()
    return config


def _list_cameras(driver: CameraDriver) -> int:
    cameras = driver.list_cameras()
    if not cameras:
        print("No cameras found")
    for camera in cameras:
        print(f"{camera.index}: {camera.name}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point for glyphcam.

    Returns:
        Process exit code (see module docstring).

    Raises:
        SystemExit: On --help or argument parsing errors.
    """
    args = parse_args(argv)

    # The terminal belongs to curses from here on; logs go to the file.
    configure_logging(
        level=args.log_level,
        json_format=args.json_logs,
        log_file=args.log_file,
        force=True,
    )

    try:
        config = config_from_args(args)
    except ConfigError as e:
        logger.error("Invalid configuration", error=str(e))
        print(f"glyphcam: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        driver = DriverFactory(config.driver_config()).create_camera_driver()
        if args.list_cameras:
            return _list_cameras(driver)
    except DriverInitError as e:
        logger.error("Camera backend unavailable", error=str(e))
        print(f"glyphcam: {e}", file=sys.stderr)
        return EXIT_CONFIG

    from glyphcam.tui.screen import run_tui

    logger.info("Starting glyphcam", mode=config.driver_mode, camera_index=config.camera_index)
    try:
        run_tui(config, driver)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    logger.info("glyphcam exited")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
