#!/usr/bin/env python3
"""
LibreFollow - Main Application
Headless follower for a self-hosted LibreLinkUp glucose server

Features:
- Fetch on every wall-clock minute boundary
- Live countdowns (next update, sensor warm-up)
- Sensor grace period tracking
- YAML + .env configuration

Version: 1.0.0
"""

import argparse
import logging
import signal
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from libre_follow import FollowSession, __version__
from libre_follow.data.models import DisplayState
from libre_follow.utils.config_loader import ConfigError, ConfigLoader, FollowSettings
from libre_follow.utils.logger import setup_logger


project_root = Path(__file__).parent


class FollowMonitorSystem:
    """
    Main controller for the headless follower

    Loads configuration, runs one FollowSession and logs every change of
    the reading or the sensor state at INFO; countdown ticks go to DEBUG.
    """

    def __init__(self, config_file: str, env_file: str):
        self.logger: Optional[logging.Logger] = None
        self.loader = ConfigLoader(config_file=config_file, env_file=env_file)
        self.settings: Optional[FollowSettings] = None
        self.session: Optional[FollowSession] = None
        self.running: bool = False
        self._stop_event = threading.Event()
        self._last_key = ""

    # ═══════════════════════════════════════════════════════════════════
    # INITIALIZATION
    # ═══════════════════════════════════════════════════════════════════

    def initialize(self, server_url: Optional[str] = None, use_mmol: Optional[bool] = None,
                   log_level: Optional[str] = None) -> bool:
        """
        Load configuration and build the session

        Args:
            server_url: Command-line override of server.base_url
            use_mmol: Command-line override of server.use_mmol
            log_level: Command-line override of logging.level

        Returns:
            bool: True if successful, False otherwise
        """
        try:
            self.loader.load_config()
        except ConfigError as e:
            print(f"❌ Failed to load configuration: {e}")
            return False

        if server_url:
            self.loader.set('server.base_url', server_url)
        if use_mmol is not None:
            self.loader.set('server.use_mmol', use_mmol)

        self.logger = setup_logger(
            logging_config=self.loader.get_logging_config(),
            log_level=log_level,
        )
        self.logger.info("=" * 70)
        self.logger.info(f"Starting LibreFollow v{__version__}")
        self.logger.info("=" * 70)

        try:
            self.settings = self.loader.get_follow_settings()
        except ConfigError as e:
            self.logger.error(f"❌ {e}")
            return False

        self.session = FollowSession.from_settings(self.settings)
        self.session.subscribe(self._on_state)
        return True

    # ═══════════════════════════════════════════════════════════════════
    # START & LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════

    def run(self) -> bool:
        """
        Run until a signal arrives

        Returns:
            bool: True if the session ran and shut down cleanly
        """
        try:
            self.running = True
            self.session.start(self.settings.server_url, self.settings.use_mmol)
            while not self._stop_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            self.logger.info("⚠️  Received keyboard interrupt (Ctrl+C)")
        except Exception as e:
            self.logger.error(f"❌ System error: {e}", exc_info=True)
            return False
        finally:
            self.shutdown()
        return True

    def shutdown(self):
        if not self.running:
            return
        self.running = False
        self._stop_event.set()
        if self.session:
            self.session.stop()
        self.logger.info(f"✅ Shutdown completed at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    def signal_handler(self, signum, frame):
        """
        Handle system signals for graceful shutdown

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        signal_names = {
            signal.SIGINT: "SIGINT (Ctrl+C)",
            signal.SIGTERM: "SIGTERM"
        }
        if self.logger:
            self.logger.info(f"⚠️  Received {signal_names.get(signum, f'Signal {signum}')}")
        self._stop_event.set()

    # ═══════════════════════════════════════════════════════════════════
    # STATE OUTPUT
    # ═══════════════════════════════════════════════════════════════════

    def _on_state(self, state: DisplayState):
        line = describe_state(state)
        # Countdowns change every second and alone only make a debug line
        key = describe_state(state.patch(sensor_ready_countdown=None))
        if key != self._last_key:
            self._last_key = key
            self.logger.info(line)
        else:
            self.logger.debug(f"{line} | Next update in {state.next_update_countdown}")


def describe_state(state: DisplayState) -> str:
    """One status line for the parts of the state a reader cares about"""
    patient = state.patient_display or "?"
    if state.in_grace_period:
        countdown = state.sensor_ready_countdown or "Calculating..."
        return f"[{patient}] Sensor ready in: {countdown}"
    if state.is_loading:
        return f"[{patient}] Loading... (is the server running?)"

    arrow = f" {state.trend_arrow}" if state.trend_arrow else ""
    parts = [
        f"[{patient}] {state.measurement_value} {state.unit_label}{arrow}",
        f"({state.color_class.value})",
        f"at {state.reading_time_display}",
    ]
    if state.sensor.sensor_label:
        parts.append(f"| Sensor type: {state.sensor.sensor_label}")
    if state.sensor_expiry_text:
        parts.append(f"| {state.sensor_expiry_text}")
    return " ".join(parts)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LibreFollow headless follower")
    parser.add_argument("--config", default=str(project_root / "config" / "app_config.yaml"),
                        help="Path to the YAML configuration file")
    parser.add_argument("--env-file", default=str(project_root / ".env"),
                        help="Path to the .env file")
    parser.add_argument("--server-url", default=None,
                        help="Follow server base URL (overrides config)")
    parser.add_argument("--mmol", dest="use_mmol", action="store_true", default=None,
                        help="Show mmol/L instead of mg/dL")
    parser.add_argument("--mgdl", dest="use_mmol", action="store_false", default=None,
                        help="Show mg/dL (overrides config)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    return parser.parse_args(argv)


# ═══════════════════════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═══════════════════════════════════════════════════════════════════

def main(argv=None) -> int:
    """
    Main entry point for LibreFollow

    Usage:
        python main.py --server-url https://192.168.0.10:8443 [--mmol]

    Environment Variables:
        LIBRE_FOLLOW_SERVER_URL: Follow server base URL
        LIBRE_FOLLOW_USE_MMOL: 1/true/yes/on to show mmol/L
    """
    args = parse_args(argv)
    system = FollowMonitorSystem(config_file=args.config, env_file=args.env_file)

    if not system.initialize(server_url=args.server_url, use_mmol=args.use_mmol,
                             log_level=args.log_level):
        return 1

    signal.signal(signal.SIGINT, system.signal_handler)
    signal.signal(signal.SIGTERM, system.signal_handler)

    return 0 if system.run() else 1


if __name__ == "__main__":
    sys.exit(main())
