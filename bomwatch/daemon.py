"""Monitor daemon: keeps weather and radar images current until stopped.

Sleeps until the earliest feed or radar image is due. While radars are
monitored the sleep is capped so the FTP session never sits idle long enough
to be dropped.

Usage:
    bomwatch monitor
    bomwatch monitor --status
    bomwatch monitor --stop
"""

import json
import logging
import os
import signal
import sqlite3
import sys
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

from bomwatch.config.schema import AppConfig, DirsConfig
from bomwatch.ingest.bom_client import BomClient
from bomwatch.ingest.ftp_client import FtpClient
from bomwatch.ingest.staleness import format_duration
from bomwatch.models.common import utc_now
from bomwatch.pipeline.locations import Location, ids_to_locations, update_locations_if_due
from bomwatch.radar.acquisition import manage_radar_images, update_radar_images
from bomwatch.radar.frames import RadarImageManager, get_radar_image_managers
from bomwatch.storage.database import connect, run_migrations

logger = logging.getLogger(__name__)

DEFAULT_NAME = "monitor"


def pid_file(dirs: DirsConfig, name: str = DEFAULT_NAME) -> Path:
    return dirs.runtime / f"{name}.pid"


def state_file(dirs: DirsConfig, name: str = DEFAULT_NAME) -> Path:
    return dirs.state / f"{name}_state.json"


def build_bom_client(config: AppConfig) -> BomClient:
    c = config.client
    return BomClient(
        base_url=c.base_url,
        user_agent=c.user_agent,
        timeout=c.timeout,
        max_retries=c.max_retries,
        retry_base_delay=c.retry_base_delay,
    )


def build_ftp_client(config: AppConfig) -> FtpClient:
    f = config.ftp
    return FtpClient(
        host=f.host,
        port=f.port,
        user=f.user,
        password=f.password,
        timeout=f.timeout,
        list_retries=f.list_retries,
        list_retry_delay=f.list_retry_delay,
    )


def open_database(config: AppConfig) -> sqlite3.Connection:
    db_path = config.resolved_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    run_migrations(conn)
    return conn


class MonitorDaemon:
    """Refresh loop with crash recovery, backoff and signal handling."""

    def __init__(
        self,
        config: AppConfig,
        client: BomClient | None = None,
        ftp: FtpClient | None = None,
        name: str = DEFAULT_NAME,
    ):
        self.config = config
        self.client = client or build_bom_client(config)
        self.ftp = ftp or build_ftp_client(config)
        self.name = name
        self.pid_file = pid_file(config.dirs, name)
        self.state_file = state_file(config.dirs, name)
        self.monitor_radars = config.monitor.monitor_radars and bool(config.radars)
        self.conn: sqlite3.Connection | None = None
        self.locations: list[Location] = []
        self.managers: list[RadarImageManager] = []
        self._running = False
        self._consecutive_failures = 0
        self._total_cycles = 0
        self._total_successes = 0
        self._total_failures = 0
        self._started_at: str | None = None
        self._next_check: datetime | None = None

    def start(self) -> None:
        """Start the daemon loop. Setup failures propagate and end the process."""
        self._check_not_already_running()
        self._write_pid()
        self._setup_signals()
        self._running = True
        self._started_at = datetime.now(UTC).isoformat()

        logger.info("Monitor started, pid=%d", os.getpid())
        print(f"🔄 Monitor started (pid {os.getpid()})")
        print("   Stop: bomwatch monitor --stop")

        try:
            self._setup()
            self._loop()
        except KeyboardInterrupt:
            logger.info("Monitor interrupted by keyboard")
        finally:
            self._cleanup()

    def _setup(self) -> None:
        if not self.config.locations and not self.monitor_radars:
            raise ValueError("No locations or radars configured")
        self.conn = open_database(self.config)
        self.locations = ids_to_locations(
            self.conn, self.client, self.config.locations, self.config.weather
        )
        for location in self.locations:
            logger.info("Monitoring weather for %s", location.id)
        if self.monitor_radars:
            for radar in self.config.radars:
                self.managers.extend(
                    get_radar_image_managers(
                        self.conn,
                        self.ftp,
                        radar.id,
                        radar.opts,
                        self.config.image_dir(radar.opts),
                        self.config.dirs.runtime,
                    )
                )
            logger.info("Monitoring radar images for %s", ", ".join(map(str, self.managers)))

    def _loop(self) -> None:
        """Main loop: sleep until the next due time, backing off on failures."""
        monitor = self.config.monitor
        while self._running:
            next_check = self._run_one_cycle()

            if next_check is not None:
                self._consecutive_failures = 0
                self._next_check = next_check
                wait = max((next_check - utc_now()).total_seconds(), monitor.min_sleep_seconds)
                if self.managers:
                    wait = min(wait, monitor.radar_max_sleep_seconds)
            else:
                self._consecutive_failures += 1
                wait = min(
                    monitor.failure_backoff_seconds * (2 ** (self._consecutive_failures - 1)),
                    monitor.max_backoff_seconds,
                )
                logger.warning(
                    "Cycle failed (%d consecutive), backing off %ds",
                    self._consecutive_failures, wait,
                )

            self._save_state()
            logger.debug("Next check in %s", format_duration(timedelta(seconds=wait)))

            # Sleep in 1-second increments so we can respond to signals
            sleep_until = time.monotonic() + wait
            while self._running and time.monotonic() < sleep_until:
                time.sleep(min(1.0, max(0.0, sleep_until - time.monotonic())))

    def _run_one_cycle(self) -> datetime | None:
        """Refresh everything that is due. Returns the next check time, None on failure."""
        self._total_cycles += 1
        assert self.conn is not None
        try:
            next_checks = []
            if self.locations:
                next_checks.append(
                    update_locations_if_due(self.conn, self.client, self.locations)
                )
            if self.managers:
                next_checks.append(update_radar_images(self.conn, self.ftp, self.managers))
                manage_radar_images(self.conn, self.managers)
        except Exception:
            self._total_failures += 1
            logger.exception("Cycle #%d failed", self._total_cycles)
            return None
        self._total_successes += 1
        return min(next_checks)

    def _setup_signals(self) -> None:
        """Handle SIGTERM and SIGINT for graceful shutdown."""
        def _stop(signum: int, frame: object) -> None:
            sig_name = signal.Signals(signum).name
            logger.info("Received %s, shutting down gracefully...", sig_name)
            self._running = False

        signal.signal(signal.SIGTERM, _stop)
        signal.signal(signal.SIGINT, _stop)

    def _check_not_already_running(self) -> None:
        """Prevent duplicate monitors sharing one state directory."""
        if self.pid_file.exists():
            try:
                pid = int(self.pid_file.read_text().strip())
                os.kill(pid, 0)
                print(f"❌ Monitor already running (pid {pid}). Stop it first:")
                print("   bomwatch monitor --stop")
                sys.exit(1)
            except (ProcessLookupError, ValueError):
                # Stale PID file
                self.pid_file.unlink(missing_ok=True)
            except PermissionError:
                print(f"❌ Monitor may be running (pid {pid}), can't verify.")
                sys.exit(1)

    def _write_pid(self) -> None:
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.pid_file.write_text(str(os.getpid()))

    def _save_state(self) -> None:
        """Persist monitor stats for status reporting."""
        state = {
            "pid": os.getpid(),
            "started_at": self._started_at,
            "locations": [location.id for location in self.locations],
            "radars": [str(m) for m in self.managers],
            "total_cycles": self._total_cycles,
            "total_successes": self._total_successes,
            "total_failures": self._total_failures,
            "consecutive_failures": self._consecutive_failures,
            "next_check": self._next_check.isoformat() if self._next_check else None,
            "last_update": datetime.now(UTC).isoformat(),
        }
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(json.dumps(state, indent=2))

    def _cleanup(self) -> None:
        """Close connections and remove the PID file on exit."""
        self.ftp.close()
        for manager in self.managers:
            if manager.viewer is not None:
                manager.viewer.close()
        if self.conn is not None:
            self.conn.close()
            self.conn = None
        self.pid_file.unlink(missing_ok=True)
        self._save_state()
        logger.info(
            "Monitor stopped, %d cycles (%d ok, %d failed)",
            self._total_cycles, self._total_successes, self._total_failures,
        )
        print(
            f"⏹️  Monitor stopped, {self._total_cycles} cycles "
            f"({self._total_successes} ok, {self._total_failures} failed)"
        )


def stop_daemon(dirs: DirsConfig, name: str = DEFAULT_NAME) -> int:
    """Stop a running monitor by sending SIGTERM."""
    pid_path = pid_file(dirs, name)
    if not pid_path.exists():
        print("No monitor running (no PID file found)")
        return 1

    try:
        pid = int(pid_path.read_text().strip())
    except ValueError:
        print("Corrupt PID file, removing")
        pid_path.unlink(missing_ok=True)
        return 1

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        print(f"Monitor not running (stale pid {pid}), cleaning up")
        pid_path.unlink(missing_ok=True)
        state_file(dirs, name).unlink(missing_ok=True)
        return 0

    print(f"Stopping monitor (pid {pid})...")
    os.kill(pid, signal.SIGTERM)

    # Wait up to 60s for graceful shutdown
    for _ in range(60):
        time.sleep(1)
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            print("✅ Monitor stopped")
            pid_path.unlink(missing_ok=True)
            return 0

    print("⚠️  Monitor didn't stop in 60s, sending SIGKILL")
    os.kill(pid, signal.SIGKILL)
    pid_path.unlink(missing_ok=True)
    return 0


def daemon_status(dirs: DirsConfig, name: str = DEFAULT_NAME) -> int:
    """Print monitor status from the state file."""
    state_path = state_file(dirs, name)
    if not state_path.exists():
        print("No monitor state found")
        pid_path = pid_file(dirs, name)
        if pid_path.exists():
            try:
                pid = int(pid_path.read_text().strip())
                os.kill(pid, 0)
                print(f"  (but PID file exists: {pid}, process running)")
            except (ProcessLookupError, ValueError):
                print("  (stale PID file found)")
        return 1

    state = json.loads(state_path.read_text())
    pid = state.get("pid", "?")

    running = False
    try:
        os.kill(int(pid), 0)
        running = True
    except (ProcessLookupError, ValueError, TypeError):
        pass

    status_icon = "🟢" if running else "🔴"
    print(f"{status_icon} Monitor {'running' if running else 'stopped'}")
    print(f"  PID: {pid}")
    print(f"  Locations: {', '.join(state.get('locations', [])) or '-'}")
    print(f"  Radars: {', '.join(state.get('radars', [])) or '-'}")
    print(f"  Started: {state.get('started_at', '?')}")
    print(f"  Total cycles: {state.get('total_cycles', 0)}")
    print(f"  Successes: {state.get('total_successes', 0)}")
    print(f"  Failures: {state.get('total_failures', 0)}")
    print(f"  Consecutive failures: {state.get('consecutive_failures', 0)}")
    print(f"  Next check: {state.get('next_check') or '?'}")
    print(f"  Last update: {state.get('last_update', '?')}")
    return 0
