"""Loop radar frames in an external mpv player, controlled over its IPC socket."""

import json
import logging
import socket
import subprocess
import time
from pathlib import Path

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 10
CONNECT_DELAY = 0.02


class MpvRadarViewer:
    """One mpv process per radar/type pair, reused across refreshes."""

    def __init__(self, label: str, socket_dir: Path, frame_delay_ms: int = 200):
        self.label = label
        self.socket_path = socket_dir / f"{label}.sock"
        self.frame_delay_ms = frame_delay_ms
        self._process: subprocess.Popen | None = None

    @property
    def running(self) -> bool:
        if self._process is None:
            return False
        code = self._process.poll()
        if code is not None:
            logger.warning("mpv %s exited with code %d", self.socket_path, code)
            self._process = None
            return False
        return True

    def open_images(self, paths: list[Path], args: list[str]) -> None:
        """Show `paths` as the playlist, starting mpv if it isn't running."""
        if not paths:
            logger.warning("No radar images to show for %s", self.label)
            return
        if not self.running:
            self._start(paths, args)
            return
        commands = [["playlist-clear"], ["loadfile", str(paths[0]), "replace"]]
        commands += [["loadfile", str(p), "append"] for p in paths[1:]]
        self._send(commands)

    def _start(self, paths: list[Path], args: list[str]) -> None:
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        app_id = f"mpv-radar-{self.label}"
        cmd = [
            "mpv",
            f"--input-ipc-server={self.socket_path}",
            f"--wayland-app-id={app_id}",
            f"--x11-name={app_id}",
            f"--image-display-duration={self.frame_delay_ms / 1000}",
            "--loop-file=no",
            *args,
            *(str(p) for p in paths),
        ]
        logger.debug("Starting %s", " ".join(cmd[:6]))
        self._process = subprocess.Popen(
            cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )

    def _connect(self) -> socket.socket:
        last_error: OSError | None = None
        for _ in range(CONNECT_ATTEMPTS):
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                sock.connect(str(self.socket_path))
                return sock
            except OSError as e:
                sock.close()
                last_error = e
                time.sleep(CONNECT_DELAY)
        raise ConnectionError(f"Failed to connect to mpv at {self.socket_path}") from last_error

    def _send(self, commands: list[list[str]]) -> None:
        with self._connect() as sock:
            payload = "".join(json.dumps({"command": c}) + "\n" for c in commands)
            sock.sendall(payload.encode())

    def close(self) -> None:
        if self._process is not None and self._process.poll() is None:
            self._process.terminate()
        self._process = None
