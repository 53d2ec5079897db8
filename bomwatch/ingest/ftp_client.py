"""Bureau of Meteorology radar FTP client."""

import ftplib
import io
import logging
import posixpath
import time

from bomwatch.exceptions import RemoteFileNotFoundError
from bomwatch.ingest.radar_filenames import build_feature_layer_filename
from bomwatch.models.common import RadarId
from bomwatch.models.radar import (
    LEGEND_IDS,
    RadarImageFeature,
    RadarImageFeatureLayer,
    RadarImageLegend,
    RadarType,
    radar_type_spec,
)

logger = logging.getLogger(__name__)

FTP_HOST = "ftp.bom.gov.au"
RADAR_DATA_DIR = "/anon/gen/radar"
RADAR_TRANSPARENCIES_DIR = "/anon/gen/radar_transparencies"


class FtpClient:
    """Anonymous FTP session, opened lazily on first use."""

    def __init__(
        self,
        host: str = FTP_HOST,
        port: int = 21,
        user: str = "anonymous",
        password: str = "guest",
        timeout: float = 30.0,
        list_retries: int = 5,
        list_retry_delay: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout
        self.list_retries = list_retries
        self.list_retry_delay = list_retry_delay
        self._ftp: ftplib.FTP | None = None

    @property
    def connected(self) -> bool:
        return self._ftp is not None

    def _session(self) -> ftplib.FTP:
        if self._ftp is None:
            logger.debug("Connecting to ftp://%s:%d", self.host, self.port)
            ftp = ftplib.FTP(timeout=self.timeout)
            ftp.connect(self.host, self.port)
            ftp.login(self.user, self.password)
            self._ftp = ftp
        return self._ftp

    def _get_buf(self, path: str) -> bytes:
        logger.debug("Downloading ftp://%s%s", self.host, path)
        buf = io.BytesIO()
        try:
            self._session().retrbinary(f"RETR {path}", buf.write)
        except ftplib.error_perm as e:
            if str(e).startswith("550"):
                raise RemoteFileNotFoundError(path) from e
            self._discard_session()
            raise
        except ftplib.all_errors:
            self._discard_session()
            raise
        return buf.getvalue()

    def _discard_session(self) -> None:
        """Forget a session that failed so the next call reconnects."""
        if self._ftp is not None:
            logger.debug("Discarding FTP session to %s", self.host)
            self._ftp.close()
            self._ftp = None

    def keepalive(self) -> None:
        """Send NOOP so an idle session isn't dropped. Does nothing before login."""
        if self._ftp is None:
            return
        try:
            self._ftp.voidcmd("NOOP")
        except ftplib.all_errors:
            self._discard_session()
            raise

    def close(self) -> None:
        if self._ftp is None:
            return
        try:
            self._ftp.quit()
        except ftplib.all_errors as e:
            logger.debug("Error closing FTP session: %s", e)
            self._ftp.close()
        finally:
            self._ftp = None

    def list_files(self, path: str) -> list[str]:
        """Basenames of the entries in a remote directory, retried on failure."""
        logger.debug("Listing directory ftp://%s%s", self.host, path)
        attempt = 0
        while True:
            try:
                names = self._session().nlst(path)
                break
            except ftplib.all_errors as e:
                self._discard_session()
                attempt += 1
                if attempt > self.list_retries:
                    logger.error(
                        "Failed to list ftp://%s%s after %d attempts", self.host, path, attempt
                    )
                    raise
                logger.error(
                    "Error listing ftp://%s%s: %s. Retry in %.0f seconds",
                    self.host, path, e, self.list_retry_delay,
                )
                time.sleep(self.list_retry_delay)
        return [posixpath.basename(n) for n in names]

    def list_radar_data_layers(self) -> list[str]:
        return [n for n in self.list_files(RADAR_DATA_DIR) if n.endswith(".png")]

    def get_radar_data_png(self, filename: str) -> bytes:
        return self._get_buf(f"{RADAR_DATA_DIR}/{filename}")

    def get_radar_legends(self) -> list[RadarImageLegend]:
        return [
            RadarImageLegend(
                legend_type=legend_type,
                png_buf=self._get_buf(f"{RADAR_TRANSPARENCIES_DIR}/IDR.legend.{legend_id}.png"),
            )
            for legend_type, legend_id in LEGEND_IDS.items()
        ]

    def get_radar_feature_layers(
        self,
        radar_id: RadarId,
        radar_type: RadarType,
        features: list[RadarImageFeature] | None = None,
    ) -> list[RadarImageFeatureLayer]:
        """Feature overlays for a radar, at the radar type's effective size.

        Overlays missing from the server are skipped with a warning.
        """
        size = radar_type_spec(radar_type).size
        layers = []
        for feature in features or list(RadarImageFeature):
            filename = build_feature_layer_filename(radar_id, size, feature)
            try:
                png_buf = self._get_buf(f"{RADAR_TRANSPARENCIES_DIR}/{filename}")
            except RemoteFileNotFoundError:
                logger.warning("Feature layer %s is not available, skipping", filename)
                continue
            layers.append(
                RadarImageFeatureLayer(
                    radar_id=radar_id,
                    size=size,
                    feature=feature,
                    filename=filename,
                    png_buf=png_buf,
                )
            )
        return layers
