"""
SLA Configuration Manager
=========================

Loads breach thresholds from YAML and hot-reloads them with watchdog.

A reload that fails to parse or validate keeps the previous configuration.
"""

import threading
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from facilityops.core import ConfigurationException
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.sla.domain import SLAConfig

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Reloads the SLA config when its file is written or replaced."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def _matches(self, path: str) -> bool:
        return Path(path).resolve() == self.config_path.resolve()

    def on_modified(self, event):
        if not event.is_directory and self._matches(event.src_path):
            logger.info("SLA config file changed", extra={"path": event.src_path})
            self.config_manager.reload()

    def on_moved(self, event):
        # Editors that save via rename
        if not event.is_directory and self._matches(event.dest_path):
            logger.info("SLA config file replaced", extra={"path": event.dest_path})
            self.config_manager.reload()


class SLAConfigManager:
    """
    Thread-safe holder of the current SLAConfig.

    Readers go through `config`; the watchdog thread swaps in a new value
    under the lock.
    """

    def __init__(self, config: Optional[SLAConfig] = None):
        self._config: Optional[SLAConfig] = config
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAConfig:
        """Initial load. Missing file means defaults; an invalid file is an error."""
        self._path = Path(path)
        try:
            config = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError, TypeError) as exc:
            raise ConfigurationException(f"Invalid SLA config {self._path}: {exc}") from exc
        with self._lock:
            self._config = config
        logger.info(
            "SLA configuration loaded",
            extra={"path": str(self._path), "thresholds_hours": config.thresholds_hours}
        )
        return config

    @staticmethod
    def _load_from_file(path: Path) -> SLAConfig:
        if not path.exists():
            logger.warning("SLA config file not found, using defaults", extra={"path": str(path)})
            return SLAConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return SLAConfig(**data)

    def reload(self) -> bool:
        """Re-read the file; keeps the old config when the new one is invalid."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as exc:
            logger.error(
                "Failed to reload SLA config, keeping previous thresholds",
                extra={"path": str(self._path), "error": str(exc)}
            )
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA configuration reloaded", extra={"thresholds_hours": new_config.thresholds_hours})
        return True

    def start_watching(self) -> None:
        """
        Watch the config file's directory for changes.

        Skipped when the file does not exist or inotify is unavailable
        (some container runtimes).
        """
        if self._path is None:
            logger.info("SLA config not file-backed, not watching")
            return

        if not self._path.exists():
            logger.info("SLA config file absent, not watching", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                ConfigFileHandler(self, self._path),
                str(self._path.parent.resolve()),
                recursive=False
            )
            self._observer.start()
            logger.info("Watching SLA config file", extra={"path": str(self._path)})
        except OSError as exc:
            logger.warning("File watching not available, using static config", extra={"error": str(exc)})
            self._observer = None

    def stop_watching(self) -> None:
        """Safe to call when not watching."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def config(self) -> SLAConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("SLA configuration not loaded")
            return self._config
