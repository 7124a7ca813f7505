"""
Configuration for Printshop Orders.
Settings live in a YAML file at the project root; PRINTSHOP_CONFIG points
at another file.
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PRINTSHOP_CONFIG"
ENVIRONMENT_ENV_VAR = "PRINTSHOP_ENV"

REQUIRED_SECTIONS = ('general', 'marketplace')

MINUTE_MS = 60 * 1000


class Config:
    """Process-wide configuration, loaded once on first access."""

    _instance: Optional['Config'] = None
    _data: dict = {}
    _project_root: Path = None

    def __new__(cls, config_path: Optional[str] = None) -> 'Config':
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._project_root = Path(__file__).resolve().parents[2]
            instance._load(config_path)
            cls._instance = instance
        return cls._instance

    def _load(self, config_path: Optional[str] = None) -> None:
        path = Path(config_path or os.environ.get(CONFIG_ENV_VAR) or self._project_root / "config.yaml")
        if not path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path} "
                f"(copy config.example.yaml or set {CONFIG_ENV_VAR})"
            )

        with open(path, 'r', encoding='utf-8') as f:
            self._data = yaml.safe_load(f) or {}

        missing = [s for s in REQUIRED_SECTIONS if not isinstance(self._data.get(s), dict)]
        if missing:
            raise ValueError(f"Missing required config sections: {missing}")

        logger.info(f"Configuration loaded from {path}")

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded settings; the next access reads the file again."""
        cls._instance = None

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Nested lookup, e.g. config.get('queue', 'batch_size').
        Returns default when any key along the path is missing.
        """
        value = self._data
        for key in keys:
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value

    def get_int(self, *keys: str, default: int = 0) -> int:
        value = self.get(*keys, default=default)
        return int(value) if value is not None else default

    def get_float(self, *keys: str, default: float = 0.0) -> float:
        value = self.get(*keys, default=default)
        return float(value) if value is not None else default

    def get_bool(self, *keys: str, default: bool = False) -> bool:
        value = self.get(*keys, default=default)
        if isinstance(value, str):
            return value.strip().lower() in ('true', 'yes', '1', 'on')
        return bool(value)

    def get_list(self, *keys: str, default: list = None) -> list:
        value = self.get(*keys, default=default or [])
        return value if isinstance(value, list) else [value]

    def get_minutes_ms(self, *keys: str, default: int = 0) -> int:
        """Read a setting expressed in minutes, returned in milliseconds."""
        return int(self.get_float(*keys, default=default) * MINUTE_MS)

    def _resolve(self, name: str) -> Path:
        path = Path(name)
        return path if path.is_absolute() else self._project_root / path

    @property
    def project_root(self) -> Path:
        return self._project_root

    @property
    def data_dir(self) -> Path:
        """Directory holding the document store, created on demand."""
        path = self._resolve(self.get('general', 'data_dir', default='data'))
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.get('general', 'database', default='printshop.db')

    @property
    def log_path(self) -> Path:
        return self._resolve(self.get('general', 'log_file', default='printshop.log'))

    @property
    def environment(self) -> str:
        """Deployment environment; PRINTSHOP_ENV overrides general.environment."""
        return os.environ.get(ENVIRONMENT_ENV_VAR) or self.get('general', 'environment', default='production')

    @property
    def is_development(self) -> bool:
        return self.environment == 'development'


def get_config() -> Config:
    """Get the global config instance."""
    return Config()
