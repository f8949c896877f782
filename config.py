import os
import yaml

APP_VERSION = "1.0.0"
DEFAULT_DB_PATH = os.environ.get("GYMLOG_DB", "gym_logger.db")
DEFAULT_YAML_PATH = os.environ.get("GYMLOG_SETTINGS", "settings.yaml")


class YamlConfig:
    """Load and save application settings to a YAML file."""

    def __init__(self, path: str = DEFAULT_YAML_PATH) -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def save(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f, sort_keys=True)

    def update(self, **values) -> dict:
        """Merge ``values`` into the stored mapping and return the result."""
        data = self.load()
        data.update(values)
        self.save(data)
        return data
