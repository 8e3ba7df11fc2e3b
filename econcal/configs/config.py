# econcal/configs/config.py
import yaml
from pathlib import Path
from functools import lru_cache


class Config:
    """
    Configuration of the calendar sources and quality checks.
    """

    # This points to econcal/configs/
    CONFIG_DIR = Path(__file__).parent.resolve()

    INGESTION_CONFIG_PATH = CONFIG_DIR / "ingestion.yaml"

    @classmethod
    @lru_cache
    def load_ingestion_config(cls, path: Path | None = None) -> dict:
        """Loads the YAML configuration for calendar sources (packaged file by default)."""
        return load_yaml_config(Path(path) if path else cls.INGESTION_CONFIG_PATH)


def load_yaml_config(path: Path) -> dict:
    """
    Read and sanity-check an ingestion config file.

    Raises:
        FileNotFoundError: Missing file
        ValueError: Malformed structure
    """
    if not path.exists():
        raise FileNotFoundError(f"Missing config at {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config at {path} must be a mapping")
    sources = data.get("sources", {})
    if not isinstance(sources, dict):
        raise ValueError(f"'sources' in {path} must be a mapping")
    for source_id, block in sources.items():
        if block is not None and not isinstance(block, dict):
            raise ValueError(f"Source '{source_id}' in {path} must be a mapping")
    return data
