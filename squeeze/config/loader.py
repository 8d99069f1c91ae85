import yaml
from pathlib import Path
from .models import AppConfig

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model.

    Malformed YAML and a non-mapping root both surface as ValueError naming
    the file, the same error type pydantic raises for bad values.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            where = f" (line {mark.line + 1})" if mark is not None else ""
            raise ValueError(f"Invalid YAML in {config_path}{where}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {config_path}")

    return AppConfig(**data)
