import logging
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_LOG_NAME = "squeeze.log"

def setup_logging(
    log_dir: Path,
    debug: bool = False,
    log_path: Optional[Path] = None,
    log_name: str = DEFAULT_LOG_NAME,
    run_context: Optional[Mapping[str, object]] = None,
) -> logging.Logger:
    """
    Setup logging for one squeeze run.

    The log file sits next to the compressed outputs unless log_path is given.
    Each run starts with a RUN_START line carrying run_context as key=value
    pairs, so runs appended to the same file can be told apart.

    Args:
        log_dir: Directory that receives the log file (usually the first output's folder)
        debug: If True, enable DEBUG level logging (progress events, ffmpeg commands)
        log_path: Optional path to log file (overrides log_dir and log_name)
        log_name: File name used inside log_dir
        run_context: Values describing the run (kind, engine, inputs, ...)
    """
    log_file = Path(log_path) if log_path else (Path(log_dir) / log_name)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'})")
    if run_context:
        fields = " ".join(f"{key}={value}" for key, value in run_context.items())
        logger.info(f"RUN_START: {fields}")

    return logger
