import typer
from pathlib import Path
from typing import List, Optional, Tuple

from squeeze.config.loader import load_config
from squeeze.config.models import AppConfig
from squeeze.config.strategy import (
    default_settings,
    describe_settings,
    is_field_editable,
    select_preset,
    select_strategy,
    set_field,
    validate_settings,
)
from squeeze.domain.errors import DuplicateActiveTask, SettingsValidationError
from squeeze.domain.models import MediaKind
from squeeze.domain.settings import AnySettings, QualitySettings
from squeeze.infrastructure.engine import CompressionEngine
from squeeze.infrastructure.event_bus import EventBus
from squeeze.infrastructure.ffmpeg import FFmpegEngine
from squeeze.infrastructure.ffprobe import FFprobeAdapter
from squeeze.infrastructure.logging import setup_logging
from squeeze.infrastructure.simulated import SimulatedEngine
from squeeze.pipeline.dispatcher import JobDispatcher, default_output_path
from squeeze.pipeline.progress import ProgressBridge
from squeeze.pipeline.registry import TaskRegistry
from squeeze.ui.dashboard import TaskDashboard, truncate_error
from squeeze.ui.manager import UIManager
from squeeze.ui.state import UIState

DEFAULT_CONFIG_PATH = Path("conf/squeeze.yaml")

app = typer.Typer(help="squeeze - compress video, audio and image files with ffmpeg")


def _fail(message: str, code: int = 1):
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _load_app_config(config_path: Path) -> AppConfig:
    """Loads YAML config; a missing default file means built-in defaults."""
    try:
        return load_config(config_path)
    except FileNotFoundError:
        if config_path == DEFAULT_CONFIG_PATH:
            return AppConfig()
        raise


def build_engine(config: AppConfig, bus: EventBus) -> CompressionEngine:
    if config.general.engine == "simulated":
        return SimulatedEngine(bus, config.simulation)
    ffprobe = FFprobeAdapter(config.ffmpeg.ffprobe_path)
    return FFmpegEngine(bus, config.ffmpeg, ffprobe=ffprobe)


def _apply_fields(settings: AnySettings, fields: List[Tuple[str, object]]) -> AnySettings:
    """Applies CLI field overrides; any refused edit is a usage error."""
    for key, value in fields:
        if value is None:
            continue
        if not is_field_editable(key, settings):
            gated = key in type(settings).model_fields and not getattr(settings, "custom_overrides", True)
            hint = " (needs --custom)" if gated else ""
            _fail(f"{key.replace('_', '-')} cannot be set for {describe_settings(settings)}{hint}")
        updated = set_field(key, value, settings)
        if updated is settings:
            _fail(f"Invalid value for {key.replace('_', '-')}: {value}")
        settings = updated
    return settings


def _pair_outputs(inputs: List[Path], output: Optional[Path], suffix: str) -> List[Tuple[str, str]]:
    if output is not None and len(inputs) > 1:
        _fail("--output can only be used with a single input file")
    if output is not None:
        return [(str(inputs[0]), str(output))]
    return [(str(path), default_output_path(path, suffix)) for path in inputs]


def run_jobs(
    kind: MediaKind,
    inputs: List[Path],
    output: Optional[Path],
    settings: AnySettings,
    config: AppConfig,
) -> int:
    """Submits one job per input, shows the live table, returns the exit code."""
    try:
        validate_settings(kind, settings)
    except SettingsValidationError as exc:
        _fail(str(exc))

    if config.general.engine != "simulated":
        missing = [str(path) for path in inputs if not path.exists()]
        if missing:
            _fail(f"Input does not exist: {', '.join(missing)}")

    jobs = _pair_outputs(inputs, output, config.general.output_suffix)

    log_dir = Path(jobs[0][1]).parent
    log_path_value = Path(config.general.log_path) if config.general.log_path else None
    logger = setup_logging(
        log_dir,
        debug=config.general.debug,
        log_path=log_path_value,
        log_name=config.general.log_name,
        run_context={"kind": kind.value, "inputs": len(jobs), "engine": config.general.engine},
    )
    logger.info(f"Settings: {describe_settings(settings)}")
    logger.info(f"Config: max_workers={config.general.max_workers}, debug={config.general.debug}")

    bus = EventBus()
    registry = TaskRegistry()
    ui_state = UIState()
    ui_state.ui_title = "SQUEEZE - demo" if config.general.engine == "simulated" else "SQUEEZE"
    ui_state.settings_summary = f"{kind.value}: {describe_settings(settings)}"
    ui_manager = UIManager(bus, ui_state)

    engine = build_engine(config, bus)
    dashboard = TaskDashboard(registry, ui_state)
    skipped: List[str] = []
    outcomes = []

    try:
        with ProgressBridge(bus, registry) as bridge:
            dispatcher = JobDispatcher(
                registry,
                engine,
                bus,
                max_workers=config.general.max_workers,
                output_suffix=config.general.output_suffix,
            )
            with dashboard:
                try:
                    futures = []
                    for input_path, output_path in jobs:
                        try:
                            futures.append(dispatcher.submit(kind, input_path, output_path, settings))
                        except DuplicateActiveTask as exc:
                            skipped.append(exc.task_id)
                    outcomes = [future.result() for future in futures]
                except KeyboardInterrupt:
                    dispatcher.shutdown(wait=False, cancel_pending=True)
                    raise
                dispatcher.shutdown(wait=True)
                bridge.flush()
    finally:
        ui_manager.close()

    for task_id in skipped:
        typer.secho(f"Already queued, skipped: {task_id}", fg=typer.colors.YELLOW)

    failed = [outcome for outcome in outcomes if not outcome.succeeded]
    for outcome in failed:
        typer.secho(f"✗ {outcome.task_id}: {truncate_error(outcome.message)}", fg=typer.colors.RED, err=True)
    done = len(outcomes) - len(failed)
    color = typer.colors.GREEN if not failed else typer.colors.YELLOW
    typer.secho(f"Finished: {done} completed, {len(failed)} failed, {len(skipped)} skipped", fg=color)
    logger.info(f"squeeze finished: completed={done}, failed={len(failed)}, skipped={len(skipped)}")
    return 2 if failed else 0


def _prepare(config_path: Path, demo: bool, workers: Optional[int], log_path: Optional[Path], debug: bool) -> AppConfig:
    try:
        config = _load_app_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        _fail(str(exc))
    # Apply CLI overrides
    if demo:
        config.general.engine = "simulated"
    if workers is not None:
        if workers < 1:
            _fail("--workers must be at least 1")
        config.general.max_workers = workers
    if log_path is not None:
        config.general.log_path = str(log_path)
    if debug:
        config.general.debug = True
    return config


def _execute(kind: MediaKind, inputs: List[Path], output: Optional[Path], settings: AnySettings, config: AppConfig):
    try:
        code = run_jobs(kind, inputs, output, settings, config)
    except KeyboardInterrupt:
        typer.secho("\n✓ Compression stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)
    if code:
        raise typer.Exit(code=code)


@app.command()
def video(
    inputs: List[Path] = typer.Argument(..., help="Video files to compress"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (single input only)"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to YAML config"),
    demo: bool = typer.Option(False, "--demo", help="Simulate compression (no file IO)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Override number of parallel jobs"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Log file path"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
    strategy: Optional[str] = typer.Option(None, "--strategy", "-s", help="quality, variable-bitrate, constant-bitrate, scale, target-size"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Quality preset: small, balanced, high"),
    custom: bool = typer.Option(False, "--custom", help="Enable custom resolution/CRF/audio overrides"),
    crf: Optional[int] = typer.Option(None, "--crf", help="Constant rate factor (0-51)"),
    resolution: Optional[str] = typer.Option(None, "--resolution", help="480p, 720p, 1080p, original"),
    audio_quality: Optional[str] = typer.Option(None, "--audio-quality", help="low, medium, high"),
    bitrate: Optional[int] = typer.Option(None, "--bitrate", help="Target bitrate in kbps (constant-bitrate)"),
    scale: Optional[float] = typer.Option(None, "--scale", help="Scale percent (scale strategy)"),
    target_size: Optional[float] = typer.Option(None, "--target-size", help="Target size in MB (target-size strategy)"),
):
    """Compress video files."""
    config = _prepare(config_path, demo, workers, log_path, debug)

    settings = default_settings(MediaKind.VIDEO, config.defaults)
    try:
        if strategy is not None:
            settings = select_strategy(strategy, settings, preset=preset)
        elif preset is not None:
            settings = select_preset(preset, settings)
    except ValueError as exc:
        _fail(str(exc))
    if preset is not None and not isinstance(settings, QualitySettings):
        _fail("--preset only applies to the quality strategy")

    if custom:
        settings = set_field("custom_overrides", True, settings)
    settings = _apply_fields(settings, [
        ("resolution", resolution),
        ("crf", crf),
        ("audio_quality", audio_quality),
        ("target_bitrate_kbps", bitrate),
        ("scale_percent", scale),
        ("target_size_mb", target_size),
    ])
    _execute(MediaKind.VIDEO, inputs, output, settings, config)


@app.command()
def audio(
    inputs: List[Path] = typer.Argument(..., help="Audio files to compress"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (single input only)"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to YAML config"),
    demo: bool = typer.Option(False, "--demo", help="Simulate compression (no file IO)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Override number of parallel jobs"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Log file path"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
    quality: Optional[str] = typer.Option(None, "--quality", "-q", help="low, medium, high"),
):
    """Compress audio files."""
    config = _prepare(config_path, demo, workers, log_path, debug)
    settings = default_settings(MediaKind.AUDIO, config.defaults)
    settings = _apply_fields(settings, [("audio_quality", quality)])
    _execute(MediaKind.AUDIO, inputs, output, settings, config)


@app.command()
def image(
    inputs: List[Path] = typer.Argument(..., help="Image files to compress"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (single input only)"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to YAML config"),
    demo: bool = typer.Option(False, "--demo", help="Simulate compression (no file IO)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Override number of parallel jobs"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Log file path"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Image quality (0-100)"),
):
    """Compress still images."""
    config = _prepare(config_path, demo, workers, log_path, debug)
    settings = default_settings(MediaKind.IMAGE, config.defaults)
    settings = _apply_fields(settings, [("quality", quality)])
    _execute(MediaKind.IMAGE, inputs, output, settings, config)


if __name__ == "__main__":
    app()
