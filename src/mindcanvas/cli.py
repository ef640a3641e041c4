"""MindCanvas CLI.

Usage:
    mindcanvas serve      — Start the camera + event streaming server
    mindcanvas config     — Print the effective configuration as YAML
    mindcanvas classify   — Classify a landmark JSON file into a gesture
"""

from __future__ import annotations

import importlib
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from mindcanvas.config import EngineConfig

app = typer.Typer(
    name="mindcanvas",
    help="✏️ Gesture drawing with emotion colors and attention tracking.",
    add_completion=False,
)


def _load_config(path: Optional[str]) -> EngineConfig:
    if path is None:
        return EngineConfig()
    if not Path(path).exists():
        typer.echo(f"❌ Config file not found: {path}", err=True)
        raise typer.Exit(1)
    try:
        return EngineConfig.from_yaml(path)
    except ValueError as e:
        typer.echo(f"❌ Invalid config: {e}", err=True)
        raise typer.Exit(1)


def load_factory(target: str):
    """Resolve ``package.module:callable`` to the callable."""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ValueError(f"expected 'module:callable', got {target!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    if not callable(factory):
        raise ValueError(f"{target} is not callable")
    return factory


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    host: Optional[str] = typer.Option(None, help="Bind address (overrides config)"),
    port: Optional[int] = typer.Option(None, help="Port (overrides config)"),
    camera: Optional[int] = typer.Option(None, help="Camera device index (overrides config)"),
    face_model: Optional[str] = typer.Option(
        None, "--face-model", help="Face model factory as module:callable"
    ),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the camera capture and WebSocket event server."""
    import uvicorn
    from mindcanvas.server import app as fastapi_app, state

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = _load_config(config)
    if host is not None:
        cfg.server.host = host
    if port is not None:
        cfg.server.port = port
    if camera is not None:
        cfg.server.camera_index = camera

    factory = None
    if face_model:
        try:
            factory = load_factory(face_model)
        except (ImportError, AttributeError, ValueError) as e:
            typer.echo(f"❌ Could not load face model factory: {e}", err=True)
            raise typer.Exit(1)
        typer.echo(f"🙂 Face model: {face_model}")
    else:
        typer.echo("ℹ️  No face model given; emotion and attention tracking are off")

    state.configure(cfg, face_model_factory=factory)
    state.autostart = True

    typer.echo(f"🚀 Starting MindCanvas server on {cfg.server.host}:{cfg.server.port}")
    uvicorn.run(fastapi_app, host=cfg.server.host, port=cfg.server.port, log_level=log_level)


@app.command(name="config")
def show_config(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    output: Optional[str] = typer.Option(None, "-o", help="Also write to this file"),
):
    """Print the effective configuration (defaults merged with the file)."""
    cfg = _load_config(config)
    typer.echo(cfg.to_yaml(output), nl=False)
    if output:
        typer.echo(f"💾 Saved to: {output}", err=True)


@app.command()
def classify(
    landmarks_file: str = typer.Argument(..., help="JSON file with 21 [x, y(, z)] landmarks"),
):
    """Classify one hand's landmarks into a raw drawing gesture."""
    from mindcanvas.classifier import GestureClassifier

    path = Path(landmarks_file)
    if not path.exists():
        typer.echo(f"❌ File not found: {landmarks_file}", err=True)
        raise typer.Exit(1)

    data = json.loads(path.read_text())
    if isinstance(data, dict):
        data = data.get("landmarks", [])

    try:
        label = GestureClassifier().classify(data)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    typer.echo(label.value)


def main():
    app()


if __name__ == "__main__":
    main()
