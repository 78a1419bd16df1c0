from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, NoReturn

import typer
from rich import print

from postmortem import __version__
from postmortem.core.compile_config import load_compile_config
from postmortem.core.config import settings
from postmortem.errors import CompileError
from postmortem.logging_config import setup_logging
from postmortem.services.compile.driver import convert as convert_collection
from postmortem.services.storage.filesystem import LocalFileSystem, RetryingFileSystem

app = typer.Typer(add_completion=False, help="Convert Postman collections to Mocha/Supertest tests")


# ============================================================
# 小工具：日志
# ============================================================
def _info(msg: str) -> None:
    print(f"[cyan][PM][/cyan] {msg}")


def _ok(msg: str) -> None:
    print(f"[green][PM][OK][/green] {msg}")


def _warn(msg: str) -> None:
    print(f"[yellow][PM][WARN][/yellow] {msg}")


def _fail(msg: str, code: int = 1) -> NoReturn:
    print(f"[red][PM][FAIL][/red] {msg}")
    raise typer.Exit(code)


@app.command()
def convert(
    collection: Path = typer.Option(..., "--collection", "-c", help="Path to Postman collection JSON file"),
    output: Path = typer.Option(
        Path(settings.OUTPUT_DIR), "--output", "-o", help="Output directory for the generated test files"
    ),
    environment: Optional[Path] = typer.Option(
        None, "--environment", "-e", help="Path to Postman environment JSON file (optional)"
    ),
    setup: Optional[bool] = typer.Option(None, "--setup/--no-setup", help="Create (or skip) setup.js"),
    flat: Optional[bool] = typer.Option(
        None, "--flat/--nested", help="Generate all test files in output directory (ignore folder structure)"
    ),
    enhanced: Optional[bool] = typer.Option(
        None, "--enhanced/--plain", help="Generate tests with timing and generic success assertions"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML file with default compile options"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    silent: bool = typer.Option(False, "--silent", help="Suppress all output except errors"),
):
    """Compile a collection into a tree of *.test.js files plus a shared setup.js."""
    level = "DEBUG" if debug else ("ERROR" if silent else settings.LOG_LEVEL)
    setup_logging(level, settings.LOG_FILE)

    options = load_compile_config(config)
    overrides = {"emit_setup": setup, "flatten": flat, "enhanced": enhanced}
    options = options.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    fs = RetryingFileSystem(
        LocalFileSystem(),
        max_retries=settings.FS_MAX_RETRIES,
        base_delay_s=settings.FS_RETRY_BASE_DELAY_S,
        max_delay_s=settings.FS_RETRY_MAX_DELAY_S,
    )

    if not silent:
        _info(f"Collection: {collection.resolve()}")
        _info(f"Output: {output.resolve()}")
        if environment:
            _info(f"Environment: {environment.resolve()}")

    try:
        result = convert_collection(collection, output, environment, options=options, fs=fs)
    except CompileError as e:
        logging.getLogger("postmortem").debug("conversion failed", exc_info=True)
        _fail(f"Conversion failed: {e}")

    if silent:
        return

    for warning in result.warnings:
        _warn(warning)
    _ok("Conversion completed successfully!")
    _info(f"Generated {result.files} test files in {output}")
    if result.folders > 0:
        _info(f"Created {result.folders} folders")
    _info(f"Base URL: {result.base_url}")
    if result.environment:
        _info(f"Environment variables: {len(result.environment)}")
    if result.fallbacks:
        _info(f"{result.fallbacks} request(s) fell back to the default status assertion")


@app.command()
def version():
    """Print version."""
    print(__version__)


@app.command()
def serve(host: str = "127.0.0.1", port: int = 8000):
    """Run the compile HTTP API."""
    import uvicorn

    uvicorn.run("postmortem.main:app", host=host, port=port)


if __name__ == "__main__":
    app()
