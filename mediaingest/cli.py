"""
mega-ingest command line.

    mega-ingest ingest ./photo.jpg -g /Photos/2026/
    mega-ingest serve --port 3000
    mega-ingest init
"""
import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .cli_progress import IngestProgressDisplay, render_configuration_summary
from .models import IngestConfig


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_ENV_FILE = Path(".env")


class CLIError(RuntimeError):
    """Bad CLI input or environment; reported as 'ERROR: ...' with exit code 1."""


def _resolve_log_level(debug: bool, silent: bool, log_level: Optional[str]) -> Optional[int]:
    if silent:
        return None
    if debug:
        return logging.DEBUG
    if log_level:
        return getattr(logging, log_level.upper(), logging.INFO)
    return None


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route logging through rich.

    Nothing is logged unless --debug or --log-level asks for it.

    Returns:
        Effective level name, or "silent"
    """
    from rich.logging import RichHandler

    level = _resolve_log_level(debug, silent, log_level)
    logging.disable(logging.NOTSET)

    if level is None:
        logging.basicConfig(handlers=[logging.NullHandler()], force=True)
        logging.disable(logging.CRITICAL)
        return "silent"

    handler = RichHandler(rich_tracebacks=True, markup=False, show_time=False, show_path=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)
    return logging.getLevelName(level)


def _normalize_dest(dest: Optional[str], file_name: str) -> Optional[str]:
    """
    Turn --dest into a remote file path.

    A value ending in '/' (or a bare folder like '/Photos') names the folder;
    the file keeps its own name.
    """
    if dest is None:
        return None
    value = dest.strip().replace("\\", "/")
    if value in {"", "/"}:
        return file_name
    if value.endswith("/") or not Path(value).suffix:
        return f"{value.strip('/')}/{file_name}"
    return value.lstrip("/")


def _unquote(value: str) -> str:
    for quote in ('"', "'"):
        if len(value) > 1 and value.startswith(quote) and value.endswith(quote):
            return value[1:-1]
    return value


def _iter_env_pairs(text: str) -> Iterator[Tuple[str, str]]:
    """KEY=VALUE pairs of a dotenv file; comments and 'export ' prefixes are skipped."""
    for line in map(str.strip, text.splitlines()):
        if not line or line[0] == "#":
            continue
        line = line.removeprefix("export ").lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if sep and key:
            yield key, _unquote(value.strip())


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.is_file():
        reason = "env file not found" if not path.exists() else "env path is not a file"
        raise CLIError(f"{reason}: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"cannot read {path}: {exc}") from exc

    for key, value in _iter_env_pairs(text):
        if override or key not in os.environ:
            os.environ[key] = value


def _build_config(workspace: Optional[Path]) -> IngestConfig:
    config = IngestConfig.from_env()
    if workspace is not None:
        config = replace(config, workspace_root=workspace)
    return config


async def _run_ingest(
    source: Path,
    dest: str,
    email: str,
    password: str,
    mode: str,
    workspace_root: Optional[Path],
) -> int:
    from .models import Credentials, UploadRequest
    from .orchestrator import IngestionPipeline
    from .services.transfer import DualArtifactUploader
    from .services.workspace import LocalWorkspace

    config = _build_config(workspace_root)
    workspace = LocalWorkspace(config.workspace_root).ensure()

    display = IngestProgressDisplay()
    pipeline = IngestionPipeline(
        workspace,
        config=config,
        uploader=DualArtifactUploader(progress_callback=display.on_transfer_progress),
    )
    pipeline.on_stage(display.on_stage)
    pipeline.on_finish(display.on_finish)

    try:
        staged_path = workspace.stage_file(source)
    except OSError as exc:
        raise CLIError(f"could not stage {source}: {exc}") from exc

    request = UploadRequest(
        credentials=Credentials(email=email, password=password),
        destination_path=dest,
        mode=mode,
        staged_path=staged_path,
        original_name=source.name,
    )
    result = await pipeline.run(request)
    return 0 if result.success else 1


def _cmd_ingest(args: argparse.Namespace) -> int:
    source = args.source.expanduser()
    if not source.is_file():
        raise CLIError(f"source is not a file: {source}")

    email = args.email or os.getenv("MEGA_EMAIL")
    password = args.password or os.getenv("MEGA_PASSWORD")
    if not (email and password):
        raise CLIError("MEGA credentials required (--email/--password or MEGA_EMAIL/MEGA_PASSWORD)")

    dest = _normalize_dest(args.dest, source.name)
    render_configuration_summary(
        {
            "File": source,
            "Destination": f"/{dest}",
            "Account": email,
            "Mode": args.mode,
            "Workspace": args.workspace or os.getenv("MEDIAINGEST_WORKSPACE") or ".",
            "Logging": args.effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_ingest(
                source=source,
                dest=dest,
                email=email,
                password=password,
                mode=args.mode,
                workspace_root=args.workspace,
            )
        )
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


def _cmd_init(args: argparse.Namespace) -> int:
    from .services.workspace import LocalWorkspace

    workspace = LocalWorkspace(_build_config(args.workspace).workspace_root).ensure()
    print(f"Workspace ready: {workspace.root.resolve()}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    uvicorn.run(
        create_app(config=_build_config(args.workspace)),
        host=args.host,
        port=args.port,
        log_config=None,
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mega-ingest",
        description="Convert a file and upload it, with its original, to MEGA.",
    )
    parser.add_argument("--workspace", type=Path, help="Local workspace root (MEDIAINGEST_WORKSPACE, default .)")
    parser.add_argument("--env-file", type=Path, help="dotenv file to load (default ./.env when present)")
    logging_opts = parser.add_mutually_exclusive_group()
    logging_opts.add_argument("--debug", action="store_true", help="Verbose logs")
    logging_opts.add_argument("--silent", action="store_true", help="No logs")
    logging_opts.add_argument("--log-level", metavar="LEVEL", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    ingest = commands.add_parser("ingest", help="Convert and upload one file")
    ingest.add_argument("source", type=Path, help="Local file")
    ingest.add_argument("-g", "--dest", required=True, help="Remote folder ('/Photos/') or file path ('/Photos/a.jpg')")
    ingest.add_argument("--email", help="MEGA account (default $MEGA_EMAIL)")
    ingest.add_argument("--password", help="MEGA password (default $MEGA_PASSWORD)")
    ingest.add_argument("--mode", default="upload", help="Operating mode; only 'upload' is accepted")
    ingest.set_defaults(handler=_cmd_ingest)

    serve = commands.add_parser("serve", help="Serve POST /mega over HTTP")
    serve.add_argument("--host", default=DEFAULT_HOST)
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve.set_defaults(handler=_cmd_serve)

    init = commands.add_parser("init", help="Create the workspace directories")
    init.set_defaults(handler=_cmd_init)

    return parser


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        env_file = args.env_file or (DEFAULT_ENV_FILE if DEFAULT_ENV_FILE.is_file() else None)
        if env_file is not None:
            _load_env_file(env_file)

        args.effective_log_mode = _setup_logging(args.debug, args.silent, args.log_level)

        if not getattr(args, "handler", None):
            parser.print_help()
            return 0
        return args.handler(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
