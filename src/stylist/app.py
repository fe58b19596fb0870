"""Application bootstrap for the Language Stylist desktop tool."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_args, get_origin, get_type_hints

from .ai.client import AIClient, ClientSettings
from .ai.errors import ClipboardEmptyError, ConfigMissingError, ErrorCode, StylistError
from .ai.transforms import ChatTransport
from .services.clipboard import Clipboard, QtClipboard, StaticClipboard, read_source_text
from .services.session_config import SessionConfigStore
from .services.settings import Settings, SettingsStore, redact_secret
from .services.styles import StyleLoader
from .ui.domain import PipelineOptions, SessionManager
from .ui.models.tab_models import Style, TabStatus, TabView
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_FATAL_DIALOG_MS = 3000


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def require_api_key(settings: Settings) -> None:
    if not (settings.api_key or "").strip():
        raise ConfigMissingError()


def build_client(settings: Settings, *, debug_logging: bool = False) -> AIClient:
    timeout = settings.two_pass_timeout if settings.two_pass else settings.single_pass_timeout
    return AIClient(
        ClientSettings(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            request_timeout=timeout,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=settings.default_headers,
            debug_logging=debug_logging or settings.debug_logging,
        )
    )


def build_session(
    settings: Settings,
    transport: ChatTransport,
    *,
    session_store: SessionConfigStore | None = None,
) -> SessionManager:
    return SessionManager(
        transport,
        options=PipelineOptions.from_settings(settings),
        session_store=session_store or SessionConfigStore(),
    )


def load_styles(settings: Settings) -> list[Style]:
    return StyleLoader(settings.prompts_dir, limit=settings.max_styles).load()


def create_qapp() -> QtRuntime:
    """Create a qasync-powered QApplication instance."""

    from PySide6.QtWidgets import QApplication
    from qasync import QEventLoop

    os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
    app = cast(Any, QApplication.instance() or QApplication(sys.argv))
    app.setApplicationName("Language Stylist")
    # Shutdown is driven by the window's closed signal, not by Qt.
    app.setQuitOnLastWindowClosed(False)

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    return QtRuntime(app=app, loop=loop)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``stylist`` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("STYLIST_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("STYLIST_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2
    if args.single_pass:
        cli_overrides["two_pass"] = False

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)
        debug = True

    if args.headless:
        return run_headless(settings, style_name=args.style, text=args.text, debug_logging=debug)
    return run_gui(settings, text=args.text, debug_logging=debug)


# ----------------------------------------------------------------------
# Headless mode
# ----------------------------------------------------------------------
def run_headless(
    settings: Settings,
    *,
    style_name: str | None = None,
    text: str | None = None,
    transport: ChatTransport | None = None,
    session_store: SessionConfigStore | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
    debug_logging: bool = False,
) -> int:
    """Transform once without a window; print the result or the error.

    Returns the process exit status (0 on success, 1 on any failure).
    """

    out = stdout or sys.stdout
    err = stderr or sys.stderr
    try:
        if transport is None:
            require_api_key(settings)
        styles = load_styles(settings)
        if style_name and style_name not in {style.name for style in styles}:
            raise StylistError(error_code=ErrorCode.UNKNOWN_STYLE, message=f"Unknown style: {style_name}")
        try:
            source_text = read_source_text(StaticClipboard(text if text is not None else _read_stdin()))
        except ClipboardEmptyError:
            source_text = _read_clipboard_text()
    except StylistError as exc:
        _log_startup_error(exc)
        print(f"ERROR: {exc.message}", file=err)
        return 1

    client = transport or build_client(settings, debug_logging=debug_logging)
    session = build_session(settings, client, session_store=session_store)
    view = asyncio.run(transform_headless(session, styles, source_text, style_name=style_name))
    if view.status is TabStatus.CACHED:
        print(view.result_text, file=out)
        return 0
    print(f"ERROR: {view.error_message}", file=err)
    return 1


async def transform_headless(
    session: SessionManager,
    styles: Sequence[Style],
    source_text: str,
    *,
    style_name: str | None = None,
) -> TabView:
    """Run the initial tab of a fresh session to completion, then shut down."""

    try:
        index = session.initialize(styles, source_text, preferred_style=style_name)
        return await session.wait_for(index)
    finally:
        await session.shutdown()


def _log_startup_error(exc: StylistError) -> None:
    if exc.fatal:
        _LOGGER.error("Fatal startup error: %s", exc.to_dict())
    else:
        _LOGGER.warning("Startup rejected: %s", exc.to_dict())


def _read_stdin() -> str:
    stream = sys.stdin
    if stream is None or stream.isatty():
        return ""
    return stream.read()


def _read_clipboard_text() -> str:
    from PySide6.QtGui import QGuiApplication

    qt_app = cast(Any, QGuiApplication.instance() or QGuiApplication(sys.argv))
    return read_source_text(QtClipboard(qt_app.clipboard()))


# ----------------------------------------------------------------------
# Desktop mode
# ----------------------------------------------------------------------
def run_gui(settings: Settings, *, text: str | None = None, debug_logging: bool = False) -> int:
    runtime = create_qapp()
    clipboard = QtClipboard()
    try:
        require_api_key(settings)
        styles = load_styles(settings)
        source_text = read_source_text(StaticClipboard(text) if text and text.strip() else clipboard)
    except StylistError as exc:
        _log_startup_error(exc)
        _show_fatal_error(exc.message)
        return 1

    session = build_session(settings, build_client(settings, debug_logging=debug_logging))
    loop = runtime.loop
    try:
        return loop.run_until_complete(_run_window(session, styles, source_text, clipboard))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
        with contextlib.suppress(RuntimeError):
            loop.run_until_complete(session.shutdown())
        return 130
    finally:
        _drain_event_loop(loop)
        loop.close()


async def _run_window(
    session: SessionManager,
    styles: Sequence[Style],
    source_text: str,
    clipboard: Clipboard,
) -> int:
    from .ui.presentation.main_window import StylistWindow

    closed: asyncio.Future[None] = asyncio.get_running_loop().create_future()

    def _on_closed() -> None:
        if not closed.done():
            closed.set_result(None)

    session.initialize(styles, source_text)
    window = StylistWindow(session, clipboard)
    window.closed.connect(_on_closed)
    window.show()
    try:
        await closed
    finally:
        await session.shutdown()
    return 0


def _show_fatal_error(message: str) -> None:
    print(f"ERROR: {message}", file=sys.stderr)
    from PySide6.QtCore import QTimer
    from PySide6.QtWidgets import QMessageBox

    box = QMessageBox(QMessageBox.Icon.Critical, "Language Stylist - Error", message)
    QTimer.singleShot(_FATAL_DIALOG_MS, box.accept)
    box.exec()


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks and shut down async machinery before closing."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = asyncio.current_task()
        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - loop already stopped
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


# ----------------------------------------------------------------------
# CLI helpers
# ----------------------------------------------------------------------
def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stylist",
        description="Rewrite the clipboard text in one of your styles.",
    )
    parser.add_argument(
        "--headless",
        "--test",
        dest="headless",
        action="store_true",
        help="Run without a window: print the result to stdout (errors to stderr).",
    )
    parser.add_argument("--style", metavar="NAME", help="Style to apply (defaults to the last used one).")
    parser.add_argument("--text", metavar="TEXT", help="Transform TEXT instead of the clipboard.")
    parser.add_argument("--single-pass", action="store_true", help="Skip the semantic analysis pass.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings (API key redacted) and exit.",
    )
    parser.add_argument("--settings-path", metavar="PATH", help="Override the default ~/.stylist/settings.json path.")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override a setting for this run (repeatable).",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    known = {item.name for item in fields(Settings)}
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in known:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints[key], raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    if raw_value.lower() in {"none", "null"} and type(None) in get_args(annotation):
        return None
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target is dict:
        try:
            payload = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return dict
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return args[0] if args else origin


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(payload.get("api_key", ""))
    output = {
        "settings": payload,
        "meta": {
            "path": str(store.path),
            "secret_backend": store.vault.strategy,
            "cli_overrides": sorted(overrides.keys()),
            "environment_variables": sorted(name for name in os.environ if name.startswith("STYLIST_")),
        },
    }
    json.dump(output, destination, indent=2)
    destination.write("\n")


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
