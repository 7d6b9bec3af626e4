"""Kiosk launcher: runs the surface API and optionally opens a surface view in a browser."""

from __future__ import annotations

import argparse
from dataclasses import replace
import logging
import shlex
import threading
import time
import webbrowser

from urllib import error, request

from clinicqueue.display.config import DisplaySettings, load_settings
from clinicqueue.display.surface import SurfaceKind

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Clinic queue display launcher")
    parser.add_argument("--server", default=None, help="Queue service base URL")
    parser.add_argument(
        "--surface",
        action="append",
        choices=[kind.value for kind in SurfaceKind],
        dest="surfaces",
        help="Surface to run; repeat for several",
    )
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--voice-language", default=None)
    parser.add_argument("--audio-player", default=None, help="Player command reading MP3 on stdin")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--open", dest="open_surface", choices=[kind.value for kind in SurfaceKind], default=None)
    return parser.parse_args(argv)


def apply_args(settings: DisplaySettings, args: argparse.Namespace) -> DisplaySettings:
    overrides: dict[str, object] = {}
    if args.server:
        overrides["server_url"] = args.server
    if args.surfaces:
        overrides["surfaces"] = tuple(args.surfaces)
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.voice_language:
        overrides["voice_language"] = args.voice_language
    if args.audio_player:
        overrides["audio_player"] = tuple(shlex.split(args.audio_player))
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    return replace(settings, **overrides)


def surface_url(settings: DisplaySettings, surface: str) -> str:
    return f"http://{settings.host}:{settings.port}/api/surfaces/{surface}"


def wait_for_api(url: str, timeout_s: float = 8.0) -> bool:
    start = time.time()
    while time.time() - start < timeout_s:
        try:
            with request.urlopen(url, timeout=0.5) as response:
                if int(response.status) < 500:
                    return True
        except (error.URLError, TimeoutError):
            pass
        time.sleep(0.2)
    return False


def open_when_ready(url: str) -> None:
    if wait_for_api(url):
        webbrowser.open(url)
    else:
        logger.warning("Surface API did not come up at %s", url)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = apply_args(load_settings(), args)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    import uvicorn

    from clinicqueue.display.api import create_app

    if args.open_surface:
        threading.Thread(
            target=open_when_ready,
            args=(surface_url(settings, args.open_surface),),
            daemon=True,
        ).start()

    logger.info("Serving surfaces %s from %s", ", ".join(settings.surfaces), settings.server_url)
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
