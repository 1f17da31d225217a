#!/usr/bin/env python3
"""Open the iNaturalist observations map in Chromium with the full-height overlay.

Usage
-----
::

    python scripts/run_enhancer.py
    python scripts/run_enhancer.py --disable          # start with the overlay off
    python scripts/run_enhancer.py --prefs prefs.json --verbose

While running, type ``on``, ``off`` or ``state`` followed by Enter to
toggle the overlay or print the mirrored preference. Ctrl+C exits.

Layout offsets can be tuned with ``INATMAP_*`` environment variables
(see :meth:`inatmap.config.EnhancerConfig.from_env`).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from playwright.async_api import async_playwright  # noqa: E402

from inatmap import EnhancementSession, EnhancerConfig, JsonFilePreferenceStore  # noqa: E402
from inatmap.browser import PlaywrightHostPage, PlaywrightMapLibrary  # noqa: E402

_LOG = logging.getLogger("run_enhancer")

DEFAULT_URL = "https://www.inaturalist.org/observations?subview=map"


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the full-height map overlay against a live browser page.",
    )
    parser.add_argument("--url", default=DEFAULT_URL, help="Page to open.")
    parser.add_argument(
        "--prefs",
        default="~/.config/inatmap/preferences.json",
        help="JSON file holding the fullMapHeight preference.",
    )
    parser.add_argument("--disable", action="store_true", help="Store fullMapHeight=false before starting.")
    parser.add_argument("--headless", action="store_true", help="Run Chromium without a window.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


async def _dispatch(session: EnhancementSession, command: str) -> None:
    if command == "on":
        print(json.dumps(await session.set_enabled(True)))
    elif command == "off":
        print(json.dumps(await session.set_enabled(False)))
    elif command == "state":
        print(json.dumps(session.get_state()))
    elif command:
        print("commands: on | off | state")


def _install_command_reader(session: EnhancementSession) -> set[asyncio.Task[None]]:
    loop = asyncio.get_running_loop()
    tasks: set[asyncio.Task[None]] = set()

    def _on_input() -> None:
        line = sys.stdin.readline()
        if not line:
            loop.remove_reader(sys.stdin.fileno())
            return
        task = loop.create_task(_dispatch(session, line.strip().lower()))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    loop.add_reader(sys.stdin.fileno(), _on_input)
    return tasks


async def _run(args: argparse.Namespace) -> int:
    config = EnhancerConfig.from_env()
    store = JsonFilePreferenceStore(args.prefs)
    if args.disable:
        await store.set("fullMapHeight", False)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=args.headless)
        try:
            page = await browser.new_page(viewport={"width": 1600, "height": 1000})
            await page.goto(args.url, wait_until="domcontentloaded")
            async with EnhancementSession(
                PlaywrightHostPage(page),
                PlaywrightMapLibrary(page),
                config=config,
                preferences=store,
            ) as session:
                _LOG.info("Session started on %s (enabled=%s)", page.url, session.state.enabled)
                pending = _install_command_reader(session)
                try:
                    await stop.wait()
                finally:
                    loop.remove_reader(sys.stdin.fileno())
                    for task in pending:
                        task.cancel()
        finally:
            await browser.close()
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except Exception as exc:  # pragma: no cover - browser/system interaction
        print(f"[enhancer] failed: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(_main())
