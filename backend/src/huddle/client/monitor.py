"""Follow a Huddle server's realtime feed and log what each event invalidates."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .api import ChatApiClient
from .cache import CHANNELS, CONVERSATIONS, CURRENT_USER, QueryCache
from .connection import DEFAULT_RECONNECT_DELAY, ConnectionStatus, RealtimeClient
from .reconciler import Reconciler, ViewState


logger = logging.getLogger("huddle.monitor")


async def run_monitor(args: argparse.Namespace) -> None:
    async with ChatApiClient(args.base_url, token=args.token, websocket_path=args.ws_path) as api:
        if args.username and args.password:
            await api.login(args.username, args.password)
            logger.info("logged in as %s", args.username)

        cache = QueryCache(resolver=api.fetcher_for)
        view = ViewState(channel_id=args.channel, partner_id=args.partner)
        if api.token:
            me = await api.current_user()
            view.user_id = me["id"]
        reconciler = Reconciler(cache, view)

        for key in (CURRENT_USER, CHANNELS, CONVERSATIONS):
            if key == CURRENT_USER and not api.token:
                continue
            cache.observe(key)
        if args.channel:
            reconciler.show_channel(args.channel)
        if args.partner:
            reconciler.show_conversation(args.partner)

        def on_frame(raw: str | bytes) -> None:
            logger.info("event %s", raw if isinstance(raw, str) else raw.decode("utf-8", "replace"))
            keys = reconciler.on_frame(raw)
            for key in keys:
                logger.info("  invalidated %s", "/".join(key))

        def on_status(status: ConnectionStatus) -> None:
            logger.info("connection %s", status.value)

        client = RealtimeClient(
            api.ws_url,
            on_frame,
            token=api.token,
            reconnect_delay=args.reconnect_delay,
            on_reconnect=reconciler.resync,
            on_status=on_status,
        )
        try:
            await client.run()
        finally:
            await client.stop()
            await cache.drain()


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("base_url", help="HTTP base URL, e.g. http://localhost:8000")
    parser.add_argument("--token", default=None, help="Bearer token used for authentication")
    parser.add_argument("--username", default=None, help="Log in with this username")
    parser.add_argument("--password", default=None, help="Password for --username")
    parser.add_argument("--ws-path", default="/ws", help="Websocket path on the server")
    parser.add_argument("--channel", default=None, help="Channel id treated as the open view")
    parser.add_argument("--partner", default=None, help="DM partner id treated as the open view")
    parser.add_argument(
        "--reconnect-delay",
        type=float,
        default=DEFAULT_RECONNECT_DELAY,
        help="Seconds to wait before reconnecting after a close",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log verbosity level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        asyncio.run(run_monitor(args))
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        logger.warning("interrupted by user")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
