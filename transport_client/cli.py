#!/usr/bin/env python3
"""
Command-line front end for the transport client.

Usage:
    transport-client routes
    transport-client path 12 --geojson
    transport-client track 12 --seconds 120
    transport-client drive 12 --replay trip.csv --speed 4
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from transport_client.api import TransportApiClient
from transport_client.config import config
from transport_client.errors import ApiError, NotConnectedError
from transport_client.models import Role
from transport_client.notifier import ConsoleNotifier
from transport_client.realtime import LiveConnection, LocationPublisher, ReplayLocationSource
from transport_client.views import LiveMapView, TransportSession

logger = logging.getLogger("transport_client")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


async def cmd_routes(session: TransportSession, args: argparse.Namespace) -> int:
    try:
        routes = await session.api.list_routes()
    except ApiError as e:
        session.notifier.alert("Error", e.message)
        return 1
    for route in routes:
        print(f"{route.id:>5}  {route.route_name:<30}  driver: {route.driver_label:<20}  bus: {route.display('bus_number')}")
    return 0


async def cmd_path(session: TransportSession, args: argparse.Namespace) -> int:
    view = LiveMapView(session, route_id=args.route_id, role=Role.ADMIN)
    if not await view.load():
        return 1
    if args.geojson:
        print(json.dumps(view.scene.to_geojson(), indent=2))
    else:
        for point in view.scene.line_layer:
            print(f"{point.latitude:.5f},{point.longitude:.5f}")
    return 0


async def cmd_track(session: TransportSession, args: argparse.Namespace) -> int:
    view = LiveMapView(session, route_id=args.route_id, role=Role.ADMIN)
    if not await view.load():
        return 1

    def _log_position(position) -> None:
        logger.info(f"Bus at {position.lat:.5f},{position.lng:.5f} heading {position.heading:.0f}")

    view.subscriber.on_position(_log_position)
    await session.connection.ensure_connected(args.connect_timeout)
    async with view.live():
        logger.info(f"Tracking route {view.route.route_name} (Ctrl+C to stop)")
        remaining = args.seconds
        while remaining is None or remaining > 0:
            await asyncio.sleep(args.status_every)
            logger.info(f"Status: {view.status()}")
            if remaining is not None:
                remaining -= args.status_every
    return 0


async def cmd_drive(session: TransportSession, args: argparse.Namespace) -> int:
    source = ReplayLocationSource.from_csv(args.replay, speed=args.speed)
    await session.connection.ensure_connected(args.connect_timeout)
    publisher = LocationPublisher(session.connection, args.route_id, source, api=session.api)
    async with publisher.trip():
        await publisher.wait()
    return 0


COMMANDS = {
    "routes": cmd_routes,
    "path": cmd_path,
    "track": cmd_track,
    "drive": cmd_drive,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="School transport live-tracking client")
    parser.add_argument("--api-url", default=None, help="REST base URL (default: TRANSPORT_API_URL)")
    parser.add_argument("--token", default=None, help="Bearer token (default: TRANSPORT_API_TOKEN)")
    parser.add_argument("--yes", action="store_true", help="Answer yes to confirmations")
    parser.add_argument("--connect-timeout", type=float, default=15.0, help="Seconds to wait for the socket")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("routes", help="List routes")

    path = sub.add_parser("path", help="Resolve a route's road path")
    path.add_argument("route_id", type=int)
    path.add_argument("--geojson", action="store_true", help="Print the map scene as GeoJSON")

    track = sub.add_parser("track", help="Follow a route's live bus position")
    track.add_argument("route_id", type=int)
    track.add_argument("--seconds", type=float, default=None, help="Stop after N seconds")
    track.add_argument("--status-every", type=float, default=10.0)

    drive = sub.add_parser("drive", help="Publish recorded GPS fixes as the driver")
    drive.add_argument("route_id", type=int)
    drive.add_argument("--replay", required=True, help="CSV with lat,lng,heading,timestamp")
    drive.add_argument("--speed", type=float, default=1.0, help="Replay speed multiplier (0 = no pacing)")
    return parser


async def run(args: argparse.Namespace) -> int:
    session = TransportSession(
        api=TransportApiClient(base_url=args.api_url, token=args.token),
        connection=LiveConnection(token=args.token),
        notifier=ConsoleNotifier(assume_yes=args.yes),
    )
    async with session:
        try:
            return await COMMANDS[args.command](session, args)
        except NotConnectedError as e:
            logger.error(str(e))
            return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
