"""Post a listing through the public API, the same way the web form does.

Example:

    python scripts/post_listing.py --name "Sea view flat" --location "Osu, Accra" \
        --description "Two bed flat" --price 1200 --beds 2 --baths 1 \
        --image living.jpg --image kitchen.png
"""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
import os
import sys
from pathlib import Path

import httpx


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a property listing via the listings API")
    parser.add_argument("--api-url", default=None, help="API base url (default: API_BASE_URL setting)")
    parser.add_argument("--name", required=True)
    parser.add_argument("--location", default="", help="Free-text address; geocoded when no point is given")
    parser.add_argument("--description", required=True)
    parser.add_argument("--price", required=True)
    parser.add_argument("--beds", default="")
    parser.add_argument("--baths", default="")
    parser.add_argument("--area", default="")
    parser.add_argument("--lat", type=float, default=None, help="Picked latitude (requires --lng)")
    parser.add_argument("--lng", type=float, default=None, help="Picked longitude (requires --lat)")
    parser.add_argument(
        "--image",
        dest="images",
        action="append",
        default=[],
        type=Path,
        help="Image file to upload; repeat for several (order is kept)",
    )
    parser.add_argument("--no-geocode", action="store_true", help="Never call the geocoder")
    args = parser.parse_args(argv)
    if (args.lat is None) != (args.lng is None):
        parser.error("--lat and --lng must be given together")
    return args


async def _run(args: argparse.Namespace) -> int:
    from app.client.api import EstateApiClient, ImageUpload
    from app.client.workflow import CreatePropertyWorkflow, PropertyForm, WorkflowState
    from app.core.config import settings
    from app.core.errors import EstateError
    from app.providers.nominatim import NominatimGeocoder

    uploads = []
    for path in args.images:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        uploads.append(ImageUpload(filename=path.name, content=path.read_bytes(), content_type=content_type))

    form = PropertyForm(
        name=args.name,
        location=args.location,
        description=args.description,
        price=args.price,
        beds=args.beds,
        baths=args.baths,
        area=args.area,
        files=uploads,
    )

    def _progress(percent: int, state: WorkflowState) -> None:
        print(f"[{percent:3d}%] {state.value}", file=sys.stderr)

    geocoder = None if args.no_geocode else NominatimGeocoder()
    base_url = args.api_url or settings.api_base_url
    async with httpx.AsyncClient(base_url=base_url, timeout=settings.api_timeout_seconds) as http:
        workflow = CreatePropertyWorkflow(EstateApiClient(http), geocoder, on_progress=_progress)
        if args.lat is not None:
            await workflow.pick_location(form, args.lat, args.lng)
        try:
            result = await workflow.submit(form)
        except (EstateError, httpx.HTTPError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    if not result.persisted:
        print(f"Warning: listing was not saved ({result.error}); showing a local record", file=sys.stderr)
    print(json.dumps(result.listing.model_dump(mode="json", by_alias=True), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    # the client never touches the database, but importing settings requires a url
    os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    os.environ.setdefault("JSON_LOGS", "false")
    return asyncio.run(_run(_parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
