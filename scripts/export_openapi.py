from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parent.parent
DEFAULT_OUTPUT_PATH = ROOT / "docs" / "openapi.json"
# never connected to: the engine is only built on first use
DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"


def build_openapi_schema() -> dict[str, Any]:
    """Build the OpenAPI schema of app/main.py with deterministic env defaults."""

    os.environ.setdefault("DATABASE_URL", DEFAULT_DATABASE_URL)
    os.environ.setdefault("ENVIRONMENT", "prod")
    os.environ.setdefault("JSON_LOGS", "false")

    from app.main import app

    return app.openapi()


def render_openapi_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, sort_keys=True, separators=(",", ": ")) + "\n"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export the listings API OpenAPI document as JSON")
    parser.add_argument(
        "--output",
        default=str(DEFAULT_OUTPUT_PATH),
        help="Output file path (default: docs/openapi.json); '-' writes to stdout.",
    )
    args = parser.parse_args(argv)

    rendered = render_openapi_json(build_openapi_schema())
    if args.output == "-":
        print(rendered, end="")
        return 0

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(rendered, encoding="utf-8")
    print(f"OpenAPI schema exported: {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
