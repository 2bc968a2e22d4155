"""
Flyer Studio entry point

Usage:
    python -m flyer_studio [--host HOST] [--port PORT]

Environment (or .env):
    GEMINI_API_KEY=...
    FLYER_STUDIO_HOST / FLYER_STUDIO_PORT / FLYER_STUDIO_EXPORT_DIR / FLYER_STUDIO_REQUIRE_REFERENCE
"""

import argparse

from aiohttp import web
from dotenv import load_dotenv


def main(argv=None):
    load_dotenv()

    from .api_routes import create_app
    from .config_loader import load_settings

    settings, settings_error = load_settings()
    if settings_error:
        print(f"[FlyerStudio] [WARN] {settings_error}")

    parser = argparse.ArgumentParser(prog="flyer_studio", description="Flyer Studio web wizard")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    args = parser.parse_args(argv)

    if not settings.has_api_key:
        print("[FlyerStudio] [WARN] GEMINI_API_KEY not set, generation is disabled until a key is configured")

    web.run_app(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
