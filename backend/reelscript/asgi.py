"""ASGI entry point: uvicorn reelscript.asgi:app"""

from __future__ import annotations

from reelscript.main import create_app

app = create_app()
