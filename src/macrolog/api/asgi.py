"""ASGI entrypoint for the MacroLog API."""

from macrolog.api.app import create_app
from macrolog.containers import build_container

app = create_app(build_container())
