"""ASGI entrypoint for the photo reveal API."""

from photo_reveal.api.app import create_app
from photo_reveal.containers import build_container

app = create_app(build_container())
