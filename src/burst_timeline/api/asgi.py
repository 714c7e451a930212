"""ASGI entrypoint for the burst timeline API."""

from burst_timeline.api.app import create_app
from burst_timeline.containers import build_container

app = create_app(build_container())
