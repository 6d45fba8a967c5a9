"""ASGI entrypoint for the canteen ordering API."""

from canteen_ordering.api.app import create_app
from canteen_ordering.containers import build_container

app = create_app(build_container())
