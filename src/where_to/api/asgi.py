"""ASGI entrypoint for the WhereTo voting API."""

from where_to.api.app import create_app
from where_to.containers import build_container

app = create_app(build_container())
