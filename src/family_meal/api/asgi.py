"""ASGI entrypoint for the family meal API."""

from family_meal.api.app import create_app
from family_meal.containers import build_container

app = create_app(build_container())
