"""ASGI entrypoint for the session ledger API."""

from skill_ledger.api.app import create_app
from skill_ledger.containers import build_container

app = create_app(build_container())
