"""ASGI entrypoint for the WhatsApp gateway API."""

from whatsapp_gateway.api.app import create_app
from whatsapp_gateway.containers import build_container

app = create_app(build_container())
