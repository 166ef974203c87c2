"""
Console API access.

ConsoleClientService is the entry point; the gateway, response processor
and authentication processor are its collaborators.
"""

from src.services.console.auth import AuthenticationProcessor
from src.services.console.client import ConsoleClientService
from src.services.console.gateway import ConsoleGateway
from src.services.console.responses import ResponseProcessor

__all__ = [
    "AuthenticationProcessor",
    "ConsoleClientService",
    "ConsoleGateway",
    "ResponseProcessor",
]
