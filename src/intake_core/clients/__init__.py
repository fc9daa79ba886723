"""Clients for third-party HTTP APIs."""

from intake_core.clients.email_client import EmailClient, get_email_client
from intake_core.clients.tavus_client import TavusClient, get_tavus_client

__all__ = ["EmailClient", "TavusClient", "get_email_client", "get_tavus_client"]
