"""
Infrastructure layer for external integrations.

This module contains the XMLA codec, transports and connection for the
semantic model server, and the chat-completion client.
"""

from .llm_client import ChatClient
from .xmla_connection import XMLAConnection
from .xmla_transport import BridgeXMLATransport, HttpXMLATransport, XMLATransport

__all__ = [
    "ChatClient",
    "XMLAConnection",
    "XMLATransport",
    "HttpXMLATransport",
    "BridgeXMLATransport",
]
