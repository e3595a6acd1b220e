"""
Bot module - Webhook server and outbound sender.
"""

from cqroute.bot.server import Server, create_server
from cqroute.bot.sender import Sender

__all__ = ["Server", "create_server", "Sender"]
