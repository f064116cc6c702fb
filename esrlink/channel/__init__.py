"""
Push channel listener and sealed message envelope.
"""
from .listener import ChannelListener, ListenerState, channel_from_url, channel_service_url
from .sealed_message import SealedMessage, SEALED_MESSAGE_ABI

__all__ = [
    'ChannelListener',
    'ListenerState',
    'channel_from_url',
    'channel_service_url',
    'SealedMessage',
    'SEALED_MESSAGE_ABI',
]
