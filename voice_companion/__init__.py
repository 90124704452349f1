"""
Voice Companion - push-to-talk conversational assistant.

Listens to one spoken utterance, transcribes it, asks a generative model
for a reply with a bounded memory of recent turns, speaks the reply, and
remembers the exchange.

Usage:
    from voice_companion.config import get_framework_config
    from voice_companion.factory import create_session_controller

    controller = create_session_controller(get_framework_config())
    await controller.initialize()
    await controller.begin_capture()
    ...
    await controller.end_capture()
"""

from .session_controller import SessionController
from .factory import ProviderFactory, create_session_controller
from .config import get_framework_config
from . import interfaces
from . import models
from . import providers

__version__ = "1.0.0"

__all__ = [
    'SessionController',
    'ProviderFactory',
    'create_session_controller',
    'get_framework_config',
    'interfaces',
    'models',
    'providers'
]
