"""Text-generation backend, retry policy and model lifecycle."""

from .client import BackendError, GenerationOptions, LoadedModel, Message, TextBackend
from .lifecycle import ModelLifecycleGate, ModelWakeError
from .ollama import OllamaClient
from .retry import with_retry

__all__ = [
    "BackendError",
    "GenerationOptions",
    "LoadedModel",
    "Message",
    "ModelLifecycleGate",
    "ModelWakeError",
    "OllamaClient",
    "TextBackend",
    "with_retry",
]
