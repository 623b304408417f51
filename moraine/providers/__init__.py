"""
Backends that turn resource declarations into resources.

- MemoryBackend: simulated, deterministic, no network access
- PulumiBackend: real resources through the Pulumi engine (needs the
  ``gcp`` extra and must run inside a Pulumi program)
"""

from moraine.providers.base import Backend
from moraine.providers.memory import MemoryBackend, SimulatedFailure, SubmittedResource
from moraine.providers.pulumi_backend import PulumiBackend, UnsupportedResourceError

__all__ = [
    "Backend",
    "MemoryBackend",
    "SimulatedFailure",
    "SubmittedResource",
    "PulumiBackend",
    "UnsupportedResourceError",
]
