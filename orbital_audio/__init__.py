from .catalog import SOLAR_SYSTEM, load_bodies
from .config import EngineConfig, GainConfig
from .engine import SonificationEngine, serve
from .errors import ConfigError, OutputSuspended, SystemFault, VoiceFault

__all__ = [
    "SOLAR_SYSTEM",
    "load_bodies",
    "EngineConfig",
    "GainConfig",
    "SonificationEngine",
    "serve",
    "ConfigError",
    "OutputSuspended",
    "SystemFault",
    "VoiceFault",
]
