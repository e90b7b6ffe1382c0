from .config import HealthCoreConfig, load_config
from .session_store import InMemoryHealthStore

__all__ = ["HealthCoreConfig", "load_config", "InMemoryHealthStore"]
