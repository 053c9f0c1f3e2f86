# Zero Trust Decision Engine
# Request-level access decisions: risk, trust, policy, audit

from .config import ZeroTrustSettings, get_settings
from .core.engine import ZeroTrustEngine

__version__ = "1.0.0"

__all__ = ['ZeroTrustEngine', 'ZeroTrustSettings', 'get_settings', '__version__']
