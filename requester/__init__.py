"""Chain HTTP requests sequentially while sharing one cookie session."""

from .chain import Requester
from .config import Config, RequesterConfig, load_settings
from .errors import CookieRejectedError, FlowError, RequesterError
from .fetcher import HTTPFetcher
from .flow import FlowResult, Phase, load_flow, parse_flow, run_flow
from .session import Session

__all__ = [
    "Requester",
    "Session",
    "HTTPFetcher",
    "Config",
    "RequesterConfig",
    "load_settings",
    "RequesterError",
    "CookieRejectedError",
    "FlowError",
    "Phase",
    "FlowResult",
    "load_flow",
    "parse_flow",
    "run_flow",
]
