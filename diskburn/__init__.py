"""Storage burn-in: fill free space with verifiable copies, then check every byte."""

from diskburn.config import BurnInConfig
from diskburn.controller import Outcome, RunController, RunSummary

__all__ = ["BurnInConfig", "Outcome", "RunController", "RunSummary"]
