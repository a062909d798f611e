# ruff: noqa: F403, F401
"""Schemas package initialization."""

from .base import *
from .catalog import *
from .chat import *
from .identity import *
