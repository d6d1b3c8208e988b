"""Juice Production Planner - recipe-based batch planning and FIFO execution."""

from juiceplan.utils.constants import APP_VERSION

__version__ = APP_VERSION
