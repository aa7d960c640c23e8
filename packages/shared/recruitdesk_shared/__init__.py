"""Schemas shared between the RecruitDesk server and its API clients."""

__version__ = "0.1.0"
