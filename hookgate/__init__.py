"""Hookgate - hook execution and policy enforcement for coding agents.

Interprets what user-configured hook processes reported at agent
lifecycle points and decides whether the agent may proceed.
"""

__version__ = "0.1.0"
