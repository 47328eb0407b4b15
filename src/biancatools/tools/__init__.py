"""Tool catalogue: browser, GitHub, local git, memory store, external agent.

Each tool is a params model, a handler calling exactly one adapter, and a
descriptor. Handlers let adapter errors propagate to the middleware.
"""

from __future__ import annotations

from . import agent, browser, git, github, memory

CATALOGUE = (
    *browser.DESCRIPTORS,
    *github.DESCRIPTORS,
    *git.DESCRIPTORS,
    *memory.DESCRIPTORS,
    *agent.DESCRIPTORS,
)

__all__ = ["CATALOGUE", "agent", "browser", "git", "github", "memory"]
