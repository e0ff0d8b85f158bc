"""align-agents: keep AI-tool configuration in sync from curated sources."""

__version__ = "0.4.0"
