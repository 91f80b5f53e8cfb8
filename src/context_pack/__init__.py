"""context_pack: filter project files and pack them into bounded LLM context chunks."""

__version__ = "0.1.0"
