"""toolgate: a safety gateway between an LLM agent and the local filesystem/shell."""

__version__ = "0.1.0"

__all__ = ["__version__"]
