"""diligent: host introspection with an LLM judge."""

__version__ = "0.1.0"
