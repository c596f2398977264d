"""bpgraph: blueprint node graphs compiled to TypeScript."""

__version__ = "1.0.0"
