"""draftgraph: draft/commit graph staging engine for a founder workspace."""

__version__ = "0.1.0"
