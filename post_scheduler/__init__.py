"""Post scheduler: scheduled-post lifecycle, territory compliance and reminder dispatch."""
__version__ = "0.1.0"
