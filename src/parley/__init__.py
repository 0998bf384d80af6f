from parley.instrumentation import instrument, uninstrument

__version__ = "0.1.0"

__all__ = ["instrument", "uninstrument", "__version__"]
