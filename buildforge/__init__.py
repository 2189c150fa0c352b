"""BuildForge - Multi-target artifact build orchestrator.

Packages one web-terminal source tree into browser bundles, a compiled
server tree, standalone CLI executables and an optional native build.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
