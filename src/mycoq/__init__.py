"""
mycoq - build named services, then run them side by side in one host process.

Subpackages:
- mycoq.core: errors, logging, settings, manifest sources
- mycoq.runtime: the runtime execution engine (loader, entry points, workers, registries)
- mycoq.cli: the ``mycoq`` command
"""

__version__ = "0.3.0"
