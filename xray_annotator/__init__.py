"""
XRay Annotator - Geometric annotation and measurement on radiographs.

This package contains the main application modules:
- editor: Annotation model, tools, history, hit testing and rendering
- ui: Main window
- services: Application services (config, logging)
"""

__version__ = "0.1.0"
