"""
QUILL - Queued Utility for Isolated LaTeX Launches

Turns structured resume data into a PDF by driving an external LaTeX
compiler (Tectonic) as a bounded, observable subprocess job.

Architecture:
- Templating Context: Resume data model and LaTeX source generation
- Rendering Context: Job admission, workspaces, compiler subprocess, shared cache, health
"""

__version__ = "0.1.0"
