"""
Mesh Graph - traffic graph identity, model and telemetry enrichment
"""

__version__ = "0.1.0"
