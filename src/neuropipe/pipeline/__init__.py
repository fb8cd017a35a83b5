"""
Pipelines of processes and their persistence.

Exports the public API:
- Pipeline
- BINARY_EXTENSION / TEXT_EXTENSION
"""
from .pipeline import Pipeline, flatten_outputs
from .serializers import BINARY_EXTENSION, TEXT_EXTENSION, SUPPORTED_EXTENSIONS
