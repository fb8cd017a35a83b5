from .models import PipelineDocument, ProcessDocument

__all__ = ["PipelineDocument", "ProcessDocument"]
