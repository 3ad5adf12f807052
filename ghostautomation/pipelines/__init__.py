"""
Kernel pipelines: the kernel context and the end-to-end content pipeline.
"""

from .kernel import (
    KernelContext,
    init_kernel,
    get_kernel_context,
    teardown_kernel,
)
from .content_pipeline import ContentPipeline, PipelineRunResult

__all__ = [
    'KernelContext',
    'init_kernel',
    'get_kernel_context',
    'teardown_kernel',
    'ContentPipeline',
    'PipelineRunResult',
]
