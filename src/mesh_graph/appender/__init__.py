"""Graph enrichment stages ("appenders") and the pipeline running them."""

from .base import Appender, GlobalInfo, NamespaceInfo
from .pipeline import AppenderPipeline, NamespaceRun, PipelineReport
from .response_time import DEFAULT_QUANTILE, RESPONSE_TIME_APPENDER_NAME, ResponseTimeAppender

__all__ = [
    "Appender",
    "AppenderPipeline",
    "DEFAULT_QUANTILE",
    "GlobalInfo",
    "NamespaceInfo",
    "NamespaceRun",
    "PipelineReport",
    "RESPONSE_TIME_APPENDER_NAME",
    "ResponseTimeAppender",
]
