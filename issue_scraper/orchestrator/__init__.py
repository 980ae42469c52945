"""
Orchestration module for scraping pipeline execution.
"""

from .pipeline import PipelinePhase, ScrapingPipeline

__all__ = ["PipelinePhase", "ScrapingPipeline"]
