"""Request analysis."""

from src.nl2table.analysis.analyzer import RequestAnalyzer, build_analysis_prompt
from src.nl2table.analysis.schemas import AnalysisSchema, clean_columns

__all__ = ["AnalysisSchema", "RequestAnalyzer", "build_analysis_prompt", "clean_columns"]
