from xfunnel.models.response_analysis import ResponseAnalysis

__all__ = [
    "ResponseAnalysis",
]
