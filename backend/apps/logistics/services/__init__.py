from .freight import FreightService, QuoteComparison, compare_quotes, quote_score

__all__ = ["FreightService", "QuoteComparison", "compare_quotes", "quote_score"]
