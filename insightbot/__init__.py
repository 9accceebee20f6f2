"""InsightBot: natural-language analytics over a lead/engagement database."""

__version__ = "0.1.0"
