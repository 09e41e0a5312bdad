"""
Search and analytics over a loaded corpus.

This package provides:
- scoring: lexical relevance formula
- engine: fuzzy/exact linear scan with stable ranking and pagination
- filters: compound post-filter for advanced search
- stats: length distribution, collection reports and term frequency
"""
