"""
Browser-driven page scraping.

This package drives real browser sessions over a list of pages, extracts
embedded images or discovered links, filters and deduplicates them, and
hands them to a single collector that persists them.

Work is split into contiguous batches, one per worker; each worker owns its
own browser session and extractor, and all workers feed one bounded channel.
"""
