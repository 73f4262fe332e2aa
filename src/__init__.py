"""IndexLens core source package.

This package contains the components of the FTSE 100 extraction pipeline:
- browser: Playwright browser lifecycle and navigation
- extractor: Listing page object (overlay, sorting, re-render waits)
- scraper: Top movers and market cap extraction strategies
- finance: Chart API client and minimum reduction over the index series
- validator: Pydantic schemas, market cap parsing and threshold filtering
- results: JSON result envelopes
- scenarios: Scenario driver with per-scenario failure containment
- reporter: Pandas/Plotly-based reporting and visualization
- logger: Structured JSON logging configuration
- exceptions: Custom exception hierarchy
"""

__version__ = "1.0.0"
