"""URL content retrieval pipeline.

Sub-modules:
- ``config``            : constants and tuning parameters
- ``models``            : fetch options, results and batch data classes
- ``cache``             : TTL result cache keyed by URL
- ``rate_limiter``      : fixed-window per-hostname request budget
- ``content_extractor`` : HTML metadata extraction and HTML→Markdown
- ``http_fetcher``      : validated, retried, size-bounded httpx fetcher
- ``batch``             : bounded-concurrency multi-URL coordinator
- ``service``           : :class:`UrlContextService` facade
- ``router``            : FastAPI router (``/url-context/``)
"""
