"""URL threat screening.

Sub-modules:
- ``config``        : pattern tables, network ranges and blocklists
- ``url_validator`` : :class:`UrlValidator` and its security counters
"""
