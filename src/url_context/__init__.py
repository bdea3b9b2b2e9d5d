"""Secure URL content retrieval for LLM context building.

Fetches user-supplied URLs without becoming an SSRF or resource-exhaustion
vector: every URL is screened, rate limited per hostname, cached, fetched
under a byte ceiling, and normalized to Markdown before being handed to a
content-generation consumer.
"""

__version__ = "0.1.0"
