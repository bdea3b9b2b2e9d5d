"""Security screening for user-supplied URLs.

Every URL is screened here before any network access.  The pipeline
short-circuits on the first failure:

1. **Format**: must parse as an absolute URL (``invalid_format``).
2. **Scheme**: only ``http``/``https`` (``blocked_domain``).
3. **Suspicious patterns**: control characters, traversal, embedded
   schemes, loopback literals, percent-encoding, dangerous characters
   (``suspicious_pattern``).
4. **Homographs**: punycode length/shape heuristics and mixed-script
   hostnames (``suspicious_pattern``).
5. **Domain policy**: configured blocklist, then allowlist
   (``blocked_domain``).
6. **Private networks**: IP literals in private/loopback/link-local/
   multicast ranges and internal hostnames (``blocked_domain``).
7. **Known malicious domains** (``blocked_domain``).
8. **Limits**: URL length (``invalid_format``) and port (``blocked_domain``).
9. **Heuristics**: dangerous TLDs, shorteners, short or deeply nested or
   random-looking domains.  Logged as warnings only; never fatal.

The homograph heuristics are deliberately coarse and can flag legitimate
internationalized domains.
"""

from __future__ import annotations

import ipaddress
import re
import socket
import threading
from dataclasses import dataclass, field
from urllib.parse import SplitResult, urlsplit

import httpx
import structlog

from url_context.config.settings import Settings, get_settings
from url_context.core.exceptions import UrlValidationError, ValidationReason
from url_context.scraper.config import HEALTHCHECK_USER_AGENT
from url_context.scraper.models import ValidationVerdict
from url_context.security.config import (
    ALLOWED_PORTS,
    ALLOWED_SCHEMES,
    CYRILLIC_RE,
    DANGEROUS_TLDS,
    GREEK_RE,
    HOMOGRAPH_ENCODED_SHAPE,
    HOMOGRAPH_MAX_ENCODED_LENGTH,
    HOMOGRAPH_TARGET_TLDS,
    INTERNAL_HOST_SUFFIXES,
    KNOWN_MALICIOUS_DOMAINS,
    LATIN_RE,
    MAX_SUBDOMAIN_LEVELS,
    MAX_URL_LENGTH,
    PRIVATE_NETWORKS,
    PUNYCODE_PREFIX,
    SUSPICIOUS_PATTERNS,
    URL_SHORTENERS,
)

logger = structlog.get_logger(__name__)

_IPV4_SHORTHAND_RE = re.compile(r"(0x[0-9a-f]+|\d+)(\.(0x[0-9a-f]+|\d+)){0,3}", re.IGNORECASE)

IpAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


# ---------------------------------------------------------------------------
# Security counters
# ---------------------------------------------------------------------------


@dataclass
class SecurityMetrics:
    """Observability counters maintained by :class:`UrlValidator`.

    Attributes:
        validation_attempts: Calls to :meth:`UrlValidator.validate`.
        validation_failures: Calls that raised.
        blocked_domains: Hostnames refused by a domain rule.
        suspicious_patterns: Reasons recorded for suspicious-pattern hits.
        rate_limit_violations: Fetches refused by the rate limiter.
    """

    validation_attempts: int = 0
    validation_failures: int = 0
    blocked_domains: set[str] = field(default_factory=set)
    suspicious_patterns: list[str] = field(default_factory=list)
    rate_limit_violations: int = 0


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def matches_domain_pattern(hostname: str, pattern: str) -> bool:
    """Return ``True`` if ``hostname`` matches a domain ``pattern``.

    ``*`` matches everything; ``*.example.com`` matches ``example.com`` and
    any subdomain; a bare ``example.com`` also matches any subdomain.
    """
    pattern = pattern.strip().lower()
    if pattern == "*":
        return True
    if pattern.startswith("*."):
        pattern = pattern[2:]
    return hostname == pattern or hostname.endswith("." + pattern)


def has_control_characters(text: str) -> bool:
    """Return ``True`` if ``text`` contains C0 or C1 control characters (incl. DEL)."""
    return any(ord(ch) <= 31 or 127 <= ord(ch) <= 159 for ch in text)


def parse_ip_literal(hostname: str) -> IpAddress | None:
    """Return the address if ``hostname`` is an IP literal, else ``None``.

    Besides canonical IPv4/IPv6 forms, accepts the shorthand IPv4 spellings
    resolvers honour (``2130706433``, ``0x7f.1``, ``127.1``).
    """
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        pass
    if _IPV4_SHORTHAND_RE.fullmatch(hostname):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(hostname))
        except OSError:
            return None
    return None


def is_private_or_internal(hostname: str) -> bool:
    """Return ``True`` for private/loopback/link-local/multicast IPs and internal hostnames."""
    address = parse_ip_literal(hostname)
    if address is not None:
        candidates: list[IpAddress] = [address]
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
            candidates.append(address.ipv4_mapped)
        return any(
            candidate.version == network.version and candidate in network
            for candidate in candidates
            for network in PRIVATE_NETWORKS
        )
    return hostname == "localhost" or hostname.endswith(INTERNAL_HOST_SUFFIXES)


def looks_randomly_generated(hostname: str) -> bool:
    """Heuristic check on the first hostname label for DGA-style names."""
    label = hostname.split(".")[0]
    has_repeating_chars = re.search(r"(.)\1{3,}", label) is not None
    has_alternating_pattern = re.search(r"([a-z])([0-9])\1\2", label) is not None
    has_excessive_digits = sum(ch.isdigit() for ch in label) > len(label) * 0.5
    has_no_vowels = re.search(r"[aeiou]", label, re.IGNORECASE) is None
    is_very_short = len(label) < 4
    is_very_long = len(label) > 20
    return (
        has_repeating_chars
        or has_alternating_pattern
        or has_excessive_digits
        or (has_no_vowels and not is_very_short)
        or is_very_long
    )


def _to_ascii_label(label: str) -> str:
    if label.isascii():
        return label
    return label.encode("idna").decode("ascii")


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class UrlValidator:
    """Screens URLs for SSRF, homograph and policy violations.

    Args:
        settings: Source of the configured allow/block lists.  Defaults to
            :func:`~url_context.config.settings.get_settings`.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._malicious_domains: set[str] = set(KNOWN_MALICIOUS_DOMAINS)
        self._metrics = SecurityMetrics()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, url: str, allowed_domains: list[str] | None = None) -> ValidationVerdict:
        """Screen ``url`` and return the verdict, raising on any fatal finding.

        Args:
            url: Candidate URL exactly as supplied by the caller.
            allowed_domains: Allowlist overriding the configured one.

        Returns:
            A valid :class:`ValidationVerdict` carrying non-fatal warnings.

        Raises:
            UrlValidationError: If any fatal check fails.
        """
        with self._lock:
            self._metrics.validation_attempts += 1
        try:
            verdict = self._run_checks(url, allowed_domains)
        except UrlValidationError as exc:
            self._record_failure()
            self._log_security_event(str(exc), url=url, reason=exc.reason.value)
            raise
        except Exception as exc:  # noqa: BLE001
            self._record_failure()
            raise UrlValidationError(
                f"URL validation failed: {exc}", url, ValidationReason.INVALID_FORMAT
            ) from exc

        if verdict.warnings:
            logger.warning("url_validation_warnings", url=url, warnings=verdict.warnings)
        else:
            logger.debug("url_validation_passed", url=url)
        return verdict

    async def check_url_accessibility(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> bool:
        """Return ``True`` if ``url`` passes validation and answers ``HEAD`` with 2xx.

        Never raises; any validation or network failure yields ``False``.
        """
        try:
            self.validate(url)
        except UrlValidationError:
            return False

        timeout = self._settings.default_timeout_ms / 1000
        headers = {"User-Agent": HEALTHCHECK_USER_AGENT}
        try:
            if client is None:
                async with httpx.AsyncClient() as owned_client:
                    response = await owned_client.head(url, headers=headers, timeout=timeout)
            else:
                response = await client.head(url, headers=headers, timeout=timeout)
        except httpx.HTTPError as exc:
            logger.debug("url_accessibility_check_failed", url=url, error=str(exc))
            return False
        return response.is_success

    def add_malicious_domain(self, domain: str) -> None:
        """Add ``domain`` (and implicitly its subdomains) to the malicious blocklist."""
        with self._lock:
            self._malicious_domains.add(domain.strip().lower())
        logger.info("malicious_domain_added", domain=domain)

    def record_rate_limit_violation(self) -> None:
        with self._lock:
            self._metrics.rate_limit_violations += 1

    def get_security_metrics(self) -> SecurityMetrics:
        """Return a snapshot of the counters; mutating it does not affect the validator."""
        with self._lock:
            return SecurityMetrics(
                validation_attempts=self._metrics.validation_attempts,
                validation_failures=self._metrics.validation_failures,
                blocked_domains=set(self._metrics.blocked_domains),
                suspicious_patterns=list(self._metrics.suspicious_patterns),
                rate_limit_violations=self._metrics.rate_limit_violations,
            )

    def reset_security_metrics(self) -> None:
        with self._lock:
            self._metrics = SecurityMetrics()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run_checks(self, url: str, allowed_domains: list[str] | None) -> ValidationVerdict:
        parts = self._parse(url)
        # Resolvers treat a fully qualified "10.0.0.1." as "10.0.0.1".
        hostname = (parts.hostname or "").removesuffix(".")
        if not hostname or hostname.endswith("."):
            raise UrlValidationError(
                f"Invalid URL format: {url}", url, ValidationReason.INVALID_FORMAT
            )

        warnings = self._check_suspicious_patterns(url, hostname)
        self._check_domain_policy(url, hostname, allowed_domains)
        self._check_private_network(url, hostname)
        self._check_malicious_domain(url, hostname)
        self._check_limits(url, parts)
        warnings.extend(self._advanced_heuristics(hostname))
        return ValidationVerdict(valid=True, warnings=warnings)

    def _parse(self, url: str) -> SplitResult:
        try:
            parts = urlsplit(url)
            parts.port  # noqa: B018 - raises ValueError for malformed ports
        except ValueError as exc:
            raise UrlValidationError(
                f"Invalid URL format: {url}", url, ValidationReason.INVALID_FORMAT
            ) from exc

        if not parts.scheme:
            raise UrlValidationError(
                f"Invalid URL format: {url}", url, ValidationReason.INVALID_FORMAT
            )
        if parts.scheme.lower() not in ALLOWED_SCHEMES:
            raise UrlValidationError(
                f"Protocol not allowed: {parts.scheme}:", url, ValidationReason.BLOCKED_DOMAIN
            )
        if not parts.hostname:
            raise UrlValidationError(
                f"Invalid URL format: {url}", url, ValidationReason.INVALID_FORMAT
            )
        return parts

    def _check_suspicious_patterns(self, url: str, hostname: str) -> list[str]:
        if has_control_characters(url):
            self._reject_suspicious(url, "Control characters detected in URL")

        for pattern in SUSPICIOUS_PATTERNS:
            if pattern.search(url):
                self._reject_suspicious(url, f"Suspicious pattern detected: {pattern.pattern}")

        if self._detect_homograph(url, hostname):
            logger.warning("idn_homograph_detected", hostname=hostname)
            raise UrlValidationError(
                "Potential IDN homograph attack detected in domain name",
                url,
                ValidationReason.SUSPICIOUS_PATTERN,
            )

        warnings: list[str] = []
        tld = hostname.rsplit(".", 1)[-1]
        if tld in DANGEROUS_TLDS:
            warnings.append(f"Potentially dangerous TLD: .{tld}")
        if hostname in URL_SHORTENERS:
            warnings.append("URL shortener detected - destination cannot be verified")
        return warnings

    def _detect_homograph(self, url: str, hostname: str) -> bool:
        labels = hostname.split(".")
        try:
            ascii_labels = [_to_ascii_label(label) for label in labels]
        except UnicodeError as exc:
            raise UrlValidationError(
                f"Invalid internationalized domain name: {hostname}",
                url,
                ValidationReason.INVALID_FORMAT,
            ) from exc

        two_labels = len(ascii_labels) == 2
        for label in ascii_labels:
            if not label.startswith(PUNYCODE_PREFIX):
                continue
            encoded = label[len(PUNYCODE_PREFIX):]
            if (
                two_labels
                and len(encoded) <= HOMOGRAPH_MAX_ENCODED_LENGTH
                and ascii_labels[-1] in HOMOGRAPH_TARGET_TLDS
            ):
                logger.warning("suspicious_punycode_domain", hostname=hostname, label=label)
                return True
            if two_labels and HOMOGRAPH_ENCODED_SHAPE.match(encoded):
                return True

        has_latin = LATIN_RE.search(hostname) is not None
        has_cyrillic = CYRILLIC_RE.search(hostname) is not None
        has_greek = GREEK_RE.search(hostname) is not None
        if sum((has_latin, has_cyrillic, has_greek)) > 1:
            return True
        return has_latin and has_cyrillic

    def _check_domain_policy(
        self, url: str, hostname: str, allowed_domains: list[str] | None
    ) -> None:
        for pattern in self._settings.blocklisted_domains:
            if matches_domain_pattern(hostname, pattern):
                self._record_blocked(hostname)
                raise UrlValidationError(
                    f"Domain is blocked: {hostname}", url, ValidationReason.BLOCKED_DOMAIN
                )

        patterns = allowed_domains if allowed_domains is not None else self._settings.allowed_domains
        if patterns and "*" not in patterns:
            if not any(matches_domain_pattern(hostname, pattern) for pattern in patterns):
                raise UrlValidationError(
                    f"Domain not in allowlist: {hostname}", url, ValidationReason.BLOCKED_DOMAIN
                )

    def _check_private_network(self, url: str, hostname: str) -> None:
        if is_private_or_internal(hostname):
            self._record_blocked(hostname)
            raise UrlValidationError(
                f"Access to private/internal addresses blocked: {hostname}",
                url,
                ValidationReason.BLOCKED_DOMAIN,
            )

    def _check_malicious_domain(self, url: str, hostname: str) -> None:
        with self._lock:
            malicious = any(
                hostname == domain or hostname.endswith("." + domain)
                for domain in self._malicious_domains
            )
        if malicious:
            self._record_blocked(hostname)
            raise UrlValidationError(
                f"Access to known malicious domain blocked: {hostname}",
                url,
                ValidationReason.BLOCKED_DOMAIN,
            )

    def _check_limits(self, url: str, parts: SplitResult) -> None:
        if len(url) > MAX_URL_LENGTH:
            raise UrlValidationError(
                f"URL too long (max {MAX_URL_LENGTH} characters)",
                url,
                ValidationReason.INVALID_FORMAT,
            )
        if parts.port is not None and parts.port not in ALLOWED_PORTS:
            raise UrlValidationError(
                f"Port not allowed: {parts.port}", url, ValidationReason.BLOCKED_DOMAIN
            )

    def _advanced_heuristics(self, hostname: str) -> list[str]:
        warnings: list[str] = []
        labels = hostname.split(".")
        if len(labels) == 2 and len(labels[0]) < 3:
            warnings.append("Potentially suspicious short domain")
        if len(labels) > MAX_SUBDOMAIN_LEVELS:
            warnings.append(f"Excessive subdomain levels detected: {len(labels)}")
        if parse_ip_literal(hostname) is None and looks_randomly_generated(hostname):
            warnings.append("Potentially randomly generated domain")
        return warnings

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _reject_suspicious(self, url: str, reason: str) -> None:
        with self._lock:
            self._metrics.suspicious_patterns.append(reason)
        raise UrlValidationError(reason, url, ValidationReason.SUSPICIOUS_PATTERN)

    def _record_blocked(self, hostname: str) -> None:
        with self._lock:
            self._metrics.blocked_domains.add(hostname)

    def _record_failure(self) -> None:
        with self._lock:
            self._metrics.validation_failures += 1

    def _log_security_event(self, event: str, **details: object) -> None:
        logger.warning("url_security_event", security_event=event, **details)
