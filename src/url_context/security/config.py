"""Pattern tables and network ranges used by the URL validator."""

from __future__ import annotations

import ipaddress
import re

# ---------------------------------------------------------------------------
# Schemes & ports
# ---------------------------------------------------------------------------

ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})

ALLOWED_PORTS: frozenset[int] = frozenset({80, 443, 8080, 8443})

#: Maximum accepted URL length in characters.
MAX_URL_LENGTH: int = 2048

# ---------------------------------------------------------------------------
# Suspicious raw-string patterns (fatal)
# ---------------------------------------------------------------------------

#: Checked against the full URL string, in order; the first match rejects.
SUSPICIOUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\.\."),  # path traversal
    re.compile(r"@.*@"),  # multiple @ symbols
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
    re.compile(r"file:", re.IGNORECASE),
    re.compile(r"ftp:", re.IGNORECASE),
    re.compile(r"localhost|127\.0\.0\.1|0\.0\.0\.0", re.IGNORECASE),
    re.compile(r"\.(local|internal|private|corp|lan)$", re.IGNORECASE),
    re.compile(r"%[0-9a-f]{2}", re.IGNORECASE),  # percent-encoding
    re.compile(r'[<>{}\\^`|"]'),
)

# ---------------------------------------------------------------------------
# Homograph heuristics
# ---------------------------------------------------------------------------

PUNYCODE_PREFIX: str = "xn--"

#: TLDs that popular brand names live under.
HOMOGRAPH_TARGET_TLDS: frozenset[str] = frozenset({"com", "org", "net", "io", "co"})

#: Encoded labels at or below this length mimic short brand names.
HOMOGRAPH_MAX_ENCODED_LENGTH: int = 10

#: ``word-suffix`` shape typical of single-character substitutions
#: (``xn--pple-43d`` is "apple" with a Cyrillic "а").
HOMOGRAPH_ENCODED_SHAPE: re.Pattern[str] = re.compile(r"^[a-z0-9]{3,8}-[a-z0-9]{2,4}$")

LATIN_RE: re.Pattern[str] = re.compile(r"[a-zA-Z]")
CYRILLIC_RE: re.Pattern[str] = re.compile(r"[\u0400-\u04FF]")
GREEK_RE: re.Pattern[str] = re.compile(r"[\u0370-\u03FF]")

# ---------------------------------------------------------------------------
# Private / internal networks
# ---------------------------------------------------------------------------

PRIVATE_NETWORKS: tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...] = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),  # link-local
    ipaddress.ip_network("224.0.0.0/4"),  # multicast
    ipaddress.ip_network("127.0.0.0/8"),  # loopback
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("fc00::/7"),  # unique local
    ipaddress.ip_network("fe80::/10"),  # link-local
    ipaddress.ip_network("ff00::/8"),  # multicast
    ipaddress.ip_network("::1/128"),  # loopback
    ipaddress.ip_network("::/128"),  # unspecified
)

INTERNAL_HOST_SUFFIXES: tuple[str, ...] = (
    ".local",
    ".internal",
    ".private",
    ".corp",
    ".lan",
    ".test",
    ".dev",
    ".localhost",
)

# ---------------------------------------------------------------------------
# Domain reputation
# ---------------------------------------------------------------------------

KNOWN_MALICIOUS_DOMAINS: frozenset[str] = frozenset(
    {
        "malware.com",
        "phishing.com",
        "spam.com",
        "virus.com",
        "trojan.com",
    }
)

#: Free-registration, shortener-like and file-extension TLDs (warning only).
DANGEROUS_TLDS: frozenset[str] = frozenset(
    {"tk", "ml", "ga", "cf", "bit", "link", "click", "download", "zip", "exe"}
)

#: Shorteners hide the real destination (warning only).
URL_SHORTENERS: frozenset[str] = frozenset(
    {
        "bit.ly",
        "tinyurl.com",
        "short.link",
        "ow.ly",
        "t.co",
        "goo.gl",
        "tiny.cc",
        "is.gd",
        "buff.ly",
        "bitly.com",
    }
)

#: Hostnames with more dot-separated labels than this are flagged (warning only).
MAX_SUBDOMAIN_LEVELS: int = 5
