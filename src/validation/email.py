"""
Email Address Syntax Validation

DESIGN DECISION: The grammar is checked by an explicit parser rather than
one regular expression. Each rule reports its own reason, and rules run in
a fixed order so the same input always fails the same way:

RULE 1 - STRUCTURE:   exactly one unescaped "@"
RULE 2 - LOCAL PART:  letters, digits and . _ % + -, no leading/trailing dot
RULE 3 - DOMAIN:      dotted hostname, or [IPv4] / [IPv6:...] literal
RULE 4 - WHITESPACE:  none anywhere

Only the first failing rule is reported.

Quoted local parts and internationalized domain names are not accepted.
"""

import string
from typing import Optional

from src.models.account import EmailErrorReason, EmailValidationResult


LOCAL_PART_CHARS = frozenset(string.ascii_letters + string.digits + "._%+-")
HOSTNAME_CHARS = frozenset(string.ascii_letters + string.digits + "-")
DECIMAL_DIGITS = frozenset(string.digits)
HEX_DIGITS = frozenset(string.hexdigits)

MAX_LOCAL_PART_LENGTH = 64
MAX_DOMAIN_LENGTH = 253
MAX_LABEL_LENGTH = 63

IPV6_TAG = "ipv6:"

# (reason, message) for a failed rule, None when the rule passes
Problem = Optional[tuple[EmailErrorReason, str]]


def _structure(message: str) -> Problem:
    return EmailErrorReason.MALFORMED_STRUCTURE, message


def _local(message: str) -> Problem:
    return EmailErrorReason.MALFORMED_LOCAL_PART, message


def _domain(message: str) -> Problem:
    return EmailErrorReason.MALFORMED_DOMAIN, message


def _out_of_range(message: str) -> Problem:
    return EmailErrorReason.IP_LITERAL_OUT_OF_RANGE, message


class EmailSyntaxValidator:
    """
    Validates email addresses against the Firetrack grammar.

    Stateless; one instance can be shared freely.
    """

    def validate(self, candidate: str) -> EmailValidationResult:
        """
        Validate a candidate email address.

        Args:
            candidate: The address exactly as the user typed it

        Returns:
            EmailValidationResult, valid or carrying the first failed rule
        """
        problem = self._find_problem(candidate)
        if problem is None:
            return EmailValidationResult.valid(candidate)
        reason, message = problem
        return EmailValidationResult.invalid(candidate, reason, message)

    def is_valid(self, candidate: str) -> bool:
        return self._find_problem(candidate) is None

    def _find_problem(self, candidate: str) -> Problem:
        if not candidate:
            return _structure("Email address is empty")

        separators = self._unescaped_at_positions(candidate)
        if not separators:
            return _structure("Email address must contain an @")
        if len(separators) > 1:
            return _structure("Email address must contain exactly one @")

        at = separators[0]
        local_part, domain = candidate[:at], candidate[at + 1:]

        problem = self._check_local_part(local_part)
        if problem:
            return problem

        problem = self._check_domain(domain)
        if problem:
            return problem

        if any(ch.isspace() for ch in candidate):
            return _structure("Email address must not contain whitespace")

        return None

    @staticmethod
    def _unescaped_at_positions(candidate: str) -> list[int]:
        positions = []
        escaped = False
        for index, ch in enumerate(candidate):
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == "@":
                positions.append(index)
        return positions

    # =========================================================================
    # LOCAL PART
    # =========================================================================

    def _check_local_part(self, local_part: str) -> Problem:
        if not local_part:
            return _local("The part before the @ is empty")

        for ch in local_part:
            if ch.isspace():
                return _local("The part before the @ contains a space")
            if ch not in LOCAL_PART_CHARS:
                return _local(f"The part before the @ contains {ch!r}")

        if local_part.startswith(".") or local_part.endswith("."):
            return _local("The part before the @ must not start or end with a dot")
        if ".." in local_part:
            return _local("The part before the @ must not contain two dots in a row")
        if len(local_part) > MAX_LOCAL_PART_LENGTH:
            return _local(
                f"The part before the @ is longer than {MAX_LOCAL_PART_LENGTH} characters"
            )

        return None

    # =========================================================================
    # DOMAIN
    # =========================================================================

    def _check_domain(self, domain: str) -> Problem:
        if not domain:
            return _domain("The domain after the @ is empty")

        if domain.startswith("["):
            if len(domain) < 2 or not domain.endswith("]"):
                return _domain("The IP address literal is missing its closing bracket")
            return self._check_ip_literal(domain[1:-1])

        return self._check_hostname(domain)

    def _check_hostname(self, hostname: str) -> Problem:
        if len(hostname) > MAX_DOMAIN_LENGTH:
            return _domain(f"The domain is longer than {MAX_DOMAIN_LENGTH} characters")
        if hostname.endswith("."):
            return _domain("The domain must not end with a dot")

        labels = hostname.split(".")
        if len(labels) < 2:
            return _domain("The domain must contain at least one dot")

        for label in labels:
            if not label:
                return _domain("The domain contains an empty label")
            if len(label) > MAX_LABEL_LENGTH:
                return _domain(
                    f"Domain label {label[:10]!r}... is longer than {MAX_LABEL_LENGTH} characters"
                )
            for ch in label:
                if ch not in HOSTNAME_CHARS:
                    return _domain(f"Domain label {label!r} contains {ch!r}")
            if label.startswith("-") or label.endswith("-"):
                return _domain(f"Domain label {label!r} must not start or end with a hyphen")

        return None

    def _check_ip_literal(self, content: str) -> Problem:
        if content[:len(IPV6_TAG)].lower() == IPV6_TAG:
            content = content[len(IPV6_TAG):]
            if not content:
                return _domain("The IP address literal is empty")
        if ":" in content:
            return self._check_ipv6(content)
        return self._check_ipv4(content)

    def _check_ipv4(self, address: str) -> Problem:
        octets = address.split(".")
        if len(octets) != 4:
            return _domain(f"IPv4 address {address!r} must have four parts")

        for octet in octets:
            if not octet or any(ch not in DECIMAL_DIGITS for ch in octet):
                return _domain(f"IPv4 part {octet!r} is not a number")
            if len(octet) > 1 and octet.startswith("0"):
                return _domain(f"IPv4 part {octet!r} has a leading zero")
            if int(octet) > 255:
                return _out_of_range(f"IPv4 part {octet} is larger than 255")

        return None

    def _check_ipv6(self, address: str) -> Problem:
        if not address:
            return _domain("The IPv6 address is empty")
        if address.count("::") > 1:
            return _domain("The IPv6 address may compress zeros only once")

        compressed = "::" in address
        if compressed:
            head, tail = address.split("::", 1)
        else:
            head, tail = address, ""
        head_groups = head.split(":") if head else []
        tail_groups = tail.split(":") if tail else []
        groups = head_groups + tail_groups

        embedded_ipv4 = None
        if groups and "." in groups[-1]:
            if compressed and not tail_groups:
                return _domain("An embedded IPv4 address must come last")
            embedded_ipv4 = groups.pop()

        for group in groups:
            if not group:
                return _domain("The IPv6 address contains an empty group")
            if any(ch not in HEX_DIGITS for ch in group):
                return _domain(f"IPv6 group {group!r} is not hexadecimal")
            if int(group, 16) > 0xFFFF:
                return _out_of_range(f"IPv6 group {group} is larger than ffff")
            if len(group) > 4:
                return _domain(f"IPv6 group {group!r} has more than four digits")

        if embedded_ipv4 is not None:
            problem = self._check_ipv4(embedded_ipv4)
            if problem:
                return problem

        width = len(groups) + (2 if embedded_ipv4 is not None else 0)
        if compressed and width > 7:
            return _domain("The IPv6 address has too many groups")
        if not compressed and width != 8:
            return _domain("The IPv6 address must have eight groups")

        return None


_default_validator = EmailSyntaxValidator()


def validate_email(candidate: str) -> EmailValidationResult:
    """Validate with a shared EmailSyntaxValidator."""
    return _default_validator.validate(candidate)
