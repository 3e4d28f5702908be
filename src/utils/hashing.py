import hashlib
import ipaddress
import secrets

SHARE_TOKEN_BYTES: int = 16


class HashingService:
    """Helpers for hashing client identity and minting opaque tokens."""

    @staticmethod
    def ip_subnet(ip_address: str) -> str:
        """
        Collapse an IP address to its network so clients rotating addresses
        within one allocation share a fingerprint.

        IPv4 addresses map to their /24, IPv6 addresses to their /48.
        Anything unparseable is returned unchanged.

        Args:
            ip_address: The client IP address

        Returns:
            The subnet in CIDR notation
        """
        try:
            address = ipaddress.ip_address(ip_address.strip())
        except ValueError:
            return ip_address
        prefix = 24 if address.version == 4 else 48
        return str(ipaddress.ip_network(f"{address}/{prefix}", strict=False))

    @staticmethod
    def fingerprint(
        ip_subnet: str, user_agent: str | None, accept_language: str | None
    ) -> str:
        """
        Hash the identifying parts of an anonymous request.

        Returns:
            A 64 character hex sha256 digest
        """
        raw = "|".join([ip_subnet, user_agent or "", accept_language or ""])
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    @staticmethod
    def generate_share_token() -> str:
        return secrets.token_urlsafe(SHARE_TOKEN_BYTES)
