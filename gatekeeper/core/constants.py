class RateLimitPrefix:
    """
    Registry of counter key prefixes: `ratelimit:<category>:<identifier>`,
    where the identifier is a client address or a validated token subject.

    Example:
        ```python
        key = f"{RateLimitPrefix.IP}{ip_address}"  # "ratelimit:ip:203.0.113.5"
        ```
    """

    # Every inbound request, keyed by client address
    IP = "ratelimit:ip:"

    # Authenticated endpoints, keyed by token subject
    USER = "ratelimit:user:"

    @classmethod
    def all_prefixes(cls) -> set[str]:
        return {
            value
            for value in vars(cls).values()
            if isinstance(value, str) and value.startswith("ratelimit:")
        }

    @classmethod
    def validate_prefix(cls, prefix: str) -> None:
        """
        Ensure an endpoint-specific prefix cannot share counters with a
        registered category.

        Raises:
            ValueError: If the prefix is already registered
        """
        registered = cls.all_prefixes()
        if prefix in registered:
            raise ValueError(
                f"Rate limit prefix '{prefix}' is already registered "
                f"(registered: {sorted(registered)})"
            )
