import logging


def setup_logging(level: int = logging.INFO) -> None:
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def mask_identifier(value: str | None) -> str:
    """Mask an account identifier for log output ("jo***@example.com")."""
    if not value:
        return "<empty>"
    name, sep, domain = value.partition("@")
    return f"{name[:2]}***{sep}{domain}"
