"""Email channel registry.

Uses the fake adapter unless another EmailPort is installed, e.g. an SMTP
or transactional-mail adapter wired in at application start.
"""

from marketplace.notification.channel.email_port import EmailPort

_email_channel: EmailPort | None = None


def get_email_channel() -> EmailPort:
    global _email_channel
    if _email_channel is None:
        from marketplace.notification.channel.fake_email import FakeEmailAdapter

        _email_channel = FakeEmailAdapter()
    return _email_channel


def set_email_channel(channel: EmailPort) -> None:
    global _email_channel
    _email_channel = channel


def reset_channels():
    """Drop the channel singleton (useful for testing)."""
    global _email_channel
    _email_channel = None
