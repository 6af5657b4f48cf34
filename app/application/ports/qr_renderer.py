from typing import Protocol


class QRRenderer(Protocol):
    def render(self, payload: str) -> str:
        """Return the payload rendered as a PNG data URL."""
        ...
