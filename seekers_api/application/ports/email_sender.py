from typing import Protocol, Dict, Optional


class EmailDeliveryError(Exception):
    pass


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, template_id: Optional[int], variables: Dict[str, str]) -> None:
        """Deliver a templated email; raises EmailDeliveryError on failure."""
        ...
