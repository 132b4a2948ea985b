"""
Notification sink interface.
Booking and payment services push a message after each transition and
never depend on how (or whether) it is stored.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class NotificationMessage:
    user_id: int
    type: str
    title: str
    message: str
    action_url: Optional[str] = None
    data: dict = field(default_factory=dict)


class NotificationSink(ABC):
    @abstractmethod
    async def notify(self, message: NotificationMessage) -> None:
        """Persist or forward one notification. May raise; callers guard it."""
