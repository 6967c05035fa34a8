from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class RequestContext:
    """Who is acting, and what they should be told on the next page.

    Built once per request and passed down explicitly. Messages are
    (category, text) pairs; the boundary turns them into flash messages.
    """

    actor_id: Optional[int] = None
    username: Optional[str] = None
    messages: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def is_anonymous(self) -> bool:
        return self.actor_id is None

    def flash(self, text: str, category: str = "success") -> None:
        self.messages.append((category, text))

    def success(self, text: str) -> None:
        self.flash(text, "success")

    def error(self, text: str) -> None:
        self.flash(text, "error")
