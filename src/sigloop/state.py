from dataclasses import dataclass, field
from typing import Union

from .types import Request


@dataclass
class RetryState:
    request: Request  # signed once, reused as-is for every attempt
    max_attempts: int
    attempt: int = 1
    last_body: Union[bytes, None] = None
    last_error: Union[BaseException, None] = None
    waits: list[float] = field(default_factory=list)

    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def advance(self, delay: float) -> None:
        self.waits.append(delay)
        self.attempt += 1
