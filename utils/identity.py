"""Template names and batch identifiers"""

import secrets
import time
import uuid
from typing import Callable, Optional


class IdentityFactory:
    """Generates unique names; clock and token source are injectable for tests"""

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        token_factory: Optional[Callable[[], str]] = None,
        batch_factory: Optional[Callable[[], str]] = None,
    ):
        self.clock = clock or time.time
        self.token_factory = token_factory or (lambda: secrets.token_hex(3))
        self.batch_factory = batch_factory or (lambda: str(uuid.uuid4()))

    def template_name(self, base_name: str) -> str:
        """<base>-<epoch ms>-<token>"""
        timestamp = int(self.clock() * 1000)
        return f"{base_name}-{timestamp}-{self.token_factory()}"

    def batch_id(self) -> str:
        return self.batch_factory()
