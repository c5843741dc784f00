from abc import ABC, abstractmethod


class Module(ABC):
    """A unit the CLI runner can launch by name.

    Subclasses receive their services through the constructor (resolved by
    the container) and are driven by run(): initialize, validate, execute.
    teardown() runs however execute() ends.
    """

    async def initialize(self) -> None:
        pass

    async def validate(self) -> None:
        """Raise ValueError for unusable configuration."""

    @abstractmethod
    async def execute(self) -> int:
        """Do the work and return the process exit code."""

    async def teardown(self) -> None:
        pass

    async def run(self) -> int:
        try:
            await self.initialize()
            await self.validate()
            return await self.execute()
        finally:
            await self.teardown()
