"""A simulated federation that runs a module on several in-memory members."""

from __future__ import annotations

import inspect
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, NamedTuple, Optional, Sequence

from fedkit.db.base import Database
from fedkit.db.batch import Accumulator
from fedkit.db.memory import MemDatabase
from fedkit.module.api import FederationModule, ModuleInterconnect
from fedkit.types import Amount, OutPoint, PeerId


def assert_all_equal(items: Iterable[Any]) -> Any:
    """Return the first item, raising ``AssertionError`` if any other item differs."""
    iterator = iter(items)
    try:
        first = next(iterator)
    except StopIteration:
        raise ValueError("empty iterator") from None
    for item in iterator:
        if item != first:
            raise AssertionError(f"{first!r} != {item!r}")
    return first


@dataclass
class TestInputMeta:
    """Comparable summary of a validated input."""

    __test__ = False

    amount: Amount
    keys: list[Any] = field(default_factory=list)


@dataclass(frozen=True, eq=False)
class _Failure:
    error: BaseException

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, _Failure)
            and type(self.error) is type(other.error)
            and self.error.args == other.error.args
        )

    __hash__ = None  # type: ignore[assignment]


class FakeInterconnect(ModuleInterconnect):
    """An interconnect answering calls with a plain function."""

    def __init__(self, responder: Callable[[str, str, Any], Any]) -> None:
        self._responder = responder

    @classmethod
    def block_height_responder(cls, height_ref: Callable[[], int]) -> "FakeInterconnect":
        """Answer only the wallet's ``/block_height`` endpoint with ``height_ref()``."""

        def respond(module: str, path: str, data: Any) -> Any:
            if module != "wallet":
                raise AssertionError(f"unexpected module {module!r}")
            if path != "/block_height":
                raise AssertionError(f"unexpected path {path!r}")
            return int(height_ref())

        return cls(respond)

    async def call(self, module: str, path: str, data: Any) -> Any:
        return self._responder(module, path, data)


class _Member(NamedTuple):
    peer: PeerId
    module: FederationModule
    db: MemDatabase


class FakeFed:
    """Runs one module instance per peer and checks they all agree."""

    def __init__(self, members: Sequence[_Member], client_cfg: Any) -> None:
        self._members = list(members)
        self.client_cfg = client_cfg
        self._block_height = 0

    @classmethod
    async def create(
        cls,
        members: int,
        max_evil: int,
        config_type: Any,
        constructor: Callable[[Any, MemDatabase], Any],
        params: Any,
    ) -> "FakeFed":
        """Generate configs with a trusted dealer and build one module per peer."""
        peers = [PeerId(index) for index in range(members)]
        server_cfg, client_cfg = config_type.trusted_dealer_gen(
            peers, max_evil, params, random.SystemRandom()
        )
        built = []
        for peer in sorted(server_cfg):
            db = MemDatabase()
            module = constructor(server_cfg[peer], db)
            if inspect.isawaitable(module):
                module = await module
            built.append(_Member(peer, module, db))
        return cls(built, client_cfg)

    @property
    def block_height(self) -> int:
        return self._block_height

    def set_block_height(self, height: int) -> None:
        self._block_height = height

    def _interconnect(self) -> FakeInterconnect:
        return FakeInterconnect.block_height_responder(lambda: self._block_height)

    def verify_input(self, tx_input: Any) -> TestInputMeta:
        """Validate ``tx_input`` on every member; all must agree on the result."""
        interconnect = self._interconnect()
        outcomes: list[Any] = []
        for member in self._members:
            cache = member.module.build_verification_cache(iter((tx_input,)))
            try:
                meta = member.module.validate_input(interconnect, cache, tx_input)
            except Exception as exc:
                outcomes.append(_Failure(exc))
            else:
                outcomes.append(TestInputMeta(meta.amount, list(meta.puk_keys)))
        first = assert_all_equal(outcomes)
        if isinstance(first, _Failure):
            raise first.error
        return first

    def verify_output(self, output: Any) -> bool:
        """Return whether every member rejects ``output``; all must agree."""

        def rejected(module: FederationModule) -> bool:
            try:
                module.validate_output(output)
            except Exception:
                return True
            return False

        return assert_all_equal(rejected(member.module) for member in self._members)

    async def consensus_round(
        self, inputs: Sequence[Any], outputs: Sequence[tuple[OutPoint, Any]]
    ) -> None:
        """Run one epoch on every member, applying ``inputs`` and ``outputs``."""
        rng = random.SystemRandom()
        interconnect = self._interconnect()

        consensus: list[tuple[PeerId, Any]] = []
        for member in self._members:
            proposal = await member.module.consensus_proposal(rng)
            consensus.extend((member.peer, item) for item in proposal)

        peers = {member.peer for member in self._members}
        for member in self._members:
            module = member.module
            batch: Accumulator = Accumulator()
            with batch.transaction() as tx:
                await module.begin_consensus_epoch(tx, list(consensus), rng)

            cache = module.build_verification_cache(iter(inputs))
            for tx_input in inputs:
                with batch.transaction() as tx:
                    try:
                        module.apply_input(interconnect, tx, tx_input, cache)
                    except Exception as exc:
                        raise RuntimeError("Faulty input") from exc

            for out_point, output in outputs:
                with batch.transaction() as tx:
                    try:
                        module.apply_output(tx, output, out_point)
                    except Exception as exc:
                        raise RuntimeError("Faulty output") from exc

            member.db.apply_batch(batch)

            batch = Accumulator()
            with batch.transaction() as tx:
                await module.end_consensus_epoch(peers, tx, rng)
            member.db.apply_batch(batch)

    def output_outcome(self, out_point: OutPoint) -> Optional[Any]:
        """The outcome of ``out_point``; every member must report the same."""
        return assert_all_equal(member.module.output_status(out_point) for member in self._members)

    def patch_dbs(self, update: Callable[[Database], Any]) -> None:
        """Apply ``update`` to every member's database."""
        for member in self._members:
            update(member.db)

    def fetch_from_all(self, fetch: Callable[[FederationModule], Any]) -> Any:
        """Apply ``fetch`` to every member's module and return the common result."""
        return assert_all_equal(fetch(member.module) for member in self._members)