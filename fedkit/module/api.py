"""Interfaces implemented by federation modules and their API endpoints."""

from __future__ import annotations

import dataclasses
import json
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from fedkit.types import Amount


class ApiError(Exception):
    """An error returned by an API endpoint, with an HTTP-like status code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @classmethod
    def not_found(cls, message: str) -> "ApiError":
        return cls(404, message)

    @classmethod
    def bad_request(cls, message: str) -> "ApiError":
        return cls(400, message)

    def __repr__(self) -> str:
        return f"ApiError(code={self.code}, message={self.message!r})"


@dataclass
class InputMeta:
    """Amount spent by a transaction input and the keys that must sign for it."""

    amount: Amount
    puk_keys: Iterable[Any]


_SCALARS = (bool, int, float, str, list, dict)

_BASIC_TYPES: dict[str, Any] = {
    "bool": bool,
    "int": int,
    "float": float,
    "str": str,
    "list": list,
    "dict": dict,
    "None": type(None),
    "Any": Any,
}


def _parse_params(param_type: Any, params: Any) -> Any:
    if param_type is None or param_type is Any:
        return params
    if param_type is type(None):
        if params is not None:
            raise ApiError.bad_request(f"invalid type: expected null, got {params!r}")
        return None
    if isinstance(param_type, type) and dataclasses.is_dataclass(param_type):
        if not isinstance(params, dict):
            raise ApiError.bad_request(f"invalid type: expected object for {param_type.__name__}")
        try:
            return param_type(**params)
        except (TypeError, ValueError) as exc:
            raise ApiError.bad_request(str(exc)) from exc
    origin = typing.get_origin(param_type) or param_type
    if origin in _SCALARS:
        accepted: tuple[type, ...] = (int, float) if origin is float else (origin,)
        if not isinstance(params, accepted) or (origin is not bool and isinstance(params, bool)):
            raise ApiError.bad_request(
                f"invalid type: expected {origin.__name__}, got {type(params).__name__}"
            )
    return params


def _to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    return json.loads(json.dumps(value))


@dataclass(frozen=True)
class ApiEndpoint:
    """An API endpoint of a module, reachable under ``/<module base name><path>``."""

    path: str
    handler: Callable[[Any, Any], Awaitable[Any]]
    param_type: Any = None

    async def call(self, state: Any, params: Any) -> Any:
        """Parse JSON ``params``, run the handler and return its result as JSON data."""
        parsed = _parse_params(self.param_type, params)
        result = await self.handler(state, parsed)
        return _to_json(result)


def _resolve_name(handler: Callable[..., Any], name: str) -> Any:
    """Look up a string annotation naming a basic type or a type in the handler's module."""
    if name in _BASIC_TYPES:
        return _BASIC_TYPES[name]
    namespace = getattr(handler, "__globals__", {}) or {}
    candidate = namespace.get(name)
    if isinstance(candidate, type):
        return candidate
    return None


def _param_annotation(handler: Callable[..., Any]) -> Any:
    code = getattr(handler, "__code__", None)
    if code is None:
        raise TypeError("an endpoint handler must be a function")
    parameters = code.co_varnames[: code.co_argcount]
    if len(parameters) != 2 or code.co_kwonlyargcount:
        raise TypeError("an endpoint handler takes exactly (state, params)")
    annotations = getattr(handler, "__annotations__", {}) or {}
    name = parameters[1]
    if name not in annotations:
        return None
    annotation = annotations[name]
    if annotation is None:
        return type(None)
    if isinstance(annotation, str):
        return _resolve_name(handler, annotation.strip())
    return annotation


def api_endpoint(path: str) -> Callable[[Callable[[Any, Any], Awaitable[Any]]], ApiEndpoint]:
    """Decorator turning ``async def handler(state, params)`` into an :class:`ApiEndpoint`.

    The annotation of ``params`` decides how incoming JSON is checked: a dataclass is
    built from an object, basic types are type-checked and ``None`` requires null.
    """

    def decorate(handler: Callable[[Any, Any], Awaitable[Any]]) -> ApiEndpoint:
        return ApiEndpoint(path, handler, _param_annotation(handler))

    return decorate


class ModuleInterconnect(ABC):
    """Lets a module call the API of another module."""

    @abstractmethod
    async def call(self, module: str, path: str, data: Any) -> Any:
        """Call endpoint ``path`` of ``module`` with JSON ``data``."""


class GenerateConfig(ABC):
    """Part of a config that is generated to bootstrap a new federation."""

    @classmethod
    @abstractmethod
    def trusted_dealer_gen(
        cls, peers: Iterable[Any], max_evil: int, params: Any, rng: Any
    ) -> tuple[dict[Any, "GenerateConfig"], Any]:
        """Generate the configs of all peers and the client config locally (testing only)."""

    @abstractmethod
    def to_client_config(self) -> Any:
        """Derive the client config from this server config."""

    @abstractmethod
    def validate_config(self, identity: Any) -> None:
        """Check the keys in this config, raising if they are not consistent."""


class FederationModule(ABC):
    """A consensus module of the federation."""

    @abstractmethod
    async def await_consensus_proposal(self, rng: Any) -> None:
        """Wait until a new consensus proposal is available."""

    @abstractmethod
    async def consensus_proposal(self, rng: Any) -> list[Any]:
        """This module's contribution to the next consensus proposal."""

    @abstractmethod
    async def begin_consensus_epoch(
        self, batch: Any, consensus_items: list[tuple[Any, Any]], rng: Any
    ) -> None:
        """Process this round's consensus items before transactions are handled."""

    @abstractmethod
    def build_verification_cache(self, inputs: Iterable[Any]) -> Any:
        """Precompute pure, slow parts of input verification."""

    @abstractmethod
    def validate_input(
        self, interconnect: ModuleInterconnect, verification_cache: Any, tx_input: Any
    ) -> InputMeta:
        """Check an input without side effects, raising if it is invalid."""

    @abstractmethod
    def apply_input(
        self, interconnect: ModuleInterconnect, batch: Any, tx_input: Any, verification_cache: Any
    ) -> InputMeta:
        """Spend an input, recording database changes in ``batch``."""

    @abstractmethod
    def validate_output(self, output: Any) -> Amount:
        """Check an output without side effects, raising if it is invalid."""

    @abstractmethod
    def apply_output(self, batch: Any, output: Any, out_point: Any) -> Amount:
        """Create an output, recording database changes in ``batch``."""

    @abstractmethod
    async def end_consensus_epoch(
        self, consensus_peers: set[Any], batch: Any, rng: Any
    ) -> list[Any]:
        """Finalize the epoch and return the peers to drop for misbehaviour."""

    @abstractmethod
    def output_status(self, out_point: Any) -> Optional[Any]:
        """Current outcome of an output, or ``None`` if it is unknown."""

    @abstractmethod
    def audit(self, audit: Any) -> None:
        """Add this module's assets and liabilities to ``audit``."""

    @abstractmethod
    def api_base_name(self) -> str:
        """Path prefix of this module's API endpoints."""

    @abstractmethod
    def api_endpoints(self) -> list[ApiEndpoint]:
        """The API endpoints this module defines."""