"""Backend resolution: strategies that turn a backend root into an operator."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Optional, Union

from remote_dispatch._errors import ProfileMissingType, ProfileNotFound, UnsupportedScheme
from remote_dispatch._location import parse_root
from remote_dispatch._registry import OperatorRegistry, default_registry

if TYPE_CHECKING:
    from remote_dispatch._operator import Operator
    from remote_dispatch._types import ProfileTable, Transform

log = logging.getLogger(__name__)

PROFILE_TYPE_KEY = "type"


def _builtin_registry() -> OperatorRegistry:
    return default_registry().snapshot()


@dataclasses.dataclass(frozen=True)
class Builtin:
    """Resolve by scheme against the built-in backends.

    :param registry: Read-only snapshot of the process-wide registry, taken
        when the strategy is built. Later :func:`register_backend` calls do
        not reach it.
    """

    registry: OperatorRegistry = dataclasses.field(default_factory=_builtin_registry, compare=False, repr=False)


@dataclasses.dataclass(frozen=True)
class ExplicitRegistry:
    """Resolve by scheme against a caller-supplied registry.

    :param registry: The registry to look schemes up in.
    """

    registry: OperatorRegistry


@dataclasses.dataclass(frozen=True)
class Profiles:
    """Resolve the scheme position of a root as a named profile.

    Each profile is a flat string map whose ``type`` entry names the backend
    kind; the other entries configure it.

    :param profiles: Profile name to configuration map. Copied on construction.
    :param registry: Registry the ``type`` is looked up in (default: a snapshot
        of the built-ins taken on construction).
    """

    profiles: ProfileTable
    registry: Optional[OperatorRegistry] = None

    def __post_init__(self) -> None:
        copied = {name.lower(): dict(config) for name, config in self.profiles.items()}
        object.__setattr__(self, "profiles", copied)
        if self.registry is None:
            object.__setattr__(self, "registry", _builtin_registry())


@dataclasses.dataclass(frozen=True)
class Chain:
    """Try strategies in order, moving on only when one reports an unsupported scheme.

    :param strategies: The strategies to try, first to last.
    """

    strategies: Sequence[Strategy]

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategies", tuple(self.strategies))


@dataclasses.dataclass(frozen=True)
class Decorated:
    """Apply a transform to every operator the inner strategy resolves.

    :param inner: The strategy to delegate to.
    :param transform: Function applied to each successfully resolved operator.
    """

    inner: Strategy
    transform: Transform


Strategy = Union[Builtin, ExplicitRegistry, Profiles, Chain, Decorated]


def resolve(strategy: Strategy, root: str) -> Operator:
    """Resolve ``root`` to a new operator using ``strategy``.

    :raises UriInvalid: If ``root`` is not a URI.
    :raises UnsupportedScheme: If no strategy recognizes the root.
    :raises ProfileNotFound: If a lone profile strategy has no matching profile.
    :raises ProfileMissingType: If the matched profile has no ``type``.
    :raises ConfigInvalid: If the backend rejects its configuration.
    """
    if isinstance(strategy, (Builtin, ExplicitRegistry)):
        return strategy.registry.load(root)
    if isinstance(strategy, Profiles):
        return _resolve_profile(strategy, root)
    if isinstance(strategy, Chain):
        return _resolve_chain(strategy, root)
    if isinstance(strategy, Decorated):
        return strategy.transform(resolve(strategy.inner, root))
    raise TypeError(f"Unknown resolution strategy: {strategy!r}")


def _resolve_profile(strategy: Profiles, root: str) -> Operator:
    name = parse_root(root).scheme
    config = strategy.profiles.get(name)
    if config is None:
        raise ProfileNotFound(f"No profile named '{name}'. Available profiles: {sorted(strategy.profiles)}")
    kind = config.get(PROFILE_TYPE_KEY)
    if not kind:
        raise ProfileMissingType(f"Profile '{name}' has no '{PROFILE_TYPE_KEY}' entry")
    options = {key: value for key, value in config.items() if key != PROFILE_TYPE_KEY}
    return strategy.registry.build(kind, options)  # type: ignore[union-attr]


def _resolve_chain(strategy: Chain, root: str) -> Operator:
    for candidate in strategy.strategies:
        try:
            return resolve(candidate, root)
        except UnsupportedScheme as exc:
            log.debug("Strategy %s skipped root %r: %s", type(candidate).__name__, root, exc)
    raise UnsupportedScheme(f"No resolution strategy supports '{root}'")


class Resolver:
    """Resolves backend roots with a fixed strategy.

    The strategy and the configuration it carries are loaded once and never
    mutated. Operators are not cached: every call builds a new one, owned by
    the caller.

    :param strategy: The resolution strategy (default: :class:`Builtin`).
    """

    def __init__(self, strategy: Optional[Strategy] = None) -> None:
        self._strategy: Strategy = strategy if strategy is not None else Builtin()

    def __repr__(self) -> str:
        return f"Resolver(strategy={self._strategy!r})"

    @property
    def strategy(self) -> Strategy:
        return self._strategy

    def resolve(self, root: str) -> Operator:
        """Resolve ``root`` to a new operator. See :func:`resolve`."""
        return resolve(self._strategy, root)
