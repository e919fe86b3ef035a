"""Type aliases used throughout remote_dispatch."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remote_dispatch._operator import Operator

ConfigMap = Mapping[str, str]
ProfileTable = Mapping[str, ConfigMap]
Transform = Callable[["Operator"], "Operator"]
Handler = Callable[[Mapping[str, object]], object]
