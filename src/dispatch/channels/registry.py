"""Channel name -> adapter lookup.

Adding a channel means writing one ChannelAdapter subclass, one config
variant, and registering it here; the dispatcher stays untouched.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from .base import DEFAULT_TIMEOUT, ChannelAdapter
from .discord import DiscordAdapter
from .slack import SlackAdapter

ADAPTER_TYPES: tuple[type[ChannelAdapter], ...] = (DiscordAdapter, SlackAdapter)


class ChannelRegistry(Mapping[str, ChannelAdapter]):
    """Read-only mapping of channel names to adapter instances."""

    def __init__(self, adapters: Mapping[str, ChannelAdapter] | None = None) -> None:
        self._adapters: dict[str, ChannelAdapter] = dict(adapters or {})

    def __getitem__(self, name: str) -> ChannelAdapter:
        return self._adapters[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def register(self, adapter: ChannelAdapter) -> "ChannelRegistry":
        """Return a new registry with ``adapter`` added under its name."""
        return ChannelRegistry({**self._adapters, adapter.name: adapter})


def default_registry(timeout: float = DEFAULT_TIMEOUT) -> ChannelRegistry:
    """Registry with every built-in adapter sharing one delivery timeout."""
    return ChannelRegistry({cls.name: cls(timeout=timeout) for cls in ADAPTER_TYPES})
