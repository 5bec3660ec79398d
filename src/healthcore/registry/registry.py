"""Probe registry for healthcore-sdk.

``ProbeRegistry`` is the thread-safe, in-memory catalogue of probes the
orchestrator iterates on every report cycle.  It is always constructed
explicitly and handed to the orchestrator; there is no process-wide
instance.

Shipped in this module
----------------------
- ProbeRegistry        — thread-safe registry keyed by component name with
                         a secondary index by component type
- RegistryStatistics   — point-in-time summary of the registry contents
"""
from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone

from healthcore.probes.base import Probe
from healthcore.schema.errors import InvalidProbeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryStatistics:
    """Snapshot returned by :meth:`ProbeRegistry.statistics`.

    Attributes
    ----------
    total_probes:
        Probes currently registered.
    total_registrations:
        Successful ``register()`` calls since construction, replacements
        included.
    component_types:
        Mapping of component type to the number of probes of that type.
    last_update:
        UTC time of the last structural change, ``None`` if never changed.
    """

    total_probes: int
    total_registrations: int
    component_types: dict[str, int] = field(default_factory=dict)
    last_update: datetime | None = None


@dataclass
class _Entry:
    probe: Probe
    component_type: str
    sequence: int
    priority: int


class ProbeRegistry:
    """Thread-safe registry of :class:`~healthcore.probes.base.Probe` objects.

    Probes are keyed by ``component_name()``.  Registering a second probe
    under an existing name replaces the first, logs a warning, and keeps the
    original position in iteration order.

    Iteration order is ascending ``priority`` (default ``0``), then
    registration order.

    The internal lock guards only the maps; it is never held while a probe
    runs.

    Examples
    --------
    >>> from healthcore.probes.callable import CallableProbe
    >>> registry = ProbeRegistry()
    >>> registry.register(CallableProbe("db", "database", lambda: True))
    >>> [p.component_name() for p in registry.all_probes()]
    ['db']
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}
        self._by_type: dict[str, dict[str, Probe]] = {}
        self._sequence = itertools.count()
        self._total_registrations = 0
        self._last_update: datetime | None = None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(self, probe: Probe, *, priority: int | None = None) -> None:
        """Add *probe* to the registry, replacing any probe with the same name.

        Parameters
        ----------
        probe:
            The probe to register.
        priority:
            Ordering key; lower runs and reports first.  ``None`` keeps the
            replaced probe's priority, or ``0`` for a new name.

        Raises
        ------
        InvalidProbeError
            If *probe* is ``None``, does not implement :class:`Probe`, or has
            an empty component name.
        """
        if probe is None:
            raise InvalidProbeError("Cannot register None as a probe")
        if not isinstance(probe, Probe):
            raise InvalidProbeError(
                f"Object of type {type(probe).__name__} does not implement Probe",
                context={"type": type(probe).__name__},
            )
        name = probe.component_name()
        if not name or not name.strip():
            raise InvalidProbeError(
                "Probe component name cannot be empty",
                context={"type": type(probe).__name__},
            )
        component_type = probe.component_type()

        with self._lock:
            existing = self._entries.get(name)
            if existing is not None:
                logger.warning(
                    "Replacing existing probe for component %r (%s -> %s)",
                    name,
                    type(existing.probe).__name__,
                    type(probe).__name__,
                )
                self._unindex(name, existing.component_type)
                entry = _Entry(
                    probe=probe,
                    component_type=component_type,
                    sequence=existing.sequence,
                    priority=existing.priority if priority is None else priority,
                )
            else:
                entry = _Entry(
                    probe=probe,
                    component_type=component_type,
                    sequence=next(self._sequence),
                    priority=0 if priority is None else priority,
                )
            self._entries[name] = entry
            self._by_type.setdefault(component_type, {})[name] = probe
            self._total_registrations += 1
            self._touch()

        logger.debug(
            "Registered probe for component %r of type %r", name, component_type
        )

    def deregister(self, component_name: str) -> bool:
        """Remove the probe registered under *component_name*.

        Returns
        -------
        bool
            ``True`` if a probe was removed, ``False`` if none was registered.
        """
        with self._lock:
            entry = self._entries.pop(component_name, None)
            if entry is None:
                return False
            self._unindex(component_name, entry.component_type)
            self._touch()
        logger.debug("Deregistered probe for component %r", component_name)
        return True

    def clear(self) -> None:
        """Remove every probe."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._by_type.clear()
            self._touch()
        logger.info("Cleared %d probe(s) from registry", count)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all_probes(self) -> list[Probe]:
        """Return a snapshot of all probes in iteration order."""
        with self._lock:
            ordered = sorted(
                self._entries.values(), key=lambda e: (e.priority, e.sequence)
            )
        return [entry.probe for entry in ordered]

    def probes_by_type(self, component_type: str) -> list[Probe]:
        """Return the probes of *component_type* in iteration order.

        Returns an empty list for an unknown type.
        """
        with self._lock:
            names = set(self._by_type.get(component_type, {}))
            ordered = sorted(
                (self._entries[n] for n in names),
                key=lambda e: (e.priority, e.sequence),
            )
        return [entry.probe for entry in ordered]

    def get(self, component_name: str) -> Probe | None:
        """Return the probe registered under *component_name*, or ``None``."""
        with self._lock:
            entry = self._entries.get(component_name)
        return entry.probe if entry is not None else None

    def is_registered(self, component_name: str) -> bool:
        with self._lock:
            return component_name in self._entries

    def registered_types(self) -> set[str]:
        with self._lock:
            return set(self._by_type)

    def registered_components(self) -> list[str]:
        """Return component names in iteration order."""
        return [probe.component_name() for probe in self.all_probes()]

    def count_by_type(self, component_type: str) -> int:
        with self._lock:
            return len(self._by_type.get(component_type, {}))

    def statistics(self) -> RegistryStatistics:
        """Return a :class:`RegistryStatistics` snapshot."""
        with self._lock:
            return RegistryStatistics(
                total_probes=len(self._entries),
                total_registrations=self._total_registrations,
                component_types={t: len(p) for t, p in self._by_type.items()},
                last_update=self._last_update,
            )

    def log_statistics(self) -> None:
        stats = self.statistics()
        logger.info(
            "Probe registry: %d probe(s), %d registration(s), types=%s",
            stats.total_probes,
            stats.total_registrations,
            stats.component_types,
        )

    def validate(self) -> bool:
        """Check registry integrity.

        Every key must map to a probe whose current ``component_name()``
        equals that key, and every indexed probe must be present in the
        primary map.  Each violation is logged at ERROR level.

        Returns
        -------
        bool
            ``True`` if no violation was found.
        """
        valid = True
        with self._lock:
            entries = list(self._entries.items())
            indexed = [
                (name, ctype) for ctype, probes in self._by_type.items() for name in probes
            ]
        for name, entry in entries:
            if entry is None or entry.probe is None:
                logger.error("Registry entry for %r has no probe", name)
                valid = False
                continue
            actual = entry.probe.component_name()
            if actual != name:
                logger.error(
                    "Registry key %r does not match probe component name %r",
                    name,
                    actual,
                )
                valid = False
        known = {name for name, _ in entries}
        for name, ctype in indexed:
            if name not in known:
                logger.error(
                    "Type index %r references unregistered component %r", ctype, name
                )
                valid = False
        if valid:
            logger.debug("Registry validation passed for %d probe(s)", len(entries))
        return valid

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _unindex(self, name: str, component_type: str) -> None:
        bucket = self._by_type.get(component_type)
        if bucket is None:
            return
        bucket.pop(name, None)
        if not bucket:
            del self._by_type[component_type]

    def _touch(self) -> None:
        self._last_update = datetime.now(tz=timezone.utc)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, component_name: object) -> bool:
        with self._lock:
            return component_name in self._entries

    def __iter__(self) -> Iterator[Probe]:
        return iter(self.all_probes())

    def __repr__(self) -> str:
        return f"ProbeRegistry(count={len(self)})"


__all__ = ["ProbeRegistry", "RegistryStatistics"]
