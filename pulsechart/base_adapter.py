"""Abstract base class for metric provider adapters."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import AdapterError
from .models import NOT_FOUND, PollStatus

_SUFFIXES = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}
_COUNT_RE = re.compile(r"^([0-9]*\.?[0-9]+)\s*([KMB]?)$")


def as_count(value: Any) -> int:
    """Coerce a provider count ("12,400", "1.2M", 12400.0) to int."""
    if isinstance(value, bool):
        raise ValueError(f"not a count: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "").upper()
        match = _COUNT_RE.match(text)
        if match:
            number, suffix = match.groups()
            return int(float(number) * _SUFFIXES.get(suffix, 1))
    raise ValueError(f"not a count: {value!r}")


def as_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    return float(value)


def as_genres(value: Any) -> frozenset[str]:
    if isinstance(value, str):
        value = [value]
    return frozenset(str(g).strip().lower() for g in value if str(g).strip())


def lookup(record: dict, path: str) -> Any:
    """Resolve a dotted path ("followers.total") in a nested dict."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


@dataclass(frozen=True)
class FieldRule:
    """One row of a normalization table.

    `target` is a snapshot field ("followers") or a keyed entry of a
    snapshot mapping ("social_mentions.tiktok"). `candidates` are raw
    record paths consulted in order; the first present, non-null one wins.
    """

    target: str
    candidates: tuple[str, ...]
    cast: Callable[[Any], Any] = as_count


class ProviderAdapter(ABC):
    """Abstract interface for an external metric provider.

    Every provider works as an asynchronous job: submit, poll until done,
    fetch the raw record, then normalize it with the class FIELD_TABLE.
    Providers with synchronous APIs complete the job inside submit().
    """

    FIELD_TABLE: tuple[FieldRule, ...] = ()

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Stable identifier used in priority lists (e.g. 'tiktok_free')."""
        pass

    @property
    def metric_families(self) -> frozenset[str]:
        """Snapshot fields this provider can supply."""
        return frozenset(rule.target for rule in self.FIELD_TABLE)

    def resolve_handle(self, target: str) -> str:
        """Turn a roster entry (handle or profile URL) into a handle."""
        return target.strip()

    @abstractmethod
    def submit(self, target_handle: str, options: Optional[dict] = None) -> Any:
        """Start a job for the target and return an opaque job handle.

        Safe to call again after a timeout; each call starts a new job.
        """
        pass

    @abstractmethod
    def poll_status(self, job_handle: Any) -> PollStatus:
        """Return the current job state without waiting."""
        pass

    @abstractmethod
    def fetch_result(self, job_handle: Any) -> Any:
        """Return the raw record of a finished job, or NOT_FOUND."""
        pass

    def abort(self, job_handle: Any) -> None:
        """Stop an abandoned job. Providers without cancellation ignore it."""
        return None

    def normalize(self, raw: dict) -> dict[str, Any]:
        """Map a raw record to snapshot fields using FIELD_TABLE.

        Fields with no present candidate are omitted, never defaulted.

        Raises:
            AdapterError: If a present value cannot be cast.
        """
        if raw is NOT_FOUND or raw is None:
            return {}

        fields: dict[str, Any] = {}
        for rule in self.FIELD_TABLE:
            if rule.target in fields:
                continue
            for path in rule.candidates:
                value = lookup(raw, path)
                if value is None:
                    continue
                try:
                    fields[rule.target] = rule.cast(value)
                except (TypeError, ValueError) as e:
                    raise AdapterError(
                        self.provider_id, f"bad value for {rule.target} at {path}: {e}"
                    ) from e
                break
        return fields

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.provider_id}>"
