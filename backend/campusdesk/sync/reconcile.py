"""Reconciliation - pure merge of a local collection and a remote snapshot

No I/O happens here: the caller applies ``records`` to the local cache and
issues ``puts``/``deletes`` against the remote store.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..repositories.remote_store import Snapshot, attach_id

Record = Dict[str, Any]


@dataclass
class InvariantResult:
    """Outcome of enforcing a collection invariant"""
    records: List[Record]
    puts: List[Record] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)


Invariant = Callable[[List[Record]], InvariantResult]


@dataclass
class ReconcileResult:
    """Effective snapshot plus the remote writes needed to converge"""
    records: List[Record]
    puts: List[Record] = field(default_factory=list)
    deletes: List[str] = field(default_factory=list)
    source: str = "empty"  # remote | local | empty
    
    @property
    def has_writes(self) -> bool:
        return bool(self.puts or self.deletes)


def unique_by_id(records: List[Record]) -> List[Record]:
    """Drop records without an id and later duplicates of an id"""
    seen = set()
    unique = []
    for record in records:
        entity_id = record.get("id") if isinstance(record, dict) else None
        if not entity_id or entity_id in seen:
            continue
        seen.add(entity_id)
        unique.append(dict(record))
    return unique


def reconcile(
    local: List[Record],
    remote: Optional[Snapshot],
    allow_seed: bool = True,
    invariant: Optional[Invariant] = None
) -> ReconcileResult:
    """
    Merge a local collection with a remote snapshot.
    
    - remote non-empty: remote is authoritative; keys become ``id``.
    - remote empty and allow_seed: local records win and are all queued as
      remote puts (first run / offline-first client).
    - remote empty and not allow_seed: the collection is empty.
    - remote None (no remote available): local records, nothing to seed.
    
    The invariant, if given, runs last and may add records and writes.
    """
    if remote is None:
        result = ReconcileResult(records=unique_by_id(local), source="local")
    elif any(value for value in remote.values()):
        records = [attach_id(key, value) for key, value in remote.items() if value]
        result = ReconcileResult(records=records, source="remote")
    elif allow_seed and local:
        records = unique_by_id(local)
        result = ReconcileResult(records=records, puts=list(records), source="local")
    else:
        result = ReconcileResult(records=[], source="empty")
    
    if invariant is not None:
        enforced = invariant(result.records)
        result.records = enforced.records
        queued = {record["id"] for record in result.puts}
        for record in enforced.puts:
            if record["id"] in queued:
                result.puts = [r for r in result.puts if r["id"] != record["id"]]
            result.puts.append(record)
        removed = set(enforced.deletes)
        result.puts = [record for record in result.puts if record["id"] not in removed]
        result.deletes.extend(enforced.deletes)
    
    return result
