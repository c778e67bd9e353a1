"""
Diff upsert gate.

The single choke point that keeps repeated runs idempotent: a proposal is
compared against the stored state and only the changed subset survives.

Also holds the CRM-facing helpers of the upsert layer:
- PropertyMapping: local property name → CRM-native (name, string) pair
- correlate_created(): match entities returned by a create call back to
  the local records they were created from
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date
from typing import Any

import structlog

from ..errors import ConfigurationError, EntityCorrelationError
from ..models.actions import ContactMutation, ContactUpdateAction
from ..repository import SnapshotProvider

logger = structlog.get_logger(__name__)


def _normalize(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return sorted((_normalize(v) for v in value), key=str)
    return value


def values_equal(proposed: Any, stored: Any) -> bool:
    """Equality used by the gate: dates by ISO form, collections unordered."""
    return _normalize(proposed) == _normalize(stored)


def diff_properties(proposed: Mapping[str, Any], stored: Mapping[str, Any]) -> dict[str, Any]:
    """
    Changed subset of a proposed property set.

    A None proposal means "no opinion" and never produces a write.
    """
    return {
        key: value
        for key, value in proposed.items()
        if value is not None and not values_equal(value, stored.get(key))
    }


def contact_mutations(
    actions: Iterable[ContactUpdateAction],
    snapshot: SnapshotProvider,
) -> list[ContactMutation]:
    """Reduce contact update actions to the mutations that actually change something."""
    mutations: list[ContactMutation] = []
    skipped = 0

    for action in actions:
        contact = snapshot.contact_by_email(action.contact_ref)
        stored = contact.marketplace_properties() if contact else {}
        changed = diff_properties(action.proposed_properties(), stored)

        if not changed:
            skipped += 1
            continue

        mutations.append(ContactMutation(
            contact_ref=action.contact_ref,
            contact_id=action.contact_id,
            properties=changed,
        ))

    logger.debug(
        'diff.contact_mutations',
        mutations=len(mutations),
        unchanged=skipped,
    )
    return mutations


# =============================================================================
# CRM property mapping
# =============================================================================

Transform = Callable[[Any], tuple[str, str]]


def _string(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return ';'.join(str(v) for v in value)
    return str(value)


def to_crm(name: str) -> Transform:
    """Transform writing a value under the given CRM property name."""
    return lambda value: (name, _string(value))


def down_sync_only(value: Any) -> tuple[str, str]:
    """Transform for properties that are read from the CRM but never written."""
    return ('', '')


class PropertyMapping:
    """
    Validated local → CRM property transform table for one entity kind.

    Every expected local property needs exactly one transform; a missing or
    unknown key is a configuration error raised at construction.
    """

    def __init__(
        self,
        kind: str,
        expected: Iterable[str],
        transforms: Mapping[str, Transform],
        identifiers: Sequence[str] = (),
    ):
        expected_set = set(expected)
        missing = sorted(expected_set - set(transforms))
        unknown = sorted(set(transforms) - expected_set)
        if missing or unknown:
            raise ConfigurationError(
                f'Invalid property mapping for {kind}',
                context={'missing': missing, 'unknown': unknown},
            )

        bad_identifiers = sorted(set(identifiers) - expected_set)
        if bad_identifiers:
            raise ConfigurationError(
                f'Unknown identifier properties for {kind}',
                context={'identifiers': bad_identifiers},
            )

        self.kind = kind
        self.transforms = dict(transforms)
        self.identifiers = tuple(identifiers)

    def to_crm(self, properties: Mapping[str, Any]) -> dict[str, str]:
        """CRM-native payload for a (possibly partial) local property set."""
        payload: dict[str, str] = {}
        for key, value in properties.items():
            if key not in self.transforms:
                raise ConfigurationError(
                    f'Unmapped {self.kind} property',
                    context={'property': key},
                )
            name, raw = self.transforms[key](value)
            if name:
                payload[name] = raw
        return payload

    def identity(self, properties: Mapping[str, Any]) -> tuple[tuple[str, str], ...]:
        """CRM-native (name, value) pairs of the identifier properties."""
        return tuple(self.transforms[key](properties.get(key)) for key in self.identifiers)


def correlate_created(
    local: Sequence[Mapping[str, Any]],
    remote: Sequence[Mapping[str, Any]],
    mapping: PropertyMapping,
) -> list[str]:
    """
    Match entities returned by a create call back to their local records.

    Args:
        local: Local property sets, in creation order
        remote: Created entities as returned by the CRM
                ({'id': ..., 'properties': {crm_name: value}})
        mapping: Property mapping carrying the identifier properties

    Returns:
        CRM id for each local record, in the same order

    Raises:
        EntityCorrelationError: If a local record has no matching created entity
    """
    ids: list[str] = []
    for props in local:
        identity = mapping.identity(props)
        found = next(
            (
                r for r in remote
                if all(r.get('properties', {}).get(name) == value for name, value in identity)
            ),
            None,
        )
        if found is None:
            raise EntityCorrelationError(
                f'Created {mapping.kind} could not be matched to a local record',
                context={'identity': dict(identity)},
            )
        ids.append(found['id'])
    return ids
