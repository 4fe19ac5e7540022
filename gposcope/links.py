"""gPLink parsing and link-option decoding.

A container's ``gPLink`` attribute is a queue of bracketed entries, one per
linked policy, in link order::

    [LDAP://cn={GUID-1},cn=policies,cn=system,DC=example,DC=com;0][LDAP://cn={GUID-2},...;2]

Each entry is ``reference;options`` where ``options`` is a decimal bitmask:
bit 0 disables the link, bit 1 enforces it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .models import LinkState

LINK_DISABLED = 0x1
LINK_ENFORCED = 0x2

_ENTRY_RE = re.compile(r"\[([^\[\]]*)\]")
_OPTIONS_TAIL_RE = re.compile(r"^(?P<ref>.*);\s*(?P<options>\d+)\s*$", re.DOTALL)


@dataclass(frozen=True)
class GPLinkEntry:
    reference: str
    options: Optional[int]


def decode_link_options(value: int) -> LinkState:
    if value < 0:
        raise ValueError(f"link options must be non-negative, got {value}")
    return LinkState(
        enabled=(value & LINK_DISABLED) == 0,
        enforced=(value & LINK_ENFORCED) != 0,
    )


def normalize_policy_guid(policy_id: str) -> str:
    return policy_id.strip().strip("{}").lower()


def parse_gplink(text: Optional[str]) -> list[GPLinkEntry]:
    entries: list[GPLinkEntry] = []
    if not text:
        return entries
    for m in _ENTRY_RE.finditer(text):
        body = m.group(1)
        tail = _OPTIONS_TAIL_RE.match(body)
        if tail:
            entries.append(GPLinkEntry(reference=tail.group("ref").strip(), options=int(tail.group("options"))))
        else:
            # Reference without a usable option suffix.
            entries.append(GPLinkEntry(reference=body.split(";", 1)[0].strip(), options=None))
    return entries


def link_options_for(text: Optional[str], policy_id: str) -> Optional[int]:
    """Return the option digits of the entry that references ``policy_id``.

    Only the entry whose reference carries this policy's GUID is considered,
    so a container linking several policies never leaks another policy's
    options. Returns None when the policy is absent or its entry is malformed.
    """
    guid = normalize_policy_guid(policy_id)
    if not guid:
        return None
    needle = re.compile(r"(?<![0-9a-z-])" + re.escape(guid) + r"(?![0-9a-z-])", re.IGNORECASE)
    for entry in parse_gplink(text):
        if needle.search(entry.reference):
            return entry.options
    return None


def link_state_for(text: Optional[str], policy_id: str) -> Optional[LinkState]:
    options = link_options_for(text, policy_id)
    if options is None:
        return None
    return decode_link_options(options)
