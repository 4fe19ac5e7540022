from __future__ import annotations

import json
import re
from typing import Optional

import pytest

from gposcope.errors import DirectoryError
from gposcope.models import DirectoryContext, LinkedContainer, PolicyObject

DOMAIN_DN = "DC=example,DC=com"

GUID_A = "{6AC1786C-016F-11D2-945F-00C04FB984F9}"
GUID_B = "{31B2F340-016D-11D2-945F-00C04FB984F9}"
GUID_C = "{A1B2C3D4-0000-1111-2222-333344445555}"


def gplink(*entries: tuple[str, int]) -> str:
    return "".join(f"[LDAP://cn={guid},cn=policies,cn=system,{DOMAIN_DN};{opts}]" for guid, opts in entries)


class FakeDirectory:
    """In-memory PolicyDirectory for engine tests."""

    def __init__(self, domain_name: str = "example.com"):
        self.domain_name = domain_name
        self.policies: list[PolicyObject] = []
        self.containers: list[tuple[str, object, str]] = []
        self.content: dict[str, str] = {}
        self.filtering: dict[str, list[str]] = {}
        self.wmi: dict[str, Optional[str]] = {}
        self.failing_filtering: set[str] = set()
        self.calls: list[tuple[str, DirectoryContext]] = []

    def add_policy(self, policy_id: str, name: str, content: str = "", apply_to=(), wmi=None) -> PolicyObject:
        policy = PolicyObject(id=policy_id, name=name)
        self.policies.append(policy)
        self.content[policy_id] = content
        self.filtering[policy_id] = list(apply_to)
        self.wmi[policy_id] = wmi
        return policy

    def add_container(self, dn: str, object_class, link_text: str) -> None:
        self.containers.append((dn, object_class, link_text))

    def list_policies(self, ctx):
        self.calls.append(("list_policies", ctx))
        return list(self.policies)

    def has_content_match(self, ctx, policy_id, pattern: re.Pattern[str]) -> bool:
        return pattern.search(self.content.get(policy_id, "")) is not None

    def get_linked_containers(self, ctx, policy_id):
        self.calls.append(("get_linked_containers", ctx))
        guid = policy_id.strip("{}").lower()
        return [
            LinkedContainer(raw_link_text=text, container_dn=dn, container_class=cls)
            for dn, cls, text in self.containers
            if guid in text.lower()
        ]

    def get_security_filtering_apply(self, ctx, policy_id):
        if policy_id in self.failing_filtering:
            raise DirectoryError("access denied")
        return list(self.filtering.get(policy_id, []))

    def get_wmi_filter_name(self, ctx, policy_id):
        return self.wmi.get(policy_id)

    def get_domain_display_name(self, ctx):
        return ctx.domain_name


@pytest.fixture
def ctx() -> DirectoryContext:
    return DirectoryContext(domain_dn=DOMAIN_DN, domain_name="example.com", source="test")


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


HTML_REPORT = """<html><head><title>Baseline Security</title></head><body>
<table>
<tr><td>Unique ID:</td><td>{guid}</td></tr>
<tr><td>WMI Filter Name:</td><td>Win10 only</td></tr>
</table>
<div>Security Filtering</div>
<table>
<tr><th>Name</th></tr>
<tr><td>NT AUTHORITY\\Authenticated Users</td></tr>
</table>
<div>Network security: LAN Manager authentication level</div><div>Send NTLMv2 response only</div>
</body></html>
"""

XML_REPORT = """<?xml version="1.0" encoding="utf-8"?>
<GPO xmlns="http://www.microsoft.com/GroupPolicy/Settings">
  <Identifier><Identifier xmlns="http://www.microsoft.com/GroupPolicy/Types">{guid}</Identifier></Identifier>
  <Name>Servers Hardening</Name>
  <FilterName>&lt;none&gt;</FilterName>
  <SecurityDescriptor>
    <Permissions>
      <TrusteePermissions>
        <Trustee><Sid>S-1-5-21-1-2-3-1105</Sid><Name>EXAMPLE\\Server Admins</Name></Trustee>
        <Standard><GPOGroupedAccessEnum>Apply Group Policy</GPOGroupedAccessEnum></Standard>
      </TrusteePermissions>
      <TrusteePermissions>
        <Trustee><Sid>S-1-5-21-1-2-3-512</Sid><Name>EXAMPLE\\Domain Admins</Name></Trustee>
        <Standard><GPOGroupedAccessEnum>Edit, delete, modify security</GPOGroupedAccessEnum></Standard>
      </TrusteePermissions>
    </Permissions>
  </SecurityDescriptor>
  <Computer>
    <SecurityOptions>
      <KeyName>MACHINE\\System\\CurrentControlSet\\Control\\Lsa\\LmCompatibilityLevel</KeyName>
      <SettingNumber>5</SettingNumber>
      <Display><Name>Network security: LAN Manager authentication level</Name><DisplayString>Send NTLMv2 response only</DisplayString></Display>
    </SecurityOptions>
  </Computer>
</GPO>
"""


def write_snapshot(root, inventory=None):
    """Write a three-policy snapshot: A (html report), B (xml report), C (no report)."""
    if inventory is None:
        inventory = {
            "domain": {"dn": DOMAIN_DN, "name": "example.com"},
            "policies": [
                {"id": GUID_A, "name": "Baseline Security"},
                {"id": GUID_B, "name": "Servers Hardening"},
                {"id": GUID_C, "name": "Legacy", "securityFiltering": ["EXAMPLE\\Legacy"], "wmiFilter": "Old"},
            ],
            "containers": [
                {"dn": DOMAIN_DN, "objectClass": ["top", "domain", "domainDNS"], "gPLink": gplink((GUID_A, 0))},
                {
                    "dn": "OU=Corp," + DOMAIN_DN,
                    "objectClass": ["top", "organizationalUnit"],
                    "gPLink": gplink((GUID_A, 2)),
                },
                {
                    "dn": "OU=Servers,OU=Corp," + DOMAIN_DN,
                    "objectClass": ["top", "organizationalUnit"],
                    "gPLink": gplink((GUID_B, 0), (GUID_A, 1)),
                },
                {
                    "dn": "CN=HQ,CN=Sites,CN=Configuration," + DOMAIN_DN,
                    "objectClass": ["top", "site"],
                    "gPLink": "",
                },
            ],
        }
    root.mkdir(parents=True, exist_ok=True)
    (root / "directory.json").write_text(json.dumps(inventory), encoding="utf-8")
    reports = root / "reports"
    reports.mkdir(exist_ok=True)
    (reports / f"{GUID_A}.html").write_text(HTML_REPORT.format(guid=GUID_A), encoding="utf-16")
    (reports / f"{GUID_B}.xml").write_text(XML_REPORT.format(guid=GUID_B), encoding="utf-8")
    return root
