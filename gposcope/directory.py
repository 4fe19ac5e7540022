"""Directory collaborators.

The engine never talks to a directory service itself. It asks a
``PolicyDirectory`` for raw facts and always passes the ``DirectoryContext``
it was given, so nothing depends on an ambient domain or connection.

``SnapshotDirectory`` answers those questions from an exported snapshot on
disk: ``directory.json`` plus one Get-GPOReport export per policy under
``reports/``.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Optional, Protocol
from xml.etree.ElementTree import ParseError

from .errors import DirectoryError, SnapshotError
from .links import normalize_policy_guid
from .models import DirectoryContext, LinkedContainer, PolicyObject
from .reports import PolicyReport, parse_report

INVENTORY_FILE = "directory.json"
REPORTS_DIR = "reports"
REPORT_SUFFIXES = (".xml", ".html", ".htm")


class PolicyDirectory(Protocol):
    def list_policies(self, ctx: DirectoryContext) -> list[PolicyObject]: ...

    def has_content_match(self, ctx: DirectoryContext, policy_id: str, pattern: re.Pattern[str]) -> bool: ...

    def get_linked_containers(self, ctx: DirectoryContext, policy_id: str) -> list[LinkedContainer]: ...

    def get_security_filtering_apply(self, ctx: DirectoryContext, policy_id: str) -> list[str]: ...

    def get_wmi_filter_name(self, ctx: DirectoryContext, policy_id: str) -> Optional[str]: ...

    def get_domain_display_name(self, ctx: DirectoryContext) -> str: ...


def _as_class(value: object) -> str | tuple[str, ...]:
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    return str(value or "")


class SnapshotDirectory:
    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._reports: dict[str, Optional[PolicyReport]] = {}
        inventory = self._load_inventory()

        domain = inventory.get("domain") or {}
        if not isinstance(domain, dict) or not domain.get("dn"):
            raise SnapshotError(f"{INVENTORY_FILE}: 'domain.dn' is required")
        self.domain_dn: str = str(domain["dn"])
        self.domain_name: str = str(domain.get("name") or self._dn_to_dns(self.domain_dn))

        self._policies: list[dict] = list(inventory.get("policies") or [])
        self._containers: list[dict] = list(inventory.get("containers") or [])
        for entry in self._policies:
            if not isinstance(entry, dict) or not entry.get("id"):
                raise SnapshotError(f"{INVENTORY_FILE}: every policy needs an 'id'")
        for entry in self._containers:
            if not isinstance(entry, dict) or not entry.get("dn"):
                raise SnapshotError(f"{INVENTORY_FILE}: every container needs a 'dn'")

    def _load_inventory(self) -> dict:
        path = self.root / INVENTORY_FILE
        if not self.root.is_dir():
            raise SnapshotError(f"snapshot directory not found: {self.root}")
        if not path.is_file():
            raise SnapshotError(f"missing {INVENTORY_FILE} in {self.root}")
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
        except (OSError, ValueError) as exc:
            raise SnapshotError(f"cannot read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise SnapshotError(f"{path}: top level must be an object")
        return data

    @staticmethod
    def _dn_to_dns(dn: str) -> str:
        parts = [p.split("=", 1)[1] for p in dn.split(",") if p.strip().lower().startswith("dc=")]
        return ".".join(p.strip() for p in parts) or dn

    def context(self) -> DirectoryContext:
        return DirectoryContext(domain_dn=self.domain_dn, domain_name=self.domain_name, source=str(self.root))

    def _policy_entry(self, policy_id: str) -> dict:
        guid = normalize_policy_guid(policy_id)
        for entry in self._policies:
            if normalize_policy_guid(str(entry["id"])) == guid:
                return entry
        raise DirectoryError(f"unknown policy {policy_id}")

    def _report_path(self, policy_id: str) -> Optional[Path]:
        guid = normalize_policy_guid(policy_id)
        reports = self.root / REPORTS_DIR
        for stem in (f"{{{guid}}}", guid, f"{{{guid.upper()}}}", guid.upper()):
            for suffix in REPORT_SUFFIXES:
                candidate = reports / f"{stem}{suffix}"
                if candidate.is_file():
                    return candidate
        return None

    def _report(self, policy_id: str) -> Optional[PolicyReport]:
        guid = normalize_policy_guid(policy_id)
        if guid in self._reports:
            return self._reports[guid]
        path = self._report_path(policy_id)
        report = None
        if path is not None:
            try:
                report = parse_report(path)
            except (OSError, ValueError, ParseError) as exc:
                raise DirectoryError(f"cannot read report {path.name}: {exc}") from exc
        self._reports[guid] = report
        return report

    def _display_name(self, entry: dict) -> str:
        if entry.get("name"):
            return str(entry["name"])
        # Unnamed entries fall back to the report title, then the id.
        try:
            report = self._report(str(entry["id"]))
        except DirectoryError:
            report = None
        if report is not None and report.name:
            return report.name
        return str(entry["id"])

    def list_policies(self, ctx: DirectoryContext) -> list[PolicyObject]:
        return [PolicyObject(id=str(e["id"]), name=self._display_name(e)) for e in self._policies]

    def has_content_match(self, ctx: DirectoryContext, policy_id: str, pattern: re.Pattern[str]) -> bool:
        report = self._report(policy_id)
        if report is None:
            return False
        return report.search(pattern)

    def get_linked_containers(self, ctx: DirectoryContext, policy_id: str) -> list[LinkedContainer]:
        guid = normalize_policy_guid(policy_id)
        linked: list[LinkedContainer] = []
        for entry in self._containers:
            raw = str(entry.get("gPLink") or "")
            if guid and guid in raw.lower():
                linked.append(
                    LinkedContainer(
                        raw_link_text=raw,
                        container_dn=str(entry["dn"]),
                        container_class=_as_class(entry.get("objectClass")),
                    )
                )
        return linked

    def get_security_filtering_apply(self, ctx: DirectoryContext, policy_id: str) -> list[str]:
        report = self._report(policy_id)
        if report is not None and report.security_filtering:
            return list(report.security_filtering)
        return [str(p) for p in self._policy_entry(policy_id).get("securityFiltering") or []]

    def get_wmi_filter_name(self, ctx: DirectoryContext, policy_id: str) -> Optional[str]:
        report = self._report(policy_id)
        if report is not None and report.wmi_filter:
            return report.wmi_filter
        value = self._policy_entry(policy_id).get("wmiFilter")
        return str(value) if value else None

    def get_domain_display_name(self, ctx: DirectoryContext) -> str:
        return ctx.domain_name or self.domain_name
