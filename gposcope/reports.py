from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional
from xml.etree import ElementTree as ET

from bs4 import BeautifulSoup

_NONE_VALUES = {"<none>", "none", "(none)", "n/a"}
_APPLY_ACCESS = "apply group policy"


@dataclass
class PolicyReport:
    """What the engine needs from one Get-GPOReport export."""

    source: str
    path: str
    text: str
    name: Optional[str] = None
    wmi_filter: Optional[str] = None
    security_filtering: list[str] = field(default_factory=list)

    def search(self, pattern: re.Pattern[str]) -> bool:
        return pattern.search(self.text) is not None


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _safe_str(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = " ".join(v.split())
    return s or None


def _clean_wmi(v: Optional[str]) -> Optional[str]:
    s = _safe_str(v)
    if s is None or s.lower() in _NONE_VALUES:
        return None
    return s


def _xml_findtext_by_localname(root: ET.Element, localname: str) -> Optional[str]:
    for elem in root.iter():
        if _local_name(elem.tag).lower() == localname.lower() and elem.text:
            txt = _safe_str(elem.text)
            if txt:
                return txt
    return None


def _xml_findall_by_localname(root: ET.Element, localname: str) -> list[ET.Element]:
    return [elem for elem in root.iter() if _local_name(elem.tag).lower() == localname.lower()]


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def read_text_file(file_path: Path, encodings: Iterable[str] = ("utf-16", "utf-8")) -> str:
    encodings_list = list(encodings)
    if not encodings_list:
        raise ValueError("encodings must not be empty")

    raw = file_path.read_bytes()
    # utf-16 without a BOM happily decodes ASCII into garbage.
    if not raw.startswith((b"\xff\xfe", b"\xfe\xff")):
        encodings_list = [e for e in encodings_list if e.lower() != "utf-16"] or ["utf-8"]
    for encoding in encodings_list:
        try:
            return raw.decode(encoding)
        except UnicodeError:
            continue
    return raw.decode("utf-8", errors="ignore")


def _security_filtering_from_html(soup: BeautifulSoup) -> list[str]:
    principals: list[str] = []
    sec_section = soup.find(string=re.compile(r"Security\s+Filtering", re.IGNORECASE))
    if not sec_section:
        return principals
    table = sec_section.find_next("table")
    if not table:
        return principals
    for row in table.find_all("tr")[1:]:
        cols = row.find_all("td")
        if not cols:
            continue
        principal = cols[0].get_text(" ", strip=True)
        if principal:
            principals.append(principal)
    return _unique(principals)


def parse_html_report(file_path: Path) -> PolicyReport:
    raw_content = read_text_file(file_path)
    soup = BeautifulSoup(raw_content, "html.parser")
    report = PolicyReport(source="html", path=str(file_path), text=soup.get_text("\n", strip=True))
    report.name = soup.title.get_text(strip=True) if soup.title else None

    # Get-GPOReport renders details as two-column key/value rows.
    for table in soup.find_all("table"):
        for row in table.find_all("tr"):
            cells = row.find_all(["th", "td"])
            if len(cells) != 2:
                continue
            key = cells[0].get_text(" ", strip=True).lower().strip(":")
            value = cells[1].get_text(" ", strip=True)
            if not key or not value:
                continue
            if "wmi" in key and "filter" in key:
                report.wmi_filter = report.wmi_filter or _clean_wmi(value)

    report.security_filtering = _security_filtering_from_html(soup)
    return report


def _security_filtering_from_xml(root: ET.Element) -> list[str]:
    principals: list[str] = []

    for tp in _xml_findall_by_localname(root, "TrusteePermissions"):
        access = None
        permission_type = None
        for child in tp.iter():
            lname = _local_name(child.tag).lower()
            if lname == "gpogroupedaccessenum" and access is None:
                access = _safe_str(child.text)
            elif lname == "permissiontype" and permission_type is None:
                permission_type = _safe_str(child.text)
        if not access or access.lower() != _APPLY_ACCESS:
            continue
        # Deny Apply excludes the trustee; it is not part of the filter.
        if permission_type is not None and permission_type.lower() != "allow":
            continue
        for child in list(tp):
            if _local_name(child.tag).lower() != "trustee":
                continue
            name = None
            sid = None
            for tchild in list(child):
                lname = _local_name(tchild.tag).lower()
                if lname == "name":
                    name = _safe_str(tchild.text)
                elif lname == "sid":
                    sid = _safe_str(tchild.text)
            if name or sid:
                principals.append(name or sid)

    for elem in root.iter():
        if _local_name(elem.tag).lower() in {"securityfiltering", "securityfilter"}:
            for child in list(elem):
                txt = _safe_str(child.text)
                if txt:
                    principals.append(txt)

    return _unique(principals)


def _xml_display_text(root: ET.Element) -> str:
    lines: list[str] = []
    for disp in _xml_findall_by_localname(root, "Display"):
        name = None
        val = None
        for child in list(disp):
            lname = _local_name(child.tag).lower()
            if lname == "name":
                name = _safe_str(child.text)
            elif lname == "displaystring":
                val = _safe_str(child.text)
        if name and val:
            lines.append(f"{name}: {val}")
    return "\n".join(lines)


def parse_xml_report(file_path: Path) -> PolicyReport:
    root = ET.fromstring(read_text_file(file_path))
    xml_str = ET.tostring(root, encoding="unicode")
    display_text = _xml_display_text(root)
    text = xml_str + "\n" + display_text if display_text else xml_str

    return PolicyReport(
        source="xml",
        path=str(file_path),
        text=text,
        name=_xml_findtext_by_localname(root, "Name"),
        wmi_filter=_clean_wmi(
            _xml_findtext_by_localname(root, "FilterName")
            or _xml_findtext_by_localname(root, "WmiFilter")
            or _xml_findtext_by_localname(root, "WMIFilter")
        ),
        security_filtering=_security_filtering_from_xml(root),
    )


def parse_report(file_path: str | Path) -> PolicyReport:
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    if suffix in {".html", ".htm"}:
        return parse_html_report(file_path)
    if suffix == ".xml":
        return parse_xml_report(file_path)
    raise ValueError(f"unsupported report type: {file_path.name}")
