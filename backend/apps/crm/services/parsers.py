from __future__ import annotations

import re
from typing import Dict, List, Mapping

NON_DIALABLE = re.compile(r"[^+\d]")


def _unfold(text: str) -> List[str]:
    """Join vCard continuation lines (lines starting with a space or tab) to the previous line."""
    lines: List[str] = []
    for line in re.split(r"\r?\n", text or ""):
        if line[:1] in (" ", "\t") and lines:
            lines[-1] += line[1:]
        else:
            lines.append(line)
    return lines


def _unescape(value: str) -> str:
    return value.replace("\\n", "\n").replace("\\N", "\n").replace("\\,", ",").replace("\\;", ";")


def parse_vcard(text: str) -> Dict[str, str]:
    """
    Extract contact fields from a vCard (as shared by phone contact exchange).

    Returns a dict keyed by ``CrmContact`` field names, or an empty dict when
    the card holds nothing recognisable.
    """
    result: Dict[str, str] = {}
    for line in _unfold(text):
        key, sep, value = line.partition(":")
        value = value.strip()
        if not sep or not key or not value:
            continue
        params = key.lower()
        name = params.split(";")[0]
        # grouped properties such as item1.EMAIL
        name = name.rsplit(".", 1)[-1]

        if name == "fn":
            result["full_name"] = _unescape(value)
        elif name == "n":
            parts = value.split(";")
            result["last_name"] = _unescape(parts[0]).strip()
            result["first_name"] = _unescape(parts[1]).strip() if len(parts) > 1 else ""
        elif name == "email":
            result.setdefault("email", value.lower())
        elif name == "tel":
            if "cell" in params or "mobile" in params:
                result["phone"] = value
                result["whatsapp"] = NON_DIALABLE.sub("", value)
            else:
                result.setdefault("phone", value)
        elif name == "org":
            result["organization"] = _unescape(value.split(";")[0])
        elif name == "title":
            result["job_title"] = _unescape(value)
        elif name == "adr":
            parts = value.split(";") + [""] * 7
            result["address"] = _unescape(parts[2])
            result["city"] = _unescape(parts[3])
            result["state"] = _unescape(parts[4])
            result["postal_code"] = _unescape(parts[5])
            result["country"] = _unescape(parts[6])
        elif name == "url":
            if "linkedin.com" in value.lower():
                result["linkedin_url"] = value
        elif name == "note":
            result["notes"] = _unescape(value)

    result = {field: value for field, value in result.items() if value}
    if not result:
        return {}
    if "full_name" not in result:
        full_name = f"{result.get('first_name', '')} {result.get('last_name', '')}".strip()
        if full_name:
            result["full_name"] = full_name
    if "first_name" not in result and result.get("full_name"):
        result["first_name"] = result["full_name"].split()[0]
    return result


def parse_linkedin_profile(data: Mapping) -> Dict[str, str]:
    """Normalise a scanned LinkedIn profile payload into contact fields."""
    data = data or {}
    name = (data.get("name") or "").strip()
    first_name = (data.get("firstName") or data.get("first_name") or "").strip()
    last_name = (data.get("lastName") or data.get("last_name") or "").strip()
    if name and not first_name:
        first_name, _, rest = name.partition(" ")
        last_name = last_name or rest.strip()
    result = {
        "first_name": first_name,
        "last_name": last_name,
        "full_name": name or f"{first_name} {last_name}".strip(),
        "linkedin_url": (data.get("profileUrl") or data.get("profile_url") or "").strip(),
        "job_title": (data.get("headline") or "").strip(),
        "organization": (data.get("company") or "").strip(),
        "email": (data.get("email") or "").strip().lower(),
    }
    result = {field: value for field, value in result.items() if value}
    if not result.get("full_name") and not result.get("linkedin_url") and not result.get("email"):
        return {}
    return result
