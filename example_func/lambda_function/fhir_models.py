# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Minimal FHIR R4 records used by the access validator.

Only the pieces of ``Extension`` and ``Reference`` that carry ownership
information are modeled. Field names follow Python conventions; the
``from_dict``/``to_dict`` helpers translate to and from FHIR JSON.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Reference:
    """
    A FHIR reference such as ``Organization/123``.

    Absolute (``https://.../r4/Organization/123``) and versioned
    (``Organization/123/_history/2``) forms resolve to the same type and id
    as the relative form.
    """

    reference: Optional[str] = None
    display: Optional[str] = None

    def _type_and_id(self) -> Tuple[Optional[str], Optional[str]]:
        if not self.reference:
            return None, None
        segments = self.reference.split("/")
        if len(segments) >= 4 and segments[-2] == "_history":
            segments = segments[:-2]
        if len(segments) < 2:
            return None, None
        return segments[-2] or None, segments[-1] or None

    @property
    def resource_type(self) -> Optional[str]:
        return self._type_and_id()[0]

    @property
    def resource_id(self) -> Optional[str]:
        return self._type_and_id()[1]

    @property
    def relative(self) -> Optional[str]:
        """``Type/id`` form, or None when either part is missing."""
        resource_type, resource_id = self._type_and_id()
        if not resource_type or not resource_id:
            return None
        return f"{resource_type}/{resource_id}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reference":
        return cls(reference=data.get("reference"), display=data.get("display"))

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        if self.reference is not None:
            result["reference"] = self.reference
        if self.display is not None:
            result["display"] = self.display
        return result


@dataclass
class Extension:
    """
    A FHIR extension record.

    ``Extension()`` with every field unset is the default record; it names
    no owning entity.
    """

    url: Optional[str] = None
    value_reference: Optional[Reference] = None
    value_string: Optional[str] = None
    extension: List["Extension"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Extension":
        """Build an extension from FHIR JSON."""
        value_reference = data.get("valueReference")
        return cls(
            url=data.get("url"),
            value_reference=(
                Reference.from_dict(value_reference) if value_reference else None
            ),
            value_string=data.get("valueString"),
            extension=[cls.from_dict(item) for item in data.get("extension", [])],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to FHIR JSON, omitting unset fields."""
        result: Dict[str, Any] = {}
        if self.url is not None:
            result["url"] = self.url
        if self.value_reference is not None:
            result["valueReference"] = self.value_reference.to_dict()
        if self.value_string is not None:
            result["valueString"] = self.value_string
        if self.extension:
            result["extension"] = [item.to_dict() for item in self.extension]
        return result


def entity_references(extensions: List[Extension], url: str) -> List[Reference]:
    """
    Collect the owning-entity references carried by ``extensions``.

    Nested extensions are searched as well. Order of appearance is kept and
    duplicates are dropped.

    Args:
        extensions: Extensions attached to a resource
        url: Extension URL that marks the owning entity

    Returns:
        List of references with a resolvable id
    """
    found: List[Reference] = []
    seen = set()

    def _collect(items: List[Extension]) -> None:
        for item in items:
            if item.url == url and item.value_reference is not None:
                ref = item.value_reference
                if ref.relative and ref.relative not in seen:
                    seen.add(ref.relative)
                    found.append(ref)
            if item.extension:
                _collect(item.extension)

    _collect(extensions)
    return found
