"""
awarekv.infrastructure.key_schema - Artifact Key Layout
=========================================================

Every artifact is stored as several KV entries under one flat, colon-delimited
key space. This module is the only place that builds or parses those keys.

Key Layout:
    <prefix>:<resource_id>:<part>[:<subpart>...]

    ml:<id>:base                      microlearning base record
    ml:<id>:lang:<lang>               microlearning content for one language
    ml:<id>:inbox:<dept>:<lang>       department inbox content
    ml:<id>:history:<version>         version history entry
    phishing:<id>:base                phishing base record
    phishing:<id>:email:<lang>        phishing email template
    phishing:<id>:landing:<lang>      phishing landing page
    smishing:<id>:base                smishing base record
    smishing:<id>:sms:<lang>          smishing SMS messages
    smishing:<id>:landing:<lang>      smishing landing page

Rules:
    - Language codes are lowercased before they are embedded.
    - Resource IDs, departments, languages and versions must be non-empty and
      must not contain the ':' separator, so parse_key(build_key(...)) is
      always the identity.
"""

from __future__ import annotations

from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from awarekv.core.enums import ArtifactPart, ResourceType
from awarekv.core.exceptions import ArtifactValidationError

SEPARATOR = ":"

# Parts each resource type may carry besides BASE.
_ALLOWED_PARTS: dict[ResourceType, frozenset[ArtifactPart]] = {
    ResourceType.MICROLEARNING: frozenset(
        {ArtifactPart.BASE, ArtifactPart.LANG, ArtifactPart.INBOX, ArtifactPart.HISTORY}
    ),
    ResourceType.PHISHING: frozenset(
        {ArtifactPart.BASE, ArtifactPart.EMAIL, ArtifactPart.LANDING}
    ),
    ResourceType.SMISHING: frozenset(
        {ArtifactPart.BASE, ArtifactPart.SMS, ArtifactPart.LANDING}
    ),
}

# Subparts that are language codes, by part.
_LANGUAGE_SUBPART: dict[ArtifactPart, int] = {
    ArtifactPart.LANG: 0,
    ArtifactPart.INBOX: 1,
    ArtifactPart.EMAIL: 0,
    ArtifactPart.LANDING: 0,
    ArtifactPart.SMS: 0,
}


# =============================================================================
# Segment Validation
# =============================================================================
def _segment(value: Union[str, int], field: str) -> str:
    """Validate one key segment and return it as a string."""
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ArtifactValidationError(
            message=f"{field} must be a non-empty string",
            field=field,
        )
    if SEPARATOR in text:
        raise ArtifactValidationError(
            message=f"{field} must not contain '{SEPARATOR}': {text!r}",
            field=field,
        )
    return text


def normalize_language(language: str) -> str:
    """Lowercase and validate a language code (e.g. 'en-GB' → 'en-gb').

    Raises:
        ArtifactValidationError: If the code is empty or contains ':'.
    """
    return _segment(language, "language").lower()


def normalize_languages(languages: Iterable[str]) -> list[str]:
    """Lowercase and de-duplicate language codes, keeping first-seen order.

    Example:
        >>> normalize_languages(["en", "TR", "en-GB", "tr"])
        ['en', 'tr', 'en-gb']
    """
    seen: dict[str, None] = {}
    for language in languages:
        seen.setdefault(normalize_language(language), None)
    return list(seen)


# =============================================================================
# ArtifactKey Model
# =============================================================================
class ArtifactKey(BaseModel):
    """Structured form of one KV key.

    Attributes:
        resource_type: Which artifact family the key belongs to.
        resource_id: The artifact's ID.
        part: Which stored piece of the artifact.
        subparts: Segments after the part (language, department, version).

    Example:
        >>> key = ArtifactKey.parse("ml:abc:inbox:it:en-gb")
        >>> key.subparts
        ('it', 'en-gb')
        >>> key.to_key()
        'ml:abc:inbox:it:en-gb'
    """

    model_config = ConfigDict(frozen=True)

    resource_type: ResourceType
    resource_id: str
    part: ArtifactPart
    subparts: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def language(self) -> Optional[str]:
        """The language code embedded in the key, if the part has one."""
        index = _LANGUAGE_SUBPART.get(self.part)
        return None if index is None else self.subparts[index]

    def to_key(self) -> str:
        """Format as the colon-delimited KV key."""
        return build_key(self.resource_type, self.resource_id, self.part, *self.subparts)

    @classmethod
    def parse(cls, key: str) -> "ArtifactKey":
        """Parse a KV key. See parse_key()."""
        return parse_key(key)


# =============================================================================
# Builders
# =============================================================================
def resource_prefix(resource_type: ResourceType) -> str:
    """Listing prefix covering every key of a resource type (e.g. 'ml:')."""
    return f"{ResourceType(resource_type).key_prefix}{SEPARATOR}"


def build_key(
    resource_type: ResourceType,
    resource_id: str,
    part: ArtifactPart,
    *subparts: str,
) -> str:
    """Build a KV key from its components.

    Language subparts are lowercased; every segment is validated.

    Raises:
        ArtifactValidationError: If a segment is empty or contains ':', the
            part is not valid for the resource type, or the number of
            subparts does not match the part.
    """
    resource_type = ResourceType(resource_type)
    part = ArtifactPart(part)

    if part not in _ALLOWED_PARTS[resource_type]:
        raise ArtifactValidationError(
            message=f"Part '{part.value}' is not valid for {resource_type.value}",
            field="part",
        )
    if len(subparts) != part.subpart_count:
        raise ArtifactValidationError(
            message=(
                f"Part '{part.value}' takes {part.subpart_count} subpart(s), "
                f"got {len(subparts)}"
            ),
            field="subparts",
        )

    language_index = _LANGUAGE_SUBPART.get(part)
    segments = [resource_type.key_prefix, _segment(resource_id, "resource_id"), part.value]
    for index, subpart in enumerate(subparts):
        if index == language_index:
            segments.append(normalize_language(subpart))
        elif part is ArtifactPart.INBOX:
            segments.append(_segment(subpart, "department"))
        else:
            segments.append(_segment(subpart, "version"))
    return SEPARATOR.join(segments)


def base_key(resource_type: ResourceType, resource_id: str) -> str:
    return build_key(resource_type, resource_id, ArtifactPart.BASE)


def language_key(microlearning_id: str, language: str) -> str:
    return build_key(ResourceType.MICROLEARNING, microlearning_id, ArtifactPart.LANG, language)


def inbox_key(microlearning_id: str, department: str, language: str) -> str:
    return build_key(
        ResourceType.MICROLEARNING, microlearning_id, ArtifactPart.INBOX, department, language
    )


def history_key(microlearning_id: str, version: Union[str, int]) -> str:
    return build_key(
        ResourceType.MICROLEARNING, microlearning_id, ArtifactPart.HISTORY, str(version)
    )


def email_key(phishing_id: str, language: str) -> str:
    return build_key(ResourceType.PHISHING, phishing_id, ArtifactPart.EMAIL, language)


def landing_key(resource_type: ResourceType, resource_id: str, language: str) -> str:
    return build_key(resource_type, resource_id, ArtifactPart.LANDING, language)


def sms_key(smishing_id: str, language: str) -> str:
    return build_key(ResourceType.SMISHING, smishing_id, ArtifactPart.SMS, language)


def health_check_key(epoch_ms: int) -> str:
    """Sentinel key written and removed by the transport's health check."""
    return f"health_check_{epoch_ms}"


# =============================================================================
# Parsing
# =============================================================================
def parse_key(key: str) -> ArtifactKey:
    """Parse a colon-delimited KV key into an ArtifactKey.

    Raises:
        ArtifactValidationError: If the key does not follow the layout.
    """
    segments = key.split(SEPARATOR) if isinstance(key, str) else []
    if len(segments) < 3:
        raise ArtifactValidationError(
            message=f"Malformed artifact key: {key!r}",
            field="key",
        )

    prefix, resource_id, part_name, *subparts = segments
    try:
        resource_type = ResourceType.from_key_prefix(prefix)
        part = ArtifactPart(part_name)
    except ValueError as e:
        raise ArtifactValidationError(
            message=f"Malformed artifact key: {key!r}",
            field="key",
            details={"reason": str(e)},
        ) from e

    # Rebuilding validates every segment and the subpart count.
    rebuilt = build_key(resource_type, resource_id, part, *subparts)
    if rebuilt != key:
        raise ArtifactValidationError(
            message=f"Artifact key is not in canonical form: {key!r}",
            field="key",
            details={"canonical": rebuilt},
        )
    return ArtifactKey(
        resource_type=resource_type,
        resource_id=resource_id,
        part=part,
        subparts=tuple(subparts),
    )


def is_base_key(key: str) -> bool:
    """True if ``key`` is the base record key of some artifact."""
    try:
        return parse_key(key).part is ArtifactPart.BASE
    except ArtifactValidationError:
        return False


# =============================================================================
# Expected Keys After A Save
# =============================================================================
# Used with wait_for_consistency() to poll for every key a save just wrote.
# =============================================================================
def build_expected_microlearning_keys(
    microlearning_id: str,
    language: str,
    department: Optional[str] = None,
) -> list[str]:
    keys = [
        base_key(ResourceType.MICROLEARNING, microlearning_id),
        language_key(microlearning_id, language),
    ]
    if department:
        keys.append(inbox_key(microlearning_id, department, language))
    return keys


def build_expected_phishing_keys(
    phishing_id: str,
    language: str,
    *,
    include_email: bool = True,
    include_landing: bool = True,
) -> list[str]:
    keys = [base_key(ResourceType.PHISHING, phishing_id)]
    if include_email:
        keys.append(email_key(phishing_id, language))
    if include_landing:
        keys.append(landing_key(ResourceType.PHISHING, phishing_id, language))
    return keys


def build_expected_smishing_keys(
    smishing_id: str,
    language: str,
    *,
    include_sms: bool = True,
    include_landing: bool = True,
) -> list[str]:
    keys = [base_key(ResourceType.SMISHING, smishing_id)]
    if include_sms:
        keys.append(sms_key(smishing_id, language))
    if include_landing:
        keys.append(landing_key(ResourceType.SMISHING, smishing_id, language))
    return keys
