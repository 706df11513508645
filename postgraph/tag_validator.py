"""
Tag taxonomy validation.

Tags use the canonical ``family/value`` form (e.g. ``theme/kubernetes``).
The family is drawn from a closed vocabulary, and each family has a
cardinality rule counted over the de-duplicated tag list.
"""

from typing import Iterable, NamedTuple, Optional

from .errors import CardinalityError, MalformedTagError, UnknownFamilyError

TAG_SEPARATOR = "/"


class Cardinality(NamedTuple):
    """Allowed number of tags of one family (maximum None = unbounded)."""
    minimum: int
    maximum: Optional[int]


# Closed family vocabulary with per-family cardinality
TAG_FAMILIES: dict[str, Cardinality] = {
    "type": Cardinality(1, 2),
    "role": Cardinality(0, 3),
    "structure": Cardinality(0, 1),
    "source": Cardinality(0, 1),
    "theme": Cardinality(1, 5),
    "target": Cardinality(0, None),
}


def tag_family(tag: str) -> str:
    """Return the family prefix of a tag (empty string if there is none)."""
    family, sep, _ = tag.partition(TAG_SEPARATOR)
    return family if sep else ""


def _split_tag(tag: str) -> tuple[str, str]:
    family, sep, value = tag.partition(TAG_SEPARATOR)
    if not sep or not family or not value:
        raise MalformedTagError(tag)
    return family, value


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Trim, drop empties and de-duplicate, keeping first-occurrence order."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
    return result


def validate_tags(tags: Iterable[str]) -> list[str]:
    """
    Validate a tag list against the taxonomy and return it normalized.

    Pure function: the caller persists the returned list.

    Raises:
        MalformedTagError: A tag does not split into two non-empty parts
        UnknownFamilyError: A tag family is outside the vocabulary
        CardinalityError: A family has too few or too many tags
    """
    normalized = normalize_tags(tags)

    counts = dict.fromkeys(TAG_FAMILIES, 0)
    for tag in normalized:
        family, _ = _split_tag(tag)
        if family not in TAG_FAMILIES:
            raise UnknownFamilyError(tag, family, TAG_FAMILIES)
        counts[family] += 1

    for family, (minimum, maximum) in TAG_FAMILIES.items():
        observed = counts[family]
        if observed < minimum or (maximum is not None and observed > maximum):
            raise CardinalityError(family, minimum, maximum, observed)

    return normalized
