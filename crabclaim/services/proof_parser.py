from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any


# Structural check only: the referenced post is never fetched.
_PROOF_RE = re.compile(
    r"^(?:https?://)?(?:www\.|mobile\.)?(?:twitter\.com|x\.com)"
    r"/(?P<handle>\w+)/status/(?P<post_id>\d+)"
    r"(?:[/?#].*)?$",
    re.IGNORECASE | re.ASCII,
)

MAX_PROOF_URL_CHARS = 2048


class InvalidProofFormat(ValueError):
    pass


@dataclass(frozen=True)
class SocialProof:
    handle: str
    post_id: str


def parse_social_proof(url: Any) -> SocialProof:
    if not isinstance(url, str):
        raise InvalidProofFormat("Proof URL must be a string")
    if len(url) > MAX_PROOF_URL_CHARS:
        raise InvalidProofFormat("Proof URL is too long")

    m = _PROOF_RE.match(url.strip())
    if not m:
        raise InvalidProofFormat("Invalid tweet URL format")

    return SocialProof(handle=m.group("handle"), post_id=m.group("post_id"))
