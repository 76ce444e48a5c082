import secrets
import uuid

CLAIM_WORDS = ("reef", "wave", "shell", "tide", "coral", "kelp", "sand", "claw")
_CLAIM_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def gen_claim_code(suffix_len: int = 6) -> str:
    # Example: reef-K7QX2M
    word = secrets.choice(CLAIM_WORDS)
    suffix = "".join(secrets.choice(_CLAIM_ALPHABET) for _ in range(suffix_len))
    return f"{word}-{suffix}"
