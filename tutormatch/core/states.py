MATCH_STATES = ["pending", "approved", "rejected"]

# rows written by older scans still carry "Suggested"
PENDING_STATES = ("pending", "Suggested")

TRANSITIONS = {
    ("pending", "approved"): {"action": "approve"},
    ("pending", "rejected"): {"action": "reject"},
}

ACTIONS = {rule["action"]: dst for (_src, dst), rule in TRANSITIONS.items()}


def normalize_status(status: str | None) -> str:
    return "pending" if status in PENDING_STATES else (status or "")


def is_pending(status: str | None) -> bool:
    return status in PENDING_STATES


def can_transition(src: str, dst: str) -> bool:
    return (normalize_status(src), dst) in TRANSITIONS
