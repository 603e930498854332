"""Monthly pipe-separated log of who did what to the ledger."""
from datetime import datetime
from mandal.core.config import LOGS_DIR


def _clean(value) -> str:
    # one entry per line, fields split on " | "
    return str(value if value is not None else "").replace("|", "/").replace("\n", " ").strip()


def write_audit_log(user_name: str, user_role: str, action: str, details: str = "", user_id=None):
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    now = datetime.now()
    log_file = LOGS_DIR / f"ledger_{now:%Y_%m}.log"
    fields = (now.strftime("%Y-%m-%d %H:%M:%S"), user_role, user_name, user_id, action, details)
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(" | ".join(_clean(field) for field in fields) + "\n")


def audit_actor(user, action: str, details: str = ""):
    """Write an audit line for an authenticated user."""
    role = user.role.value if user.role else "member"
    write_audit_log(user_name=user.name or user.email, user_role=role, action=action, details=details, user_id=user.id)
