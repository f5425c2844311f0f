"""
Connected-platform extraction from Upload-Post profiles.

Upload-Post has answered the profile endpoint in three shapes over time:

    {"profile": {"social_accounts": {"linkedin": {...}, "tiktok": null}}}
    {"platforms": [{"platform": "x", "connected": true, ...}]}
    {"connected_accounts": [{"type": "twitter", "username": "..."}]}

Each shape has one extractor; they are tried in order and the first that
yields anything wins.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

ALIASES = {
    "twitter": "x",
}

DISPLAY_NAME_FIELDS = ("display_name", "displayName", "name", "full_name")
EXTERNAL_ID_FIELDS = ("id", "user_id", "account_id", "platform_id")


@dataclass
class ExternalAccount:
    """One platform account as reported by Upload-Post."""
    platform: str
    display_name: Optional[str] = None
    external_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def normalize_platform(name: Optional[str]) -> str:
    normalized = (name or "").strip().lower()
    return ALIASES.get(normalized, normalized)


def normalize_platforms(names: Optional[List[str]]) -> List[str]:
    """Canonical names in the given order, blanks and repeats dropped."""
    seen = []
    for name in names or []:
        platform = normalize_platform(name)
        if platform and platform not in seen:
            seen.append(platform)
    return seen


def _first(data: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def _account(platform: str, data: Dict[str, Any]) -> ExternalAccount:
    username = _first(data, ("username", "handle"))
    return ExternalAccount(
        platform=normalize_platform(platform),
        # Upload-Post's "username" is often an internal id; prefer a readable name
        display_name=_first(data, DISPLAY_NAME_FIELDS) or username,
        external_id=_first(data, EXTERNAL_ID_FIELDS) or username,
        raw=data,
    )


def _profile(payload: Dict[str, Any]) -> Dict[str, Any]:
    profile = payload.get("profile")
    return profile if isinstance(profile, dict) else payload


def _lookup(payload: Dict[str, Any], *keys: str) -> Any:
    profile = _profile(payload)
    for source in (profile, payload):
        for key in keys:
            if source.get(key) is not None:
                return source[key]
    return None


def from_social_accounts(payload: Dict[str, Any]) -> List[ExternalAccount]:
    accounts = _lookup(payload, "social_accounts", "socialAccounts")
    if not isinstance(accounts, dict):
        return []

    found = []
    for platform, value in accounts.items():
        # null, "" and false mean "not connected"
        if not value:
            continue
        if isinstance(value, dict):
            found.append(_account(platform, value))
        elif isinstance(value, str):
            found.append(ExternalAccount(
                platform=normalize_platform(platform),
                display_name=value,
                external_id=value,
                raw={"username": value},
            ))
    return found


def from_platforms_list(payload: Dict[str, Any]) -> List[ExternalAccount]:
    entries = _lookup(payload, "platforms")
    if not isinstance(entries, list):
        return []
    return [
        _account(entry["platform"], entry)
        for entry in entries
        if isinstance(entry, dict) and entry.get("platform") and entry.get("connected") is not False
    ]


def from_connected_accounts(payload: Dict[str, Any]) -> List[ExternalAccount]:
    entries = _lookup(payload, "connected_accounts")
    if not isinstance(entries, list):
        return []
    found = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        platform = entry.get("platform") or entry.get("type")
        if platform:
            found.append(_account(platform, entry))
    return found


EXTRACTORS: List[Callable[[Dict[str, Any]], List[ExternalAccount]]] = [
    from_social_accounts,
    from_platforms_list,
    from_connected_accounts,
]


def extract_connected_platforms(payload: Optional[Dict[str, Any]]) -> List[ExternalAccount]:
    """Canonical connected accounts from a profile payload, one per platform."""
    if not isinstance(payload, dict):
        return []

    accounts: List[ExternalAccount] = []
    for extractor in EXTRACTORS:
        accounts = extractor(payload)
        if accounts:
            break

    seen = set()
    unique = []
    for account in accounts:
        if not account.platform or account.platform in seen:
            continue
        seen.add(account.platform)
        unique.append(account)
    return unique
