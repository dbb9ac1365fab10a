# diligent/catalog.py
import platform
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from diligent.errors import CatalogError
from diligent.models import Check

Catalog = Mapping[str, Tuple[Check, ...]]

UNSUPPORTED_OS = "Unsupported OS"

_SYSTEMS = {
    "Darwin": "macOS",
    "Linux": "Linux",
    "Windows": "Windows",
}


def detect_os(system: Optional[str] = None) -> str:
    return _SYSTEMS.get(system or platform.system(), UNSUPPORTED_OS)


def _checks(*pairs: Tuple[str, str]) -> Tuple[Check, ...]:
    return tuple(Check(command=c, prompt=p) for c, p in pairs)


BUILTIN_CATALOG: Dict[str, Tuple[Check, ...]] = {
    "macOS": _checks(
        (
            "system_profiler SPUSBDataType -json | jq '.SPUSBDataType[] | select(.\"_name\" | test(\"keyboard|mouse|storage|hub\"; \"i\"))'",
            "Look for any suspicious USB devices, filtering for specific device types.",
        ),
        (
            "ps -Ao user,pid,%cpu,%mem,comm -r | head -n 20",
            "Analyze top processes for unusual CPU or memory usage.",
        ),
        (
            "netstat -an | grep -E 'ESTABLISHED|LISTEN' | awk '{print $4,$5,$6}' | uniq -c | sort -nr | head -n 20",
            "Identify top suspicious or unusual network connections.",
        ),
        (
            "last | head -n 20",
            "Review the most recent login history for any unusual user activity.",
        ),
        (
            "dscl . list /Users | grep -vE '^_.*|daemon|nobody|root'",
            "Check for unexpected or unauthorized user accounts, excluding system defaults.",
        ),
        (
            "pmset -g log | grep -i failure | tail -n 10",
            "Check the last 10 power management failures or unexpected events.",
        ),
        (
            "dmesg | tail -n 20",
            "Analyze the last 20 kernel messages for potential issues.",
        ),
        (
            "ls -lh /Users/Shared | grep -v '^d' | sort -k5,5nr | head -n 10",
            "Check the largest or most recently modified suspicious files in the shared user directory.",
        ),
        (
            "launchctl list | grep -vE 'com.apple|system' | head -n 20",
            "Check non-system running services/daemons for suspicious entries.",
        ),
        (
            "crontab -l | grep -E 'wget|curl|bash|sh' | tail -n 10",
            "Check for potentially suspicious cron jobs.",
        ),
        (
            "fdesetup status",
            "Check if FileVault disk encryption is enabled or disabled.",
        ),
        (
            "kextstat | grep -v com.apple",
            "Examine loaded kernel extensions for anything unusual, excluding Apple-signed extensions.",
        ),
        (
            "defaults read /Library/Preferences/com.apple.loginwindow | grep -vE 'default values|empty'",
            "Inspect login window preferences for suspicious settings, filtering irrelevant defaults.",
        ),
        (
            "mdutil -s / | grep -iE 'enabled|disabled'",
            "Check Spotlight indexing status; unexpected changes could indicate tampering.",
        ),
        (
            "lsof -i | grep -E 'LISTEN|ESTABLISHED'",
            "Review open files and network connections for suspicious activity, focusing on active connections.",
        ),
        (
            "ls -la /etc/sudoers.d | grep -v '^total'",
            "Check for unauthorized sudoers modifications, ignoring summary lines.",
        ),
    ),
    "Linux": _checks(
        (
            "ps -eo user,pid,%cpu,%mem,comm --sort=-%cpu | head -n 20",
            "Analyze top processes for unusual CPU or memory usage.",
        ),
        (
            "ss -tunap | grep -E 'ESTAB|LISTEN' | head -n 40",
            "Identify suspicious or unusual listening sockets and established connections.",
        ),
        (
            "last -n 20",
            "Review the most recent login history for any unusual user activity.",
        ),
        (
            "awk -F: '$3 >= 1000 || $3 == 0 {print $1, $3, $7}' /etc/passwd",
            "Check for unexpected or unauthorized user accounts, including extra UID 0 accounts.",
        ),
        (
            "dmesg 2>&1 | tail -n 20",
            "Analyze the last 20 kernel messages for potential issues.",
        ),
        (
            "systemctl list-units --type=service --state=running --no-pager --no-legend | head -n 40",
            "Check running services for suspicious or unknown entries.",
        ),
        (
            "ls -la /etc/cron.d /etc/cron.daily /var/spool/cron 2>&1 | head -n 40",
            "Check for potentially suspicious scheduled jobs.",
        ),
        (
            "lsmod | head -n 40",
            "Examine loaded kernel modules for anything unusual.",
        ),
        (
            "ls -la /etc/sudoers.d",
            "Check for unauthorized sudoers modifications.",
        ),
        (
            "find /tmp /var/tmp -maxdepth 2 -type f -perm -u+x 2>/dev/null | head -n 20",
            "Look for executable files dropped in temporary directories.",
        ),
    ),
    "Windows": _checks(
        (
            "tasklist /v /fo csv | more +1",
            "Analyze running processes for unusual names, users or memory usage.",
        ),
        (
            "netstat -ano | findstr /i \"ESTABLISHED LISTENING\"",
            "Identify suspicious or unusual network connections.",
        ),
        (
            "net user",
            "Check for unexpected or unauthorized user accounts.",
        ),
        (
            "net localgroup administrators",
            "Check for unexpected members of the local Administrators group.",
        ),
        (
            "schtasks /query /fo LIST",
            "Check scheduled tasks for suspicious entries.",
        ),
        (
            "reg query HKLM\\Software\\Microsoft\\Windows\\CurrentVersion\\Run",
            "Inspect machine-wide autorun entries for persistence mechanisms.",
        ),
    ),
}


def _parse_checks(os_name: str, entries: Any) -> Tuple[Check, ...]:
    if not isinstance(entries, list):
        raise CatalogError(f"catalog entry for {os_name} must be a list of checks")
    out: List[Check] = []
    for i, entry in enumerate(entries):
        try:
            out.append(Check.model_validate(entry))
        except ValidationError as e:
            raise CatalogError(f"invalid check #{i} for {os_name}: {e}") from e
    return tuple(out)


def load_catalog(path: Optional[str] = None) -> Catalog:
    """
    Return the built-in catalog, or the one in the YAML file at `path`.

    File shape:
        checks:
          Linux:
            - command: "uptime"
              prompt: "Check load averages."
    """
    if not path:
        return BUILTIN_CATALOG

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"cannot read catalog {path}: {e}") from e

    if not isinstance(data, dict) or "checks" not in data:
        raise CatalogError(f"{path} missing required key: checks")

    raw = data["checks"] or {}
    if not isinstance(raw, dict):
        raise CatalogError(f"{path}: checks must map OS names to lists")

    return {os_name: _parse_checks(os_name, entries) for os_name, entries in raw.items()}


def checks_for(catalog: Catalog, os_name: str) -> Tuple[Check, ...]:
    if os_name not in catalog:
        raise CatalogError(f"no checks defined for operating system: {os_name}")
    return tuple(catalog[os_name])
