"""Bug reports as pre-filled GitHub issues, with recent log lines attached."""

import platform as sys_platform
import webbrowser
from urllib.parse import urlencode

from .. import __version__
from ..core.log_buffer import LogBuffer

BUG_REPORT_TEMPLATE = "bug_report.md"
DEFAULT_REPO = "Purukitto/apex-app"
NO_LOGS = "No logs available."


def environment_info(platform_type: str = "desktop", app_version: str = __version__) -> dict[str, str]:
    return {
        "platform": platform_type,
        "os": sys_platform.system() or "Unknown",
        "device": sys_platform.machine() or "Unknown",
        "python": sys_platform.python_version(),
        "app_version": app_version,
    }


def build_bug_report_body(logs_text: str, env: dict[str, str], log_lines: int) -> str:
    return f"""## 🐛 Bug Description

A clear and concise description of what the bug is.

## 🔄 Steps to Reproduce

1. Go to '...'
2. Tap on '...'
3. See error

## ✅ Expected Behavior

A clear and concise description of what you expected to happen.

## ❌ Actual Behavior

A clear and concise description of what actually happened.

## 🌍 Environment

- **Platform**: {env['platform']}
- **OS**: {env['os']}
- **Device**: {env['device']}
- **Python**: {env['python']}
- **App Version**: {env['app_version']}

## 🧾 Logs (Last {log_lines} lines)

```
{logs_text}
```

## 📝 Additional Context

Add any other context about the problem here.
"""


def create_bug_report_payload(
    log_buffer: LogBuffer | None,
    repo: str = DEFAULT_REPO,
    log_lines: int = 50,
    platform_type: str = "desktop",
) -> str:
    """
    Build a GitHub new-issue URL with the bug template pre-filled.

    Args:
        log_buffer: Source of recent log lines, may be None
        repo: ``owner/name`` of the issue tracker
        log_lines: Number of recent log lines to attach
        platform_type: Platform label for the environment section

    Returns:
        Issue URL ready to open in a browser
    """
    lines = log_buffer.tail(log_lines) if log_buffer is not None else []
    logs_text = "\n".join(lines).strip() or NO_LOGS
    body = build_bug_report_body(logs_text, environment_info(platform_type), log_lines)
    query = urlencode({"template": BUG_REPORT_TEMPLATE, "title": "[BUG] ", "body": body})
    return f"https://github.com/{repo}/issues/new?{query}"


def open_bug_report(url: str) -> bool:
    return webbrowser.open(url)
