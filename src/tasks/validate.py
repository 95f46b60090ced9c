"""HTML conformance check of the prod output via the Nu HTML checker."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import requests

from ..sitebuild import ValidationToolError, task
from ..sitebuild.utils import _get, prod_root


@dataclass
class Diagnostic:
    severity: str  # error | warning | info
    line: Optional[int]
    message: str


def _severity(msg: dict) -> str:
    if msg.get("type") == "error":
        return "error"
    if msg.get("type") == "info" and msg.get("subType") == "warning":
        return "warning"
    return "info"


def check_markup(
    document: Union[str, bytes],
    url: str,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> List[Diagnostic]:
    """Post one document to the checker.

    Bytes are sent untouched so the checker sniffs the encoding itself
    (meta charset, BOM); text is sent as UTF-8.
    """
    if isinstance(document, str):
        data = document.encode("utf-8")
        content_type = "text/html; charset=utf-8"
    else:
        data = document
        content_type = "text/html"
    http = session or requests
    try:
        resp = http.post(
            url,
            data=data,
            headers={
                "Content-Type": content_type,
                "User-Agent": "sitebuild-validate",
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
    except requests.exceptions.RequestException as e:
        raise ValidationToolError(f"checker request failed: {e}") from e
    except ValueError as e:
        raise ValidationToolError(f"checker returned invalid JSON: {e}") from e

    diagnostics: List[Diagnostic] = []
    for msg in payload.get("messages", []):
        if msg.get("type") == "non-document-error":
            raise ValidationToolError(msg.get("message", "checker could not process document"))
        diagnostics.append(
            Diagnostic(
                severity=_severity(msg),
                line=msg.get("lastLine") or msg.get("firstLine"),
                message=msg.get("message", ""),
            )
        )
    return diagnostics


@task(
    name="validateHtml",
    inputs=lambda p: [f"{prod_root(p)}/**/*.html"],
)
def validate_html(ctx):
    """Check every page of the prod root against the HTML checker."""
    url = _get(ctx.params, "validate", "checker_url", default="https://validator.w3.org/nu/?out=json")
    timeout = _get(ctx.params, "validate", "timeout", default=None)
    report = {"files": 0, "errors": 0, "warnings": 0, "failed": 0, "per_file": {}}
    if not ctx.inputs:
        ctx.logger.info("No HTML files found in %s", prod_root(ctx.params))
        return report

    with requests.Session() as session:
        for path in ctx.inputs:
            report["files"] += 1
            key = Path(path).as_posix()
            try:
                diags = check_markup(path.read_bytes(), url, session=session, timeout=timeout)
            except ValidationToolError as e:
                report["failed"] += 1
                report["per_file"][key] = {"errors": None, "warnings": None, "failed": str(e)}
                ctx.logger.warning("%s: check failed: %s", key, e)
                continue
            errors = sum(1 for d in diags if d.severity == "error")
            warnings = sum(1 for d in diags if d.severity == "warning")
            for d in diags:
                if d.severity != "info":
                    ctx.logger.info("%s:%s: %s: %s", key, d.line or "?", d.severity, d.message)
            report["per_file"][key] = {"errors": errors, "warnings": warnings}
            report["errors"] += errors
            report["warnings"] += warnings
            ctx.logger.info("%s: %d error(s), %d warning(s)", key, errors, warnings)

    ctx.logger.info(
        "Checked %d file(s): %d error(s), %d warning(s), %d check failure(s)",
        report["files"],
        report["errors"],
        report["warnings"],
        report["failed"],
    )
    return report
