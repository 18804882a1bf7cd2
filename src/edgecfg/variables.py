"""
Variable expressions of the form ``${{NAME}}``.

Redacted secrets are replaced by variable expressions in the working copy.
When the working copy is read back, expressions are resolved against the
process environment (typically secrets provided by CI).
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping

from .model import ServiceConfig
from .reporting import Reporter

VARIABLE_PATTERN = re.compile(r"\$\{\{([A-Z0-9_]+)\}\}")


def variable_expression(name: str) -> str:
    """Return the expression ``${{name}}``."""
    return f"${{{{{name}}}}}"


def is_variable_expression(text: str | None) -> bool:
    if not text:
        return False
    return VARIABLE_PATTERN.fullmatch(text) is not None


def find_variables(text: str) -> list[str]:
    """Names of all variables referenced in text, in order of appearance."""
    return VARIABLE_PATTERN.findall(text)


def expand(
    service: ServiceConfig,
    environ: Mapping[str, str] | None = None,
    reporter: Reporter | None = None,
) -> ServiceConfig:
    """
    Replace variable expressions anywhere in the service with environment values.

    Works on the serialized document so expressions nested inside any text
    field are resolved. Expressions without a matching environment variable
    are left unchanged and reported once per variable name.

    Returns:
        A new ServiceConfig; the input is not modified.
    """
    env = os.environ if environ is None else environ
    missing: list[str] = []

    def replace_variable(match: re.Match[str]) -> str:
        name = match.group(1)
        value = env.get(name)
        if value is None:
            if name not in missing:
                missing.append(name)
            return match.group(0)
        # value goes into a JSON string literal
        return json.dumps(value)[1:-1]

    document = json.dumps(service.to_dict())
    rewritten = VARIABLE_PATTERN.sub(replace_variable, document)

    if reporter is not None:
        for name in missing:
            reporter.warn(f"Environment variable not found: {name}")

    return ServiceConfig.from_dict(json.loads(rewritten))
