"""
Constants and defaults for edgecfg.

On-disk layout of a working copy (relative to the working directory):

    service.json          canonical document, all remaining service fields
    acl.json              ACLs with entries (absent when there are none)
    domains.yaml          domains per environment
    vcl/*.vcl             raw VCL source files
    snippets/*.vcl        snippets, one file per execution point
    dictionaries/*.ini    dictionaries, private.<name>.ini when write-only
    .secrets.env          redacted secret values (never commit this)
"""

from __future__ import annotations

from enum import Enum

DEFAULT_ENV = "production"

FILE_SERVICE = "service.json"
FILE_ACL = "acl.json"
FILE_DOMAINS = "domains.yaml"
FILE_SECRETS_ENV = ".secrets.env"

DIR_VCLS = "vcl"
DIR_SNIPPETS = "snippets"
DIR_DICTIONARIES = "dictionaries"

SOURCE_EXT = ".vcl"
DICTIONARY_EXT = ".ini"
PRIVATE_DICT_PREFIX = "private."

# Separates snippet header and body blocks in snippets/*.vcl
DIVIDER = "# " + "=" * 75
SUB_INDENT = "  "

# Execution points whose snippets are not wrapped in a subroutine
UNWRAPPED_EXECUTION_POINTS = ("init", "none")

JSON_INDENT = 2

# Resource collections that have their own file(s) and are kept out of service.json
RESOURCE_KEYS = ("acls", "snippets", "vcls", "dictionaries", "domains")

# Logging endpoint collections in the service detail, mapped to the API name
# of the provider and the field that holds its credential.
LOG_TYPES: dict[str, dict[str, str]] = {
    "bigqueries": {"api": "bigquery", "credential": "secret_key"},
    "https": {"api": "https", "credential": "header_value"},
    "newrelics": {"api": "newrelic", "credential": "token"},
    "splunks": {"api": "splunk", "credential": "token"},
}

# Fields on the service detail that are objects or arrays and are handled
SUPPORTED_FEATURES: tuple[str, ...] = (
    "products",
    "domains",
    "conditions",
    "headers",
    "backends",
    "acls",
    "dictionaries",
    "snippets",
    "vcls",
    "request_settings",
    "settings",
    "io_settings",
    "environments",
    *LOG_TYPES.keys(),
)

# Noisy version metadata dropped when assembling a service from the remote store
NOISY_FIELDS = ("number", "deployed", "staging", "testing", "deleted_at")

DEFAULT_ENTROPY_THRESHOLD = 4.5


class SecretsMode(str, Enum):
    """What to do with detected secrets when writing the working copy."""

    WARN = "warn"
    REPLACE = "replace"
