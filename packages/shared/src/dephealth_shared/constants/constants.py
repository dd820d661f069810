"""Shared constants for DepHealth."""

# ─── Exit Codes ────────────────────────────────────────────────────────────────
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_NETWORK_ERROR = 3

# ─── Manifest Files ────────────────────────────────────────────────────────────
MANIFEST_FILE_NAME = "package.json"

# ─── Scoring Policy Names ─────────────────────────────────────────────────────
POLICY_AUTO = "auto"
POLICY_FULL = "full"
POLICY_OUTDATED_ONLY = "outdated-only"

# ─── Default Configuration Values ──────────────────────────────────────────────
DEFAULT_CONFIG = {
    "llm": {
        "provider": "ollama",
        "model": "llama3.2",
        "base_url": "http://localhost:11434",
    },
    "registry": {
        "url": "https://registry.npmjs.org",
        "timeout": 30.0,
        "cache_ttl": 3600,  # 1 hour
    },
    "osv": {
        "cache_ttl": 86400,  # 24 hours
        "timeout": 30.0,
    },
    "scoring": {
        "policy": POLICY_AUTO,
        "policies": {
            POLICY_FULL: {
                "updates": {"major": 5, "minor": 2, "patch": 1},
                "severities": {"CRITICAL": 15, "HIGH": 10, "MEDIUM": 5, "LOW": 2, "UNKNOWN": 0},
                "include_vulnerabilities": True,
            },
            POLICY_OUTDATED_ONLY: {
                "updates": {"major": 10, "minor": 5, "patch": 2},
                "severities": {},
                "include_vulnerabilities": False,
            },
        },
    },
    "reports": {
        "default_format": "json",
    },
}

# ─── External API URLs ────────────────────────────────────────────────────────
NPM_REGISTRY_URL = "https://registry.npmjs.org"
OSV_API_BASE_URL = "https://api.osv.dev/v1"
OSV_BATCH_ENDPOINT = f"{OSV_API_BASE_URL}/querybatch"
OSV_NPM_ECOSYSTEM = "npm"

# ─── Config File Names ────────────────────────────────────────────────────────
CONFIG_FILE_NAME = ".dephealth.yaml"
CONFIG_ENV_VAR = "DEPHEALTH_CONFIG"

# ─── Supported Output Formats ─────────────────────────────────────────────────
SUPPORTED_FORMATS = ["json", "table"]
