"""Vulnerability normalization.

Upstream feeds describe advisories in different shapes and severity
vocabularies. Each known shape registers a matcher and an extractor;
``VulnerabilityNormalizer`` dispatches on shape, maps every severity
through ``Severity.from_label`` and deduplicates by (package, id).

Supported shapes:
  - npm audit v2 entry   {name, severity, via: [...], fixAvailable}
  - npm audit v1 advisory {id, module_name, severity, title, url, patched_versions}
  - OSV record           {id, summary, severity[], affected[], references[], ...}
  - flat advisory        {id, package, severity, summary, fixedVersion, reference}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from pydantic import ValidationError

from dephealth_shared.types.enums import Severity
from dephealth_shared.types.models import Vulnerability

logger = logging.getLogger(__name__)

RawRecord = Mapping[str, Any]
Extractor = Callable[[RawRecord], Iterable[Vulnerability]]


@dataclass(frozen=True)
class RecordShape:
    """A known upstream record layout."""

    name: str
    matches: Callable[[RawRecord], bool]
    extract: Extractor


# ─── npm audit (v2, "vulnerabilities" map) ────────────────────────────────────

def _is_npm_audit_entry(record: RawRecord) -> bool:
    return isinstance(record.get("via"), list)


def _extract_npm_audit_entry(record: RawRecord) -> Iterator[Vulnerability]:
    # fixAvailable names the top-level package to upgrade, which may not
    # be the vulnerable one
    fix = record.get("fixAvailable")
    if not isinstance(fix, Mapping):
        fix = {}

    for via in record["via"]:
        # Plain strings point at another entry that carries the advisory
        if not isinstance(via, Mapping):
            continue

        advisory_id = via.get("source") or via.get("url")
        if advisory_id is None:
            raise ValueError(f"advisory without source in {record.get('name')!r}")

        package = via.get("dependency") or via.get("name") or record["name"]
        yield Vulnerability(
            id=str(advisory_id),
            package=package,
            severity=Severity.from_label(via.get("severity", record.get("severity"))),
            summary=via.get("title") or "",
            fixed_version=fix.get("version") if fix.get("name") == package else None,
            reference=via.get("url"),
        )


# ─── npm audit (v1, "advisories" map) ─────────────────────────────────────────

def _is_npm_advisory(record: RawRecord) -> bool:
    return "module_name" in record


def _extract_npm_advisory(record: RawRecord) -> Iterator[Vulnerability]:
    patched = str(record.get("patched_versions") or "").strip()
    fixed_version = patched[2:].strip() if patched.startswith(">=") else None

    yield Vulnerability(
        id=str(record["id"]),
        package=record["module_name"],
        severity=Severity.from_label(record.get("severity")),
        summary=record.get("title") or record.get("overview") or "",
        fixed_version=fixed_version or None,
        reference=record.get("url"),
    )


# ─── OSV.dev ──────────────────────────────────────────────────────────────────

def _is_osv_record(record: RawRecord) -> bool:
    # OSV carries severity as a list of scores; a label means a flat advisory
    if "id" not in record or isinstance(record.get("severity"), str):
        return False
    if isinstance(record.get("affected"), list) or isinstance(record.get("severity"), list):
        return True
    return any(key in record for key in ("aliases", "modified", "schema_version"))


def _extract_osv_record(record: RawRecord) -> Iterator[Vulnerability]:
    affected = record.get("affected") or []

    package = record.get("package")
    if not isinstance(package, str):
        package = next(
            (a["package"]["name"] for a in affected if isinstance(a.get("package"), Mapping)),
            None,
        )
    if not package:
        raise ValueError(f"OSV record {record.get('id')!r} names no package")

    fixed_version: Optional[str] = None
    for a in affected:
        for r in a.get("ranges", []):
            for event in r.get("events", []):
                if "fixed" in event and fixed_version is None:
                    fixed_version = event["fixed"]

    references = record.get("references") or []
    reference = next(
        (ref.get("url") for ref in references if ref.get("type") == "ADVISORY"),
        None,
    ) or next((ref.get("url") for ref in references if ref.get("url")), None)

    # Flat fields on a record that also carries OSV keys
    fixed_version = fixed_version or record.get("fixedVersion") or record.get("fixed_version")
    reference = reference or record.get("reference")

    yield Vulnerability(
        id=str(record["id"]),
        package=package,
        severity=osv_severity(record),
        summary=record.get("summary") or "",
        fixed_version=fixed_version,
        reference=reference,
    )


def osv_severity(record: RawRecord) -> Severity:
    """Severity of an OSV record.

    ``database_specific.severity`` wins; otherwise derive it from the
    first usable CVSS v3 score or vector. A plain label is mapped as-is.
    """
    db_specific = record.get("database_specific")
    if isinstance(db_specific, Mapping) and db_specific.get("severity"):
        return Severity.from_label(db_specific["severity"])

    severity = record.get("severity")
    if isinstance(severity, str):
        return Severity.from_label(severity)
    if not isinstance(severity, list):
        return Severity.UNKNOWN

    for sev in severity:
        if not isinstance(sev, Mapping):
            continue
        if not str(sev.get("type", "")).startswith("CVSS_V3"):
            continue
        score_str = sev.get("score", "")
        try:
            cvss_score = float(score_str)
        except (ValueError, TypeError):
            cvss_score = cvss_vector_to_score(score_str)
        if cvss_score > 0.0:
            return Severity.from_cvss(cvss_score)

    return Severity.UNKNOWN


def cvss_vector_to_score(vector: str) -> float:
    """Parse a CVSS v3.x vector string into a numeric base score.

    Implements a simplified CVSS 3.1 base score calculation.
    Example: "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H" -> 9.8

    Returns:
        Numeric base score (0.0-10.0), or 0.0 if parsing fails.
    """
    if not isinstance(vector, str) or not vector.startswith("CVSS:"):
        return 0.0

    metrics: dict[str, str] = {}
    for part in vector.split("/")[1:]:  # Skip "CVSS:3.1"
        if ":" in part:
            key, val = part.split(":", 1)
            metrics[key] = val

    av_weights = {"N": 0.85, "A": 0.62, "L": 0.55, "P": 0.20}
    ac_weights = {"L": 0.77, "H": 0.44}
    pr_weights_unchanged = {"N": 0.85, "L": 0.62, "H": 0.27}
    pr_weights_changed = {"N": 0.85, "L": 0.68, "H": 0.50}
    ui_weights = {"N": 0.85, "R": 0.62}
    cia_weights = {"H": 0.56, "L": 0.22, "N": 0.0}

    scope_changed = metrics.get("S", "U") == "C"
    pr_weights = pr_weights_changed if scope_changed else pr_weights_unchanged

    av = av_weights.get(metrics.get("AV", "N"), 0.85)
    ac = ac_weights.get(metrics.get("AC", "L"), 0.77)
    pr = pr_weights.get(metrics.get("PR", "N"), 0.85)
    ui = ui_weights.get(metrics.get("UI", "N"), 0.85)

    c = cia_weights.get(metrics.get("C", "N"), 0.0)
    i = cia_weights.get(metrics.get("I", "N"), 0.0)
    a = cia_weights.get(metrics.get("A", "N"), 0.0)

    # Impact sub-score
    iss = 1.0 - ((1.0 - c) * (1.0 - i) * (1.0 - a))
    if iss <= 0:
        return 0.0

    exploitability = 8.22 * av * ac * pr * ui

    if scope_changed:
        impact = 7.52 * (iss - 0.029) - 3.25 * ((iss - 0.02) ** 15)
    else:
        impact = 6.42 * iss

    if impact <= 0:
        return 0.0

    if scope_changed:
        base = min(1.08 * (impact + exploitability), 10.0)
    else:
        base = min(impact + exploitability, 10.0)

    return round(base * 10) / 10


# ─── Flat advisory ────────────────────────────────────────────────────────────

def _is_flat_advisory(record: RawRecord) -> bool:
    return "id" in record and "package" in record


def _extract_flat_advisory(record: RawRecord) -> Iterator[Vulnerability]:
    yield Vulnerability(
        id=str(record["id"]),
        package=record["package"],
        severity=Severity.from_label(record.get("severity")),
        summary=record.get("summary") or record.get("title") or "",
        fixed_version=record.get("fixedVersion") or record.get("fixed_version") or None,
        reference=record.get("reference") or record.get("url") or None,
    )


DEFAULT_SHAPES: tuple[RecordShape, ...] = (
    RecordShape("npm-audit", _is_npm_audit_entry, _extract_npm_audit_entry),
    RecordShape("npm-advisory", _is_npm_advisory, _extract_npm_advisory),
    RecordShape("osv", _is_osv_record, _extract_osv_record),
    RecordShape("flat", _is_flat_advisory, _extract_flat_advisory),
)


class VulnerabilityNormalizer:
    """Maps heterogeneous advisory records onto one Vulnerability list.

    Shapes are tried in order; the first match extracts. Malformed
    records are logged and skipped, never fatal.
    """

    def __init__(self, shapes: Iterable[RecordShape] | None = None):
        self.shapes: list[RecordShape] = list(shapes or DEFAULT_SHAPES)

    def register(self, shape: RecordShape, first: bool = False) -> None:
        """Add a record shape. ``first`` gives it priority over the rest."""
        if first:
            self.shapes.insert(0, shape)
        else:
            self.shapes.append(shape)

    def normalize(self, raw_records: Iterable[Any]) -> list[Vulnerability]:
        """Normalize and deduplicate raw records.

        Output keeps the order of first occurrence. When a (package, id)
        pair repeats, the more complete record (fix version and
        reference present) wins, in the slot of the first one, and any
        fix version or reference it lacks is taken from the other.
        """
        by_key: dict[tuple[str, str], Vulnerability] = {}

        for index, record in enumerate(raw_records):
            for vuln in self._extract(index, record):
                existing = by_key.get(vuln.key)
                # dict keeps the original insertion slot on reassignment
                by_key[vuln.key] = vuln if existing is None else _merge(existing, vuln)

        return list(by_key.values())

    def _extract(self, index: int, record: Any) -> list[Vulnerability]:
        if not isinstance(record, Mapping):
            logger.warning("Skipping vulnerability record #%d: not an object", index)
            return []

        shape = next((s for s in self.shapes if s.matches(record)), None)
        if shape is None:
            logger.warning(
                "Skipping vulnerability record #%d: unrecognized shape (keys: %s)",
                index,
                ", ".join(sorted(map(str, record))) or "none",
            )
            return []

        try:
            return list(shape.extract(record))
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as e:
            logger.warning(
                "Skipping malformed %s record #%d: %s", shape.name, index, e
            )
            return []


def _merge(existing: Vulnerability, duplicate: Vulnerability) -> Vulnerability:
    if duplicate.completeness > existing.completeness:
        base, other = duplicate, existing
    else:
        base, other = existing, duplicate
    return base.model_copy(update={
        "fixed_version": base.fixed_version or other.fixed_version,
        "reference": base.reference or other.reference,
    })


def records_from_audit_report(report: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Flatten an ``npm audit --json`` document into raw records.

    Handles the v2 ``vulnerabilities`` map (auditReportVersion 2) and the
    v1 ``advisories`` map. A bare list is returned as-is.
    """
    if isinstance(report, list):
        return list(report)

    records: list[dict[str, Any]] = []

    vulnerabilities = report.get("vulnerabilities")
    if isinstance(vulnerabilities, Mapping):
        for name, entry in vulnerabilities.items():
            if isinstance(entry, Mapping):
                records.append({"name": name, **entry})

    advisories = report.get("advisories")
    if isinstance(advisories, Mapping):
        records.extend(dict(a) for a in advisories.values() if isinstance(a, Mapping))

    return records
