"""Deployment run reports.

Each run writes `<ts>-<scenario>-<flavor>-<status>.json` and a matching
markdown file. Both lead with what ended up on the cluster (operator image,
removed CRD, patched files, Spinnaker namespace) and then list the phases.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Optional

STATUS_ICONS = {'passed': '✅', 'failed': '❌', 'skipped': '⏭️'}


@dataclass
class PhaseResult:
    """Result of a scenario phase."""
    name: str
    description: str
    status: str  # 'passed', 'failed', 'skipped'
    message: str = ''
    duration: float = 0.0


@dataclass
class DeploySummary:
    """What a run did to the cluster and the tree."""
    flavor: str
    operator_ns: str
    spin_ns: Optional[str] = None
    operator_image: Optional[str] = None
    operator_installed: Optional[bool] = None
    removed_crd: Optional[str] = None
    patched_files: list[str] = field(default_factory=list)

    def update(self, updates: Optional[dict]) -> None:
        """Take known fields from an action's context updates."""
        names = {f.name for f in fields(self)}
        for key, value in (updates or {}).items():
            if key in names:
                setattr(self, key, value)


@dataclass
class RunReport:
    """Deployment summary plus per-phase results."""
    scenario: str
    summary: DeploySummary
    report_dir: Path
    phases: list[PhaseResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    success: bool = False

    def start(self):
        self.started_at = datetime.now()
        self.report_dir.mkdir(parents=True, exist_ok=True)

    def record(self, name: str, description: str, status: str,
               message: str = '', duration: float = 0.0) -> None:
        self.phases.append(PhaseResult(name, description, status, message, duration))

    @property
    def duration(self) -> float:
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    @property
    def error(self) -> Optional[str]:
        """Message of the first failed phase."""
        for p in self.phases:
            if p.status == 'failed' and p.message:
                return p.message
        return None

    def finish(self, success: bool) -> Path:
        """Write JSON and markdown reports. Returns the JSON path."""
        self.finished_at = datetime.now()
        self.success = success
        json_path = self._report_path('json')
        with open(json_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)
        with open(self._report_path('md'), 'w', encoding='utf-8') as f:
            f.write(self.to_markdown())
        return json_path

    def to_dict(self) -> dict:
        """Report as a JSON-serializable dict (also used for --json-output)."""
        result = {
            'scenario': self.scenario,
            'success': self.success,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'duration_seconds': round(self.duration, 1),
            'deployment': asdict(self.summary),
            'phases': [
                {
                    'name': p.name,
                    'status': p.status,
                    'message': p.message,
                    'duration': round(p.duration, 1),
                }
                for p in self.phases
            ],
        }
        if not self.success and self.error:
            result['error'] = self.error
        return result

    def to_markdown(self) -> str:
        s = self.summary
        if s.operator_installed is None:
            operator = 'not checked'
        else:
            operator = f"{s.operator_image} ({'installed' if s.operator_installed else 'already running'})"
        patched = ', '.join(f'`{p}`' for p in s.patched_files) or 'none'

        lines = [
            f"# Spinnaker {self.scenario}: {'PASSED' if self.success else 'FAILED'}",
            "",
            f"**Date**: {self.started_at.strftime('%Y-%m-%d %H:%M:%S') if self.started_at else 'N/A'}",
            f"**Duration**: {self.duration:.1f}s",
            "",
            "## Deployment",
            "",
            f"- Flavor: {s.flavor}",
            f"- Operator: {operator} in `{s.operator_ns}`",
            f"- Removed CRD: {s.removed_crd or 'none'}",
            f"- Patched manifests: {patched}",
            f"- Spinnaker namespace: {s.spin_ns or 'not deployed'}",
            "",
            "## Phases",
            "",
            "| Phase | Status | Duration | Message |",
            "|-------|--------|----------|---------|",
        ]
        for p in self.phases:
            # Multi-line kubectl output would break the table
            message = p.message.replace('\n', ' ').replace('|', '\\|')
            icon = STATUS_ICONS.get(p.status, '❓')
            lines.append(f"| {p.name} | {icon} {p.status} | {p.duration:.1f}s | {message} |")
        lines.append("")
        return '\n'.join(lines)

    def _report_path(self, ext: str) -> Path:
        timestamp = self.started_at.strftime('%Y%m%d-%H%M%S') if self.started_at else 'unknown'
        status = 'passed' if self.success else 'failed'
        return self.report_dir / f"{timestamp}-{self.scenario}-{self.summary.flavor}-{status}.{ext}"
