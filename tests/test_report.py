#!/usr/bin/env python3
"""Tests for reporting/report.py - run reports."""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from reporting import DeploySummary, RunReport


def finished_report(tmp_path, success=True):
    summary = DeploySummary(flavor='oss', operator_ns='spinnaker-operator')
    report = RunReport(scenario='deploy', summary=summary, report_dir=tmp_path / 'reports')
    report.start()
    report.record('patch_flavor', 'Set manifests to oss flavor', 'passed', 'Patched 2 file(s)', 0.1)
    summary.update({'patched_files': ['spinnakerservice.yml', 'patches/profiles.yml']})
    report.record('deploy_secrets', 'Create spinnaker namespace and secrets', 'skipped')
    if success:
        report.record('ensure_operator', 'Ensure oss operator', 'passed', 'Installed oss operator', 1.0)
        summary.update({
            'operator_image': 'armory/spinnaker-operator:1.3.0',
            'operator_installed': True,
            'removed_crd': 'spinnakerservices.spinnaker.armory.io',
        })
    else:
        report.record('ensure_operator', 'Ensure oss operator', 'failed',
                      'Operator install failed\nerror: forbidden | denied', 2.0)
    report.finish(success)
    return report


class TestDeploySummary:
    """Test summary updates from context."""

    def test_update_ignores_unknown_keys(self):
        summary = DeploySummary(flavor='armory', operator_ns='ops')

        summary.update({'spin_ns': 'spinnaker', '_stop': object(), 'secrets_created': True})

        assert summary.spin_ns == 'spinnaker'
        assert not hasattr(summary, 'secrets_created')

    def test_update_accepts_none(self):
        summary = DeploySummary(flavor='armory', operator_ns='ops')
        summary.update(None)
        assert summary.operator_image is None


class TestRunReport:
    """Test report files and dict output."""

    def test_writes_json_and_markdown(self, tmp_path):
        report = finished_report(tmp_path)

        files = sorted(p.suffix for p in (tmp_path / 'reports').iterdir())
        assert files == ['.json', '.md']

        data = json.loads(next((tmp_path / 'reports').glob('*.json')).read_text())
        assert data['scenario'] == 'deploy'
        assert [p['status'] for p in data['phases']] == ['passed', 'skipped', 'passed']
        assert report.success is True

    def test_json_carries_deployment_outcome(self, tmp_path):
        finished_report(tmp_path)

        data = json.loads(next((tmp_path / 'reports').glob('*.json')).read_text())
        deployment = data['deployment']
        assert deployment['flavor'] == 'oss'
        assert deployment['operator_image'] == 'armory/spinnaker-operator:1.3.0'
        assert deployment['removed_crd'] == 'spinnakerservices.spinnaker.armory.io'
        assert deployment['patched_files'] == ['spinnakerservice.yml', 'patches/profiles.yml']
        assert deployment['spin_ns'] is None

    def test_filename_carries_scenario_flavor_and_status(self, tmp_path):
        finished_report(tmp_path, success=False)

        names = [p.name for p in (tmp_path / 'reports').iterdir()]
        assert all('-deploy-oss-failed.' in n for n in names)

    def test_markdown_deployment_section(self, tmp_path):
        finished_report(tmp_path)

        md = next((tmp_path / 'reports').glob('*.md')).read_text()
        assert md.startswith('# Spinnaker deploy: PASSED')
        assert '- Operator: armory/spinnaker-operator:1.3.0 (installed) in `spinnaker-operator`' in md
        assert '- Removed CRD: spinnakerservices.spinnaker.armory.io' in md
        assert '- Patched manifests: `spinnakerservice.yml`, `patches/profiles.yml`' in md
        assert '- Spinnaker namespace: not deployed' in md

    def test_markdown_operator_not_checked_on_failure(self, tmp_path):
        finished_report(tmp_path, success=False)

        md = next((tmp_path / 'reports').glob('*.md')).read_text()
        assert '- Operator: not checked' in md

    def test_markdown_escapes_multiline_messages(self, tmp_path):
        finished_report(tmp_path, success=False)

        md = next((tmp_path / 'reports').glob('*.md')).read_text()
        row = next(line for line in md.splitlines() if line.startswith('| ensure_operator'))
        assert 'Operator install failed error: forbidden \\| denied' in row

    def test_to_dict_reports_error(self, tmp_path):
        report = finished_report(tmp_path, success=False)

        result = report.to_dict()

        assert result['success'] is False
        assert result['error'].startswith('Operator install failed')
        assert result['phases'][0]['message'] == 'Patched 2 file(s)'

    def test_finish_returns_json_path(self, tmp_path):
        summary = DeploySummary(flavor='armory', operator_ns='ops')
        report = RunReport(scenario='operator', summary=summary, report_dir=tmp_path)
        report.start()

        path = report.finish(True)

        assert path.suffix == '.json'
        assert path.name.endswith('-operator-armory-passed.json')
