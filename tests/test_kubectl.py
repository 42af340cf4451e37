#!/usr/bin/env python3
"""Tests for kubectl.py - kubectl CLI wrapper."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from kubectl import Kubectl, KubectlError


def pod(name, ready, total, deleting=False):
    metadata = {'name': name}
    if deleting:
        metadata['deletionTimestamp'] = '2024-01-01T00:00:00Z'
    return {
        'metadata': metadata,
        'spec': {'containers': [{'name': f'c{i}'} for i in range(total)]},
        'status': {'containerStatuses': [{'ready': i < ready} for i in range(total)]},
    }


def json_result(data):
    return (0, json.dumps(data), '')


class TestReads:
    """Test read operations."""

    def test_crd_names(self):
        data = {'items': [
            {'metadata': {'name': 'spinnakerservices.spinnaker.io'}},
            {'metadata': {'name': 'certificates.cert-manager.io'}},
        ]}
        with patch('kubectl.run_command', return_value=json_result(data)) as mock_run:
            names = Kubectl().crd_names()

        assert names == ['spinnakerservices.spinnaker.io', 'certificates.cert-manager.io']
        assert mock_run.call_args[0][0] == ['kubectl', 'get', 'crd', '-o', 'json']

    def test_crd_names_failure_raises(self):
        with patch('kubectl.run_command', return_value=(1, '', 'connection refused')):
            with pytest.raises(KubectlError) as exc_info:
                Kubectl().crd_names()
        assert exc_info.value.output == 'connection refused'
        assert 'connection refused' in str(exc_info.value)

    def test_unparseable_json_raises(self):
        with patch('kubectl.run_command', return_value=(0, 'not json', '')):
            with pytest.raises(KubectlError, match='Unparseable'):
                Kubectl().crd_names()

    def test_pod_readiness_single_pod(self):
        data = {'items': [pod('spinnaker-operator-abc', 2, 2), pod('other-xyz', 1, 1)]}
        with patch('kubectl.run_command', return_value=json_result(data)) as mock_run:
            status = Kubectl().pod_readiness('spinnaker-operator', 'spinnaker-operator')

        assert status == '2/2'
        assert mock_run.call_args[0][0][:3] == ['kubectl', '-n', 'spinnaker-operator']

    def test_pod_readiness_no_pods(self):
        with patch('kubectl.run_command', return_value=json_result({'items': []})):
            assert Kubectl().pod_readiness('ns', 'spinnaker-operator') == ''

    def test_pod_readiness_rollout_never_matches_single_marker(self):
        data = {'items': [pod('spinnaker-operator-a', 2, 2), pod('spinnaker-operator-b', 1, 2)]}
        with patch('kubectl.run_command', return_value=json_result(data)):
            assert Kubectl().pod_readiness('ns', 'spinnaker-operator') == '2/2,1/2'

    def test_pod_readiness_ignores_terminating_pods(self):
        data = {'items': [
            pod('spinnaker-operator-old', 0, 2, deleting=True),
            pod('spinnaker-operator-new', 2, 2),
        ]}
        with patch('kubectl.run_command', return_value=json_result(data)):
            assert Kubectl().pod_readiness('ns', 'spinnaker-operator') == '2/2'

    def test_deployment_image(self):
        data = {'spec': {'template': {'spec': {'containers': [
            {'name': 'halyard', 'image': 'armory/halyard:1.12'},
            {'name': 'spinnaker-operator', 'image': 'armory/spinnaker-operator:1.3.0'},
        ]}}}}
        with patch('kubectl.run_command', return_value=json_result(data)):
            image = Kubectl().deployment_image('ns', 'spinnaker-operator')
        assert image == 'armory/spinnaker-operator:1.3.0'

    def test_deployment_image_missing_container(self):
        data = {'spec': {'template': {'spec': {'containers': [{'name': 'halyard', 'image': 'h'}]}}}}
        with patch('kubectl.run_command', return_value=json_result(data)):
            assert Kubectl().deployment_image('ns', 'spinnaker-operator') is None

    def test_list_namespaces_failure_returns_error_text(self):
        with patch('kubectl.run_command', return_value=(1, '', 'Unauthorized')):
            ok, output = Kubectl().list_namespaces()
        assert ok is False
        assert output == 'Unauthorized'

    def test_custom_binary(self):
        with patch('kubectl.run_command', return_value=(0, '', '')) as mock_run:
            Kubectl(binary='/opt/bin/kubectl').namespace_exists('ns')
        assert mock_run.call_args[0][0][0] == '/opt/bin/kubectl'


class TestWrites:
    """Test mutating operations."""

    def test_ensure_namespace_creates_when_missing(self):
        with patch('kubectl.run_command', side_effect=[(1, '', 'NotFound'), (0, 'created', '')]) as mock_run:
            created = Kubectl().ensure_namespace('spinnaker')

        assert created is True
        assert mock_run.call_args_list[1][0][0] == ['kubectl', 'create', 'ns', 'spinnaker']

    def test_ensure_namespace_noop_when_present(self):
        with patch('kubectl.run_command', return_value=(0, 'spinnaker Active', '')) as mock_run:
            created = Kubectl().ensure_namespace('spinnaker')

        assert created is False
        assert mock_run.call_count == 1

    def test_apply_kustomize_with_namespace(self, tmp_path):
        with patch('kubectl.run_command', return_value=(0, 'configured\n', '')) as mock_run:
            Kubectl().apply_kustomize(tmp_path, namespace='spinnaker')

        assert mock_run.call_args[0][0] == ['kubectl', '-n', 'spinnaker', 'apply', '-k', str(tmp_path)]

    def test_apply_failure_raises_with_stderr(self, tmp_path):
        with patch('kubectl.run_command', return_value=(1, '', 'error: no objects passed')):
            with pytest.raises(KubectlError) as exc_info:
                Kubectl().apply_file(tmp_path)
        assert exc_info.value.output == 'error: no objects passed'
        assert 'apply -f' in exc_info.value.args[0]

    def test_delete_ignores_missing(self):
        with patch('kubectl.run_command', return_value=(0, '', '')) as mock_run:
            Kubectl().delete('crd', 'spinnakeraccounts.spinnaker.io')

        assert mock_run.call_args[0][0] == [
            'kubectl', 'delete', 'crd', 'spinnakeraccounts.spinnaker.io', '--ignore-not-found'
        ]
