"""Run reports."""

from reporting.report import DeploySummary, PhaseResult, RunReport

__all__ = ['DeploySummary', 'PhaseResult', 'RunReport']
