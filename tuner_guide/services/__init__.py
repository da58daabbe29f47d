"""
Services package for Tuner Guide

This package contains the data sources, the now/next refresh engine and the
facade used by the API layer.
"""
from tuner_guide.services.guide_service import GuideService
from tuner_guide.services.mirakurun_client import MirakurunClient
from tuner_guide.services.refresh_scheduler import NowNextRefresher
from tuner_guide.services.sample_data_source import SampleDataSource
from tuner_guide.services.scheduler_service import guide_scheduler

__all__ = [
    'GuideService',
    'MirakurunClient',
    'NowNextRefresher',
    'SampleDataSource',
    'guide_scheduler',
]
